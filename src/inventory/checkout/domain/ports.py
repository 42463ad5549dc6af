"""Port interfaces for the checkout ledger.

Ports define the contracts between the use cases and the storage
infrastructure. Adapters implement them; use cases depend only on
these interfaces.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Generic, Optional, TypeVar

from .entities import CheckOut, Device, Phone

T = TypeVar("T")


class IRepository(ABC, Generic[T]):
    """Port for persistence of one entity type.

    Every entity returned is a copy; mutating it does not change stored
    state until it is passed back to ``update``.
    """

    @abstractmethod
    async def add(self, entity: T) -> int:
        """Insert an entity and assign it the next unused id.

        Ids are positive, monotonic per entity type and never reused,
        even after deletion.

        Args:
            entity: Entity to insert (its ``id`` is ignored)

        Returns:
            The assigned id

        Raises:
            ValidationError: If a required field is empty
        """
        ...

    @abstractmethod
    async def get_by_id(self, entity_id: int) -> T:
        """Get an entity by id.

        Raises:
            NotFoundError: If no entity has this id
        """
        ...

    @abstractmethod
    async def find_by_id(self, entity_id: int) -> Optional[T]:
        """Get an entity by id, or None if absent."""
        ...

    @abstractmethod
    async def get_all(self) -> list[T]:
        """Get a snapshot of all entities in insertion order."""
        ...

    @abstractmethod
    async def update(self, entity: T) -> None:
        """Replace the stored entity with the same id.

        Raises:
            NotFoundError: If the id does not exist
            ValidationError: If a required field is empty
        """
        ...


class IAssetRepository(IRepository[T]):
    """Repository for loanable assets, which may also be deleted."""

    @abstractmethod
    async def delete(self, entity_id: int) -> None:
        """Delete an asset by id.

        Callers are responsible for checking loan history first.

        Raises:
            NotFoundError: If the id does not exist
        """
        ...


class IInventoryStore(ABC):
    """Port grouping the three repositories behind one transaction boundary."""

    devices: IAssetRepository[Device]
    phones: IAssetRepository[Phone]
    checkouts: IRepository[CheckOut]

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[None]:
        """Make every write inside the block all-or-nothing.

        Usage:
            async with store.transaction():
                await store.checkouts.add(...)
                await store.devices.update(...)
        """
        ...
