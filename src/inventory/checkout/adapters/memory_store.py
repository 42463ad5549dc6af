"""In-memory adapter for the inventory store.

Each repository owns a ``dict[int, entity]`` and an id counter. Entities
are copied on the way in and on the way out, so callers never hold a
reference to the canonical record.

The store gives atomicity (rollback on error) but not isolation; writers
are serialized by the CheckoutLedger lock.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import AsyncIterator, Optional, TypeVar

from ...exceptions import NotFoundError
from ..domain.entities import CheckOut, Device, Phone
from ..domain.ports import IAssetRepository, IInventoryStore, IRepository

logger = logging.getLogger(__name__)

T = TypeVar("T", Device, Phone, CheckOut)


class InMemoryRepository(IRepository[T]):
    """Dict-backed implementation of IRepository."""

    def __init__(self, resource_type: str):
        self.resource_type = resource_type
        self._items: dict[int, T] = {}
        self._last_id = 0

    async def add(self, entity: T) -> int:
        entity.validate()
        self._last_id += 1
        stored = replace(entity, id=self._last_id)
        self._items[stored.id] = stored
        logger.debug(f"Added {self.resource_type} {stored.id}")
        return stored.id

    async def get_by_id(self, entity_id: int) -> T:
        entity = await self.find_by_id(entity_id)
        if entity is None:
            raise NotFoundError(self.resource_type, entity_id)
        return entity

    async def find_by_id(self, entity_id: int) -> Optional[T]:
        stored = self._items.get(entity_id)
        return replace(stored) if stored is not None else None

    async def get_all(self) -> list[T]:
        # dicts keep insertion order and ids only grow
        return [replace(item) for item in self._items.values()]

    async def update(self, entity: T) -> None:
        if entity.id not in self._items:
            raise NotFoundError(self.resource_type, entity.id)
        entity.validate()
        self._items[entity.id] = replace(entity)

    def snapshot(self) -> tuple[dict[int, T], int]:
        return dict(self._items), self._last_id

    def restore(self, state: tuple[dict[int, T], int]) -> None:
        self._items, self._last_id = dict(state[0]), state[1]


class InMemoryAssetRepository(InMemoryRepository[T], IAssetRepository[T]):
    """Dict-backed repository for devices and phones."""

    async def delete(self, entity_id: int) -> None:
        if entity_id not in self._items:
            raise NotFoundError(self.resource_type, entity_id)
        del self._items[entity_id]
        logger.debug(f"Deleted {self.resource_type} {entity_id}")


class InMemoryInventoryStore(IInventoryStore):
    """In-memory implementation of IInventoryStore."""

    def __init__(self):
        self.devices: InMemoryAssetRepository[Device] = InMemoryAssetRepository("Device")
        self.phones: InMemoryAssetRepository[Phone] = InMemoryAssetRepository("Phone")
        self.checkouts: InMemoryRepository[CheckOut] = InMemoryRepository("CheckOut")

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        repos = (self.devices, self.phones, self.checkouts)
        saved = [repo.snapshot() for repo in repos]
        try:
            yield
        except BaseException:
            for repo, state in zip(repos, saved):
                repo.restore(state)
            logger.debug("In-memory transaction rolled back")
            raise
