"""PostgreSQL adapter for the inventory store.

This adapter implements IInventoryStore using asyncpg against the
``devices``, ``phones`` and ``checkouts`` tables (see ``database.SCHEMA_SQL``).

Repositories run each statement on the connection bound by an enclosing
``store.transaction()``; outside a transaction they borrow a pooled
connection per call.
"""

import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import AsyncIterator, Optional

import asyncpg

from ...database import (
    convert_db_exception,
    database_connection,
    database_transaction,
    init_schema,
)
from ...exceptions import ConflictError, NotFoundError
from ..domain.entities import CheckOut, Device, Phone
from ..domain.ports import IAssetRepository, IInventoryStore, IRepository

logger = logging.getLogger(__name__)

OPEN_CHECKOUT_INDEXES = {
    "checkouts_open_device_idx": "Device",
    "checkouts_open_phone_idx": "Phone",
}


class _PostgresRepository:
    """Shared plumbing for the table repositories."""

    resource_type = ""
    table = ""
    entity_cls: type = object

    def __init__(self, store: "PostgresInventoryStore"):
        self.store = store

    async def get_by_id(self, entity_id: int):
        entity = await self.find_by_id(entity_id)
        if entity is None:
            raise NotFoundError(self.resource_type, entity_id)
        return entity

    async def find_by_id(self, entity_id: int):
        async with self.store.connection() as conn:
            try:
                row = await conn.fetchrow(
                    f"SELECT * FROM {self.table} WHERE id = $1",
                    entity_id,
                )
            except asyncpg.PostgresError as e:
                raise convert_db_exception(e)

        if row is None:
            return None
        return self._row_to_entity(row)

    async def get_all(self) -> list:
        async with self.store.connection() as conn:
            try:
                rows = await conn.fetch(f"SELECT * FROM {self.table} ORDER BY id")
            except asyncpg.PostgresError as e:
                raise convert_db_exception(e)

        return [self._row_to_entity(row) for row in rows]

    async def _execute_update(self, entity_id: int, query: str, *args) -> None:
        async with self.store.connection() as conn:
            try:
                status = await conn.execute(query, *args)
            except asyncpg.PostgresError as e:
                raise self._convert(e)

        # asyncpg returns the command tag, e.g. "UPDATE 1"
        if status.split()[-1] == "0":
            raise NotFoundError(self.resource_type, entity_id)

    async def _insert(self, query: str, *args) -> int:
        async with self.store.connection() as conn:
            try:
                new_id = await conn.fetchval(query, *args)
            except asyncpg.PostgresError as e:
                raise self._convert(e)

        logger.debug(f"Inserted {self.resource_type} {new_id}")
        return new_id

    def _convert(self, e: Exception) -> Exception:
        return convert_db_exception(e)

    def _row_to_entity(self, row: asyncpg.Record):
        return self.entity_cls(**dict(row))


class _PostgresAssetRepository(_PostgresRepository):

    async def delete(self, entity_id: int) -> None:
        async with self.store.connection() as conn:
            try:
                status = await conn.execute(
                    f"DELETE FROM {self.table} WHERE id = $1",
                    entity_id,
                )
            except asyncpg.ForeignKeyViolationError as e:
                raise ConflictError(
                    f"{self.resource_type} {entity_id} has loan history and cannot be deleted",
                    resource_type=self.resource_type,
                    resource_id=entity_id,
                    cause=e,
                )
            except asyncpg.PostgresError as e:
                raise convert_db_exception(e)

        if status.split()[-1] == "0":
            raise NotFoundError(self.resource_type, entity_id)


class PostgresDeviceRepository(_PostgresAssetRepository, IAssetRepository[Device]):
    """PostgreSQL implementation of the device repository."""

    resource_type = "Device"
    table = "devices"
    entity_cls = Device

    async def add(self, entity: Device) -> int:
        entity.validate()
        return await self._insert(
            """
            INSERT INTO devices
                (name, type, manufacturer, model_number, is_checked_out, last_data_gen_date)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING id
            """,
            entity.name,
            entity.type,
            entity.manufacturer,
            entity.model_number,
            entity.is_checked_out,
            entity.last_data_gen_date,
        )

    async def update(self, entity: Device) -> None:
        entity.validate()
        await self._execute_update(
            entity.id,
            """
            UPDATE devices
            SET name = $2, type = $3, manufacturer = $4, model_number = $5,
                is_checked_out = $6, last_data_gen_date = $7
            WHERE id = $1
            """,
            entity.id,
            entity.name,
            entity.type,
            entity.manufacturer,
            entity.model_number,
            entity.is_checked_out,
            entity.last_data_gen_date,
        )


class PostgresPhoneRepository(_PostgresAssetRepository, IAssetRepository[Phone]):
    """PostgreSQL implementation of the phone repository."""

    resource_type = "Phone"
    table = "phones"
    entity_cls = Phone

    async def add(self, entity: Phone) -> int:
        entity.validate()
        return await self._insert(
            """
            INSERT INTO phones
                (name, model, operating_system, is_checked_out, checked_out_by)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING id
            """,
            entity.name,
            entity.model,
            entity.operating_system,
            entity.is_checked_out,
            entity.checked_out_by,
        )

    async def update(self, entity: Phone) -> None:
        entity.validate()
        await self._execute_update(
            entity.id,
            """
            UPDATE phones
            SET name = $2, model = $3, operating_system = $4,
                is_checked_out = $5, checked_out_by = $6
            WHERE id = $1
            """,
            entity.id,
            entity.name,
            entity.model,
            entity.operating_system,
            entity.is_checked_out,
            entity.checked_out_by,
        )


class PostgresCheckOutRepository(_PostgresRepository, IRepository[CheckOut]):
    """PostgreSQL implementation of the checkout repository (append-only)."""

    resource_type = "CheckOut"
    table = "checkouts"
    entity_cls = CheckOut

    async def add(self, entity: CheckOut) -> int:
        entity.validate()
        return await self._insert(
            """
            INSERT INTO checkouts
                (phone_id, device_id, checked_out_by, check_out_date, check_in_date, purpose)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING id
            """,
            entity.phone_id,
            entity.device_id,
            entity.checked_out_by,
            entity.check_out_date,
            entity.check_in_date,
            entity.purpose,
        )

    async def update(self, entity: CheckOut) -> None:
        entity.validate()
        await self._execute_update(
            entity.id,
            """
            UPDATE checkouts
            SET phone_id = $2, device_id = $3, checked_out_by = $4,
                check_out_date = $5, check_in_date = $6, purpose = $7
            WHERE id = $1
            """,
            entity.id,
            entity.phone_id,
            entity.device_id,
            entity.checked_out_by,
            entity.check_out_date,
            entity.check_in_date,
            entity.purpose,
        )

    def _convert(self, e: Exception) -> Exception:
        if isinstance(e, asyncpg.UniqueViolationError):
            asset = OPEN_CHECKOUT_INDEXES.get(getattr(e, "constraint_name", None))
            if asset:
                return ConflictError(
                    f"{asset} is already checked out",
                    resource_type=asset,
                    cause=e,
                )
        return convert_db_exception(e)


class PostgresInventoryStore(IInventoryStore):
    """PostgreSQL implementation of IInventoryStore."""

    def __init__(self, pool: asyncpg.Pool, isolation: str = "read_committed"):
        """Initialize with database connection pool.

        Args:
            pool: asyncpg connection pool
            isolation: Isolation level requested by ``transaction()``
        """
        self.pool = pool
        self.isolation = isolation
        self._bound_conn: ContextVar[Optional[asyncpg.Connection]] = ContextVar(
            f"inventory_store_conn_{id(self)}", default=None
        )
        self.devices = PostgresDeviceRepository(self)
        self.phones = PostgresPhoneRepository(self)
        self.checkouts = PostgresCheckOutRepository(self)

    async def create_schema(self) -> None:
        """Create tables and indexes if missing."""
        await init_schema(self.pool)

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[asyncpg.Connection]:
        """Yield the transaction-bound connection, or a pooled one."""
        conn = self._bound_conn.get()
        if conn is not None:
            yield conn
            return

        async with database_connection(self.pool) as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if self._bound_conn.get() is not None:
            # Already inside a transaction; join it
            yield
            return

        async with database_transaction(self.pool, isolation=self.isolation) as conn:
            token = self._bound_conn.set(conn)
            try:
                yield
            finally:
                self._bound_conn.reset(token)
