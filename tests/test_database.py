"""Tests for database helpers: error conversion and transactions.

Uses mocked asyncpg pools; no PostgreSQL instance is needed.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest

from inventory.database import (
    check_database_health,
    close_pool,
    convert_db_exception,
    database_connection,
    database_transaction,
)
from inventory.exceptions import (
    ConflictError,
    ConnectionPoolError,
    DatabaseError,
    IntegrityError,
    TransactionError,
)


@pytest.fixture
def conn():
    conn = MagicMock()
    tx = MagicMock()
    tx.start = AsyncMock()
    tx.commit = AsyncMock()
    tx.rollback = AsyncMock()
    conn.transaction = MagicMock(return_value=tx)
    conn.fetchval = AsyncMock(return_value=1)
    return conn


@pytest.fixture
def pool(conn):
    pool = MagicMock()
    pool.acquire = AsyncMock(return_value=conn)
    pool.release = AsyncMock()
    pool.close = AsyncMock()
    pool.get_size.return_value = 5
    pool.get_idle_size.return_value = 3
    return pool


class TestConvertDbException:
    """Tests for driver exception conversion."""

    def test_unique_violation(self):
        e = asyncpg.UniqueViolationError("duplicate key")
        assert isinstance(convert_db_exception(e), IntegrityError)

    def test_foreign_key_violation(self):
        e = asyncpg.ForeignKeyViolationError("still referenced")
        converted = convert_db_exception(e)
        assert isinstance(converted, IntegrityError)
        assert converted.cause is e

    def test_deadlock(self):
        e = asyncpg.DeadlockDetectedError("deadlock detected")
        assert isinstance(convert_db_exception(e), TransactionError)

    def test_timeout(self):
        assert isinstance(convert_db_exception(asyncio.TimeoutError()), TransactionError)

    def test_unknown_error(self):
        converted = convert_db_exception(RuntimeError("???"))
        assert type(converted) is DatabaseError

    def test_database_error_passes_through(self):
        error = ConnectionPoolError("down")
        assert convert_db_exception(error) is error


class TestDatabaseTransaction:
    """Tests for database_transaction."""

    @pytest.mark.asyncio
    async def test_commit(self, pool, conn):
        async with database_transaction(pool) as tx_conn:
            assert tx_conn is conn

        tx = conn.transaction.return_value
        tx.commit.assert_awaited_once()
        tx.rollback.assert_not_awaited()
        pool.release.assert_awaited_once_with(conn)

    @pytest.mark.asyncio
    async def test_isolation_level_is_passed(self, pool, conn):
        async with database_transaction(pool, isolation="repeatable_read"):
            pass

        conn.transaction.assert_called_once_with(isolation="repeatable_read")

    @pytest.mark.asyncio
    async def test_rollback_converts_driver_error(self, pool, conn):
        with pytest.raises(IntegrityError):
            async with database_transaction(pool):
                raise asyncpg.UniqueViolationError("duplicate key")

        conn.transaction.return_value.rollback.assert_awaited_once()
        pool.release.assert_awaited_once_with(conn)

    @pytest.mark.asyncio
    async def test_inventory_errors_pass_through(self, pool):
        with pytest.raises(ConflictError):
            async with database_transaction(pool):
                raise ConflictError("Device 1 is already checked out")

    @pytest.mark.asyncio
    async def test_start_failure(self, pool, conn):
        conn.transaction.return_value.start.side_effect = RuntimeError("broken")

        with pytest.raises(TransactionError):
            async with database_transaction(pool):
                pass

    @pytest.mark.asyncio
    async def test_no_pool(self):
        with pytest.raises(ConnectionPoolError):
            async with database_transaction(None):
                pass

    @pytest.mark.asyncio
    async def test_acquire_failure(self, pool):
        pool.acquire.side_effect = OSError("connection refused")

        with pytest.raises(ConnectionPoolError):
            async with database_connection(pool):
                pass


class TestPoolHelpers:
    """Tests for health checks and pool shutdown."""

    @pytest.mark.asyncio
    async def test_health(self, pool):
        health = await check_database_health(pool)
        assert health == {"healthy": True, "pool_size": 5, "pool_free": 3, "pool_used": 2}

    @pytest.mark.asyncio
    async def test_health_without_pool(self):
        assert (await check_database_health(None))["healthy"] is False

    @pytest.mark.asyncio
    async def test_close_pool(self, pool):
        await close_pool(pool)
        pool.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_none(self):
        await close_pool(None)
