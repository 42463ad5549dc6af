"""Tests for the PostgreSQL inventory store.

Unit tests drive the repositories with mocked asyncpg pools and
connections. Integration tests at the bottom need a running PostgreSQL
and are skipped unless DATABASE_URL is set; they work in a throwaway
``inventory_test`` schema that is dropped afterwards.
"""

import asyncio
import os
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest
import pytest_asyncio
from dotenv import load_dotenv

from inventory.checkout.adapters import PostgresInventoryStore
from inventory.checkout.domain.entities import CheckOut, Device, Phone
from inventory.checkout.use_cases import CheckoutLedger, InventoryQueries
from inventory.exceptions import (
    ConflictError,
    DatabaseError,
    IntegrityError,
    NotFoundError,
)

# Load environment variables from .env file (for local development)
load_dotenv()

TEST_SCHEMA = "inventory_test"


def make_conn():
    conn = MagicMock()
    conn.fetchrow = AsyncMock(return_value=None)
    conn.fetch = AsyncMock(return_value=[])
    conn.fetchval = AsyncMock(return_value=1)
    conn.execute = AsyncMock(return_value="UPDATE 1")
    tx = MagicMock()
    tx.start = AsyncMock()
    tx.commit = AsyncMock()
    tx.rollback = AsyncMock()
    conn.transaction = MagicMock(return_value=tx)
    return conn


@pytest.fixture
def conn():
    return make_conn()


@pytest.fixture
def pool(conn):
    pool = MagicMock()
    pool.acquire = AsyncMock(return_value=conn)
    pool.release = AsyncMock()
    return pool


@pytest.fixture
def store(pool):
    return PostgresInventoryStore(pool)


def unique_violation(constraint: str) -> asyncpg.UniqueViolationError:
    e = asyncpg.UniqueViolationError("duplicate key value violates unique constraint")
    e.constraint_name = constraint
    return e


class TestRowMapping:
    """Tests for reading rows into entities."""

    @pytest.mark.asyncio
    async def test_find_device(self, store, conn):
        conn.fetchrow.return_value = {
            "id": 1,
            "name": "Thermostat",
            "type": "Sensor",
            "manufacturer": "Nest",
            "model_number": "T3007ES",
            "is_checked_out": False,
            "last_data_gen_date": None,
        }

        device = await store.devices.find_by_id(1)

        assert device == Device(
            name="Thermostat",
            type="Sensor",
            manufacturer="Nest",
            model_number="T3007ES",
            id=1,
        )
        assert conn.fetchrow.call_args.args[1] == 1

    @pytest.mark.asyncio
    async def test_missing_row(self, store, conn):
        assert await store.phones.find_by_id(3) is None
        with pytest.raises(NotFoundError) as exc_info:
            await store.phones.get_by_id(3)
        assert exc_info.value.resource_type == "Phone"

    @pytest.mark.asyncio
    async def test_get_all_orders_by_id(self, store, conn):
        await store.checkouts.get_all()

        assert "ORDER BY id" in conn.fetch.call_args.args[0]

    @pytest.mark.asyncio
    async def test_pooled_connection_is_released(self, store, pool, conn):
        await store.devices.get_all()

        pool.release.assert_awaited_once_with(conn)


class TestWrites:
    """Tests for inserts, updates and deletes."""

    @pytest.mark.asyncio
    async def test_add_returns_generated_id(self, store, conn):
        conn.fetchval.return_value = 7

        assert await store.phones.add(Phone(name="Dev Phone")) == 7

    @pytest.mark.asyncio
    async def test_update_missing_row(self, store, conn):
        conn.execute.return_value = "UPDATE 0"

        with pytest.raises(NotFoundError):
            await store.devices.update(Device(name="Ghost", id=9))

    @pytest.mark.asyncio
    async def test_open_checkout_index_violation_is_conflict(self, store, conn):
        conn.fetchval.side_effect = unique_violation("checkouts_open_device_idx")
        checkout = CheckOut(
            phone_id=1,
            device_id=1,
            checked_out_by="alice",
            check_out_date=datetime.now(timezone.utc),
        )

        with pytest.raises(ConflictError) as exc_info:
            await store.checkouts.add(checkout)

        assert exc_info.value.resource_type == "Device"

    @pytest.mark.asyncio
    async def test_other_unique_violation_is_integrity_error(self, store, conn):
        conn.execute.side_effect = unique_violation("devices_pkey")

        with pytest.raises(IntegrityError) as exc_info:
            await store.devices.update(Device(name="Thermostat", id=1))

        assert exc_info.value.constraint == "devices_pkey"

    @pytest.mark.asyncio
    async def test_delete_with_history_is_conflict(self, store, conn):
        conn.execute.side_effect = asyncpg.ForeignKeyViolationError("still referenced")

        with pytest.raises(ConflictError):
            await store.phones.delete(1)

    @pytest.mark.asyncio
    async def test_delete_missing_row(self, store, conn):
        conn.execute.return_value = "DELETE 0"

        with pytest.raises(NotFoundError):
            await store.devices.delete(4)


class TestTransaction:
    """Tests for the store transaction boundary."""

    @pytest.mark.asyncio
    async def test_writes_share_one_connection(self, store, pool, conn):
        async with store.transaction():
            await store.devices.update(Device(name="Thermostat", id=1))
            await store.phones.update(Phone(name="Dev Phone", id=1))

        pool.acquire.assert_awaited_once()
        conn.transaction.return_value.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_default_isolation_level(self, store, conn):
        async with store.transaction():
            pass

        conn.transaction.assert_called_once_with(isolation="read_committed")

    @pytest.mark.asyncio
    async def test_configured_isolation_level(self, pool, conn):
        store = PostgresInventoryStore(pool, isolation="serializable")

        async with store.transaction():
            await store.devices.update(Device(name="Thermostat", id=1))

        conn.transaction.assert_called_once_with(isolation="serializable")

    @pytest.mark.asyncio
    async def test_nested_transaction_joins_outer(self, store, pool, conn):
        async with store.transaction():
            async with store.transaction():
                await store.devices.update(Device(name="Thermostat", id=1))

        assert conn.transaction.call_count == 1

    @pytest.mark.asyncio
    async def test_domain_error_rolls_back_unchanged(self, store, conn):
        conn.execute.return_value = "UPDATE 0"

        with pytest.raises(NotFoundError):
            async with store.transaction():
                await store.devices.update(Device(name="Ghost", id=9))

        tx = conn.transaction.return_value
        tx.rollback.assert_awaited_once()
        tx.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_database_error(self, store, conn):
        with pytest.raises(DatabaseError):
            async with store.transaction():
                raise RuntimeError("connection reset")

    @pytest.mark.asyncio
    async def test_binding_is_cleared_after_transaction(self, store, pool):
        async with store.transaction():
            pass

        await store.devices.get_all()

        assert pool.acquire.await_count == 2


# ============================================
# Integration tests (real PostgreSQL)
# ============================================


@pytest_asyncio.fixture
async def pg_store():
    """Store bound to a fresh schema in the configured database."""
    database_url = os.getenv("DATABASE_URL")
    admin = await asyncpg.connect(database_url)
    await admin.execute(f"DROP SCHEMA IF EXISTS {TEST_SCHEMA} CASCADE")
    await admin.execute(f"CREATE SCHEMA {TEST_SCHEMA}")

    pool = await asyncpg.create_pool(
        database_url,
        min_size=1,
        max_size=5,
        server_settings={"search_path": TEST_SCHEMA},
    )
    store = PostgresInventoryStore(pool)
    await store.create_schema()

    yield store

    await pool.close()
    await admin.execute(f"DROP SCHEMA IF EXISTS {TEST_SCHEMA} CASCADE")
    await admin.close()


@pytest.mark.skipif(not os.getenv("DATABASE_URL"), reason="DATABASE_URL not set")
class TestPostgresLedger:
    """Ledger scenarios against a real database."""

    @pytest.mark.asyncio
    async def test_checkout_and_checkin(self, pg_store):
        ledger = CheckoutLedger(pg_store)
        queries = InventoryQueries(ledger)
        device_id = await ledger.add_device(Device(name="TEST-Thermostat"))
        phone_id = await ledger.add_phone(Phone(name="TEST-Phone"))

        checkout = await ledger.check_out_device(phone_id, device_id, "alice", "Data Generation")

        assert (await queries.get_phone(phone_id)).checked_out_by == "alice"
        assert [c.id for c in await queries.get_open_checkouts()] == [checkout.id]

        await ledger.check_in_device(checkout.id)

        closed = await queries.get_checkout(checkout.id)
        assert closed.check_in_date >= closed.check_out_date
        assert (await queries.get_device(device_id)).is_checked_out is False
        assert await queries.get_open_checkouts() == []

    @pytest.mark.asyncio
    async def test_concurrent_checkouts(self, pg_store):
        ledger = CheckoutLedger(pg_store)
        device_id = await ledger.add_device(Device(name="TEST-Thermostat"))
        phone_id = await ledger.add_phone(Phone(name="TEST-Phone"))

        results = await asyncio.gather(
            *(ledger.check_out_device(phone_id, device_id, f"user{i}") for i in range(5)),
            return_exceptions=True,
        )

        assert sum(isinstance(r, CheckOut) for r in results) == 1
        assert sum(isinstance(r, ConflictError) for r in results) == 4

    @pytest.mark.asyncio
    async def test_partial_index_blocks_second_open_checkout(self, pg_store):
        device_id = await pg_store.devices.add(Device(name="TEST-Thermostat"))
        phone_id = await pg_store.phones.add(Phone(name="TEST-Phone"))
        other_phone = await pg_store.phones.add(Phone(name="TEST-Phone-2"))
        ledger = CheckoutLedger(pg_store)
        await ledger.check_out_device(phone_id, device_id, "alice")

        # bypass the ledger to hit the database constraint directly
        with pytest.raises(ConflictError):
            await pg_store.checkouts.add(
                CheckOut(
                    phone_id=other_phone,
                    device_id=device_id,
                    checked_out_by="bob",
                    check_out_date=ledger.clock(),
                )
            )

    @pytest.mark.asyncio
    async def test_remove_with_history(self, pg_store):
        ledger = CheckoutLedger(pg_store)
        device_id = await ledger.add_device(Device(name="TEST-Thermostat"))
        phone_id = await ledger.add_phone(Phone(name="TEST-Phone"))
        checkout = await ledger.check_out_device(phone_id, device_id, "alice")
        await ledger.check_in_device(checkout.id)

        with pytest.raises(ConflictError):
            await ledger.remove_device(device_id)
