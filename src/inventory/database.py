"""Database utilities for the PostgreSQL inventory store.

This module provides:
    - Transaction context managers with automatic commit/rollback
    - Connection pool management
    - The inventory schema (devices, phones, checkouts)

Example:
    async with database_transaction(pool) as conn:
        await conn.execute("INSERT INTO devices ...")
        await conn.execute("UPDATE phones ...")
        # Automatic commit on success, rollback on exception
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import asyncpg

from .exceptions import (
    ConnectionPoolError,
    DatabaseError,
    IntegrityError,
    InventoryError,
    TransactionError,
)

logger = logging.getLogger(__name__)

ACQUIRE_TIMEOUT_SECONDS = 30.0

# ============================================
# Schema
# ============================================

# The partial unique indexes are the database-level form of the
# "one open checkout per asset" rule.
SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS devices (
    id INTEGER GENERATED ALWAYS AS IDENTITY PRIMARY KEY,
    name TEXT NOT NULL,
    type TEXT NOT NULL DEFAULT '',
    manufacturer TEXT NOT NULL DEFAULT '',
    model_number TEXT NOT NULL DEFAULT '',
    is_checked_out BOOLEAN NOT NULL DEFAULT FALSE,
    last_data_gen_date TIMESTAMPTZ
);

CREATE TABLE IF NOT EXISTS phones (
    id INTEGER GENERATED ALWAYS AS IDENTITY PRIMARY KEY,
    name TEXT NOT NULL,
    model TEXT NOT NULL DEFAULT '',
    operating_system TEXT NOT NULL DEFAULT '',
    is_checked_out BOOLEAN NOT NULL DEFAULT FALSE,
    checked_out_by TEXT
);

CREATE TABLE IF NOT EXISTS checkouts (
    id INTEGER GENERATED ALWAYS AS IDENTITY PRIMARY KEY,
    phone_id INTEGER NOT NULL REFERENCES phones(id),
    device_id INTEGER NOT NULL REFERENCES devices(id),
    checked_out_by TEXT NOT NULL,
    check_out_date TIMESTAMPTZ NOT NULL,
    check_in_date TIMESTAMPTZ,
    purpose TEXT NOT NULL DEFAULT ''
);

CREATE UNIQUE INDEX IF NOT EXISTS checkouts_open_device_idx
    ON checkouts (device_id) WHERE check_in_date IS NULL;

CREATE UNIQUE INDEX IF NOT EXISTS checkouts_open_phone_idx
    ON checkouts (phone_id) WHERE check_in_date IS NULL;
"""


async def init_schema(pool) -> None:
    """Create the inventory tables and indexes if they do not exist."""
    async with database_transaction(pool) as conn:
        await conn.execute(SCHEMA_SQL)
    logger.info("Inventory schema ready")


# ============================================
# Transaction Context Managers
# ============================================

@asynccontextmanager
async def database_transaction(
    pool,
    isolation: str = "read_committed",
) -> AsyncIterator[Any]:
    """Context manager for database transactions with automatic commit/rollback.

    Acquires a connection from the pool, starts a transaction, and ensures
    proper commit on success or rollback on exception.

    Args:
        pool: asyncpg connection pool
        isolation: Transaction isolation level
            ("serializable", "repeatable_read", "read_committed")

    Yields:
        Database connection within transaction

    Raises:
        ConnectionPoolError: If connection cannot be acquired
        TransactionError: If transaction fails
        IntegrityError: If integrity constraint violated
    """
    if pool is None:
        raise ConnectionPoolError("Database connection pool is not initialized")

    conn = await _acquire(pool)
    try:
        transaction = conn.transaction(isolation=isolation)

        try:
            await transaction.start()
        except Exception as e:
            raise TransactionError(
                f"Failed to start transaction: {e}",
                cause=e,
            )

        try:
            yield conn
            await transaction.commit()
            logger.debug("Transaction committed successfully")

        except Exception as e:
            try:
                await transaction.rollback()
                logger.debug("Transaction rolled back due to exception")
            except Exception as rollback_error:
                logger.error(f"Rollback failed: {rollback_error}")

            if isinstance(e, InventoryError):
                raise
            raise convert_db_exception(e)

    finally:
        await pool.release(conn)


@asynccontextmanager
async def database_connection(pool) -> AsyncIterator[Any]:
    """Simple context manager for a pooled connection without transaction.

    Use this for read-only operations.

    Example:
        async with database_connection(pool) as conn:
            rows = await conn.fetch("SELECT * FROM devices ORDER BY id")
    """
    if pool is None:
        raise ConnectionPoolError("Database connection pool is not initialized")

    conn = await _acquire(pool)
    try:
        yield conn
    finally:
        await pool.release(conn)


async def _acquire(pool):
    try:
        return await asyncio.wait_for(pool.acquire(), timeout=ACQUIRE_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        raise ConnectionPoolError(
            "Timeout acquiring database connection",
            details={"timeout_seconds": ACQUIRE_TIMEOUT_SECONDS},
        )
    except Exception as e:
        raise ConnectionPoolError(
            f"Failed to acquire database connection: {e}",
            cause=e,
        )


# ============================================
# Error Conversion
# ============================================

def convert_db_exception(e: Exception) -> DatabaseError:
    """Convert a driver exception to the matching DatabaseError subtype."""
    if isinstance(e, DatabaseError):
        return e

    if isinstance(e, asyncpg.UniqueViolationError):
        return IntegrityError(
            f"Duplicate entry: {e}",
            constraint=getattr(e, "constraint_name", None) or "unique",
            cause=e,
        )

    if isinstance(e, asyncpg.ForeignKeyViolationError):
        return IntegrityError(
            f"Foreign key violation: {e}",
            constraint=getattr(e, "constraint_name", None) or "foreign_key",
            cause=e,
        )

    if isinstance(e, asyncpg.NotNullViolationError):
        return IntegrityError(
            f"Not null violation: {e}",
            constraint="not_null",
            cause=e,
        )

    if isinstance(e, asyncpg.DeadlockDetectedError):
        return TransactionError(
            f"Deadlock detected: {e}",
            operation="transaction",
            cause=e,
        )

    if isinstance(e, asyncio.TimeoutError):
        return TransactionError(
            f"Database operation timed out: {e}",
            operation="query",
            cause=e,
        )

    return DatabaseError(
        f"Database operation failed: {e}",
        cause=e,
    )


# ============================================
# Connection Pool Helpers
# ============================================

async def create_pool(
    database_url: str,
    min_size: int = 1,
    max_size: int = 5,
    command_timeout: float = 60.0,
    **kwargs,
):
    """Create a database connection pool.

    Raises:
        ConnectionPoolError: If pool creation fails
    """
    try:
        pool = await asyncpg.create_pool(
            database_url,
            min_size=min_size,
            max_size=max_size,
            command_timeout=command_timeout,
            **kwargs,
        )
    except Exception as e:
        raise ConnectionPoolError(
            f"Failed to create database pool: {e}",
            cause=e,
        )

    logger.info(f"Database pool created (min={min_size}, max={max_size})")
    return pool


async def close_pool(pool, timeout: float = 10.0):
    """Close database pool gracefully, terminating it on timeout."""
    if pool is None:
        return

    try:
        await asyncio.wait_for(pool.close(), timeout=timeout)
        logger.info("Database pool closed")
    except asyncio.TimeoutError:
        logger.warning(f"Pool close timed out after {timeout}s, terminating")
        pool.terminate()


async def check_database_health(pool) -> dict[str, Any]:
    """Check database connection health."""
    if pool is None:
        return {"healthy": False, "error": "Pool not initialized"}

    try:
        async with database_connection(pool) as conn:
            result = await conn.fetchval("SELECT 1")
    except Exception as e:
        return {"healthy": False, "error": str(e)}

    pool_size = pool.get_size()
    pool_free = pool.get_idle_size()
    return {
        "healthy": result == 1,
        "pool_size": pool_size,
        "pool_free": pool_free,
        "pool_used": pool_size - pool_free,
    }


__all__ = [
    "SCHEMA_SQL",
    "init_schema",
    "database_transaction",
    "database_connection",
    "convert_db_exception",
    "create_pool",
    "close_pool",
    "check_database_health",
]
