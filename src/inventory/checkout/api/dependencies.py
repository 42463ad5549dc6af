"""FastAPI dependency injection for the inventory API.

Lifecycle Management:
- The store (and its database pool, for PostgreSQL) is built once at
  startup and shared across requests
- One CheckoutLedger wraps the store; its lock serializes all writes
- Everything is closed at application shutdown
"""

import logging
from typing import Optional

from ...config import STORE_POSTGRES, InventoryConfig
from ...database import close_pool, create_pool
from ..adapters import InMemoryInventoryStore, PostgresInventoryStore, seed_sample_data
from ..domain.ports import IInventoryStore
from ..use_cases import CheckoutLedger, InventoryQueries

logger = logging.getLogger(__name__)

# ========== Global State ==========

_db_pool = None
_ledger: Optional[CheckoutLedger] = None
_queries: Optional[InventoryQueries] = None


async def init_inventory(config: InventoryConfig) -> CheckoutLedger:
    """Build the store and ledger from configuration.

    Should be called on application startup.
    """
    global _db_pool, _ledger, _queries

    store: IInventoryStore
    if config.store == STORE_POSTGRES:
        _db_pool = await create_pool(
            config.database_url,
            min_size=config.db_pool_min_size,
            max_size=config.db_pool_max_size,
        )
        store = PostgresInventoryStore(_db_pool)
        await store.create_schema()
    else:
        store = InMemoryInventoryStore()

    _ledger = CheckoutLedger(store)
    _queries = InventoryQueries(_ledger)
    logger.info(f"Inventory initialized with {config.store} store")

    if config.seed_sample_data:
        await seed_sample_data(_ledger)

    return _ledger


async def close_inventory() -> None:
    """Release the ledger and close the database pool.

    Should be called on application shutdown.
    """
    global _db_pool, _ledger, _queries

    _ledger = None
    _queries = None
    if _db_pool is not None:
        await close_pool(_db_pool)
        _db_pool = None


# ========== Dependency Functions ==========


def get_ledger() -> CheckoutLedger:
    """Get the shared checkout ledger."""
    if _ledger is None:
        raise RuntimeError("Inventory not initialized. Call init_inventory() first.")
    return _ledger


def get_queries() -> InventoryQueries:
    """Get the shared query facade."""
    if _queries is None:
        raise RuntimeError("Inventory not initialized. Call init_inventory() first.")
    return _queries


def get_db_pool():
    """Get the database pool, or None for the in-memory store."""
    return _db_pool
