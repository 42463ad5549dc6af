"""Adapters for the checkout ledger.

Concrete store implementations of the domain ports, plus sample data.
"""

from .memory_store import (
    InMemoryAssetRepository,
    InMemoryInventoryStore,
    InMemoryRepository,
)
from .postgres_store import (
    PostgresCheckOutRepository,
    PostgresDeviceRepository,
    PostgresInventoryStore,
    PostgresPhoneRepository,
)
from .sample_data import seed_sample_data

__all__ = [
    "InMemoryRepository",
    "InMemoryAssetRepository",
    "InMemoryInventoryStore",
    "PostgresDeviceRepository",
    "PostgresPhoneRepository",
    "PostgresCheckOutRepository",
    "PostgresInventoryStore",
    "seed_sample_data",
]
