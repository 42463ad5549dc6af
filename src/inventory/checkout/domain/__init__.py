"""Domain layer for the checkout ledger.

Contains:
- Entities: Device, Phone, CheckOut and the checkout validity rule
- Ports: Repository and store interfaces for storage adapters
"""

from .entities import (
    Asset,
    AssetKind,
    CheckOut,
    Device,
    Phone,
    is_valid_for_checkout,
)
from .ports import IAssetRepository, IInventoryStore, IRepository

__all__ = [
    # Entities
    "Asset",
    "AssetKind",
    "CheckOut",
    "Device",
    "Phone",
    "is_valid_for_checkout",
    # Ports
    "IRepository",
    "IAssetRepository",
    "IInventoryStore",
]
