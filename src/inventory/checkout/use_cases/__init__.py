"""Use cases for the checkout ledger.

The ledger performs every write; the query facade serves consistent reads.
"""

from .ledger import CheckoutLedger, utc_now
from .queries import InventoryQueries

__all__ = [
    "CheckoutLedger",
    "InventoryQueries",
    "utc_now",
]
