"""Read-only views over the inventory for presentation layers.

Every query runs under ``CheckoutLedger.reading()`` so it sees either all
or none of a concurrent checkout/check-in.
"""

from typing import Optional

from ..domain.entities import CheckOut, Device, Phone
from .ledger import CheckoutLedger


class InventoryQueries:
    """Query facade: snapshots of devices, phones and checkouts."""

    def __init__(self, ledger: CheckoutLedger):
        self.ledger = ledger

    async def get_all_devices(self) -> list[Device]:
        async with self.ledger.reading() as store:
            return await store.devices.get_all()

    async def get_all_phones(self) -> list[Phone]:
        async with self.ledger.reading() as store:
            return await store.phones.get_all()

    async def get_all_checkouts(self) -> list[CheckOut]:
        async with self.ledger.reading() as store:
            return await store.checkouts.get_all()

    async def get_open_checkouts(self) -> list[CheckOut]:
        """Checkouts that have not been checked in yet."""
        async with self.ledger.reading() as store:
            return [c for c in await store.checkouts.get_all() if c.is_open]

    async def get_device(self, device_id: int) -> Device:
        async with self.ledger.reading() as store:
            return await store.devices.get_by_id(device_id)

    async def get_phone(self, phone_id: int) -> Phone:
        async with self.ledger.reading() as store:
            return await store.phones.get_by_id(phone_id)

    async def get_checkout(self, checkout_id: int) -> CheckOut:
        async with self.ledger.reading() as store:
            return await store.checkouts.get_by_id(checkout_id)

    async def get_history_for(
        self,
        *,
        device_id: Optional[int] = None,
        phone_id: Optional[int] = None,
    ) -> list[CheckOut]:
        """All checkouts of one asset, oldest first.

        Exactly one of ``device_id`` / ``phone_id`` must be given.

        Raises:
            TypeError: If neither or both ids are given
            NotFoundError: If the asset does not exist
        """
        if (device_id is None) == (phone_id is None):
            raise TypeError("get_history_for() takes exactly one of device_id or phone_id")

        async with self.ledger.reading() as store:
            if device_id is not None:
                asset = await store.devices.get_by_id(device_id)
            else:
                asset = await store.phones.get_by_id(phone_id)

            history = [
                c for c in await store.checkouts.get_all() if c.references(asset.kind, asset.id)
            ]

        return sorted(history, key=lambda c: (c.check_out_date, c.id))
