"""Checkout Ledger use case.

The ledger owns every write to the inventory and enforces the
checkout/check-in state machine for devices and phones:

    Available --check_out_device--> OnLoan --check_in_device--> Available

Invariants kept by this class:
- ``Device.is_checked_out`` is True iff an open CheckOut references it
  (same for ``Phone``, whose ``checked_out_by`` mirrors the holder)
- At most one open CheckOut references a given device or phone

All writes are serialized by one asyncio.Lock and run inside a store
transaction, so a failing operation changes nothing and a reader using
``reading()`` never observes a half-applied transition.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import AsyncIterator, Callable, Optional

from ...exceptions import ConflictError, ValidationError
from ..domain.entities import (
    Asset,
    CheckOut,
    Device,
    Phone,
    is_valid_for_checkout,
)
from ..domain.ports import IInventoryStore

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CheckoutLedger:
    """Enforce checkout/check-in transitions over an inventory store.

    Usage:
        ledger = CheckoutLedger(InMemoryInventoryStore())
        device_id = await ledger.add_device(Device(name="Thermostat"))
        phone_id = await ledger.add_phone(Phone(name="Dev Phone"))
        checkout = await ledger.check_out_device(
            phone_id, device_id, "alice", "Data Generation"
        )
        await ledger.check_in_device(checkout.id)
    """

    def __init__(
        self,
        store: IInventoryStore,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the ledger.

        Args:
            store: Store owning the device, phone and checkout collections
            clock: Source of "now" for checkout and check-in timestamps
        """
        self.store = store
        self.clock = clock
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def reading(self) -> AsyncIterator[IInventoryStore]:
        """Hold the write lock for a consistent multi-step read."""
        async with self._lock:
            yield self.store

    # ========== Checkout state machine ==========

    async def check_out_device(
        self,
        phone_id: int,
        device_id: int,
        user_name: str,
        purpose: str = "",
    ) -> CheckOut:
        """Loan a phone and a device to a user.

        Args:
            phone_id: Phone to check out
            device_id: Device to check out
            user_name: Person taking the assets
            purpose: Free text, e.g. "Data Generation"

        Returns:
            The created (open) CheckOut

        Raises:
            NotFoundError: If the phone or device does not exist
            ConflictError: If either asset is already checked out
            ValidationError: If user_name is empty
        """
        async with self._lock:
            phone = await self.store.phones.get_by_id(phone_id)
            device = await self.store.devices.get_by_id(device_id)

            if not is_valid_for_checkout(device):
                raise ConflictError(
                    f"Device {device_id} is already checked out",
                    resource_type="Device",
                    resource_id=device_id,
                )
            if not is_valid_for_checkout(phone):
                raise ConflictError(
                    f"Phone {phone_id} is already checked out to {phone.checked_out_by}",
                    resource_type="Phone",
                    resource_id=phone_id,
                )
            if user_name is None or not user_name.strip():
                raise ValidationError("User name is required", field="user_name")

            user_name = user_name.strip()
            checkout = CheckOut(
                phone_id=phone_id,
                device_id=device_id,
                checked_out_by=user_name,
                check_out_date=self.clock(),
                purpose=purpose or "",
            )

            async with self.store.transaction():
                checkout.id = await self.store.checkouts.add(checkout)
                await self.store.devices.update(replace(device, is_checked_out=True))
                await self.store.phones.update(
                    replace(phone, is_checked_out=True, checked_out_by=user_name)
                )

        logger.info(
            f"Checked out device {device_id} and phone {phone_id} "
            f"to {user_name} (checkout {checkout.id})"
        )
        return checkout

    async def check_in_device(self, checkout_id: int) -> None:
        """Close an open checkout and make its assets available again.

        Check-in is not idempotent: closing a closed checkout is an error.

        Raises:
            NotFoundError: If the checkout does not exist
            ConflictError: If the checkout is already checked in
        """
        async with self._lock:
            checkout = await self.store.checkouts.get_by_id(checkout_id)
            if not checkout.is_open:
                raise ConflictError(
                    f"CheckOut {checkout_id} is already checked in",
                    resource_type="CheckOut",
                    resource_id=checkout_id,
                )

            device = await self.store.devices.get_by_id(checkout.device_id)
            phone = await self.store.phones.get_by_id(checkout.phone_id)

            # never before the checkout, even if the clock stepped back
            check_in_date = max(self.clock(), checkout.check_out_date)

            async with self.store.transaction():
                await self.store.checkouts.update(replace(checkout, check_in_date=check_in_date))
                await self.store.devices.update(replace(device, is_checked_out=False))
                await self.store.phones.update(
                    replace(phone, is_checked_out=False, checked_out_by=None)
                )

        logger.info(
            f"Checked in device {checkout.device_id} and phone {checkout.phone_id} "
            f"(checkout {checkout_id})"
        )

    # ========== Asset commands ==========

    async def add_device(self, device: Device) -> int:
        """Register a new device; it always starts out available.

        Raises:
            ValidationError: If the device has no name
        """
        async with self._lock:
            device_id = await self.store.devices.add(
                replace(device, id=None, is_checked_out=False)
            )
        logger.info(f"Added device {device_id} ({device.name})")
        return device_id

    async def add_phone(self, phone: Phone) -> int:
        """Register a new phone; it always starts out available.

        Raises:
            ValidationError: If the phone has no name
        """
        async with self._lock:
            phone_id = await self.store.phones.add(
                replace(phone, id=None, is_checked_out=False, checked_out_by=None)
            )
        logger.info(f"Added phone {phone_id} ({phone.name})")
        return phone_id

    async def add_assets_if_empty(
        self,
        devices: list[Device],
        phones: list[Phone],
    ) -> dict[str, list[int]]:
        """Register devices and phones only if the store has neither yet.

        The emptiness check and the inserts run under one lock and one
        store transaction, so concurrent callers in this process insert
        at most once.

        Returns:
            Ids of the inserted records, keyed by "devices" / "phones";
            both lists are empty when the store already had assets.
        """
        inserted: dict[str, list[int]] = {"devices": [], "phones": []}
        async with self._lock:
            if await self.store.devices.get_all() or await self.store.phones.get_all():
                return inserted

            async with self.store.transaction():
                for device in devices:
                    inserted["devices"].append(
                        await self.store.devices.add(
                            replace(device, id=None, is_checked_out=False)
                        )
                    )
                for phone in phones:
                    inserted["phones"].append(
                        await self.store.phones.add(
                            replace(phone, id=None, is_checked_out=False, checked_out_by=None)
                        )
                    )
        return inserted

    async def update_device(self, device: Device) -> Device:
        """Edit a device's descriptive fields.

        The loan flag and the data generation stamp are kept from the
        stored record; use ``record_data_generation`` for the latter.
        """
        async with self._lock:
            current = await self.store.devices.get_by_id(device.id)
            updated = replace(
                device,
                is_checked_out=current.is_checked_out,
                last_data_gen_date=current.last_data_gen_date,
            )
            await self.store.devices.update(updated)
        return updated

    async def update_phone(self, phone: Phone) -> Phone:
        """Edit a phone's descriptive fields.

        The loan flag and holder are kept from the stored record.
        """
        async with self._lock:
            current = await self.store.phones.get_by_id(phone.id)
            updated = replace(
                phone,
                is_checked_out=current.is_checked_out,
                checked_out_by=current.checked_out_by,
            )
            await self.store.phones.update(updated)
        return updated

    async def record_data_generation(
        self,
        device_id: int,
        when: Optional[datetime] = None,
    ) -> Device:
        """Stamp the last time a device was used for data generation."""
        async with self._lock:
            device = await self.store.devices.get_by_id(device_id)
            device = replace(device, last_data_gen_date=when or self.clock())
            await self.store.devices.update(device)
        return device

    async def remove_device(self, device_id: int) -> None:
        """Delete a device that has never been loaned.

        Raises:
            NotFoundError: If the device does not exist
            ConflictError: If any checkout references the device
        """
        async with self._lock:
            device = await self.store.devices.get_by_id(device_id)
            await self._ensure_unreferenced(device)
            await self.store.devices.delete(device_id)
        logger.info(f"Removed device {device_id}")

    async def remove_phone(self, phone_id: int) -> None:
        """Delete a phone that has never been loaned.

        Raises:
            NotFoundError: If the phone does not exist
            ConflictError: If any checkout references the phone
        """
        async with self._lock:
            phone = await self.store.phones.get_by_id(phone_id)
            await self._ensure_unreferenced(phone)
            await self.store.phones.delete(phone_id)
        logger.info(f"Removed phone {phone_id}")

    async def _ensure_unreferenced(self, asset: Asset) -> None:
        asset_id = asset.id
        resource_type = asset.kind.value.capitalize()
        referencing = [
            c for c in await self.store.checkouts.get_all() if c.references(asset.kind, asset_id)
        ]
        if any(c.is_open for c in referencing):
            raise ConflictError(
                f"{resource_type} {asset_id} is checked out and cannot be deleted",
                resource_type=resource_type,
                resource_id=asset_id,
            )
        if referencing:
            raise ConflictError(
                f"{resource_type} {asset_id} has loan history and cannot be deleted",
                resource_type=resource_type,
                resource_id=asset_id,
            )


__all__ = ["CheckoutLedger", "utc_now"]
