"""Tests for the in-memory inventory store."""

from datetime import datetime, timezone

import pytest

from inventory.checkout.adapters import InMemoryInventoryStore
from inventory.checkout.domain.entities import CheckOut, Device, Phone
from inventory.exceptions import NotFoundError, ValidationError


@pytest.fixture
def store():
    return InMemoryInventoryStore()


class TestInMemoryRepository:
    """Tests for add/get/update/delete on one collection."""

    @pytest.mark.asyncio
    async def test_add_assigns_sequential_ids(self, store):
        first = await store.devices.add(Device(name="Thermostat"))
        second = await store.devices.add(Device(name="Doorbell"))

        assert (first, second) == (1, 2)
        # each collection has its own sequence
        assert await store.phones.add(Phone(name="Dev Phone")) == 1

    @pytest.mark.asyncio
    async def test_add_ignores_supplied_id(self, store):
        new_id = await store.devices.add(Device(name="Thermostat", id=42))

        assert new_id == 1
        assert await store.devices.find_by_id(42) is None

    @pytest.mark.asyncio
    async def test_add_rejects_invalid_entity(self, store):
        with pytest.raises(ValidationError):
            await store.devices.add(Device(name=""))

        assert await store.devices.get_all() == []

    @pytest.mark.asyncio
    async def test_get_by_id_missing(self, store):
        with pytest.raises(NotFoundError) as exc_info:
            await store.phones.get_by_id(99)

        assert exc_info.value.resource_type == "Phone"
        assert exc_info.value.resource_id == 99

    @pytest.mark.asyncio
    async def test_returned_entities_are_copies(self, store):
        device_id = await store.devices.add(Device(name="Thermostat"))

        device = await store.devices.get_by_id(device_id)
        device.name = "Changed"
        listed = await store.devices.get_all()
        listed[0].is_checked_out = True

        stored = await store.devices.get_by_id(device_id)
        assert stored.name == "Thermostat"
        assert stored.is_checked_out is False

    @pytest.mark.asyncio
    async def test_get_all_keeps_insertion_order(self, store):
        for name in ("A", "B", "C"):
            await store.devices.add(Device(name=name))

        assert [d.name for d in await store.devices.get_all()] == ["A", "B", "C"]

    @pytest.mark.asyncio
    async def test_update_replaces_record(self, store):
        device_id = await store.devices.add(Device(name="Thermostat"))

        await store.devices.update(Device(name="Thermostat v2", id=device_id))

        assert (await store.devices.get_by_id(device_id)).name == "Thermostat v2"

    @pytest.mark.asyncio
    async def test_update_missing(self, store):
        with pytest.raises(NotFoundError):
            await store.devices.update(Device(name="Ghost", id=7))

    @pytest.mark.asyncio
    async def test_delete_does_not_reuse_ids(self, store):
        first = await store.devices.add(Device(name="A"))
        await store.devices.delete(first)

        assert await store.devices.add(Device(name="B")) == 2

    @pytest.mark.asyncio
    async def test_delete_missing(self, store):
        with pytest.raises(NotFoundError):
            await store.phones.delete(1)


class TestInMemoryTransaction:
    """Tests for store-level rollback."""

    @pytest.mark.asyncio
    async def test_commit_on_success(self, store):
        async with store.transaction():
            await store.devices.add(Device(name="Thermostat"))

        assert len(await store.devices.get_all()) == 1

    @pytest.mark.asyncio
    async def test_rollback_restores_every_collection(self, store):
        device_id = await store.devices.add(Device(name="Thermostat"))
        phone_id = await store.phones.add(Phone(name="Dev Phone"))

        with pytest.raises(RuntimeError):
            async with store.transaction():
                await store.checkouts.add(
                    CheckOut(
                        phone_id=phone_id,
                        device_id=device_id,
                        checked_out_by="alice",
                        check_out_date=datetime.now(timezone.utc),
                    )
                )
                await store.devices.update(
                    Device(name="Thermostat", is_checked_out=True, id=device_id)
                )
                raise RuntimeError("boom")

        assert await store.checkouts.get_all() == []
        assert (await store.devices.get_by_id(device_id)).is_checked_out is False
        # the checkout sequence is rolled back too
        assert store.checkouts.snapshot()[1] == 0
