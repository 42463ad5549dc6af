"""Starter inventory for a fresh store."""

import logging

from ..domain.entities import Device, Phone
from ..use_cases.ledger import CheckoutLedger

logger = logging.getLogger(__name__)

SAMPLE_DEVICES = [
    Device(
        name="Smart Thermostat",
        type="Environmental Sensor",
        manufacturer="Nest",
        model_number="T3007ES",
    ),
]

SAMPLE_PHONES = [
    Phone(
        name="Development Phone 1",
        model="Pixel 7",
        operating_system="Android",
    ),
]


async def seed_sample_data(ledger: CheckoutLedger) -> dict[str, list[int]]:
    """Insert the sample devices and phones if the store is empty.

    Meant to run once at application startup. Concurrent calls on one
    ledger seed at most once; separate processes sharing a PostgreSQL
    database are not coordinated.

    Returns:
        Ids of the inserted records, keyed by "devices" / "phones";
        both lists are empty when the store already had data.
    """
    inserted = await ledger.add_assets_if_empty(SAMPLE_DEVICES, SAMPLE_PHONES)

    if not inserted["devices"] and not inserted["phones"]:
        logger.debug("Store already has data, skipping sample seed")
        return inserted

    logger.info(
        f"Seeded {len(inserted['devices'])} sample devices "
        f"and {len(inserted['phones'])} sample phones"
    )
    return inserted
