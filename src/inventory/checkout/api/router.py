"""FastAPI router for the inventory checkout endpoints.

The router only translates between HTTP and the ledger; ledger errors
are mapped to status codes by the handlers registered in ``app.py``.
"""

import logging

from fastapi import APIRouter, Depends, Response, status

from ...database import check_database_health
from ..domain.entities import Device, Phone
from ..use_cases import CheckoutLedger, InventoryQueries
from .dependencies import get_db_pool, get_ledger, get_queries
from .schemas import (
    CheckOutDTO,
    CheckOutRequest,
    DataGenerationRequest,
    DeviceDTO,
    DeviceIn,
    ErrorResponse,
    PhoneDTO,
    PhoneIn,
)

logger = logging.getLogger(__name__)

# Bodies produced by the InventoryError handlers in app.py
ERROR_RESPONSES = {
    404: {"model": ErrorResponse, "description": "Unknown device, phone or checkout"},
    409: {"model": ErrorResponse, "description": "Asset or checkout in the wrong state"},
    500: {"model": ErrorResponse, "description": "Storage failure (sanitized)"},
}

router = APIRouter(prefix="/api/inventory", tags=["Inventory"], responses=ERROR_RESPONSES)


# ========== Devices ==========


@router.get("/devices", response_model=list[DeviceDTO])
async def list_devices(queries: InventoryQueries = Depends(get_queries)):
    """List all devices in insertion order."""
    return [DeviceDTO.model_validate(d) for d in await queries.get_all_devices()]


@router.post("/devices", response_model=DeviceDTO, status_code=status.HTTP_201_CREATED)
async def add_device(
    body: DeviceIn,
    ledger: CheckoutLedger = Depends(get_ledger),
    queries: InventoryQueries = Depends(get_queries),
):
    """Register a new device."""
    device_id = await ledger.add_device(Device(**body.model_dump()))
    return DeviceDTO.model_validate(await queries.get_device(device_id))


@router.get("/devices/{device_id}", response_model=DeviceDTO)
async def get_device(device_id: int, queries: InventoryQueries = Depends(get_queries)):
    return DeviceDTO.model_validate(await queries.get_device(device_id))


@router.put("/devices/{device_id}", response_model=DeviceDTO)
async def update_device(
    device_id: int,
    body: DeviceIn,
    ledger: CheckoutLedger = Depends(get_ledger),
):
    """Edit a device's descriptive fields."""
    updated = await ledger.update_device(Device(id=device_id, **body.model_dump()))
    return DeviceDTO.model_validate(updated)


@router.delete("/devices/{device_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_device(device_id: int, ledger: CheckoutLedger = Depends(get_ledger)):
    """Delete a device that has never been checked out."""
    await ledger.remove_device(device_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/devices/{device_id}/history", response_model=list[CheckOutDTO])
async def device_history(device_id: int, queries: InventoryQueries = Depends(get_queries)):
    """All checkouts of a device, oldest first."""
    history = await queries.get_history_for(device_id=device_id)
    return [CheckOutDTO.model_validate(c) for c in history]


@router.post("/devices/{device_id}/data-generation", response_model=DeviceDTO)
async def record_data_generation(
    device_id: int,
    body: DataGenerationRequest,
    ledger: CheckoutLedger = Depends(get_ledger),
):
    """Stamp the last time the device was used for data generation."""
    device = await ledger.record_data_generation(device_id, body.when)
    return DeviceDTO.model_validate(device)


# ========== Phones ==========


@router.get("/phones", response_model=list[PhoneDTO])
async def list_phones(queries: InventoryQueries = Depends(get_queries)):
    """List all phones in insertion order."""
    return [PhoneDTO.model_validate(p) for p in await queries.get_all_phones()]


@router.post("/phones", response_model=PhoneDTO, status_code=status.HTTP_201_CREATED)
async def add_phone(
    body: PhoneIn,
    ledger: CheckoutLedger = Depends(get_ledger),
    queries: InventoryQueries = Depends(get_queries),
):
    """Register a new phone."""
    phone_id = await ledger.add_phone(Phone(**body.model_dump()))
    return PhoneDTO.model_validate(await queries.get_phone(phone_id))


@router.get("/phones/{phone_id}", response_model=PhoneDTO)
async def get_phone(phone_id: int, queries: InventoryQueries = Depends(get_queries)):
    return PhoneDTO.model_validate(await queries.get_phone(phone_id))


@router.put("/phones/{phone_id}", response_model=PhoneDTO)
async def update_phone(
    phone_id: int,
    body: PhoneIn,
    ledger: CheckoutLedger = Depends(get_ledger),
):
    """Edit a phone's descriptive fields."""
    updated = await ledger.update_phone(Phone(id=phone_id, **body.model_dump()))
    return PhoneDTO.model_validate(updated)


@router.delete("/phones/{phone_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_phone(phone_id: int, ledger: CheckoutLedger = Depends(get_ledger)):
    """Delete a phone that has never been checked out."""
    await ledger.remove_phone(phone_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/phones/{phone_id}/history", response_model=list[CheckOutDTO])
async def phone_history(phone_id: int, queries: InventoryQueries = Depends(get_queries)):
    """All checkouts of a phone, oldest first."""
    history = await queries.get_history_for(phone_id=phone_id)
    return [CheckOutDTO.model_validate(c) for c in history]


# ========== Checkouts ==========


@router.get("/checkouts", response_model=list[CheckOutDTO])
async def list_checkouts(
    open_only: bool = False,
    queries: InventoryQueries = Depends(get_queries),
):
    """List checkouts; ``open_only=true`` keeps the ones not yet checked in."""
    if open_only:
        checkouts = await queries.get_open_checkouts()
    else:
        checkouts = await queries.get_all_checkouts()
    return [CheckOutDTO.model_validate(c) for c in checkouts]


@router.post("/checkouts", response_model=CheckOutDTO, status_code=status.HTTP_201_CREATED)
async def check_out_device(
    body: CheckOutRequest,
    ledger: CheckoutLedger = Depends(get_ledger),
):
    """Loan a phone and a device to a user.

    Returns 404 for an unknown phone or device, 409 if either is already
    checked out, 422 for an empty user name.
    """
    checkout = await ledger.check_out_device(
        body.phone_id,
        body.device_id,
        body.user_name,
        body.purpose,
    )
    return CheckOutDTO.model_validate(checkout)


@router.get("/checkouts/{checkout_id}", response_model=CheckOutDTO)
async def get_checkout(checkout_id: int, queries: InventoryQueries = Depends(get_queries)):
    return CheckOutDTO.model_validate(await queries.get_checkout(checkout_id))


@router.post("/checkouts/{checkout_id}/checkin", response_model=CheckOutDTO)
async def check_in_device(
    checkout_id: int,
    ledger: CheckoutLedger = Depends(get_ledger),
    queries: InventoryQueries = Depends(get_queries),
):
    """Check a loan back in. Returns 409 if it was already checked in."""
    await ledger.check_in_device(checkout_id)
    return CheckOutDTO.model_validate(await queries.get_checkout(checkout_id))


# ========== Health ==========


@router.get("/health")
async def health_check(db_pool=Depends(get_db_pool)):
    """Health check endpoint; includes pool stats for the PostgreSQL store."""
    if db_pool is None:
        return {"status": "healthy", "service": "inventory-checkout", "store": "memory"}

    database = await check_database_health(db_pool)
    return {
        "status": "healthy" if database["healthy"] else "degraded",
        "service": "inventory-checkout",
        "store": "postgres",
        "database": database,
    }
