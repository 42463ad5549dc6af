"""Pydantic schemas for API request/response validation."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class DeviceIn(BaseModel):
    """Editable device fields."""

    name: str
    type: str = ""
    manufacturer: str = ""
    model_number: str = ""


class DeviceDTO(DeviceIn):
    """Device data transfer object."""

    id: int
    is_checked_out: bool = False
    last_data_gen_date: Optional[datetime] = None

    class Config:
        from_attributes = True


class PhoneIn(BaseModel):
    """Editable phone fields."""

    name: str
    model: str = ""
    operating_system: str = ""


class PhoneDTO(PhoneIn):
    """Phone data transfer object."""

    id: int
    is_checked_out: bool = False
    checked_out_by: Optional[str] = None

    class Config:
        from_attributes = True


class CheckOutRequest(BaseModel):
    """Request to loan a phone and a device."""

    phone_id: int
    device_id: int
    user_name: str = Field(..., description="Person taking the assets")
    purpose: str = Field("", description="e.g. 'Data Generation'")


class CheckOutDTO(BaseModel):
    """Checkout record data transfer object."""

    id: int
    phone_id: int
    device_id: int
    checked_out_by: str
    check_out_date: datetime
    check_in_date: Optional[datetime] = None
    purpose: str = ""
    is_open: bool = True

    class Config:
        from_attributes = True


class DataGenerationRequest(BaseModel):
    """Stamp a device's last data generation time (defaults to now)."""

    when: Optional[datetime] = None


class ErrorResponse(BaseModel):
    """Error body returned for ledger failures."""

    detail: str
    code: str
