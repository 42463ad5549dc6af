"""API layer for the checkout ledger.

Contains:
- FastAPI router with endpoints
- Pydantic schemas for request/response validation
- Dependency wiring for the shared ledger
"""

from .router import router
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

__all__ = [
    "router",
    "DeviceIn",
    "DeviceDTO",
    "PhoneIn",
    "PhoneDTO",
    "CheckOutRequest",
    "CheckOutDTO",
    "DataGenerationRequest",
    "ErrorResponse",
]
