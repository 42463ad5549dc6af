"""Domain entities for the checkout ledger.

These are pure data structures with no infrastructure dependencies.
Entities reference each other by id only; the store owns the canonical
copies.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from ...exceptions import ValidationError


class AssetKind(str, Enum):
    """The two kinds of loanable asset."""

    DEVICE = "device"
    PHONE = "phone"


def _require_text(value: Optional[str], field_name: str, entity: str) -> None:
    if value is None or not value.strip():
        raise ValidationError(f"{entity} {field_name} is required", field=field_name)


def _serialize(entity) -> dict[str, Any]:
    data = asdict(entity)
    for key, value in data.items():
        if isinstance(value, datetime):
            data[key] = value.isoformat()
    return data


@dataclass
class Device:
    """An IoT device in the inventory.

    ``is_checked_out`` is a cached projection of "an open CheckOut
    references this device" and is only written by the ledger.
    """

    name: str
    type: str = ""
    manufacturer: str = ""
    model_number: str = ""
    is_checked_out: bool = False
    last_data_gen_date: Optional[datetime] = None
    id: Optional[int] = None

    kind = AssetKind.DEVICE

    def validate(self) -> None:
        """Raise ValidationError if a required field is empty."""
        _require_text(self.name, "name", "Device")

    def to_dict(self) -> dict[str, Any]:
        return _serialize(self)


@dataclass
class Phone:
    """A phone used for IoT device data generation.

    ``checked_out_by`` mirrors the holder of the open CheckOut and is
    ``None`` while the phone is available.
    """

    name: str
    model: str = ""
    operating_system: str = ""
    is_checked_out: bool = False
    checked_out_by: Optional[str] = None
    id: Optional[int] = None

    kind = AssetKind.PHONE

    def validate(self) -> None:
        """Raise ValidationError if a required field is empty."""
        _require_text(self.name, "name", "Phone")

    def to_dict(self) -> dict[str, Any]:
        return _serialize(self)


@dataclass
class CheckOut:
    """A loan of one phone and one device to a person.

    Open while ``check_in_date`` is None. Once closed the record is an
    immutable part of the audit trail.
    """

    phone_id: int
    device_id: int
    checked_out_by: str
    check_out_date: datetime
    purpose: str = ""  # e.g. "Data Generation", "Development"
    check_in_date: Optional[datetime] = None
    id: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self.check_in_date is None

    def references(self, kind: AssetKind, asset_id: int) -> bool:
        """Check whether this checkout points at the given asset."""
        if kind == AssetKind.DEVICE:
            return self.device_id == asset_id
        return self.phone_id == asset_id

    def validate(self) -> None:
        """Raise ValidationError if a required field is empty."""
        _require_text(self.checked_out_by, "checked_out_by", "CheckOut")
        if self.check_out_date is None:
            raise ValidationError("CheckOut check_out_date is required", field="check_out_date")

    def to_dict(self) -> dict[str, Any]:
        data = _serialize(self)
        data["is_open"] = self.is_open
        return data


Asset = Union[Device, Phone]


def is_valid_for_checkout(asset: Optional[Asset]) -> bool:
    """Business rule: an asset can be loaned if it exists and is not on loan."""
    return asset is not None and not asset.is_checked_out
