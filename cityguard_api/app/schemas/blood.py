"""
Pydantic models for the blood donor registry and the request board.

Blood types are normalised to uppercase and checked against the eight
ABO/Rh groups before any service code runs.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import Field, field_validator

from ..models.blood_donor import BLOOD_TYPES
from ..models.blood_request import REQUEST_STATUSES, URGENCY_LEVELS
from .common import CamelModel, UtcDateTime
from .user import UserName, UserSummary


INVALID_BLOOD_TYPE = "فصيلة الدم غير صالحة. يجب أن تكون: " + ", ".join(BLOOD_TYPES)


def normalise_blood_type(value: Any) -> Any:
    """Uppercase ``value`` and check it is one of the eight blood types."""
    if value is None:
        return value
    if not isinstance(value, str):
        raise ValueError(INVALID_BLOOD_TYPE)
    value = value.strip().upper()
    if value not in BLOOD_TYPES:
        raise ValueError(INVALID_BLOOD_TYPE)
    return value


class _BloodTyped(CamelModel):
    @field_validator("blood_type", mode="before", check_fields=False)
    @classmethod
    def check_blood_type(cls, value: Any) -> Any:
        return normalise_blood_type(value)


# --------------------------------------------------------------------------
# Donors
# --------------------------------------------------------------------------

class DonorRegister(_BloodTyped):
    blood_type: str = Field(..., examples=["O+"])
    city: str = Field(..., min_length=1, max_length=120)
    phone: str = Field(..., min_length=1, max_length=40)
    notes: Optional[str] = None
    is_available: Optional[bool] = None
    receive_alerts: Optional[bool] = None
    max_distance: Optional[int] = Field(None, ge=1, le=1000)
    last_donation: Optional[UtcDateTime] = None
    can_donate_after: Optional[UtcDateTime] = None


class DonorStatusUpdate(CamelModel):
    is_available: Optional[bool] = None
    receive_alerts: Optional[bool] = None
    max_distance: Optional[int] = Field(None, ge=1, le=1000)


class LastDonationUpdate(CamelModel):
    last_donation: Optional[UtcDateTime] = None
    can_donate_after: Optional[UtcDateTime] = None


class DonorProfileUpdate(_BloodTyped):
    blood_type: Optional[str] = None
    city: Optional[str] = Field(None, min_length=1, max_length=120)
    phone: Optional[str] = Field(None, min_length=1, max_length=40)
    notes: Optional[str] = None


class DonorRead(CamelModel):
    id: int
    user_id: int
    blood_type: str
    city: str
    phone: str
    notes: Optional[str] = None
    is_available: bool
    receive_alerts: bool
    max_distance: int
    last_donation: Optional[datetime] = None
    can_donate_after: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    user: Optional[UserSummary] = None


class DonorPublic(CamelModel):
    """Donor card shown in public searches, without contact details."""

    id: int
    blood_type: str
    city: str
    is_available: bool
    last_donation: Optional[datetime] = None
    user: Optional[UserName] = None


class DonorMatch(DonorPublic):
    """Donor matched to a request, with the contact details needed to call."""

    phone: str
    receive_alerts: bool
    can_donate_after: Optional[datetime] = None
    user: Optional[UserSummary] = None


# --------------------------------------------------------------------------
# Requests
# --------------------------------------------------------------------------

def _check_urgency(value: Optional[str]) -> Optional[str]:
    if value is not None and value not in URGENCY_LEVELS:
        raise ValueError("درجة الإلحاح غير صالحة")
    return value


def _check_status(value: Optional[str]) -> Optional[str]:
    if value is not None and value not in REQUEST_STATUSES:
        raise ValueError("حالة غير صالحة")
    return value


class BloodRequestCreate(_BloodTyped):
    blood_type: str = Field(..., examples=["A+"])
    units: int = Field(1, ge=1, le=10)
    urgency: str = "normal"
    city: str = Field(..., min_length=1, max_length=120)
    hospital: str = Field(..., min_length=1, max_length=200)
    contact_phone: str = Field(..., min_length=1, max_length=40)
    notes: Optional[str] = None
    expires_at: Optional[UtcDateTime] = None

    @field_validator("urgency")
    @classmethod
    def check_urgency(cls, value: str) -> str:
        return _check_urgency(value)


class BloodRequestUpdate(_BloodTyped):
    blood_type: Optional[str] = None
    units: Optional[int] = Field(None, ge=1, le=10)
    urgency: Optional[str] = None
    city: Optional[str] = Field(None, min_length=1, max_length=120)
    hospital: Optional[str] = Field(None, min_length=1, max_length=200)
    contact_phone: Optional[str] = Field(None, min_length=1, max_length=40)
    notes: Optional[str] = None
    expires_at: Optional[UtcDateTime] = None
    # Honoured for administrators only.
    status: Optional[str] = None

    @field_validator("urgency")
    @classmethod
    def check_urgency(cls, value: Optional[str]) -> Optional[str]:
        return _check_urgency(value)

    @field_validator("status")
    @classmethod
    def check_status(cls, value: Optional[str]) -> Optional[str]:
        return _check_status(value)


class BloodRequestStatusUpdate(CamelModel):
    status: str

    @field_validator("status")
    @classmethod
    def check_status(cls, value: str) -> str:
        return _check_status(value)


class BloodRequestRead(CamelModel):
    id: int
    requester_id: Optional[int] = None
    blood_type: str
    units: int
    urgency: str
    city: str
    hospital: str
    contact_phone: str
    notes: Optional[str] = None
    status: str
    expires_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    requester: Optional[UserSummary] = None
