"""
Pydantic models for users, authentication and sessions.

Passwords are accepted on input only and never serialised back.  The
``role`` on self-registration is restricted to ``USER`` and ``OWNER``;
administrators create other administrators via ``AdminUserCreate``.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import Field, field_validator

from ..models.user import UserRole
from .common import CamelModel


EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def _normalise_email(value: Optional[str]) -> Optional[str]:
    return value.strip().lower() if value else value


class UserRegister(CamelModel):
    name: str = Field(..., min_length=2, max_length=120, examples=["أحمد علي"])
    email: str = Field(..., pattern=EMAIL_PATTERN, examples=["user@example.com"])
    password: str = Field(..., min_length=6)
    phone: Optional[str] = Field(None, max_length=40)
    city: Optional[str] = Field(None, max_length=120)
    role: Literal["USER", "OWNER"] = "USER"

    @field_validator("email")
    @classmethod
    def normalise_email(cls, value: Optional[str]) -> Optional[str]:
        return _normalise_email(value)


class AdminUserCreate(UserRegister):
    """Schema used by administrators; any role may be assigned."""

    role: UserRole = UserRole.USER


class UserLogin(CamelModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalise_email(cls, value: Optional[str]) -> Optional[str]:
        return _normalise_email(value)


class RefreshRequest(CamelModel):
    refresh_token: str


class UserProfileUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=2, max_length=120)
    phone: Optional[str] = Field(None, max_length=40)
    city: Optional[str] = Field(None, max_length=120)
    password: Optional[str] = Field(None, min_length=6)


class UserUpdate(CamelModel):
    """Fields an administrator (or the user, minus role/isActive) may change."""

    name: Optional[str] = Field(None, min_length=2, max_length=120)
    email: Optional[str] = Field(None, pattern=EMAIL_PATTERN)
    phone: Optional[str] = Field(None, max_length=40)
    city: Optional[str] = Field(None, max_length=120)
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None

    @field_validator("email")
    @classmethod
    def normalise_email(cls, value: Optional[str]) -> Optional[str]:
        return _normalise_email(value)


class UserPublic(CamelModel):
    id: int
    name: str
    city: Optional[str] = None
    role: UserRole
    created_at: datetime


class UserRead(UserPublic):
    email: str
    phone: Optional[str] = None
    is_active: bool
    updated_at: datetime


class UserName(CamelModel):
    id: int
    name: str


class UserSummary(CamelModel):
    """Contact details embedded in donor and request payloads."""

    id: int
    name: str
    phone: Optional[str] = None
    city: Optional[str] = None


class TokenPair(CamelModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserRead


class SessionRead(CamelModel):
    id: int
    user_id: int
    user_agent: Optional[str] = None
    created_at: datetime
    expires_at: datetime
    user: Optional[UserSummary] = None
