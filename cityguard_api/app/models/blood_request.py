"""Requests for blood posted on the public board."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.db import Base
from .base import TimestampMixin

if TYPE_CHECKING:
    from .user import User


URGENCY_LEVELS = ("low", "normal", "high", "critical")
REQUEST_STATUSES = ("open", "fulfilled", "cancelled", "expired")


class BloodRequest(TimestampMixin, Base):
    __tablename__ = "blood_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    requester_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), index=True
    )
    blood_type: Mapped[str] = mapped_column(String(3), index=True, nullable=False)
    units: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    urgency: Mapped[str] = mapped_column(String(10), default="normal", nullable=False)
    city: Mapped[str] = mapped_column(String(120), index=True, nullable=False)
    hospital: Mapped[str] = mapped_column(String(200), nullable=False)
    contact_phone: Mapped[str] = mapped_column(String(40), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(10), default="open", index=True, nullable=False)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    requester: Mapped[Optional["User"]] = relationship(back_populates="blood_requests")
