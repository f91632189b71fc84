"""Blood donor registry."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.db import Base
from .base import TimestampMixin

if TYPE_CHECKING:
    from .user import User


BLOOD_TYPES = ("A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-")

# Minimum gap between two donations.
DONATION_INTERVAL_DAYS = 90


class BloodDonor(TimestampMixin, Base):
    __tablename__ = "blood_donors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    blood_type: Mapped[str] = mapped_column(String(3), index=True, nullable=False)
    city: Mapped[str] = mapped_column(String(120), index=True, nullable=False)
    phone: Mapped[str] = mapped_column(String(40), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    receive_alerts: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    max_distance: Mapped[int] = mapped_column(Integer, default=50, nullable=False)
    last_donation: Mapped[Optional[datetime]] = mapped_column(DateTime)
    can_donate_after: Mapped[Optional[datetime]] = mapped_column(DateTime)

    user: Mapped["User"] = relationship(back_populates="donor")
