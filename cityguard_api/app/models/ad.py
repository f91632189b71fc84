"""Advertisements and their review state."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, Enum as SQLEnum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.db import Base
from .base import TimestampMixin

if TYPE_CHECKING:
    from .business import Business
    from .user import User


class AdStatus(str, enum.Enum):
    PENDING_REVIEW = "PENDING_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class BannerType(str, enum.Enum):
    MAIN_HERO = "MAIN_HERO"
    SIDEBAR = "SIDEBAR"
    FOOTER = "FOOTER"
    POPUP = "POPUP"
    INLINE = "INLINE"


class TargetType(str, enum.Enum):
    EXTERNAL = "EXTERNAL"
    BUSINESS = "BUSINESS"


# Image slots: form field name -> (url attribute, public id attribute)
IMAGE_SLOTS = {
    "image": ("image_url", "image_public_id"),
    "mobileImage": ("mobile_image_url", "mobile_image_public_id"),
    "tabletImage": ("tablet_image_url", "tablet_image_public_id"),
}


class Ad(TimestampMixin, Base):
    __tablename__ = "ads"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[Optional[str]] = mapped_column(Text)
    url: Mapped[Optional[str]] = mapped_column(String(500))
    banner_type: Mapped[BannerType] = mapped_column(
        SQLEnum(BannerType, name="banner_type", native_enum=False),
        default=BannerType.MAIN_HERO,
        nullable=False,
        index=True,
    )
    target_type: Mapped[TargetType] = mapped_column(
        SQLEnum(TargetType, name="target_type", native_enum=False), nullable=False
    )
    target_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("businesses.id", ondelete="CASCADE"), index=True
    )
    created_by: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    status: Mapped[AdStatus] = mapped_column(
        SQLEnum(AdStatus, name="ad_status", native_enum=False),
        default=AdStatus.PENDING_REVIEW,
        nullable=False,
        index=True,
    )
    rejection_reason: Mapped[Optional[str]] = mapped_column(String(500))
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    start_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    image_url: Mapped[Optional[str]] = mapped_column(String(500))
    image_public_id: Mapped[Optional[str]] = mapped_column(String(255))
    mobile_image_url: Mapped[Optional[str]] = mapped_column(String(500))
    mobile_image_public_id: Mapped[Optional[str]] = mapped_column(String(255))
    tablet_image_url: Mapped[Optional[str]] = mapped_column(String(500))
    tablet_image_public_id: Mapped[Optional[str]] = mapped_column(String(255))

    impressions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    clicks: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    business: Mapped[Optional["Business"]] = relationship(back_populates="ads", foreign_keys=[target_id])
    creator: Mapped["User"] = relationship(back_populates="ads", foreign_keys=[created_by])

    def stored_public_ids(self) -> list:
        return [getattr(self, pid) for _, pid in IMAGE_SLOTS.values() if getattr(self, pid)]
