"""Job postings attached to a business."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.db import Base
from .base import TimestampMixin

if TYPE_CHECKING:
    from .business import Business


JOB_CATEGORIES = (
    "عام",
    "تقنية معلومات",
    "محاسبة",
    "تسويق",
    "مبيعات",
    "هندسة",
    "طب",
    "تعليم",
    "إدارة",
    "خدمة عملاء",
    "موارد بشرية",
    "قانون",
    "إعلام",
    "سياحة",
    "فندقة",
    "أمن",
    "نقل",
    "مقاولات",
    "صيانة",
    "أخرى",
)
DEFAULT_JOB_CATEGORY = "عام"


class Job(TimestampMixin, Base):
    __tablename__ = "jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    business_id: Mapped[int] = mapped_column(
        ForeignKey("businesses.id", ondelete="CASCADE"), index=True, nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    city: Mapped[Optional[str]] = mapped_column(String(120), index=True)
    region: Mapped[Optional[str]] = mapped_column(String(120))
    type: Mapped[str] = mapped_column(String(50), default=DEFAULT_JOB_CATEGORY, index=True, nullable=False)
    salary: Mapped[Optional[str]] = mapped_column(String(100))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    business: Mapped["Business"] = relationship(back_populates="jobs")
