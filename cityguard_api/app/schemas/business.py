"""Pydantic models for businesses."""

from datetime import datetime
from typing import List, Optional

from .common import CamelModel, ImageRef


class BusinessRead(CamelModel):
    id: int
    owner_id: int
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    images: List[ImageRef] = []
    is_active: bool
    created_at: datetime
    updated_at: datetime


class BusinessCheck(CamelModel):
    has_business: bool
    business: Optional[BusinessRead] = None


class BusinessStats(CamelModel):
    business_id: int
    total_jobs: int
    active_jobs: int
    total_ads: int
    approved_ads: int
    active_ads: int
    total_impressions: int
    total_clicks: int
