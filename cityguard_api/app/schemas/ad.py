"""Pydantic models for advertisements."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from ..models.ad import AdStatus, BannerType, TargetType
from .common import CamelModel


class AdRead(CamelModel):
    id: int
    title: str
    content: Optional[str] = None
    url: Optional[str] = None
    banner_type: BannerType
    target_type: TargetType
    target_id: Optional[int] = None
    created_by: int
    status: AdStatus
    rejection_reason: Optional[str] = None
    is_active: bool
    priority: int
    start_at: datetime
    end_at: datetime
    image_url: Optional[str] = None
    mobile_image_url: Optional[str] = None
    tablet_image_url: Optional[str] = None
    impressions: int
    clicks: int
    created_at: datetime
    updated_at: datetime


class PublicAd(CamelModel):
    """What anonymous visitors see; no review or owner details."""

    id: int
    title: str
    content: Optional[str] = None
    url: Optional[str] = None
    banner_type: BannerType
    target_type: TargetType
    target_id: Optional[int] = None
    priority: int
    image_url: Optional[str] = None
    mobile_image_url: Optional[str] = None
    tablet_image_url: Optional[str] = None


class AdStatusUpdate(CamelModel):
    status: AdStatus
    rejection_reason: Optional[str] = Field(None, max_length=500)


class AdClick(CamelModel):
    id: int
    clicks: int
