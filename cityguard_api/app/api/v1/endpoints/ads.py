"""
Advertising endpoints for API v1.

Public routes serve the ads currently on air and record clicks.  ADMIN
and OWNER accounts submit ads as ``multipart/form-data`` with optional
``image``, ``mobileImage`` and ``tabletImage`` files; administrators
review them through ``PATCH /ads/{id}/status``.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

from cityguard_api.app.core.security import get_current_user, require_roles
from cityguard_api.app.models import AdStatus, BannerType, TargetType
from cityguard_api.app.schemas.ad import AdClick, AdRead, AdStatusUpdate, PublicAd
from cityguard_api.app.schemas.common import ApiResponse, Page, ok
from cityguard_api.app.services.ad_service import AdService


router = APIRouter()


@router.post("/", response_model=ApiResponse[AdRead], status_code=status.HTTP_201_CREATED)
async def create_ad(
    title: str = Form(..., min_length=1, max_length=200),
    content: Optional[str] = Form(None),
    url: Optional[str] = Form(None, max_length=500),
    banner_type: Optional[BannerType] = Form(None, alias="bannerType"),
    target_type: TargetType = Form(..., alias="targetType"),
    target_id: Optional[int] = Form(None, alias="targetId"),
    start_at: datetime = Form(..., alias="startAt"),
    end_at: datetime = Form(..., alias="endAt"),
    image: Optional[UploadFile] = File(None),
    mobile_image: Optional[UploadFile] = File(None, alias="mobileImage"),
    tablet_image: Optional[UploadFile] = File(None, alias="tabletImage"),
    current_user: dict = Depends(get_current_user),
) -> dict:
    """Submit an ad; it stays inactive until an administrator approves it."""
    fields = {
        "title": title,
        "content": content,
        "url": url,
        "banner_type": banner_type,
        "target_type": target_type,
        "target_id": target_id,
        "start_at": start_at,
        "end_at": end_at,
    }
    files = {"image": image, "mobileImage": mobile_image, "tabletImage": tablet_image}
    ad = await AdService.create_ad(current_user, fields, files)
    return ok(ad, "تم إرسال الإعلان للمراجعة")


@router.get("/public", response_model=ApiResponse[List[PublicAd]])
async def public_ads() -> dict:
    return ok(await AdService.public_ads())


@router.get("/public/{banner_type}", response_model=ApiResponse[List[PublicAd]])
async def ads_by_type(banner_type: str) -> dict:
    return ok(await AdService.ads_by_type(banner_type))


@router.post("/{ad_id}/click", response_model=ApiResponse[AdClick])
async def record_click(ad_id: int) -> dict:
    return ok(await AdService.increment_clicks(ad_id))


@router.get("/", response_model=ApiResponse[Page[AdRead]])
async def list_ads(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    status_filter: Optional[AdStatus] = Query(None, alias="status"),
    banner_type: Optional[BannerType] = Query(None, alias="bannerType"),
    sort_by: str = Query("createdAt", alias="sortBy"),
    order: str = Query("desc", alias="sortOrder"),
    current_user: dict = Depends(require_roles("ADMIN", "OWNER")),
) -> dict:
    """Administrators see every ad; owners see the ads of their businesses."""
    result = await AdService.list_ads(
        current_user,
        page=page,
        limit=limit,
        search=search,
        status=status_filter,
        banner_type=banner_type,
        sort_by=sort_by,
        order=order,
    )
    return ok(result)


@router.get("/mine", response_model=ApiResponse[Page[AdRead]])
async def my_ads(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: dict = Depends(require_roles("OWNER")),
) -> dict:
    return ok(await AdService.my_ads(current_user, page=page, limit=limit))


@router.get("/{ad_id}", response_model=ApiResponse[AdRead])
async def get_ad(ad_id: int, current_user: dict = Depends(require_roles("ADMIN", "OWNER"))) -> dict:
    return ok(await AdService.get_ad(ad_id, current_user))


@router.patch("/{ad_id}/status", response_model=ApiResponse[AdRead])
async def update_ad_status(
    ad_id: int,
    payload: AdStatusUpdate,
    current_user: dict = Depends(require_roles("ADMIN")),
) -> dict:
    return ok(await AdService.update_status(ad_id, payload), "تم تحديث حالة الإعلان")


@router.put("/{ad_id}", response_model=ApiResponse[AdRead])
async def update_ad(
    ad_id: int,
    title: Optional[str] = Form(None, min_length=1, max_length=200),
    content: Optional[str] = Form(None),
    url: Optional[str] = Form(None, max_length=500),
    banner_type: Optional[BannerType] = Form(None, alias="bannerType"),
    start_at: Optional[datetime] = Form(None, alias="startAt"),
    end_at: Optional[datetime] = Form(None, alias="endAt"),
    priority: Optional[int] = Form(None),
    is_active: Optional[bool] = Form(None, alias="isActive"),
    status_value: Optional[AdStatus] = Form(None, alias="status"),
    image: Optional[UploadFile] = File(None),
    mobile_image: Optional[UploadFile] = File(None, alias="mobileImage"),
    tablet_image: Optional[UploadFile] = File(None, alias="tabletImage"),
    current_user: dict = Depends(require_roles("ADMIN", "OWNER")),
) -> dict:
    """Partially update an ad.

    ``status``, ``priority`` and ``isActive`` are honoured for
    administrators only; owners' values are ignored.
    """
    fields = {
        "title": title,
        "content": content,
        "url": url,
        "banner_type": banner_type,
        "start_at": start_at,
        "end_at": end_at,
        "priority": priority,
        "is_active": is_active,
        "status": status_value,
    }
    files = {"image": image, "mobileImage": mobile_image, "tabletImage": tablet_image}
    ad = await AdService.update_ad(ad_id, current_user, fields, files)
    return ok(ad, "تم تحديث الإعلان بنجاح")


@router.delete("/{ad_id}", response_model=ApiResponse[None])
async def delete_ad(ad_id: int, current_user: dict = Depends(require_roles("ADMIN", "OWNER"))) -> dict:
    await AdService.delete_ad(ad_id, current_user)
    return ok(message="تم حذف الإعلان بنجاح")
