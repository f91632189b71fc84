"""
Business endpoints for API v1.

Creation and updates use ``multipart/form-data`` so images can be sent
alongside the fields: ``images`` (repeatable, up to ten) and, on update,
``removeImages`` with the ``publicId`` of each image to drop.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

from cityguard_api.app.core.security import get_current_user, require_roles
from cityguard_api.app.schemas.business import BusinessCheck, BusinessRead, BusinessStats
from cityguard_api.app.schemas.common import ApiResponse, Page, ok
from cityguard_api.app.services.business_service import BusinessService


router = APIRouter()


def _fields(**values) -> dict:
    return {k: v for k, v in values.items() if v is not None}


@router.post("/", response_model=ApiResponse[BusinessRead], status_code=status.HTTP_201_CREATED)
async def create_business(
    name: str = Form(..., min_length=2, max_length=200),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None, max_length=100),
    city: Optional[str] = Form(None, max_length=120),
    address: Optional[str] = Form(None, max_length=255),
    phone: Optional[str] = Form(None, max_length=40),
    email: Optional[str] = Form(None, max_length=255),
    website: Optional[str] = Form(None, max_length=255),
    images: List[UploadFile] = File(default=[]),
    current_user: dict = Depends(require_roles("OWNER", "ADMIN")),
) -> dict:
    fields = _fields(
        name=name, description=description, category=category, city=city,
        address=address, phone=phone, email=email, website=website,
    )
    business = await BusinessService.create_business(current_user, fields, images)
    return ok(business, "تم إنشاء المنشأة بنجاح")


@router.get("/mine", response_model=ApiResponse[List[BusinessRead]])
async def my_businesses(current_user: dict = Depends(get_current_user)) -> dict:
    return ok(await BusinessService.owner_businesses(current_user["user_id"]))


@router.get("/check", response_model=ApiResponse[BusinessCheck])
async def check_user_business(current_user: dict = Depends(get_current_user)) -> dict:
    return ok(await BusinessService.check_user_business(current_user["user_id"]))


@router.get("/", response_model=ApiResponse[Page[BusinessRead]])
async def list_businesses(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    city: Optional[str] = Query(None),
    current_user: dict = Depends(require_roles("ADMIN")),
) -> dict:
    return ok(await BusinessService.list_businesses(page=page, limit=limit, search=search, city=city))


@router.get("/{business_id}", response_model=ApiResponse[BusinessRead])
async def get_business(business_id: int, current_user: dict = Depends(get_current_user)) -> dict:
    return ok(await BusinessService.get_business(business_id))


@router.put("/{business_id}", response_model=ApiResponse[BusinessRead])
async def update_business(
    business_id: int,
    name: Optional[str] = Form(None, min_length=2, max_length=200),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None, max_length=100),
    city: Optional[str] = Form(None, max_length=120),
    address: Optional[str] = Form(None, max_length=255),
    phone: Optional[str] = Form(None, max_length=40),
    email: Optional[str] = Form(None, max_length=255),
    website: Optional[str] = Form(None, max_length=255),
    images: List[UploadFile] = File(default=[]),
    remove_images: List[str] = Form(default=[], alias="removeImages"),
    current_user: dict = Depends(get_current_user),
) -> dict:
    """Update a business owned by the caller (or any business, as ADMIN)."""
    fields = _fields(
        name=name, description=description, category=category, city=city,
        address=address, phone=phone, email=email, website=website,
    )
    business = await BusinessService.update_business(
        business_id, current_user, fields, images=images, remove_images=remove_images
    )
    return ok(business, "تم تحديث المنشأة بنجاح")


@router.delete("/{business_id}", response_model=ApiResponse[None])
async def delete_business(business_id: int, current_user: dict = Depends(get_current_user)) -> dict:
    await BusinessService.delete_business(business_id, current_user)
    return ok(message="تم حذف المنشأة بنجاح")


@router.get("/{business_id}/stats", response_model=ApiResponse[BusinessStats])
async def business_stats(business_id: int, current_user: dict = Depends(get_current_user)) -> dict:
    return ok(await BusinessService.business_stats(business_id, current_user))
