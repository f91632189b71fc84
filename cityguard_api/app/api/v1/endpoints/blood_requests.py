"""
Blood request board endpoints for API v1.

Anyone may post and browse requests.  Editing and deleting are limited
to the requester and administrators; status changes are administrator
only.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status

from cityguard_api.app.core.security import get_current_user, get_optional_user, require_roles
from cityguard_api.app.schemas.blood import (
    BloodRequestCreate,
    BloodRequestRead,
    BloodRequestStatusUpdate,
    BloodRequestUpdate,
)
from cityguard_api.app.schemas.common import ApiResponse, Page, ok
from cityguard_api.app.services.blood_request_service import BloodRequestService


router = APIRouter()


@router.post("/", response_model=ApiResponse[BloodRequestRead], status_code=status.HTTP_201_CREATED)
async def create_request(
    payload: BloodRequestCreate,
    current_user: Optional[dict] = Depends(get_optional_user),
) -> dict:
    request = await BloodRequestService.create_request(payload, current_user)
    return ok(request, "تم إنشاء طلب التبرع بنجاح")


@router.get("/", response_model=ApiResponse[Page[BloodRequestRead]])
async def list_requests(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[str] = Query("open", alias="status"),
    blood_type: Optional[str] = Query(None, alias="bloodType"),
    urgency: Optional[str] = Query(None),
    city: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    sort_by: str = Query("createdAt", alias="sortBy"),
    order: str = Query("desc", alias="sortOrder"),
) -> dict:
    """Unexpired requests; ``status`` defaults to ``open`` (``all`` disables it)."""
    result = await BloodRequestService.list_requests(
        page=page,
        limit=limit,
        status=status_filter,
        blood_type=blood_type,
        urgency=urgency,
        city=city,
        search=search,
        sort_by=sort_by,
        order=order,
    )
    return ok(result)


@router.get("/search", response_model=ApiResponse[List[BloodRequestRead]])
async def search_requests(
    blood_type: Optional[str] = Query(None, alias="bloodType"),
    city: Optional[str] = Query(None),
    hospital: Optional[str] = Query(None),
    limit: int = Query(10, ge=1, le=100),
) -> dict:
    result = await BloodRequestService.search_requests(
        blood_type=blood_type, city=city, hospital=hospital, limit=limit
    )
    return ok(result)


@router.get("/statistics", response_model=ApiResponse[Dict[str, Any]])
async def request_statistics() -> dict:
    return ok(await BloodRequestService.statistics())


@router.get("/mine", response_model=ApiResponse[Page[BloodRequestRead]])
async def my_requests(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    current_user: dict = Depends(get_current_user),
) -> dict:
    result = await BloodRequestService.my_requests(
        current_user["user_id"], page=page, limit=limit, status=status_filter
    )
    return ok(result)


@router.get("/{request_id}", response_model=ApiResponse[BloodRequestRead])
async def get_request(request_id: int) -> dict:
    return ok(await BloodRequestService.get_request(request_id))


@router.get("/{request_id}/match-donors", response_model=ApiResponse[Dict[str, Any]])
async def match_donors(request_id: int) -> dict:
    """Donors with the same blood type in the same city who accept alerts."""
    return ok(await BloodRequestService.match_donors(request_id))


@router.put("/{request_id}", response_model=ApiResponse[BloodRequestRead])
async def update_request(
    request_id: int,
    payload: BloodRequestUpdate,
    current_user: dict = Depends(get_current_user),
) -> dict:
    request = await BloodRequestService.update_request(request_id, payload, current_user)
    return ok(request, "تم تحديث طلب التبرع بنجاح")


@router.delete("/{request_id}", response_model=ApiResponse[None])
async def delete_request(request_id: int, current_user: dict = Depends(get_current_user)) -> dict:
    await BloodRequestService.delete_request(request_id, current_user)
    return ok(message="تم حذف طلب التبرع بنجاح")


@router.put("/{request_id}/status", response_model=ApiResponse[BloodRequestRead])
async def update_request_status(
    request_id: int,
    payload: BloodRequestStatusUpdate,
    current_user: dict = Depends(require_roles("ADMIN")),
) -> dict:
    return ok(await BloodRequestService.update_status(request_id, payload), "تم تحديث حالة الطلب")
