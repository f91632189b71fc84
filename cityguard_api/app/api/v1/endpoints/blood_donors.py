"""
Blood donor registry endpoints for API v1.

Any authenticated user can register as a donor and maintain their own
profile.  Search and statistics are public; the full donor list is for
administrators.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from cityguard_api.app.core.security import get_current_user, require_roles
from cityguard_api.app.schemas.blood import (
    DonorMatch,
    DonorProfileUpdate,
    DonorPublic,
    DonorRead,
    DonorRegister,
    DonorStatusUpdate,
    LastDonationUpdate,
)
from cityguard_api.app.schemas.common import ApiResponse, Page, ok
from cityguard_api.app.services.blood_donor_service import BloodDonorService


router = APIRouter()


@router.post("/register", response_model=ApiResponse[DonorRead], status_code=status.HTTP_201_CREATED)
async def register_donor(
    payload: DonorRegister,
    response: Response,
    current_user: dict = Depends(get_current_user),
) -> dict:
    """Create the caller's donor profile (201) or update the existing one (200)."""
    donor, created = await BloodDonorService.register_donor(current_user["user_id"], payload)
    if not created:
        response.status_code = status.HTTP_200_OK
        return ok(donor, "تم تحديث بيانات المتبرع بنجاح")
    return ok(donor, "تم تسجيلك كمتبرع بالدم بنجاح")


@router.get("/me", response_model=ApiResponse[DonorRead])
async def my_profile(current_user: dict = Depends(get_current_user)) -> dict:
    return ok(await BloodDonorService.get_profile(current_user["user_id"]))


@router.put("/status", response_model=ApiResponse[DonorRead])
async def update_status(payload: DonorStatusUpdate, current_user: dict = Depends(get_current_user)) -> dict:
    donor = await BloodDonorService.update_status(current_user["user_id"], payload)
    return ok(donor, "تم تحديث حالة المتبرع بنجاح")


@router.put("/last-donation", response_model=ApiResponse[DonorRead])
async def update_last_donation(payload: LastDonationUpdate, current_user: dict = Depends(get_current_user)) -> dict:
    donor = await BloodDonorService.update_last_donation(current_user["user_id"], payload)
    return ok(donor, "تم تحديث تاريخ آخر تبرع بنجاح")


@router.put("/profile", response_model=ApiResponse[DonorRead])
async def update_profile(payload: DonorProfileUpdate, current_user: dict = Depends(get_current_user)) -> dict:
    donor = await BloodDonorService.update_profile(current_user["user_id"], payload)
    return ok(donor, "تم تحديث بيانات المتبرع بنجاح")


@router.get("/search", response_model=ApiResponse[List[DonorPublic]])
async def search_donors(
    blood_type: Optional[str] = Query(None, alias="bloodType"),
    city: Optional[str] = Query(None),
    limit: int = Query(20, ge=1, le=100),
) -> dict:
    """Available donors, newest first.  Contact details are not exposed."""
    return ok(await BloodDonorService.search_donors(blood_type=blood_type, city=city, limit=limit))


@router.get("/statistics", response_model=ApiResponse[Dict[str, Any]])
async def donor_statistics() -> dict:
    return ok(await BloodDonorService.statistics())


@router.get("/matching/{request_id}", response_model=ApiResponse[List[DonorMatch]])
async def matching_donors(request_id: int) -> dict:
    """Up to ten eligible donors for a blood request, longest-rested first."""
    return ok(await BloodDonorService.matching_donors(request_id))


@router.get("/", response_model=ApiResponse[Page[DonorRead]])
async def list_donors(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    blood_type: Optional[str] = Query(None, alias="bloodType"),
    city: Optional[str] = Query(None),
    is_available: Optional[bool] = Query(None, alias="isAvailable"),
    current_user: dict = Depends(require_roles("ADMIN")),
) -> dict:
    result = await BloodDonorService.list_donors(
        page=page, limit=limit, blood_type=blood_type, city=city, is_available=is_available
    )
    return ok(result)
