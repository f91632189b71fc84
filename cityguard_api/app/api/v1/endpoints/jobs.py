"""
Job posting endpoints for API v1.

Listings, search and job details are public.  Owners publish jobs under
their business; owners and administrators manage them.  Create and
update bodies are the ``JobCreate`` and ``JobUpdate`` models; every
failing field is reported in ``errors``.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query, status

from cityguard_api.app.core.security import get_current_user, get_optional_user, require_roles
from cityguard_api.app.schemas.common import ApiResponse, Page, ok
from cityguard_api.app.schemas.job import JobCreate, JobPage, JobRead, JobRenew, JobUpdate
from cityguard_api.app.services.job_service import JobService


router = APIRouter()


@router.get("/featured", response_model=ApiResponse[List[JobRead]])
async def featured_jobs(limit: int = Query(6, ge=1, le=50)) -> dict:
    return ok(await JobService.featured_jobs(limit=limit))


@router.get("/search/quick", response_model=ApiResponse[List[JobRead]])
async def quick_search(q: Optional[str] = Query(None), limit: int = Query(5, ge=1, le=50)) -> dict:
    return ok(await JobService.quick_search(q, limit=limit))


@router.get("/category/{category}", response_model=ApiResponse[List[JobRead]])
async def jobs_by_category(category: str, limit: int = Query(10, ge=1, le=100)) -> dict:
    return ok(await JobService.jobs_by_category(category, limit=limit))


@router.get("/popular-categories", response_model=ApiResponse[List[Dict[str, Any]]])
async def popular_categories() -> dict:
    return ok(await JobService.popular_categories())


@router.get("/notifications/new", response_model=ApiResponse[Dict[str, Any]])
async def new_jobs_notification(current_user: Optional[dict] = Depends(get_optional_user)) -> dict:
    return ok(await JobService.new_jobs_notification(current_user))


@router.get("/mycity", response_model=ApiResponse[Dict[str, Any]])
async def jobs_in_my_city(
    city: Optional[str] = Query(None),
    limit: int = Query(10, ge=1, le=100),
    current_user: Optional[dict] = Depends(get_optional_user),
) -> dict:
    """Live jobs in ``city``, or in the caller's city when it is omitted."""
    city = city or (current_user or {}).get("city")
    if not city:
        return ok({"city": None, "jobs": [], "count": 0}, "الرجاء تحديد المدينة")
    return ok(await JobService.jobs_in_city(city, limit=limit))


@router.get("/statistics", response_model=ApiResponse[Dict[str, Any]])
async def jobs_statistics(current_user: dict = Depends(require_roles("ADMIN"))) -> dict:
    return ok(await JobService.statistics())


@router.get("/mine", response_model=ApiResponse[Page[JobRead]])
async def business_jobs(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    current_user: dict = Depends(require_roles("OWNER")),
) -> dict:
    """Jobs of the caller's business."""
    return ok(await JobService.business_jobs(current_user, page=page, limit=limit, is_active=is_active))


@router.get("/", response_model=ApiResponse[JobPage])
async def list_jobs(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    city: Optional[str] = Query(None),
    region: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    business_id: Optional[int] = Query(None, alias="businessId"),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    title: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status", pattern="^(expired|all)$"),
    sort_by: str = Query("createdAt", alias="sortBy"),
    order: str = Query("desc", alias="sortOrder"),
) -> dict:
    """Public job listing.

    - **status** — omit for unexpired jobs, ``expired`` for expired jobs
      only, ``all`` to ignore expiry.
    - **sortBy** — ``createdAt``, ``title`` or ``expiresAt``.
    """
    result = await JobService.list_jobs(
        page=page,
        limit=limit,
        city=city,
        region=region,
        type=type,
        business_id=business_id,
        is_active=is_active,
        title=title,
        search=search,
        status=status_filter,
        sort_by=sort_by,
        order=order,
    )
    return ok(result)


@router.post("/", response_model=ApiResponse[JobRead], status_code=status.HTTP_201_CREATED)
async def create_job(
    payload: JobCreate,
    current_user: dict = Depends(require_roles("OWNER")),
) -> dict:
    return ok(await JobService.create_job(current_user, payload), "تم نشر الوظيفة بنجاح")


@router.get("/{job_id}", response_model=ApiResponse[Dict[str, Any]])
async def get_job(job_id: int) -> dict:
    """Job details with the employer's contact information; 410 once expired."""
    return ok(await JobService.get_job(job_id))


@router.put("/{job_id}", response_model=ApiResponse[JobRead])
async def update_job(
    job_id: int,
    payload: JobUpdate,
    current_user: dict = Depends(get_current_user),
) -> dict:
    return ok(await JobService.update_job(job_id, current_user, payload), "تم تحديث الوظيفة بنجاح")


@router.delete("/{job_id}", response_model=ApiResponse[None])
async def delete_job(job_id: int, current_user: dict = Depends(get_current_user)) -> dict:
    await JobService.delete_job(job_id, current_user)
    return ok(message="تم حذف الوظيفة بنجاح")


@router.patch("/{job_id}/renew", response_model=ApiResponse[JobRead])
async def renew_job(
    job_id: int,
    payload: Optional[JobRenew] = Body(None),
    current_user: dict = Depends(get_current_user),
) -> dict:
    """Push the expiry ``days`` (default 30) into the future and reactivate."""
    days = payload.days if payload else 30
    return ok(await JobService.renew_job(job_id, current_user, days), "تم تجديد الوظيفة بنجاح")


@router.patch("/{job_id}/toggle-status", response_model=ApiResponse[JobRead])
async def toggle_job_status(job_id: int, current_user: dict = Depends(get_current_user)) -> dict:
    return ok(await JobService.toggle_status(job_id, current_user), "تم تغيير حالة الوظيفة")
