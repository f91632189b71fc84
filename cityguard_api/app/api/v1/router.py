"""
Top‑level router for version 1 of the API.

This router aggregates the domain routers (users, businesses, ads,
blood donors, blood requests, jobs) under a unified prefix.  When a new
domain is introduced, include its router here.
"""

from fastapi import APIRouter

from .endpoints import (
    ads,
    blood_donors,
    blood_requests,
    businesses,
    health,
    jobs,
    users,
)

router = APIRouter()

router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(businesses.router, prefix="/businesses", tags=["businesses"])
router.include_router(ads.router, prefix="/ads", tags=["ads"])
router.include_router(blood_donors.router, prefix="/blood-donors", tags=["blood-donors"])
router.include_router(blood_requests.router, prefix="/blood-requests", tags=["blood-requests"])
router.include_router(jobs.router, prefix="/jobs", tags=["jobs"])
router.include_router(health.router, prefix="/health", tags=["health"])
