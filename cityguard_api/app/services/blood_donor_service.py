"""
Business logic for the blood donor registry.

Each user has at most one donor profile.  A donor is eligible to give
blood when they have never donated, when their last donation is at least
``DONATION_INTERVAL_DAYS`` old, or when an explicit ``canDonateAfter``
date has passed.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.orm import selectinload

from ..core.db import fetch_page, session_scope, utcnow
from ..core.errors import NotFound
from ..models import BloodDonor, BloodRequest
from ..models.blood_donor import DONATION_INTERVAL_DAYS
from ..schemas.blood import (
    DonorMatch,
    DonorProfileUpdate,
    DonorPublic,
    DonorRead,
    DonorRegister,
    DonorStatusUpdate,
    LastDonationUpdate,
)
from .helpers import blood_type_filter, percent


logger = logging.getLogger(__name__)

DONOR_NOT_FOUND = "لم يتم العثور على بيانات المتبرع"
REQUEST_NOT_FOUND = "طلب التبرع غير موجود"
MATCHING_DONORS_LIMIT = 10


def eligibility_clause(now: datetime):
    """SQL condition true for donors whose waiting period has elapsed."""
    return or_(
        BloodDonor.last_donation.is_(None),
        BloodDonor.last_donation <= now - timedelta(days=DONATION_INTERVAL_DAYS),
        BloodDonor.can_donate_after <= now,
    )


class BloodDonorService:
    @staticmethod
    def _get_own(session, user_id: int) -> BloodDonor:
        donor = session.execute(
            select(BloodDonor).where(BloodDonor.user_id == user_id)
        ).scalar_one_or_none()
        if donor is None:
            raise NotFound(DONOR_NOT_FOUND)
        return donor

    @classmethod
    async def register_donor(cls, user_id: int, data: DonorRegister) -> Tuple[DonorRead, bool]:
        """Create the caller's donor profile, or update it if one exists.

        Returns the profile and ``True`` when a new row was created.
        """
        values = data.model_dump(exclude_unset=True)
        with session_scope() as session:
            donor = session.execute(
                select(BloodDonor).where(BloodDonor.user_id == user_id)
            ).scalar_one_or_none()
            created = donor is None
            if created:
                donor = BloodDonor(user_id=user_id)
                session.add(donor)
            for key, value in values.items():
                if value is None and key in {"is_available", "receive_alerts", "max_distance"}:
                    continue
                setattr(donor, key, value)
            session.flush()
            logger.info("%s donor profile %s for user %s", "Created" if created else "Updated", donor.id, user_id)
            return DonorRead.model_validate(donor), created

    @classmethod
    async def get_profile(cls, user_id: int) -> DonorRead:
        with session_scope() as session:
            return DonorRead.model_validate(cls._get_own(session, user_id))

    @classmethod
    async def _partial_update(cls, user_id: int, values: dict) -> DonorRead:
        with session_scope() as session:
            donor = cls._get_own(session, user_id)
            for key, value in values.items():
                setattr(donor, key, value)
            donor.updated_at = utcnow()
            session.flush()
            return DonorRead.model_validate(donor)

    @classmethod
    async def update_status(cls, user_id: int, data: DonorStatusUpdate) -> DonorRead:
        values = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        return await cls._partial_update(user_id, values)

    @classmethod
    async def update_last_donation(cls, user_id: int, data: LastDonationUpdate) -> DonorRead:
        return await cls._partial_update(user_id, data.model_dump(exclude_unset=True))

    @classmethod
    async def update_profile(cls, user_id: int, data: DonorProfileUpdate) -> DonorRead:
        values = data.model_dump(exclude_unset=True)
        # Required columns cannot be cleared.
        for key in ("blood_type", "city", "phone"):
            if key in values and values[key] is None:
                values.pop(key)
        return await cls._partial_update(user_id, values)

    @classmethod
    async def list_donors(
        cls,
        page: int = 1,
        limit: int = 20,
        blood_type: Optional[str] = None,
        city: Optional[str] = None,
        is_available: Optional[bool] = None,
    ) -> dict:
        stmt = select(BloodDonor).options(selectinload(BloodDonor.user))
        if blood_type:
            stmt = stmt.where(BloodDonor.blood_type == blood_type_filter(blood_type))
        if city:
            stmt = stmt.where(BloodDonor.city.icontains(city, autoescape=True))
        if is_available is not None:
            stmt = stmt.where(BloodDonor.is_available.is_(is_available))
        stmt = stmt.order_by(BloodDonor.created_at.desc(), BloodDonor.id.desc())
        with session_scope() as session:
            rows, pagination = fetch_page(session, stmt, page, limit)
            return {"items": [DonorRead.model_validate(d) for d in rows], "pagination": pagination}

    @classmethod
    async def search_donors(
        cls,
        blood_type: Optional[str] = None,
        city: Optional[str] = None,
        limit: int = 20,
    ) -> List[DonorPublic]:
        stmt = select(BloodDonor).options(selectinload(BloodDonor.user)).where(BloodDonor.is_available.is_(True))
        if blood_type:
            stmt = stmt.where(BloodDonor.blood_type == blood_type_filter(blood_type))
        if city:
            stmt = stmt.where(BloodDonor.city.icontains(city, autoescape=True))
        stmt = stmt.order_by(BloodDonor.created_at.desc(), BloodDonor.id.desc()).limit(limit)
        with session_scope() as session:
            return [DonorPublic.model_validate(d) for d in session.execute(stmt).scalars()]

    @classmethod
    async def matching_donors(cls, request_id: int) -> List[DonorMatch]:
        """Eligible available donors for a request, longest-rested first."""
        now = utcnow()
        with session_scope() as session:
            request = session.get(BloodRequest, request_id)
            if request is None:
                raise NotFound(REQUEST_NOT_FOUND)
            stmt = (
                select(BloodDonor)
                .options(selectinload(BloodDonor.user))
                .where(
                    BloodDonor.is_available.is_(True),
                    BloodDonor.blood_type == request.blood_type,
                    BloodDonor.city.icontains(request.city, autoescape=True),
                    eligibility_clause(now),
                )
                # Donors who never gave blood sort first.
                .order_by(BloodDonor.last_donation.is_not(None), BloodDonor.last_donation.asc(), BloodDonor.id)
                .limit(MATCHING_DONORS_LIMIT)
            )
            return [DonorMatch.model_validate(d) for d in session.execute(stmt).scalars()]

    @classmethod
    async def statistics(cls) -> dict:
        since = utcnow() - timedelta(days=30)
        with session_scope() as session:
            total = session.execute(select(func.count(BloodDonor.id))).scalar_one()
            active = session.execute(
                select(func.count(BloodDonor.id)).where(BloodDonor.is_available.is_(True))
            ).scalar_one()
            by_type = session.execute(
                select(BloodDonor.blood_type, func.count(BloodDonor.id))
                .where(BloodDonor.is_available.is_(True))
                .group_by(BloodDonor.blood_type)
                .order_by(func.count(BloodDonor.id).desc(), BloodDonor.blood_type)
            ).all()
            by_city = session.execute(
                select(BloodDonor.city, func.count(BloodDonor.id))
                .where(BloodDonor.is_available.is_(True))
                .group_by(BloodDonor.city)
                .order_by(func.count(BloodDonor.id).desc(), BloodDonor.city)
            ).all()
            recent = session.execute(
                select(func.count(BloodDonor.id)).where(BloodDonor.created_at >= since)
            ).scalar_one()
        return {
            "totalDonors": total,
            "activeDonors": active,
            "donorsByBloodType": [{"bloodType": t, "count": c} for t, c in by_type],
            "donorsByCity": [{"city": city, "count": c} for city, c in by_city],
            "recentDonors": recent,
            "activationRate": percent(active, total),
        }
