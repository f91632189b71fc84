"""
Business logic for the blood request board.

Requests are visible publicly while they are ``open`` and not past
their ``expiresAt``.  Expiry is evaluated at read time; nothing rewrites
the ``status`` column in the background.  Status changes are made by
administrators only.
"""

import logging
from collections import Counter
from typing import List, Optional

from sqlalchemy import case, func, or_, select
from sqlalchemy.orm import selectinload

from ..core.db import fetch_page, session_scope, utcnow
from ..core.errors import NotFound, ValidationFailed
from ..core.permissions import ensure_owner_or_admin, is_admin
from ..models import BloodDonor, BloodRequest
from ..models.blood_request import REQUEST_STATUSES, URGENCY_LEVELS
from ..schemas.blood import (
    BloodRequestCreate,
    BloodRequestRead,
    BloodRequestStatusUpdate,
    BloodRequestUpdate,
    DonorMatch,
)
from .blood_donor_service import eligibility_clause
from .helpers import blood_type_filter, percent


logger = logging.getLogger(__name__)

REQUEST_NOT_FOUND = "طلب التبرع غير موجود"
MATCHED_DONORS_LIMIT = 20

SORTABLE_FIELDS = {
    "createdAt": BloodRequest.created_at,
    "updatedAt": BloodRequest.updated_at,
    "expiresAt": BloodRequest.expires_at,
    "units": BloodRequest.units,
    "city": BloodRequest.city,
    "bloodType": BloodRequest.blood_type,
}

# critical -> 0 ... low -> 3
URGENCY_RANK = case(
    {level: rank for rank, level in enumerate(reversed(URGENCY_LEVELS))},
    value=BloodRequest.urgency,
    else_=len(URGENCY_LEVELS),
)


def _not_expired(now):
    return or_(BloodRequest.expires_at.is_(None), BloodRequest.expires_at >= now)


class BloodRequestService:
    @classmethod
    async def create_request(cls, data: BloodRequestCreate, current_user: Optional[dict]) -> BloodRequestRead:
        """Post a request; anonymous visitors may post too."""
        values = data.model_dump()
        with session_scope() as session:
            request = BloodRequest(
                requester_id=current_user["user_id"] if current_user else None,
                status="open",
                **values,
            )
            session.add(request)
            session.flush()
            logger.info(
                "Blood request %s created (%s, %s units, %s)",
                request.id, request.blood_type, request.units, request.urgency,
            )
            return BloodRequestRead.model_validate(request)

    @classmethod
    async def list_requests(
        cls,
        page: int = 1,
        limit: int = 20,
        status: Optional[str] = "open",
        blood_type: Optional[str] = None,
        urgency: Optional[str] = None,
        city: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "createdAt",
        order: str = "desc",
    ) -> dict:
        """Public listing.

        Expired requests are always hidden.  ``status`` defaults to
        ``open``; pass ``all`` to list every status.
        """
        stmt = select(BloodRequest).options(selectinload(BloodRequest.requester)).where(_not_expired(utcnow()))
        if status and status != "all":
            if status not in REQUEST_STATUSES:
                raise ValidationFailed("حالة غير صالحة", {"status": "حالة غير صالحة"})
            stmt = stmt.where(BloodRequest.status == status)
        if blood_type:
            stmt = stmt.where(BloodRequest.blood_type == blood_type_filter(blood_type))
        if urgency:
            if urgency not in URGENCY_LEVELS:
                raise ValidationFailed("درجة الإلحاح غير صالحة", {"urgency": "درجة الإلحاح غير صالحة"})
            stmt = stmt.where(BloodRequest.urgency == urgency)
        if city:
            stmt = stmt.where(BloodRequest.city.icontains(city, autoescape=True))
        if search:
            stmt = stmt.where(
                or_(
                    BloodRequest.hospital.icontains(search, autoescape=True),
                    BloodRequest.city.icontains(search, autoescape=True),
                    BloodRequest.notes.icontains(search, autoescape=True),
                )
            )
        column = SORTABLE_FIELDS.get(sort_by, BloodRequest.created_at)
        stmt = stmt.order_by(column.asc() if order.lower() == "asc" else column.desc(), BloodRequest.id.desc())
        with session_scope() as session:
            rows, pagination = fetch_page(session, stmt, page, limit)
            return {"items": [BloodRequestRead.model_validate(r) for r in rows], "pagination": pagination}

    @classmethod
    async def search_requests(
        cls,
        blood_type: Optional[str] = None,
        city: Optional[str] = None,
        hospital: Optional[str] = None,
        limit: int = 10,
    ) -> List[BloodRequestRead]:
        """Open, unexpired requests; most urgent first, then newest."""
        stmt = select(BloodRequest).where(BloodRequest.status == "open", _not_expired(utcnow()))
        if blood_type:
            stmt = stmt.where(BloodRequest.blood_type == blood_type_filter(blood_type))
        if city:
            stmt = stmt.where(BloodRequest.city.icontains(city, autoescape=True))
        if hospital:
            stmt = stmt.where(BloodRequest.hospital.icontains(hospital, autoescape=True))
        stmt = stmt.order_by(URGENCY_RANK, BloodRequest.created_at.desc(), BloodRequest.id.desc()).limit(limit)
        with session_scope() as session:
            return [BloodRequestRead.model_validate(r) for r in session.execute(stmt).scalars()]

    @classmethod
    async def get_request(cls, request_id: int) -> BloodRequestRead:
        with session_scope() as session:
            request = session.get(BloodRequest, request_id)
            if request is None:
                raise NotFound(REQUEST_NOT_FOUND)
            return BloodRequestRead.model_validate(request)

    @classmethod
    async def my_requests(
        cls,
        user_id: int,
        page: int = 1,
        limit: int = 20,
        status: Optional[str] = None,
    ) -> dict:
        stmt = select(BloodRequest).where(BloodRequest.requester_id == user_id)
        if status:
            stmt = stmt.where(BloodRequest.status == status)
        stmt = stmt.order_by(BloodRequest.created_at.desc(), BloodRequest.id.desc())
        with session_scope() as session:
            rows, pagination = fetch_page(session, stmt, page, limit)
            return {"items": [BloodRequestRead.model_validate(r) for r in rows], "pagination": pagination}

    @classmethod
    async def update_request(
        cls,
        request_id: int,
        data: BloodRequestUpdate,
        current_user: dict,
    ) -> BloodRequestRead:
        """Partial update by the requester or an administrator.

        ``status`` from a non-administrator is dropped without error.
        """
        values = data.model_dump(exclude_unset=True)
        if not is_admin(current_user):
            values.pop("status", None)
        for key in ("blood_type", "units", "urgency", "city", "hospital", "contact_phone", "status"):
            if key in values and values[key] is None:
                values.pop(key)
        with session_scope() as session:
            request = session.get(BloodRequest, request_id)
            if request is None:
                raise NotFound(REQUEST_NOT_FOUND)
            ensure_owner_or_admin(current_user, request.requester_id, "غير مصرح لك بتعديل هذا الطلب")
            for key, value in values.items():
                setattr(request, key, value)
            request.updated_at = utcnow()
            session.flush()
            logger.info("Blood request %s updated by %s", request_id, current_user.get("user_id"))
            return BloodRequestRead.model_validate(request)

    @classmethod
    async def delete_request(cls, request_id: int, current_user: dict) -> None:
        with session_scope() as session:
            request = session.get(BloodRequest, request_id)
            if request is None:
                raise NotFound(REQUEST_NOT_FOUND)
            ensure_owner_or_admin(current_user, request.requester_id, "غير مصرح لك بحذف هذا الطلب")
            session.delete(request)
        logger.info("Blood request %s deleted by %s", request_id, current_user.get("user_id"))

    @classmethod
    async def update_status(cls, request_id: int, data: BloodRequestStatusUpdate) -> BloodRequestRead:
        with session_scope() as session:
            request = session.get(BloodRequest, request_id)
            if request is None:
                raise NotFound(REQUEST_NOT_FOUND)
            request.status = data.status
            session.flush()
            logger.info("Blood request %s status set to %s", request_id, data.status)
            return BloodRequestRead.model_validate(request)

    @classmethod
    async def match_donors(cls, request_id: int) -> dict:
        """Donors who can answer the request and accept alerts.

        Blood type and city must match exactly (city case-insensitively).
        """
        now = utcnow()
        with session_scope() as session:
            request = session.get(BloodRequest, request_id)
            if request is None:
                raise NotFound(REQUEST_NOT_FOUND)
            stmt = (
                select(BloodDonor)
                .options(selectinload(BloodDonor.user))
                .where(
                    BloodDonor.blood_type == request.blood_type,
                    func.lower(BloodDonor.city) == request.city.lower(),
                    BloodDonor.is_available.is_(True),
                    BloodDonor.receive_alerts.is_(True),
                    eligibility_clause(now),
                )
                .order_by(BloodDonor.last_donation.is_not(None), BloodDonor.last_donation.asc(), BloodDonor.id)
                .limit(MATCHED_DONORS_LIMIT)
            )
            donors = [DonorMatch.model_validate(d) for d in session.execute(stmt).scalars()]
            return {
                "request": BloodRequestRead.model_validate(request),
                "donors": donors,
                "stats": {
                    "totalMatched": len(donors),
                    "byCity": dict(Counter(d.city for d in donors)),
                },
            }

    @classmethod
    async def statistics(cls) -> dict:
        open_only = BloodRequest.status == "open"
        with session_scope() as session:
            def count(*criteria) -> int:
                return session.execute(select(func.count(BloodRequest.id)).where(*criteria)).scalar_one()

            total = count()
            open_count = count(open_only)
            fulfilled = count(BloodRequest.status == "fulfilled")
            critical = count(open_only, BloodRequest.urgency == "critical")
            by_type = session.execute(
                select(BloodRequest.blood_type, func.count(BloodRequest.id))
                .where(open_only)
                .group_by(BloodRequest.blood_type)
                .order_by(func.count(BloodRequest.id).desc(), BloodRequest.blood_type)
            ).all()
            by_city = session.execute(
                select(BloodRequest.city, func.count(BloodRequest.id))
                .where(open_only)
                .group_by(BloodRequest.city)
                .order_by(func.count(BloodRequest.id).desc(), BloodRequest.city)
            ).all()
        return {
            "totalRequests": total,
            "openRequests": open_count,
            "fulfilledRequests": fulfilled,
            "requestsByBloodType": [{"bloodType": t, "count": c} for t, c in by_type],
            "requestsByCity": [{"city": city, "count": c} for city, c in by_city],
            "urgentRequests": critical,
            "fulfillmentRate": percent(fulfilled, total),
        }
