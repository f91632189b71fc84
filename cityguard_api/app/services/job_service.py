"""
Business logic for job postings.

A job belongs to a business; the business owner (or an administrator)
manages it.  Expiry is evaluated when reading: a job whose ``expiresAt``
has passed disappears from listings and answers ``410 Gone`` on direct
lookup, but stays in the table so it can be renewed.
"""

import logging
from datetime import timedelta
from typing import List, Optional

from sqlalchemy import distinct, func, or_, select
from sqlalchemy.orm import selectinload

from ..core.db import fetch_page, session_scope, utcnow
from ..core.errors import Gone, NotFound, PermissionDenied
from ..core.permissions import ensure_owner_or_admin
from ..models import Business, Job
from ..schemas.job import JobCreate, JobRead, JobUpdate
from .helpers import percent


logger = logging.getLogger(__name__)

JOB_NOT_FOUND = "الوظيفة غير موجودة"
NO_BUSINESS = "ليس لديك أي منشأة تجارية مسجلة"
APPLICATION_INSTRUCTIONS = (
    "يمكنك التقديم على هذه الوظيفة عن طريق التواصل مباشرة مع صاحب العمل عبر المعلومات المذكورة أعلاه"
)

SORTABLE_FIELDS = {
    "createdAt": Job.created_at,
    "title": Job.title,
    "expiresAt": Job.expires_at,
}


def _not_expired(now):
    return or_(Job.expires_at.is_(None), Job.expires_at > now)


def _live(now):
    """Active and not expired."""
    return (Job.is_active.is_(True), _not_expired(now))


def _with_business(stmt):
    return stmt.options(selectinload(Job.business))


class JobService:
    @staticmethod
    def _first_business(session, user_id: int) -> Optional[Business]:
        return session.execute(
            select(Business).where(Business.owner_id == user_id).order_by(Business.id).limit(1)
        ).scalar_one_or_none()

    @staticmethod
    def _get_for_update(session, job_id: int, current_user: dict, message: str) -> Job:
        job = session.get(Job, job_id)
        if job is None:
            raise NotFound(JOB_NOT_FOUND)
        ensure_owner_or_admin(current_user, job.business.owner_id, message)
        return job

    @classmethod
    async def create_job(cls, current_user: dict, data: JobCreate) -> JobRead:
        """Publish a job under the caller's first business."""
        with session_scope() as session:
            business = cls._first_business(session, current_user["user_id"])
            if business is None:
                raise PermissionDenied(NO_BUSINESS)
            job = Job(business_id=business.id, **data.model_dump())
            session.add(job)
            session.flush()
            logger.info("Job %s published for business %s", job.id, business.id)
            return JobRead.model_validate(job)

    @classmethod
    async def list_jobs(
        cls,
        page: int = 1,
        limit: int = 20,
        city: Optional[str] = None,
        region: Optional[str] = None,
        type: Optional[str] = None,
        business_id: Optional[int] = None,
        is_active: Optional[bool] = None,
        title: Optional[str] = None,
        search: Optional[str] = None,
        status: Optional[str] = None,
        sort_by: str = "createdAt",
        order: str = "desc",
    ) -> dict:
        """Public job listing with facets.

        Expired jobs are hidden unless ``status`` is ``expired`` (only
        expired jobs) or ``all`` (no expiry filter).  The facet lists are
        computed over live jobs regardless of the other filters.
        """
        now = utcnow()
        stmt = _with_business(select(Job))
        if status == "expired":
            stmt = stmt.where(Job.expires_at.is_not(None), Job.expires_at <= now)
        elif status != "all":
            stmt = stmt.where(_not_expired(now))
        if city:
            stmt = stmt.where(Job.city.icontains(city, autoescape=True))
        if region:
            stmt = stmt.where(Job.region.icontains(region, autoescape=True))
        if type:
            stmt = stmt.where(Job.type.icontains(type, autoescape=True))
        if business_id is not None:
            stmt = stmt.where(Job.business_id == business_id)
        if is_active is not None:
            stmt = stmt.where(Job.is_active.is_(is_active))
        if title:
            stmt = stmt.where(Job.title.icontains(title, autoescape=True))
        if search:
            stmt = stmt.where(
                or_(
                    Job.title.icontains(search, autoescape=True),
                    Job.description.icontains(search, autoescape=True),
                    Job.city.icontains(search, autoescape=True),
                    Job.region.icontains(search, autoescape=True),
                    Job.type.icontains(search, autoescape=True),
                )
            )
        column = SORTABLE_FIELDS.get(sort_by, Job.created_at)
        stmt = stmt.order_by(column.asc() if order.lower() == "asc" else column.desc(), Job.id.desc())

        with session_scope() as session:
            rows, pagination = fetch_page(session, stmt, page, limit)

            def facet(col) -> List[str]:
                return list(
                    session.execute(
                        select(distinct(col)).where(*_live(now), col.is_not(None), col != "").order_by(col)
                    ).scalars()
                )

            return {
                "items": [JobRead.model_validate(j) for j in rows],
                "pagination": pagination,
                "filters": {
                    "categories": facet(Job.type),
                    "cities": facet(Job.city),
                    "regions": facet(Job.region),
                },
            }

    @classmethod
    async def get_job(cls, job_id: int) -> dict:
        with session_scope() as session:
            job = session.get(Job, job_id)
            if job is None:
                raise NotFound(JOB_NOT_FOUND)
            if job.expires_at is not None and job.expires_at < utcnow():
                raise Gone("انتهت صلاحية هذه الوظيفة")
            business = job.business
            payload = JobRead.model_validate(job).model_dump(by_alias=True)
            payload["contactInfo"] = {
                "phone": business.phone,
                "website": business.website,
                "address": business.address,
            }
            payload["applicationInstructions"] = APPLICATION_INSTRUCTIONS
            return payload

    @classmethod
    async def business_jobs(
        cls,
        current_user: dict,
        page: int = 1,
        limit: int = 20,
        is_active: Optional[bool] = None,
    ) -> dict:
        with session_scope() as session:
            business = cls._first_business(session, current_user["user_id"])
            if business is None:
                raise NotFound("ليس لديك أي منشأة تجارية")
            stmt = _with_business(select(Job)).where(Job.business_id == business.id)
            if is_active is not None:
                stmt = stmt.where(Job.is_active.is_(is_active))
            stmt = stmt.order_by(Job.created_at.desc(), Job.id.desc())
            rows, pagination = fetch_page(session, stmt, page, limit)
            return {"items": [JobRead.model_validate(j) for j in rows], "pagination": pagination}

    @classmethod
    async def update_job(cls, job_id: int, current_user: dict, data: JobUpdate) -> JobRead:
        values = data.model_dump(exclude_unset=True)
        # Required columns cannot be cleared.
        for key in ("title", "type", "is_active"):
            if key in values and values[key] is None:
                values.pop(key)
        with session_scope() as session:
            job = cls._get_for_update(session, job_id, current_user, "ليس لديك صلاحية لتعديل هذه الوظيفة")
            for key, value in values.items():
                setattr(job, key, value)
            job.updated_at = utcnow()
            session.flush()
            logger.info("Job %s updated by %s", job_id, current_user.get("user_id"))
            return JobRead.model_validate(job)

    @classmethod
    async def delete_job(cls, job_id: int, current_user: dict) -> None:
        with session_scope() as session:
            job = cls._get_for_update(session, job_id, current_user, "ليس لديك صلاحية لحذف هذه الوظيفة")
            session.delete(job)
        logger.info("Job %s deleted by %s", job_id, current_user.get("user_id"))

    @classmethod
    async def renew_job(cls, job_id: int, current_user: dict, days: int = 30) -> JobRead:
        with session_scope() as session:
            job = cls._get_for_update(session, job_id, current_user, "ليس لديك صلاحية لتجديد هذه الوظيفة")
            job.expires_at = utcnow() + timedelta(days=days)
            job.is_active = True
            session.flush()
            logger.info("Job %s renewed for %s days", job_id, days)
            return JobRead.model_validate(job)

    @classmethod
    async def toggle_status(cls, job_id: int, current_user: dict) -> JobRead:
        with session_scope() as session:
            job = cls._get_for_update(session, job_id, current_user, "ليس لديك صلاحية لتغيير حالة هذه الوظيفة")
            job.is_active = not job.is_active
            session.flush()
            logger.info("Job %s is now %s", job_id, "active" if job.is_active else "inactive")
            return JobRead.model_validate(job)

    @classmethod
    async def statistics(cls) -> dict:
        now = utcnow()
        with session_scope() as session:
            def count(*criteria) -> int:
                return session.execute(select(func.count(Job.id)).where(*criteria)).scalar_one()

            total = count()
            active = count(*_live(now))
            by_type = session.execute(
                select(Job.type, func.count(Job.id)).where(Job.is_active.is_(True)).group_by(Job.type).order_by(Job.type)
            ).all()
            by_city = session.execute(
                select(Job.city, func.count(Job.id)).where(Job.is_active.is_(True)).group_by(Job.city).order_by(Job.city)
            ).all()
            result = {
                "totalJobs": total,
                "activeJobs": active,
                "expiredJobs": count(Job.expires_at < now),
                "jobsByType": [{"type": t, "count": c} for t, c in by_type],
                "jobsByCity": [{"city": city, "count": c} for city, c in by_city],
                "recentJobs": count(Job.created_at >= now - timedelta(days=30)),
            }
        result["activePercentage"] = percent(active, total)
        return result

    @classmethod
    async def popular_categories(cls, limit: int = 10) -> List[dict]:
        stmt = (
            select(Job.type, func.count(Job.id).label("total"))
            .where(Job.is_active.is_(True), Job.type.is_not(None))
            .group_by(Job.type)
            .order_by(func.count(Job.id).desc(), Job.type)
            .limit(limit)
        )
        with session_scope() as session:
            return [{"name": name, "count": total} for name, total in session.execute(stmt).all()]

    @classmethod
    async def _live_jobs(cls, *criteria, limit: int) -> List[JobRead]:
        now = utcnow()
        stmt = (
            _with_business(select(Job))
            .where(*_live(now), *criteria)
            .order_by(Job.created_at.desc(), Job.id.desc())
            .limit(limit)
        )
        with session_scope() as session:
            return [JobRead.model_validate(j) for j in session.execute(stmt).scalars()]

    @classmethod
    async def jobs_by_category(cls, category: str, limit: int = 10) -> List[JobRead]:
        return await cls._live_jobs(Job.type == category, limit=limit)

    @classmethod
    async def featured_jobs(cls, limit: int = 6) -> List[JobRead]:
        return await cls._live_jobs(limit=limit)

    @classmethod
    async def quick_search(cls, query: Optional[str], limit: int = 5) -> List[JobRead]:
        """Typeahead search; queries shorter than two characters match nothing."""
        term = (query or "").strip()
        if len(term) < 2:
            return []
        return await cls._live_jobs(
            or_(
                Job.title.icontains(term, autoescape=True),
                Job.description.icontains(term, autoescape=True),
                Job.city.icontains(term, autoescape=True),
                Job.type.icontains(term, autoescape=True),
            ),
            limit=limit,
        )

    @classmethod
    async def jobs_in_city(cls, city: str, limit: int = 10) -> dict:
        jobs = await cls._live_jobs(Job.city.icontains(city, autoescape=True), limit=limit)
        return {"city": city, "jobs": jobs, "count": len(jobs)}

    @classmethod
    async def new_jobs_notification(cls, current_user: Optional[dict]) -> dict:
        """Jobs posted in the last day, plus last-week jobs in the caller's city."""
        now = utcnow()
        with session_scope() as session:
            new_jobs = session.execute(
                select(func.count(Job.id)).where(*_live(now), Job.created_at >= now - timedelta(hours=24))
            ).scalar_one()
            in_city = 0
            if current_user and current_user.get("city"):
                in_city = session.execute(
                    select(func.count(Job.id)).where(
                        Job.is_active.is_(True),
                        Job.city == current_user["city"],
                        Job.created_at >= now - timedelta(days=7),
                    )
                ).scalar_one()
        return {
            "newJobsCount": new_jobs,
            "userNotifications": in_city,
            "hasNotifications": new_jobs > 0 or in_city > 0,
            "lastChecked": now.isoformat(),
        }
