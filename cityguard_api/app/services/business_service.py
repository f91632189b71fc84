"""
Business logic for businesses and their image galleries.

Images are uploaded through the configured ``ImageStorage`` and kept on
the business row as a list of ``{"url", "publicId"}`` objects.  Removing
an image or deleting the business deletes the stored files as well.
"""

import logging
from typing import Dict, Iterable, List, Optional

from fastapi import UploadFile
from sqlalchemy import func, or_, select

from ..core.db import fetch_page, session_scope, utcnow
from ..core.errors import NotFound, ValidationFailed
from ..core.permissions import ensure_owner_or_admin
from ..core.storage import ensure_image, get_storage
from ..models import Ad, AdStatus, Business, Job
from ..schemas.business import BusinessCheck, BusinessRead, BusinessStats


logger = logging.getLogger(__name__)

MAX_BUSINESS_IMAGES = 10
BUSINESS_NOT_FOUND = "المنشأة غير موجودة"
TOO_MANY_IMAGES = f"لا يمكن رفع أكثر من {MAX_BUSINESS_IMAGES} صور"

_EDITABLE_FIELDS = ("name", "description", "category", "city", "address", "phone", "email", "website")


def store_images(uploads: Iterable[UploadFile], folder: str, field: str) -> List[Dict[str, str]]:
    """Upload every file, undoing earlier uploads if one of them fails."""
    uploads = [u for u in uploads if u is not None and u.filename]
    for upload in uploads:
        ensure_image(upload, field)
    storage = get_storage()
    stored: List[Dict[str, str]] = []
    try:
        for upload in uploads:
            stored.append(storage.save(upload, folder))
    except Exception:
        storage.delete_many(img["publicId"] for img in stored)
        raise
    return stored


class BusinessService:
    @staticmethod
    def collect_image_ids(business: Business) -> List[str]:
        """Public ids of every stored image owned by ``business`` and its ads."""
        ids = [img.get("publicId") for img in business.images or [] if img.get("publicId")]
        for ad in business.ads:
            ids.extend(ad.stored_public_ids())
        return ids

    @staticmethod
    def drop_images(public_ids: Iterable[str]) -> None:
        get_storage().delete_many(public_ids)

    @classmethod
    async def create_business(cls, current_user: dict, fields: dict, images: List[UploadFile]) -> BusinessRead:
        images = [i for i in images or [] if i is not None and i.filename]
        if len(images) > MAX_BUSINESS_IMAGES:
            raise ValidationFailed(TOO_MANY_IMAGES, {"images": TOO_MANY_IMAGES})
        stored = store_images(images, "businesses", "images")
        try:
            with session_scope() as session:
                business = Business(owner_id=current_user["user_id"], images=stored, **fields)
                session.add(business)
                session.flush()
                logger.info("User %s created business %s", current_user["user_id"], business.id)
                return BusinessRead.model_validate(business)
        except Exception:
            cls.drop_images(img["publicId"] for img in stored)
            raise

    @classmethod
    async def owner_businesses(cls, user_id: int) -> List[BusinessRead]:
        stmt = (
            select(Business)
            .where(Business.owner_id == user_id)
            .order_by(Business.created_at.desc(), Business.id.desc())
        )
        with session_scope() as session:
            return [BusinessRead.model_validate(b) for b in session.execute(stmt).scalars()]

    @classmethod
    async def check_user_business(cls, user_id: int) -> BusinessCheck:
        stmt = select(Business).where(Business.owner_id == user_id).order_by(Business.id).limit(1)
        with session_scope() as session:
            business = session.execute(stmt).scalar_one_or_none()
            return BusinessCheck(
                has_business=business is not None,
                business=BusinessRead.model_validate(business) if business else None,
            )

    @classmethod
    async def get_business(cls, business_id: int) -> BusinessRead:
        with session_scope() as session:
            business = session.get(Business, business_id)
            if business is None:
                raise NotFound(BUSINESS_NOT_FOUND)
            return BusinessRead.model_validate(business)

    @classmethod
    async def list_businesses(
        cls,
        page: int = 1,
        limit: int = 20,
        search: Optional[str] = None,
        city: Optional[str] = None,
    ) -> dict:
        stmt = select(Business)
        if search:
            stmt = stmt.where(
                or_(
                    Business.name.icontains(search, autoescape=True),
                    Business.description.icontains(search, autoescape=True),
                )
            )
        if city:
            stmt = stmt.where(Business.city.icontains(city, autoescape=True))
        stmt = stmt.order_by(Business.created_at.desc(), Business.id.desc())
        with session_scope() as session:
            rows, pagination = fetch_page(session, stmt, page, limit)
            return {"items": [BusinessRead.model_validate(b) for b in rows], "pagination": pagination}

    @classmethod
    async def update_business(
        cls,
        business_id: int,
        current_user: dict,
        fields: dict,
        images: Optional[List[UploadFile]] = None,
        remove_images: Optional[List[str]] = None,
    ) -> BusinessRead:
        """Update fields, append new images and drop ``remove_images``.

        Only fields that were actually submitted are changed.  The gallery
        may never exceed ten images after the update.
        """
        images = [i for i in images or [] if i is not None and i.filename]
        remove_ids = {pid for pid in remove_images or [] if pid}
        with session_scope() as session:
            business = session.get(Business, business_id)
            if business is None:
                raise NotFound(BUSINESS_NOT_FOUND)
            ensure_owner_or_admin(current_user, business.owner_id, "غير مصرح لك بتعديل هذه المنشأة")
            kept = [img for img in business.images or [] if img.get("publicId") not in remove_ids]
            if len(kept) + len(images) > MAX_BUSINESS_IMAGES:
                raise ValidationFailed(TOO_MANY_IMAGES, {"images": TOO_MANY_IMAGES})
            removed = [img["publicId"] for img in business.images or [] if img.get("publicId") in remove_ids]

            stored = store_images(images, "businesses", "images")
            try:
                for key in _EDITABLE_FIELDS:
                    if key in fields:
                        setattr(business, key, fields[key])
                business.images = kept + stored
                business.updated_at = utcnow()
                session.flush()
                result = BusinessRead.model_validate(business)
            except Exception:
                cls.drop_images(img["publicId"] for img in stored)
                raise
        cls.drop_images(removed)
        logger.info("Business %s updated by %s", business_id, current_user.get("user_id"))
        return result

    @classmethod
    async def delete_business(cls, business_id: int, current_user: dict) -> None:
        with session_scope() as session:
            business = session.get(Business, business_id)
            if business is None:
                raise NotFound(BUSINESS_NOT_FOUND)
            ensure_owner_or_admin(current_user, business.owner_id, "غير مصرح لك بحذف هذه المنشأة")
            image_ids = cls.collect_image_ids(business)
            session.delete(business)
        cls.drop_images(image_ids)
        logger.info("Business %s deleted by %s", business_id, current_user.get("user_id"))

    @classmethod
    async def business_stats(cls, business_id: int, current_user: dict) -> BusinessStats:
        now = utcnow()
        with session_scope() as session:
            business = session.get(Business, business_id)
            if business is None:
                raise NotFound(BUSINESS_NOT_FOUND)
            ensure_owner_or_admin(current_user, business.owner_id)

            def count(stmt) -> int:
                return session.execute(stmt).scalar_one()

            jobs = select(func.count(Job.id)).where(Job.business_id == business_id)
            active_jobs = jobs.where(
                Job.is_active.is_(True),
                or_(Job.expires_at.is_(None), Job.expires_at >= now),
            )
            ads = select(func.count(Ad.id)).where(Ad.target_id == business_id)
            totals = session.execute(
                select(
                    func.coalesce(func.sum(Ad.impressions), 0),
                    func.coalesce(func.sum(Ad.clicks), 0),
                ).where(Ad.target_id == business_id)
            ).one()
            return BusinessStats(
                business_id=business_id,
                total_jobs=count(jobs),
                active_jobs=count(active_jobs),
                total_ads=count(ads),
                approved_ads=count(ads.where(Ad.status == AdStatus.APPROVED)),
                active_ads=count(
                    ads.where(
                        Ad.status == AdStatus.APPROVED,
                        Ad.is_active.is_(True),
                        Ad.start_at <= now,
                        Ad.end_at >= now,
                    )
                ),
                total_impressions=int(totals[0]),
                total_clicks=int(totals[1]),
            )
