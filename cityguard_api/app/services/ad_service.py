"""
Business logic for advertisements.

Ads move through a review workflow: every new ad starts as
``PENDING_REVIEW`` and inactive; an administrator approves (activating
it) or rejects it with a reason.  Approved, active ads whose
``startAt``/``endAt`` window contains the current time are served
publicly, highest priority first.

Impression and click counters are bumped with single ``UPDATE ... SET
col = col + 1`` statements so concurrent requests never lose updates.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import UploadFile
from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError

from ..core.db import as_utc_naive, fetch_page, session_scope, utcnow
from ..core.errors import NotFound, PermissionDenied, ValidationFailed
from ..core.permissions import ensure_owner_or_admin, is_admin
from ..core.storage import ensure_image, get_storage
from ..models import Ad, AdStatus, BannerType, Business, TargetType
from ..models.ad import IMAGE_SLOTS
from ..schemas.ad import AdClick, AdRead, AdStatusUpdate, PublicAd
from .business_service import store_images


logger = logging.getLogger(__name__)

AD_NOT_FOUND = "الإعلان غير موجود"
INVALID_WINDOW = "تاريخ الانتهاء يجب أن يكون بعد تاريخ البداية"
DEFAULT_REJECTION_REASON = "لم يتم تحديد السبب"
ADS_PER_BANNER = 5

SORTABLE_FIELDS = {
    "createdAt": Ad.created_at,
    "updatedAt": Ad.updated_at,
    "priority": Ad.priority,
    "startAt": Ad.start_at,
    "endAt": Ad.end_at,
    "impressions": Ad.impressions,
    "clicks": Ad.clicks,
    "title": Ad.title,
}

# Fields an OWNER may change on their own ads.
_OWNER_FIELDS = ("title", "content", "url", "banner_type", "start_at", "end_at")
_ADMIN_ONLY_FIELDS = ("status", "priority", "is_active")


def _owner_id(ad: Ad) -> Optional[int]:
    if ad.business is not None:
        return ad.business.owner_id
    return ad.created_by


def _owned_business_ids(user_id: int):
    return select(Business.id).where(Business.owner_id == user_id)


def _utc_field(value: datetime, field: str) -> datetime:
    try:
        return as_utc_naive(value)
    except ValueError as exc:
        raise ValidationFailed(str(exc), {field: str(exc)}) from exc


def _check_window(start_at: datetime, end_at: datetime) -> None:
    if end_at <= start_at:
        raise ValidationFailed(INVALID_WINDOW, {"endAt": INVALID_WINDOW})


def _save_slots(files: Dict[str, Optional[UploadFile]]) -> Dict[str, Dict[str, str]]:
    """Upload the submitted image slots; returns ``{slot: {url, publicId}}``."""
    saved: Dict[str, Dict[str, str]] = {}
    try:
        for slot in IMAGE_SLOTS:
            upload = files.get(slot)
            if upload is not None and upload.filename:
                saved[slot] = store_images([upload], "ads", slot)[0]
    except Exception:
        get_storage().delete_many(img["publicId"] for img in saved.values())
        raise
    return saved


class AdService:
    @classmethod
    async def create_ad(
        cls,
        current_user: dict,
        fields: dict,
        files: Dict[str, Optional[UploadFile]],
    ) -> AdRead:
        """Submit an ad for review.

        ADMIN may only create ``EXTERNAL`` ads; OWNER may only advertise a
        business they own.  Each of the three image slots is optional.
        """
        role = current_user.get("role")
        target_type = TargetType(fields["target_type"])
        target_id = fields.get("target_id")
        if role == "ADMIN":
            if target_type != TargetType.EXTERNAL:
                raise PermissionDenied("المدير يمكنه إنشاء إعلانات خارجية فقط")
            target_id = None
        elif role == "OWNER":
            if target_type != TargetType.BUSINESS:
                raise PermissionDenied("المالك يمكنه الإعلان عن متجره فقط")
            if target_id is None:
                raise ValidationFailed("يجب تحديد المنشأة المعلن عنها", {"targetId": "مطلوب"})
        else:
            raise PermissionDenied("غير مصرح لك بإنشاء إعلانات")

        start_at = _utc_field(fields["start_at"], "startAt")
        end_at = _utc_field(fields["end_at"], "endAt")
        _check_window(start_at, end_at)

        with session_scope() as session:
            if target_type == TargetType.BUSINESS:
                business = session.get(Business, target_id)
                if business is None or business.owner_id != current_user["user_id"]:
                    raise PermissionDenied("لا يمكنك الإعلان عن متجر لا تملكه")
            saved = _save_slots(files)
            try:
                ad = Ad(
                    title=fields["title"],
                    content=fields.get("content"),
                    url=fields.get("url"),
                    banner_type=fields.get("banner_type") or BannerType.MAIN_HERO,
                    target_type=target_type,
                    target_id=target_id,
                    created_by=current_user["user_id"],
                    status=AdStatus.PENDING_REVIEW,
                    is_active=False,
                    priority=0,
                    start_at=start_at,
                    end_at=end_at,
                )
                for slot, image in saved.items():
                    url_attr, id_attr = IMAGE_SLOTS[slot]
                    setattr(ad, url_attr, image["url"])
                    setattr(ad, id_attr, image["publicId"])
                session.add(ad)
                session.flush()
                logger.info("User %s submitted ad %s for review", current_user["user_id"], ad.id)
                return AdRead.model_validate(ad)
            except Exception:
                get_storage().delete_many(img["publicId"] for img in saved.values())
                raise

    @staticmethod
    def _record_impressions(ad_ids: List[int]) -> None:
        if not ad_ids:
            return
        try:
            with session_scope() as session:
                session.execute(
                    update(Ad)
                    .where(Ad.id.in_(ad_ids))
                    .values(impressions=Ad.impressions + 1)
                    .execution_options(synchronize_session=False)
                )
        except SQLAlchemyError:
            logger.warning("Could not record impressions for ads %s", ad_ids, exc_info=True)

    @classmethod
    async def public_ads(cls, banner_type: Optional[BannerType] = None, limit: Optional[int] = None) -> List[PublicAd]:
        """Ads currently on air, highest priority first; counts an impression each."""
        now = utcnow()
        stmt = select(Ad).where(
            Ad.is_active.is_(True),
            Ad.status == AdStatus.APPROVED,
            Ad.start_at <= now,
            Ad.end_at >= now,
        )
        if banner_type is not None:
            stmt = stmt.where(Ad.banner_type == banner_type)
        stmt = stmt.order_by(Ad.priority.desc(), Ad.created_at.desc(), Ad.id.desc())
        if limit:
            stmt = stmt.limit(limit)
        with session_scope() as session:
            ads = [PublicAd.model_validate(ad) for ad in session.execute(stmt).scalars()]
        cls._record_impressions([ad.id for ad in ads])
        return ads

    @classmethod
    async def ads_by_type(cls, banner_type: str) -> List[PublicAd]:
        try:
            kind = BannerType(banner_type.upper())
        except ValueError:
            raise ValidationFailed("نوع غير صالح", {"bannerType": "نوع غير صالح"})
        return await cls.public_ads(kind, limit=ADS_PER_BANNER)

    @classmethod
    async def list_ads(
        cls,
        current_user: dict,
        page: int = 1,
        limit: int = 20,
        search: Optional[str] = None,
        status: Optional[AdStatus] = None,
        banner_type: Optional[BannerType] = None,
        sort_by: str = "createdAt",
        order: str = "desc",
    ) -> dict:
        stmt = select(Ad)
        if not is_admin(current_user):
            stmt = stmt.where(Ad.target_id.in_(_owned_business_ids(current_user["user_id"])))
        if search:
            stmt = stmt.where(
                or_(Ad.title.icontains(search, autoescape=True), Ad.content.icontains(search, autoescape=True))
            )
        if status is not None:
            stmt = stmt.where(Ad.status == status)
        if banner_type is not None:
            stmt = stmt.where(Ad.banner_type == banner_type)
        column = SORTABLE_FIELDS.get(sort_by, Ad.created_at)
        stmt = stmt.order_by(column.asc() if order.lower() == "asc" else column.desc(), Ad.id.desc())
        with session_scope() as session:
            rows, pagination = fetch_page(session, stmt, page, limit)
            return {"items": [AdRead.model_validate(ad) for ad in rows], "pagination": pagination}

    @classmethod
    async def my_ads(cls, current_user: dict, page: int = 1, limit: int = 20) -> dict:
        stmt = (
            select(Ad)
            .where(
                Ad.target_type == TargetType.BUSINESS,
                Ad.target_id.in_(_owned_business_ids(current_user["user_id"])),
            )
            .order_by(Ad.created_at.desc(), Ad.id.desc())
        )
        with session_scope() as session:
            rows, pagination = fetch_page(session, stmt, page, limit)
            return {"items": [AdRead.model_validate(ad) for ad in rows], "pagination": pagination}

    @classmethod
    async def get_ad(cls, ad_id: int, current_user: dict) -> AdRead:
        with session_scope() as session:
            ad = session.get(Ad, ad_id)
            if ad is None:
                raise NotFound(AD_NOT_FOUND)
            ensure_owner_or_admin(current_user, _owner_id(ad), "غير مصرح لك بعرض هذا الإعلان")
            return AdRead.model_validate(ad)

    @classmethod
    async def update_status(cls, ad_id: int, data: AdStatusUpdate) -> AdRead:
        with session_scope() as session:
            ad = session.get(Ad, ad_id)
            if ad is None:
                raise NotFound(AD_NOT_FOUND)
            ad.status = data.status
            if data.status == AdStatus.REJECTED:
                ad.rejection_reason = data.rejection_reason or DEFAULT_REJECTION_REASON
                ad.is_active = False
            elif data.status == AdStatus.APPROVED:
                ad.rejection_reason = None
                ad.is_active = True
            session.flush()
            logger.info("Ad %s moved to %s", ad_id, data.status.value)
            return AdRead.model_validate(ad)

    @classmethod
    async def increment_clicks(cls, ad_id: int) -> AdClick:
        with session_scope() as session:
            result = session.execute(
                update(Ad)
                .where(Ad.id == ad_id)
                .values(clicks=Ad.clicks + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFound(AD_NOT_FOUND)
            clicks = session.execute(select(Ad.clicks).where(Ad.id == ad_id)).scalar_one()
            return AdClick(id=ad_id, clicks=clicks)

    @classmethod
    async def update_ad(
        cls,
        ad_id: int,
        current_user: dict,
        fields: dict,
        files: Dict[str, Optional[UploadFile]],
    ) -> AdRead:
        """Apply a partial update.

        ``status``, ``priority`` and ``isActive`` are dropped unless the
        caller is ADMIN.  A newly uploaded image replaces the one stored in
        the same slot; the old file is deleted before the new one is stored.
        """
        allowed = _OWNER_FIELDS + (_ADMIN_ONLY_FIELDS if is_admin(current_user) else ())
        updates = {k: v for k, v in fields.items() if k in allowed and v is not None}
        for key, name in (("start_at", "startAt"), ("end_at", "endAt")):
            if key in updates:
                updates[key] = _utc_field(updates[key], name)

        with session_scope() as session:
            ad = session.get(Ad, ad_id)
            if ad is None:
                raise NotFound(AD_NOT_FOUND)
            ensure_owner_or_admin(current_user, _owner_id(ad), "غير مصرح لك بتعديل هذا الإعلان")
            _check_window(updates.get("start_at", ad.start_at), updates.get("end_at", ad.end_at))

            uploads = {slot: f for slot, f in files.items() if f is not None and f.filename}
            for slot, upload in uploads.items():
                ensure_image(upload, slot)
            # The stored image of a slot is removed before its replacement is
            # uploaded.  The cleared slot is committed first so the row never
            # references a deleted file, even if the upload below fails.
            replaced = [getattr(ad, IMAGE_SLOTS[slot][1]) for slot in uploads]
            if any(replaced):
                for slot in uploads:
                    url_attr, id_attr = IMAGE_SLOTS[slot]
                    setattr(ad, url_attr, None)
                    setattr(ad, id_attr, None)
                session.commit()
                get_storage().delete_many(replaced)

            saved = _save_slots(uploads)
            try:
                for key, value in updates.items():
                    setattr(ad, key, value)
                for slot, image in saved.items():
                    url_attr, id_attr = IMAGE_SLOTS[slot]
                    setattr(ad, url_attr, image["url"])
                    setattr(ad, id_attr, image["publicId"])
                ad.updated_at = utcnow()
                session.flush()
                result = AdRead.model_validate(ad)
            except Exception:
                get_storage().delete_many(img["publicId"] for img in saved.values())
                raise
        logger.info("Ad %s updated by %s", ad_id, current_user.get("user_id"))
        return result

    @classmethod
    async def delete_ad(cls, ad_id: int, current_user: dict) -> None:
        with session_scope() as session:
            ad = session.get(Ad, ad_id)
            if ad is None:
                raise NotFound(AD_NOT_FOUND)
            ensure_owner_or_admin(current_user, _owner_id(ad), "غير مصرح لك بحذف هذا الإعلان")
            image_ids = ad.stored_public_ids()
            session.delete(ad)
        get_storage().delete_many(image_ids)
        logger.info("Ad %s deleted by %s", ad_id, current_user.get("user_id"))
