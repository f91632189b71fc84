"""
Business logic for users, authentication and login sessions.

Login issues a short-lived access token and a refresh token.  Each
refresh token is recorded as a ``UserSession`` row keyed by its ``jti``;
refreshing rotates the token (the old session is revoked) and logging
out revokes the session outright.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import func, or_, select

from ..core.db import as_utc_naive, fetch_page, session_scope, utcnow
from ..core.errors import NotAuthenticated, NotFound, PermissionDenied, ValidationFailed
from ..core.permissions import is_admin
from ..core.security import (
    REFRESH_TOKEN,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)
from ..models import User, UserRole, UserSession
from ..schemas.user import (
    AdminUserCreate,
    SessionRead,
    TokenPair,
    UserLogin,
    UserProfileUpdate,
    UserPublic,
    UserRead,
    UserRegister,
    UserUpdate,
)
from .business_service import BusinessService


logger = logging.getLogger(__name__)

EMAIL_TAKEN = "البريد الإلكتروني مستخدم بالفعل"
USER_NOT_FOUND = "المستخدم غير موجود"


class UserService:
    """Registration, login and account administration."""

    @staticmethod
    def _email_taken(session, email: str, exclude_id: Optional[int] = None) -> bool:
        stmt = select(User.id).where(User.email == email)
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        return session.execute(stmt).first() is not None

    @staticmethod
    def _issue_tokens(session, user: User, user_agent: Optional[str]) -> TokenPair:
        access = create_access_token({"sub": str(user.id), "role": user.role.value})
        refresh, jti, exp = create_refresh_token(user.id)
        session.add(
            UserSession(
                user_id=user.id,
                token_id=jti,
                user_agent=(user_agent or "")[:255] or None,
                expires_at=as_utc_naive(datetime.fromtimestamp(exp, timezone.utc)),
            )
        )
        return TokenPair(access_token=access, refresh_token=refresh, user=UserRead.model_validate(user))

    @classmethod
    async def register(cls, data: UserRegister) -> UserRead:
        """Create an account.

        The first account created in an empty database becomes ``ADMIN``
        so a fresh deployment can be administered without a manual SQL
        step.
        """
        with session_scope() as session:
            if cls._email_taken(session, data.email):
                raise ValidationFailed(EMAIL_TAKEN, {"email": EMAIL_TAKEN})
            is_first = session.execute(select(func.count(User.id))).scalar_one() == 0
            user = User(
                name=data.name,
                email=data.email,
                phone=data.phone,
                city=data.city,
                password_hash=hash_password(data.password),
                role=UserRole.ADMIN if is_first else UserRole(data.role),
            )
            session.add(user)
            session.flush()
            logger.info("Registered user %s with role %s", user.id, user.role.value)
            return UserRead.model_validate(user)

    @classmethod
    async def admin_create_user(cls, data: AdminUserCreate) -> UserRead:
        with session_scope() as session:
            if cls._email_taken(session, data.email):
                raise ValidationFailed(EMAIL_TAKEN, {"email": EMAIL_TAKEN})
            user = User(
                name=data.name,
                email=data.email,
                phone=data.phone,
                city=data.city,
                password_hash=hash_password(data.password),
                role=data.role,
            )
            session.add(user)
            session.flush()
            logger.info("Administrator created user %s with role %s", user.id, user.role.value)
            return UserRead.model_validate(user)

    @classmethod
    async def login(cls, data: UserLogin, user_agent: Optional[str] = None) -> TokenPair:
        with session_scope() as session:
            user = session.execute(select(User).where(User.email == data.email)).scalar_one_or_none()
            if user is None or not verify_password(data.password, user.password_hash):
                logger.warning("Failed login for %s", data.email)
                raise NotAuthenticated("البريد الإلكتروني أو كلمة المرور غير صحيحة")
            if not user.is_active:
                raise NotAuthenticated("الحساب معطل")
            return cls._issue_tokens(session, user, user_agent)

    @classmethod
    async def refresh(cls, refresh_token: str, user_agent: Optional[str] = None) -> TokenPair:
        """Exchange a refresh token for a new access/refresh pair."""
        payload = decode_token(refresh_token, expected_type=REFRESH_TOKEN)
        if not payload:
            raise NotAuthenticated("رمز التحديث غير صالح أو منتهي الصلاحية")
        with session_scope() as session:
            db_session = session.execute(
                select(UserSession).where(UserSession.token_id == payload.get("jti"))
            ).scalar_one_or_none()
            now = utcnow()
            if db_session is None or not db_session.is_active(now):
                raise NotAuthenticated("الجلسة منتهية، يرجى تسجيل الدخول مجدداً")
            user = db_session.user
            if not user.is_active:
                raise NotAuthenticated("الحساب معطل")
            db_session.revoked_at = now
            return cls._issue_tokens(session, user, user_agent or db_session.user_agent)

    @classmethod
    async def logout(cls, refresh_token: str) -> None:
        payload = decode_token(refresh_token, expected_type=REFRESH_TOKEN)
        if not payload:
            raise NotAuthenticated("رمز التحديث غير صالح")
        with session_scope() as session:
            db_session = session.execute(
                select(UserSession).where(UserSession.token_id == payload.get("jti"))
            ).scalar_one_or_none()
            if db_session is not None and db_session.revoked_at is None:
                db_session.revoked_at = utcnow()
                logger.info("User %s logged out", db_session.user_id)

    @classmethod
    async def get_me(cls, user_id: int) -> UserRead:
        with session_scope() as session:
            user = session.get(User, user_id)
            if user is None:
                raise NotFound(USER_NOT_FOUND)
            return UserRead.model_validate(user)

    @classmethod
    async def update_profile(cls, user_id: int, data: UserProfileUpdate) -> UserRead:
        updates = data.model_dump(exclude_unset=True)
        with session_scope() as session:
            user = session.get(User, user_id)
            if user is None:
                raise NotFound(USER_NOT_FOUND)
            password = updates.pop("password", None)
            if password:
                user.password_hash = hash_password(password)
            for key, value in updates.items():
                if key == "name" and not value:
                    continue
                setattr(user, key, value)
            session.flush()
            return UserRead.model_validate(user)

    @classmethod
    async def get_user(cls, user_id: int) -> UserPublic:
        with session_scope() as session:
            user = session.get(User, user_id)
            if user is None or not user.is_active:
                raise NotFound(USER_NOT_FOUND)
            return UserPublic.model_validate(user)

    @classmethod
    async def list_users(
        cls,
        page: int = 1,
        limit: int = 20,
        search: Optional[str] = None,
        role: Optional[UserRole] = None,
    ) -> dict:
        stmt = select(User)
        if search:
            stmt = stmt.where(
                or_(User.name.icontains(search, autoescape=True), User.email.icontains(search, autoescape=True))
            )
        if role is not None:
            stmt = stmt.where(User.role == role)
        stmt = stmt.order_by(User.created_at.desc(), User.id.desc())
        with session_scope() as session:
            rows, pagination = fetch_page(session, stmt, page, limit)
            return {"items": [UserRead.model_validate(u) for u in rows], "pagination": pagination}

    @classmethod
    async def update_user(cls, user_id: int, data: UserUpdate, current_user: dict) -> UserRead:
        """Update a user as ADMIN or as the user themself.

        Non-administrators cannot change ``role`` or ``isActive``; those
        fields are rejected with 403 rather than silently ignored.
        """
        admin = is_admin(current_user)
        if not admin and current_user.get("user_id") != user_id:
            raise PermissionDenied("غير مصرح لك بتعديل هذا المستخدم")
        updates = data.model_dump(exclude_unset=True)
        if not admin and ({"role", "is_active"} & updates.keys()):
            raise PermissionDenied("فقط المدير يمكنه تغيير الدور أو حالة الحساب")
        with session_scope() as session:
            user = session.get(User, user_id)
            if user is None:
                raise NotFound(USER_NOT_FOUND)
            email = updates.get("email")
            if email and cls._email_taken(session, email, exclude_id=user_id):
                raise ValidationFailed(EMAIL_TAKEN, {"email": EMAIL_TAKEN})
            for key, value in updates.items():
                if value is None and key in {"name", "email", "role", "is_active"}:
                    continue
                setattr(user, key, value)
            session.flush()
            logger.info("User %s updated by %s", user_id, current_user.get("user_id"))
            return UserRead.model_validate(user)

    @classmethod
    async def delete_user(cls, user_id: int, current_user: dict) -> None:
        if current_user.get("user_id") == user_id:
            raise ValidationFailed("لا يمكنك حذف حسابك الخاص")
        with session_scope() as session:
            user = session.get(User, user_id)
            if user is None:
                raise NotFound(USER_NOT_FOUND)
            # Stored images of the user's businesses and ads go with them.
            image_ids: List[str] = []
            for business in user.businesses:
                image_ids.extend(BusinessService.collect_image_ids(business))
            for ad in user.ads:
                image_ids.extend(ad.stored_public_ids())
            session.delete(user)
        BusinessService.drop_images(image_ids)
        logger.info("User %s deleted by %s", user_id, current_user.get("user_id"))

    @classmethod
    async def active_sessions(cls, user_id: Optional[int] = None) -> List[SessionRead]:
        now = utcnow()
        stmt = (
            select(UserSession)
            .where(UserSession.revoked_at.is_(None), UserSession.expires_at > now)
            .order_by(UserSession.created_at.desc())
        )
        if user_id is not None:
            stmt = stmt.where(UserSession.user_id == user_id)
        with session_scope() as session:
            rows = session.execute(stmt).scalars().all()
            return [SessionRead.model_validate(s) for s in rows]
