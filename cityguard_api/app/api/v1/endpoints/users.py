"""
User endpoints for API v1.

Registration, login with access/refresh tokens, profile management and
administrator-only account management.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from cityguard_api.app.core.security import get_current_user, require_roles
from cityguard_api.app.models import UserRole
from cityguard_api.app.schemas.common import ApiResponse, Page, ok
from cityguard_api.app.schemas.user import (
    AdminUserCreate,
    RefreshRequest,
    SessionRead,
    TokenPair,
    UserLogin,
    UserProfileUpdate,
    UserPublic,
    UserRead,
    UserRegister,
    UserUpdate,
)
from cityguard_api.app.services.user_service import UserService


router = APIRouter()


@router.post("/register", response_model=ApiResponse[UserRead], status_code=status.HTTP_201_CREATED)
async def register(payload: UserRegister) -> dict:
    """Create an account with role ``USER`` or ``OWNER``."""
    user = await UserService.register(payload)
    return ok(user, "تم إنشاء الحساب بنجاح")


@router.post("/login", response_model=ApiResponse[TokenPair])
async def login(payload: UserLogin, request: Request) -> dict:
    tokens = await UserService.login(payload, request.headers.get("user-agent"))
    return ok(tokens, "تم تسجيل الدخول بنجاح")


@router.post("/refresh-token", response_model=ApiResponse[TokenPair])
async def refresh_token(payload: RefreshRequest, request: Request) -> dict:
    """Rotate a refresh token; the presented one stops working."""
    tokens = await UserService.refresh(payload.refresh_token, request.headers.get("user-agent"))
    return ok(tokens)


@router.post("/logout", response_model=ApiResponse[None])
async def logout(payload: RefreshRequest) -> dict:
    await UserService.logout(payload.refresh_token)
    return ok(message="تم تسجيل الخروج بنجاح")


@router.get("/me", response_model=ApiResponse[UserRead])
async def me(current_user: dict = Depends(get_current_user)) -> dict:
    return ok(await UserService.get_me(current_user["user_id"]))


@router.patch("/me", response_model=ApiResponse[UserRead])
async def update_profile(
    payload: UserProfileUpdate,
    current_user: dict = Depends(get_current_user),
) -> dict:
    user = await UserService.update_profile(current_user["user_id"], payload)
    return ok(user, "تم تحديث الملف الشخصي")


@router.get("/sessions", response_model=ApiResponse[List[SessionRead]])
async def active_sessions(
    user_id: Optional[int] = Query(None, alias="userId"),
    current_user: dict = Depends(require_roles("ADMIN")),
) -> dict:
    """List refresh-token sessions that are neither revoked nor expired."""
    return ok(await UserService.active_sessions(user_id))


@router.get("/", response_model=ApiResponse[Page[UserRead]])
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    role: Optional[UserRole] = Query(None),
    current_user: dict = Depends(require_roles("ADMIN")),
) -> dict:
    return ok(await UserService.list_users(page=page, limit=limit, search=search, role=role))


@router.post("/", response_model=ApiResponse[UserRead], status_code=status.HTTP_201_CREATED)
async def admin_create_user(
    payload: AdminUserCreate,
    current_user: dict = Depends(require_roles("ADMIN")),
) -> dict:
    return ok(await UserService.admin_create_user(payload), "تم إنشاء المستخدم بنجاح")


@router.get("/{user_id}", response_model=ApiResponse[UserPublic])
async def get_user(user_id: int) -> dict:
    """Public profile of a user."""
    return ok(await UserService.get_user(user_id))


@router.patch("/{user_id}", response_model=ApiResponse[UserRead])
async def update_user(
    user_id: int,
    payload: UserUpdate,
    current_user: dict = Depends(get_current_user),
) -> dict:
    """Update a user.  Only administrators may change ``role`` or ``isActive``."""
    user = await UserService.update_user(user_id, payload, current_user)
    return ok(user, "تم تحديث المستخدم بنجاح")


@router.delete("/{user_id}", response_model=ApiResponse[None])
async def delete_user(
    user_id: int,
    current_user: dict = Depends(require_roles("ADMIN")),
) -> dict:
    await UserService.delete_user(user_id, current_user)
    return ok(message="تم حذف المستخدم بنجاح")
