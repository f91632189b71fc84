"""Ownership checks shared by owner-scoped mutations."""

from typing import Optional

from .errors import PermissionDenied


def is_admin(current_user: Optional[dict]) -> bool:
    return bool(current_user) and current_user.get("role") == "ADMIN"


def ensure_owner_or_admin(current_user: dict, owner_id: Optional[int], message: Optional[str] = None) -> None:
    """Raise 403 unless the caller is ADMIN or the resource belongs to them."""
    if is_admin(current_user):
        return
    if owner_id is None or current_user.get("user_id") != owner_id:
        raise PermissionDenied(message or "غير مصرح لك بتعديل هذا العنصر")
