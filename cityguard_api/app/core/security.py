"""
Security helpers for password hashing and JWT authentication.

This module implements a lightweight JSON Web Token (JWT) mechanism
using HMAC‑SHA256 signatures and base64url encoding.  Two kinds of token
are issued: short-lived access tokens sent as ``Authorization: Bearer``
and long-lived refresh tokens tied to a row in the ``sessions`` table.
Passwords are hashed with PBKDF2‑HMAC‑SHA256 and a random salt.

The FastAPI dependencies at the bottom resolve the caller:

* ``get_current_user`` — 401 unless a valid access token is presented.
* ``get_optional_user`` — the caller if authenticated, else ``None``.
* ``require_roles(...)`` — 403 unless the caller has one of the roles.
"""

import base64
import hashlib
import hmac
import json
import logging
import os
import time
import uuid
from typing import Any, Callable, Dict, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import settings
from .errors import NotAuthenticated, PermissionDenied


logger = logging.getLogger(__name__)

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"


def _b64_url_encode(data: bytes) -> str:
    """Base64‑url encode bytes without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("utf-8")


def _b64_url_decode(data: str) -> bytes:
    """Decode base64‑url encoded string, adding padding if necessary."""
    padding = '=' * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _sign(message: bytes, secret: str) -> bytes:
    """Compute HMAC‑SHA256 signature of a message using the given secret."""
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()


def _encode(claims: Dict[str, Any]) -> str:
    header = {"alg": "HS256", "typ": "JWT"}
    header_b64 = _b64_url_encode(json.dumps(header, separators=(',', ':')).encode("utf-8"))
    payload_b64 = _b64_url_encode(json.dumps(claims, separators=(',', ':')).encode("utf-8"))
    signing_input = f"{header_b64}.{payload_b64}".encode("utf-8")
    signature_b64 = _b64_url_encode(_sign(signing_input, settings.secret_key))
    return f"{header_b64}.{payload_b64}.{signature_b64}"


def create_access_token(data: Dict[str, Any], expires_delta: Optional[int] = None) -> str:
    """Create a signed access token with the given claims.

    Parameters
    ----------
    data : dict
        Claims to embed in the token (e.g. ``{"sub": "12", "role": "OWNER"}``).
    expires_delta : Optional[int]
        Lifetime of the token in seconds.  Defaults to
        ``settings.access_token_expire_minutes * 60``.

    Returns
    -------
    str
        A signed JWT of the form ``header.payload.signature``.
    """
    to_encode = data.copy()
    exp_seconds = expires_delta or settings.access_token_expire_minutes * 60
    to_encode["exp"] = int(time.time()) + exp_seconds
    to_encode["type"] = ACCESS_TOKEN
    return _encode(to_encode)


def create_refresh_token(user_id: int, expires_delta: Optional[int] = None) -> tuple[str, str, int]:
    """Create a refresh token for ``user_id``.

    Returns the token, its unique id (``jti``, stored on the session row)
    and its expiry as a UNIX timestamp.
    """
    exp_seconds = expires_delta or settings.refresh_token_expire_days * 24 * 60 * 60
    jti = uuid.uuid4().hex
    exp = int(time.time()) + exp_seconds
    token = _encode({"sub": str(user_id), "jti": jti, "exp": exp, "type": REFRESH_TOKEN})
    return token, jti, exp


def decode_token(token: str, expected_type: str = ACCESS_TOKEN) -> Optional[Dict[str, Any]]:
    """Verify and decode a JWT.

    Checks the signature, the ``exp`` claim and the token ``type``.
    Returns the payload dictionary, or ``None`` when any check fails.
    """
    try:
        parts = token.split('.')
        if len(parts) != 3:
            return None
        header_b64, payload_b64, signature_b64 = parts
        signing_input = f"{header_b64}.{payload_b64}".encode("utf-8")
        expected_sig = _sign(signing_input, settings.secret_key)
        actual_sig = _b64_url_decode(signature_b64)
        # Constant‑time comparison to prevent timing attacks
        if not hmac.compare_digest(expected_sig, actual_sig):
            return None
        data = json.loads(_b64_url_decode(payload_b64).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None
    if data.get("exp") is None or int(data["exp"]) < int(time.time()):
        return None
    if data.get("type") != expected_type:
        return None
    return data


security = HTTPBearer(auto_error=False)


def _load_principal(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Map a decoded access token onto the stored user.

    The role is always read from the database so that role changes and
    deactivation take effect without waiting for the token to expire.
    """
    from .db import session_scope
    from ..models import User

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise NotAuthenticated("رمز الدخول غير صالح")
    with session_scope() as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotAuthenticated("المستخدم غير موجود")
        if not user.is_active:
            raise NotAuthenticated("الحساب معطل")
        return {
            "sub": str(user.id),
            "user_id": user.id,
            "role": user.role.value,
            "email": user.email,
            "name": user.name,
            "city": user.city,
        }


def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)) -> Dict[str, Any]:
    """Dependency that retrieves the current authenticated user.

    Raises 401 when the ``Authorization`` header is missing or the token
    is invalid, expired or belongs to a deleted/disabled account.
    """
    if credentials is None:
        raise NotAuthenticated()
    payload = decode_token(credentials.credentials)
    if not payload:
        raise NotAuthenticated("رمز الدخول غير صالح أو منتهي الصلاحية")
    return _load_principal(payload)


def get_optional_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Optional[Dict[str, Any]]:
    """Like ``get_current_user`` but anonymous callers resolve to ``None``."""
    if credentials is None:
        return None
    payload = decode_token(credentials.credentials)
    if not payload:
        logger.debug("Ignoring invalid bearer token on public endpoint")
        return None
    try:
        return _load_principal(payload)
    except NotAuthenticated:
        return None


# ---------------------------------------------------------------------------
# Role-based access control (RBAC) helpers
# ---------------------------------------------------------------------------

def require_roles(*roles: str) -> Callable[[Dict[str, Any]], Dict[str, Any]]:
    """Dependency factory to enforce that the current user has one of ``roles``.

    Use this in FastAPI endpoints via ``Depends(require_roles("ADMIN"))``.
    Unauthenticated callers get 401, authenticated callers with another
    role get 403.

    Parameters
    ----------
    *roles : str
        One or more of ``"ADMIN"``, ``"OWNER"``, ``"USER"``.

    Returns
    -------
    Callable
        A dependency function that validates the current user's role and
        returns the user payload on success.
    """

    def _role_dependency(current_user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
        if current_user.get("role") not in roles:
            raise PermissionDenied("ليس لديك صلاحية للوصول إلى هذا المورد")
        return current_user

    return _role_dependency


def hash_password(password: str) -> str:
    """Hash a password using PBKDF2‑HMAC with SHA‑256.

    A 16‑byte random salt is generated for each password.  The result is
    ``"<salt hex>$<hash hex>"``.
    """
    salt = os.urandom(16)
    iterations = 100_000
    dk = hashlib.pbkdf2_hmac('sha256', password.encode('utf-8'), salt, iterations)
    return f"{salt.hex()}${dk.hex()}"


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a plain password against a stored ``salt$hash`` string."""
    if not hashed_password:
        return False
    try:
        salt_hex, hash_hex = hashed_password.split('$', 1)
        salt = bytes.fromhex(salt_hex)
        stored_hash = bytes.fromhex(hash_hex)
    except ValueError:
        return False
    iterations = 100_000
    dk = hashlib.pbkdf2_hmac('sha256', plain_password.encode('utf-8'), salt, iterations)
    return hmac.compare_digest(dk, stored_hash)
