"""
Application error taxonomy and the handlers that render it.

Services raise subclasses of ``AppError``; the handlers registered by
``register_exception_handlers`` turn them into the common error envelope
``{"success": false, "message": ..., "errors": ...}``.  Pydantic
validation failures become 400 responses with one message per field,
and anything unexpected is logged and reported as a generic 500.
"""

import logging
from typing import Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings


logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "حدث خطأ داخلي في الخادم"


class AppError(Exception):
    """Base class for errors that map onto an HTTP status code."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "طلب غير صالح"

    def __init__(self, message: Optional[str] = None, errors: Optional[Dict[str, str]] = None) -> None:
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class ValidationFailed(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "بيانات غير صالحة"


class NotAuthenticated(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "يجب تسجيل الدخول"


class PermissionDenied(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "غير مصرح"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "العنصر غير موجود"


class Gone(AppError):
    status_code = status.HTTP_410_GONE
    default_message = "انتهت صلاحية هذا العنصر"


def error_body(message: str, errors: Optional[Dict[str, str]] = None) -> dict:
    return {"success": False, "message": message, "errors": errors}


def _field_name(loc) -> str:
    # ("body", "bloodType") -> "bloodType"; ("query", "page") -> "page"
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "form")]
    return ".".join(parts) or "request"


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.errors),
        headers=headers,
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors: Dict[str, str] = {}
    for err in exc.errors():
        errors.setdefault(_field_name(err.get("loc", ())), err.get("msg", "invalid"))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(ValidationFailed.default_message, errors),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    body = error_body(INTERNAL_ERROR_MESSAGE)
    if settings.debug:
        body["error"] = str(exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
