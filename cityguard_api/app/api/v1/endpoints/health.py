"""Service information and liveness check."""

from fastapi import APIRouter
from sqlalchemy import text

from cityguard_api.app.core.config import settings
from cityguard_api.app.core.db import session_scope, utcnow
from cityguard_api.app.schemas.common import ok


router = APIRouter()


@router.get("/")
async def health() -> dict:
    """Report the API version and whether the database answers."""
    with session_scope() as session:
        session.execute(text("SELECT 1"))
    return ok(
        {
            "name": settings.project_name,
            "version": settings.api_version,
            "database": "ok",
            "time": utcnow().isoformat(),
        }
    )
