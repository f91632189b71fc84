"""
Shared response shapes.

Every endpoint answers with the same envelope::

    {"success": true, "message": "...", "data": ...}

List endpoints put their rows and the pagination block inside ``data``.
JSON keys are camelCase; Python attributes stay snake_case.
"""

from datetime import datetime
from typing import Annotated, Any, Generic, List, Optional, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..core.db import as_utc_naive


T = TypeVar("T")

# Client-supplied timestamps, stored as naive UTC.  Offsets that push the
# value outside the representable range fail validation (400).
UtcDateTime = Annotated[datetime, AfterValidator(as_utc_naive)]


class CamelModel(BaseModel):
    """Base for API schemas: camelCase aliases, readable from ORM objects."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Pagination(CamelModel):
    total: int
    page: int
    pages: int
    limit: int
    has_next: bool = False
    has_prev: bool = False


class Page(CamelModel, Generic[T]):
    items: List[T]
    pagination: Pagination


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


def ok(data: Any = None, message: Optional[str] = None) -> dict:
    """Build a success envelope."""
    return {"success": True, "message": message, "data": data}


class ImageRef(CamelModel):
    url: str
    public_id: str
