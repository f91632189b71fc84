"""Pydantic models for job postings."""

from datetime import datetime
from typing import Annotated, Any, List, Optional

from pydantic import Field, StringConstraints, field_validator

from ..models.job import DEFAULT_JOB_CATEGORY, JOB_CATEGORIES
from .common import CamelModel, Page, UtcDateTime


MAX_DESCRIPTION_LENGTH = 5000
INVALID_TYPE = "نوع الوظيفة غير صالح. الأنواع المسموحة: " + ", ".join(JOB_CATEGORIES)

JobTitle = Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=200)]


class _JobFields(CamelModel):
    """Checks shared by job create and update bodies."""

    @field_validator("salary", mode="before", check_fields=False)
    @classmethod
    def salary_as_text(cls, value: Any) -> Optional[str]:
        # Salary may be sent as a number or as free text ("قابل للتفاوض").
        if value is None or value == "":
            return None
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            raise ValueError("الراتب يجب أن يكون نص أو رقم")
        return str(value)

    @field_validator("description", "city", "region", mode="before", check_fields=False)
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("type", check_fields=False)
    @classmethod
    def check_type(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in JOB_CATEGORIES:
            raise ValueError(INVALID_TYPE)
        return value


class JobCreate(_JobFields):
    title: JobTitle
    description: Optional[str] = Field(None, max_length=MAX_DESCRIPTION_LENGTH)
    city: Optional[str] = Field(None, max_length=120)
    region: Optional[str] = Field(None, max_length=120)
    type: str = DEFAULT_JOB_CATEGORY
    salary: Optional[str] = Field(None, max_length=100)
    is_active: bool = True
    expires_at: Optional[UtcDateTime] = None

    @field_validator("type", mode="before")
    @classmethod
    def default_type(cls, value: Any) -> Any:
        return DEFAULT_JOB_CATEGORY if value is None else value


class JobUpdate(_JobFields):
    """Partial update; only the keys present in the body are applied."""

    title: Optional[JobTitle] = None
    description: Optional[str] = Field(None, max_length=MAX_DESCRIPTION_LENGTH)
    city: Optional[str] = Field(None, max_length=120)
    region: Optional[str] = Field(None, max_length=120)
    type: Optional[str] = None
    salary: Optional[str] = Field(None, max_length=100)
    is_active: Optional[bool] = None
    expires_at: Optional[UtcDateTime] = None


class JobBusiness(CamelModel):
    id: int
    name: str
    city: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class JobRead(CamelModel):
    id: int
    business_id: int
    title: str
    description: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    type: str
    salary: Optional[str] = None
    is_active: bool
    expires_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    business: Optional[JobBusiness] = None


class JobFacets(CamelModel):
    categories: List[str]
    cities: List[str]
    regions: List[str]


class JobPage(Page[JobRead]):
    filters: JobFacets


class JobRenew(CamelModel):
    days: int = Field(30, ge=1, le=365)
