"""
ORM models.

Importing this package registers every table on ``Base.metadata`` so
``init_db`` can create them.
"""

from .user import User, UserRole, UserSession  # noqa: F401
from .business import Business  # noqa: F401
from .ad import Ad, AdStatus, BannerType, TargetType  # noqa: F401
from .blood_donor import BloodDonor  # noqa: F401
from .blood_request import BloodRequest  # noqa: F401
from .job import Job  # noqa: F401
