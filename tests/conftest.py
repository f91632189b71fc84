"""
Shared fixtures.

The application reads its settings at import time, so the test database
and media directory are configured through environment variables before
anything from ``cityguard_api`` is imported.
"""

import os
import shutil
import tempfile
import uuid

_TMP_DIR = tempfile.mkdtemp(prefix="cityguard-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["MEDIA_ROOT"] = os.path.join(_TMP_DIR, "media")
os.environ["STORAGE_BACKEND"] = "local"
os.environ["SECRET_KEY"] = "test-secret-key"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from cityguard_api.app.core.db import Base, engine, session_scope  # noqa: E402
from cityguard_api.app.core.security import create_access_token, hash_password  # noqa: E402
from cityguard_api.app.core.storage import set_storage  # noqa: E402
from cityguard_api.app.main import app  # noqa: E402
from cityguard_api.app.models import Business, User, UserRole  # noqa: E402


API = "/api/v1"
PASSWORD = "secret123"
# Hashing is deliberately slow; every fixture user shares one hash.
PASSWORD_HASH = hash_password(PASSWORD)


def pytest_sessionfinish(session, exitstatus):
    engine.dispose()
    shutil.rmtree(_TMP_DIR, ignore_errors=True)


@pytest.fixture(autouse=True)
def fresh_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    set_storage(None)
    yield


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def auth(user: dict) -> dict:
    return {"Authorization": f"Bearer {user['token']}"}


@pytest.fixture
def make_user():
    """Insert a user directly and return ``{"id", "email", "token", "headers"}``."""

    def _make(role: str = "USER", email: str = None, city: str = "الرياض", name: str = "مستخدم تجريبي") -> dict:
        email = email or f"{uuid.uuid4().hex[:10]}@example.com"
        with session_scope() as session:
            user = User(
                name=name,
                email=email,
                city=city,
                phone="0500000000",
                password_hash=PASSWORD_HASH,
                role=UserRole(role),
            )
            session.add(user)
            session.flush()
            user_id = user.id
        token = create_access_token({"sub": str(user_id), "role": role})
        return {"id": user_id, "email": email, "token": token, "headers": {"Authorization": f"Bearer {token}"}}

    return _make


@pytest.fixture
def admin(make_user):
    return make_user("ADMIN", email="admin@example.com", name="المدير")


@pytest.fixture
def owner(make_user):
    return make_user("OWNER", email="owner@example.com", name="صاحب متجر")


@pytest.fixture
def regular_user(make_user):
    return make_user("USER", email="user@example.com")


@pytest.fixture
def make_business():
    def _make(owner_id: int, name: str = "مطعم الواحة", city: str = "الرياض") -> int:
        with session_scope() as session:
            business = Business(owner_id=owner_id, name=name, city=city, phone="0111111111", images=[])
            session.add(business)
            session.flush()
            return business.id

    return _make


@pytest.fixture
def owner_business(owner, make_business):
    return make_business(owner["id"])
