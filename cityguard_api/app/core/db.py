"""
Database integration built on the SQLAlchemy ORM.

This module owns the engine, the session factory and the declarative
``Base`` shared by every model in ``app.models``.  Services open a unit
of work with ``session_scope()``; ``init_db`` creates missing tables at
application start.  Any database supported by SQLAlchemy can be used by
pointing ``DATABASE_URL`` at it.

All timestamps are stored as naive UTC values.  ``utcnow`` and
``as_utc_naive`` normalise datetimes before they reach the database so
comparisons behave the same on SQLite and PostgreSQL.
"""

import logging
import math
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Tuple

from sqlalchemy import Select, create_engine, event, func, select
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .config import settings


logger = logging.getLogger(__name__)

DATE_OUT_OF_RANGE = "التاريخ خارج النطاق المسموح"


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


def _build_engine(url: str):
    connect_args: Dict[str, Any] = {}
    is_sqlite = url.startswith("sqlite")
    if is_sqlite:
        # The same connection may be used by FastAPI's threadpool workers.
        connect_args = {"check_same_thread": False, "timeout": 30}
    eng = create_engine(url, future=True, connect_args=connect_args)

    if is_sqlite:
        @event.listens_for(eng, "connect")
        def _sqlite_on_connect(dbapi_connection, connection_record):
            # Let SQLAlchemy emit BEGIN itself so reads and writes of a
            # unit of work share one transaction, and enforce REFERENCES
            # clauses, which SQLite ignores by default.
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys = ON")
            cursor.close()

        @event.listens_for(eng, "begin")
        def _sqlite_on_begin(conn):
            conn.exec_driver_sql("BEGIN")

    return eng


engine = _build_engine(settings.database_url)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    expire_on_commit=False,
    class_=Session,
)


@contextmanager
def session_scope() -> Iterator[Session]:
    """Yield a session, commit on success and roll back on error."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_db() -> Iterator[Session]:
    """FastAPI dependency yielding a session bound to the request."""
    with session_scope() as session:
        yield session


def init_db() -> None:
    """Create all tables that do not exist yet."""
    # Importing the package registers every model on ``Base.metadata``.
    from .. import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Database schema ready (%s)", engine.url.render_as_string(hide_password=True))


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, matching stored values."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to naive UTC; naive values pass through.

    Raises ``ValueError`` when the UTC equivalent falls outside the
    range ``datetime`` can represent (e.g. ``9999-12-31T23:00-05:00``).
    """
    if value is None or value.tzinfo is None:
        return value
    try:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    except OverflowError as exc:
        raise ValueError(DATE_OUT_OF_RANGE) from exc


def fetch_page(
    session: Session,
    stmt: Select,
    page: int,
    limit: int,
) -> Tuple[List[Any], Dict[str, int]]:
    """Return one page of ``stmt`` and its pagination block.

    The total count and the page rows are read inside the session's
    current transaction so they cannot disagree under concurrent writes.
    ``stmt`` must already carry its filters and ordering.
    """
    page = max(page, 1)
    total = session.execute(
        select(func.count()).select_from(stmt.order_by(None).subquery())
    ).scalar_one()
    rows = session.execute(stmt.offset((page - 1) * limit).limit(limit)).scalars().unique().all()
    pages = math.ceil(total / limit) if limit else 0
    return list(rows), {
        "total": total,
        "page": page,
        "pages": pages,
        "limit": limit,
        "hasNext": page < pages,
        "hasPrev": page > 1,
    }
