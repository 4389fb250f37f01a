"""Shared test fixtures — async DB, client, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from datetime import date, datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from ems.common.constants import UserRole
from ems.config import settings
from ems.database import Base, get_db
from ems.main import create_app

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
import ems.core_hr.models  # noqa: F401
import ems.leave.models  # noqa: F401

# ── SQLite compat: compile PG-specific types ────────────────────────

from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Register PG-compatible functions for SQLite
@event.listens_for(engine.sync_engine, "connect")
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() and uuid_generate_v4() as SQLite custom functions."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
    )
    dbapi_conn.create_function(
        "uuid_generate_v4", 0, lambda: str(uuid.uuid4()),
    )

TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Model factories ─────────────────────────────────────────────────

def _make_department(
    *,
    name: str = "Engineering",
    description: str | None = "Product engineering",
) -> dict:
    return dict(
        id=uuid.uuid4(),
        name=name,
        description=description,
        is_active=True,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


def _make_employee(
    *,
    email: str = "test.user@example.com",
    first_name: str = "Test",
    last_name: str = "User",
    position: str | None = "Software Engineer",
    department_id: uuid.UUID | None = None,
    is_active: bool = True,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        employee_code=f"EMP-{uuid.uuid4().hex[:6].upper()}",
        first_name=first_name,
        last_name=last_name,
        email=email,
        position=position,
        department_id=department_id,
        hire_date=date(2024, 1, 15),
        is_active=is_active,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


@pytest.fixture
async def test_department(db) -> dict:
    """Insert a test department and return its data dict."""
    from ems.core_hr.models import Department

    data = _make_department()
    db.add(Department(**data))
    await db.flush()
    return data


@pytest.fixture
async def test_employee(db, test_department) -> dict:
    """Insert an active employee in test_department."""
    from ems.core_hr.models import Employee

    data = _make_employee(department_id=test_department["id"])
    db.add(Employee(**data))
    await db.flush()
    return data


@pytest.fixture
async def test_manager(db, test_department) -> dict:
    """Insert an active employee who approves leave via the manager role."""
    from ems.core_hr.models import Employee

    data = _make_employee(
        email="manager@example.com",
        first_name="Maya",
        last_name="Manager",
        position="Engineering Manager",
        department_id=test_department["id"],
    )
    db.add(Employee(**data))
    await db.flush()
    return data


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    employee_id: uuid.UUID,
    role: UserRole = UserRole.employee,
    expired: bool = False,
    token_type: str = "access",
) -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=1)
    payload = {
        "sub": str(employee_id),
        "role": role.value,
        "type": token_type,
        "exp": exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def bearer(employee_id: uuid.UUID, role: UserRole = UserRole.employee) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(employee_id, role)}"}


@pytest.fixture
async def auth_headers(test_employee) -> dict[str, str]:
    """Bearer headers for test_employee with the employee role."""
    return bearer(test_employee["id"])


@pytest.fixture
async def manager_headers(test_manager) -> dict[str, str]:
    """Bearer headers for test_manager with the manager role."""
    return bearer(test_manager["id"], UserRole.manager)
