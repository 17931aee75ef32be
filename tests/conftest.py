"""Shared test fixtures — async DB, client, auth helpers, factories.

Reusable across all test modules (succession, transfer, requests, etc.).
Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from hrflow.common.constants import DepartmentRole, UserRole
from hrflow.database import Base, get_db
from hrflow.main import create_app

# Import ALL model modules so every table is registered on Base.metadata
import hrflow.auth.models  # noqa: F401
import hrflow.common.audit  # noqa: F401
import hrflow.core_hr.models  # noqa: F401
import hrflow.expenses.models  # noqa: F401
import hrflow.leave.models  # noqa: F401
import hrflow.notifications.models  # noqa: F401

from hrflow.auth.models import Account
from hrflow.auth.service import issue_session
from hrflow.core_hr.models import Department, Employee

# ── SQLite compat: compile PG-specific types to TEXT/BLOB ───────────

from sqlalchemy.dialects.postgresql import INET, JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(INET, "sqlite")
def _inet_sqlite(element, compiler, **kw):
    return "TEXT"


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


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from hrflow.common.rate_limit import limiter

    storage = getattr(limiter, "_storage", None)
    if storage is not None:
        storage.reset()
    yield


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
    code: str = "ENG",
) -> dict:
    return dict(
        id=uuid.uuid4(),
        name=name,
        code=code,
        is_active=True,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


def _make_employee(
    *,
    email: str = "test.user@example.com",
    first_name: str = "Test",
    last_name: str = "User",
    department_id: uuid.UUID | None = None,
    department_role: DepartmentRole = DepartmentRole.member,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        employee_code=f"EMP-{uuid.uuid4().hex[:6].upper()}",
        first_name=first_name,
        last_name=last_name,
        email=email,
        department_id=department_id,
        department_role=department_role,
        is_active=True,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


def _make_account(
    *,
    email: str = "test.user@example.com",
    role: UserRole = UserRole.employee,
    display_name: Optional[str] = None,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        email=email,
        display_name=display_name,
        role=role,
        is_active=True,
        created_at=datetime.now(timezone.utc),
    )


async def add_department(db: AsyncSession, **kwargs) -> Department:
    dept = Department(**_make_department(**kwargs))
    db.add(dept)
    await db.flush()
    return dept


async def add_employee(
    db: AsyncSession,
    department: Optional[Department],
    **kwargs,
) -> Employee:
    emp = Employee(
        **_make_employee(
            department_id=department.id if department else None, **kwargs,
        )
    )
    db.add(emp)
    await db.flush()
    return emp


async def add_account(db: AsyncSession, **kwargs) -> Account:
    account = Account(**_make_account(**kwargs))
    db.add(account)
    await db.flush()
    return account


async def set_head(db: AsyncSession, department: Department, employee: Employee) -> None:
    department.manager_id = employee.id
    employee.department_role = DepartmentRole.head
    await db.flush()


async def set_deputy(db: AsyncSession, department: Department, employee: Employee) -> None:
    department.deputy_manager_id = employee.id
    employee.department_role = DepartmentRole.deputy
    await db.flush()


async def bearer(db: AsyncSession, account: Account) -> dict[str, str]:
    """Issue a persisted session for *account* and return auth headers."""
    token = await issue_session(db, account)
    return {"Authorization": f"Bearer {token}"}


# ── Common fixtures ─────────────────────────────────────────────────

@pytest.fixture
async def test_department(db) -> Department:
    return await add_department(db)


@pytest.fixture
async def test_employee(db, test_department) -> Employee:
    return await add_employee(db, test_department)


@pytest.fixture
async def test_account(db, test_employee) -> Account:
    """Employee-role account bridged to ``test_employee`` by e-mail."""
    return await add_account(db, email=test_employee.email, display_name="Test User")


@pytest.fixture
async def auth_headers(db, test_account) -> dict[str, str]:
    """Return Bearer auth headers with a valid session persisted in the DB."""
    headers = await bearer(db, test_account)
    await db.commit()
    return headers


@pytest.fixture
async def hr_account(db) -> Account:
    return await add_account(db, email="hr.desk@example.com", role=UserRole.hr_admin, display_name="HR Desk")


@pytest.fixture
async def hr_headers(db, hr_account) -> dict[str, str]:
    headers = await bearer(db, hr_account)
    await db.commit()
    return headers


def break_flush(monkeypatch, session: AsyncSession) -> None:
    """Make every explicit flush on *session* fail as the store would."""

    async def _fail(*args, **kwargs):
        raise OperationalError("UPDATE", {}, Exception("database is locked"))

    monkeypatch.setattr(session, "flush", _fail)
