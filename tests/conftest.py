import os
import random
import string

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlmodel import SQLModel

# ------------------------------------------------------------------
# FORCE TESTING MODE
# This must be done BEFORE importing app.main so that config.py and
# database.py build the engine against the throwaway sqlite file.
# ------------------------------------------------------------------
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_unipermit.db"
os.environ["SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["SEED_REFERENCE_DATA"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"

from app.main import app  # noqa: E402
from app.core.database import AsyncSessionLocal, engine, init_db  # noqa: E402
from app.core.security import create_access_token  # noqa: E402
from app.models.central_department import CentralDepartment  # noqa: E402
from app.models.department import Department  # noqa: E402
from app.models.school import School  # noqa: E402
from app.models.user import User, UserRole  # noqa: E402


def random_str(prefix=""):
    return f"{prefix}{''.join(random.choices(string.ascii_lowercase + string.digits, k=6))}"


@pytest_asyncio.fixture
async def database():
    await init_db()
    yield
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session(database):
    async with AsyncSessionLocal() as session:
        yield session


@pytest_asyncio.fixture
async def client(database):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac


# ------------------------------------------------------------------
# FACTORIES
# ------------------------------------------------------------------
@pytest.fixture
def make_user(db_session):
    async def _make(role=UserRole.Staff, name=None, is_active=True):
        user = User(
            name=name or random_str("user-"),
            email=f"{random_str()}@test.edu",
            role=role,
            is_active=is_active,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def make_school(db_session):
    async def _make(name, code=None, is_active=True):
        school = School(name=name, code=code or random_str("S"), is_active=is_active)
        db_session.add(school)
        await db_session.commit()
        await db_session.refresh(school)
        return school

    return _make


@pytest.fixture
def make_central_unit(db_session):
    async def _make(code, name, department_type=None, short_name=None):
        unit = CentralDepartment(
            code=code, name=name, short_name=short_name, department_type=department_type
        )
        db_session.add(unit)
        await db_session.commit()
        await db_session.refresh(unit)
        return unit

    return _make


@pytest_asyncio.fixture
async def admin_user(make_user):
    return await make_user(role=UserRole.Admin, name="Admin")


@pytest_asyncio.fixture
async def drd_unit(make_central_unit):
    return await make_central_unit("DRD", "Directorate of Research & Development", "drd", "DRD")


@pytest_asyncio.fixture
async def school_dept(db_session):
    dept = Department(code="CSE", name="Computer Science & Engineering")
    db_session.add(dept)
    await db_session.commit()
    await db_session.refresh(dept)
    return dept


@pytest_asyncio.fixture
async def other_school_dept(db_session):
    dept = Department(code="ECE", name="Electronics & Communication")
    db_session.add(dept)
    await db_session.commit()
    await db_session.refresh(dept)
    return dept


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers
