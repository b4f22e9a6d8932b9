"""
Shared test fixtures for the Garment ERP test suite.

Async throughout (aiosqlite + AsyncSession).  Authentication is real: tests
sign in through the API or open sessions through ``AuthService``.
"""

import os
import sys
from typing import AsyncGenerator

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret-key-with-enough-length"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["RATE_LIMIT_ENABLED"] = "false"
# Lowest bcrypt cost keeps the suite fast
os.environ["BCRYPT_ROUNDS"] = "4"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.api.v1.deps import get_db
from app.core.rbac import PermissionType, Role
from app.core.security import get_password_hash
from app.db.base import Base
from app.main import app
from app.models.user import User
from app.services.permissions import replace_user_grants, seed_permission_catalog

API = "/api/v1"
DEFAULT_PASSWORD = "password123"

# Create a test engine for the entire session
test_engine = create_async_engine(
    "sqlite+aiosqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def setup_db():
    """Create all tables before usage and drop after."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with TestingSessionLocal() as session:
        await seed_permission_catalog(session)

    yield

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestingSessionLocal() as session:
        yield session


app.dependency_overrides[get_db] = _override_get_db


@pytest.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with TestingSessionLocal() as session:
        yield session


# ── Helpers ─────────────────────────────────────────────────────────
async def create_user(
    email: str,
    role: Role = Role.USER,
    *,
    password: str = DEFAULT_PASSWORD,
    name: str = "Test User",
    is_active: bool = True,
    permissions: list[PermissionType] | None = None,
) -> User:
    """Insert a user directly, bypassing the API."""
    async with TestingSessionLocal() as session:
        user = User(
            name=name,
            email=email.lower(),
            hashed_password=get_password_hash(password),
            role=role.value,
            is_active=is_active,
        )
        session.add(user)
        await session.commit()
        if permissions:
            await replace_user_grants(session, user.id, permissions)
        return user


async def sign_in(
    client: AsyncClient, email: str, password: str = DEFAULT_PASSWORD
) -> dict[str, str]:
    """Sign in and return a Bearer header; the client's cookie jar is left empty."""
    resp = await client.post(f"{API}/auth/sign-in", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    token = resp.cookies.get("auth-token")
    assert token
    client.cookies.clear()
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_user():
    return create_user


@pytest.fixture
def login(async_client: AsyncClient):
    async def _login(email: str, password: str = DEFAULT_PASSWORD) -> dict[str, str]:
        return await sign_in(async_client, email, password)

    return _login


@pytest.fixture
async def super_admin_headers(async_client: AsyncClient) -> dict[str, str]:
    await create_user("root@example.com", Role.SUPER_ADMIN, name="Root")
    return await sign_in(async_client, "root@example.com")


@pytest.fixture
async def admin_headers(async_client: AsyncClient) -> dict[str, str]:
    await create_user("admin@example.com", Role.ADMIN, name="Admin")
    return await sign_in(async_client, "admin@example.com")
