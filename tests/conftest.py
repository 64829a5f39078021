"""
Shared test fixtures for the AssetDesk test suite.

Each test gets its own in-memory aiosqlite database (StaticPool keeps the
single connection alive) and an ASGI-wired httpx client per role.
"""

import os
import sys
from collections.abc import AsyncGenerator
from dataclasses import dataclass

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
TEST_DB_URL = "sqlite+aiosqlite:///:memory:"
os.environ["DATABASE_URL"] = TEST_DB_URL
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["REDIS_URL"] = "redis://127.0.0.1:1/0"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import StaticPool

from assetdesk.api.v1.deps import get_db
from assetdesk.api.v1.endpoints.auth import limiter
from assetdesk.core.security import create_access_token, get_password_hash
from assetdesk.db.base import Base
from assetdesk.db.session import build_engine, build_session_factory
from assetdesk.main import app
from assetdesk.models.user import User, UserRole

API = "/api"
PASSWORD = "secret123"

# Login is rate limited; tests that exercise the limiter switch it back on
limiter.enabled = False


@pytest.fixture
async def engine():
    test_engine = build_engine(
        TEST_DB_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture(autouse=True)
def _override_db(session_factory):
    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    yield
    app.dependency_overrides.clear()


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with session_factory() as session:
        yield session


# ── Accounts ────────────────────────────────────────────────────────
@dataclass
class Account:
    id: int
    username: str
    role: str
    token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


async def _create_account(session_factory, username: str, role: str, active: bool = True) -> Account:
    async with session_factory() as session:
        user = User(
            username=username,
            hashed_password=get_password_hash(PASSWORD),
            role=role,
            is_active=active,
        )
        session.add(user)
        await session.commit()
        return Account(user.id, username, role, create_access_token(user.id, role=role))


@pytest.fixture
def password() -> str:
    return PASSWORD


@pytest.fixture
def make_account(session_factory):
    async def _make(username: str, role: str = UserRole.USER.value, active: bool = True) -> Account:
        return await _create_account(session_factory, username, role, active)

    return _make


@pytest.fixture
async def super_admin(session_factory) -> Account:
    return await _create_account(session_factory, "root", UserRole.SUPER_ADMIN.value)


@pytest.fixture
async def admin(session_factory) -> Account:
    return await _create_account(session_factory, "admin", UserRole.ADMIN.value)


@pytest.fixture
async def user(session_factory) -> Account:
    return await _create_account(session_factory, "viewer", UserRole.USER.value)


# ── HTTP clients ────────────────────────────────────────────────────
def _client(headers: dict[str, str] | None = None) -> AsyncClient:
    return AsyncClient(
        transport=ASGITransport(app=app),
        base_url=f"http://test{API}",
        headers=headers,
    )


@pytest.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated client wired to the app."""
    async with _client() as client:
        yield client


@pytest.fixture
async def admin_client(admin: Account) -> AsyncGenerator[AsyncClient, None]:
    async with _client(admin.headers) as client:
        yield client


@pytest.fixture
async def user_client(user: Account) -> AsyncGenerator[AsyncClient, None]:
    async with _client(user.headers) as client:
        yield client


@pytest.fixture
async def super_client(super_admin: Account) -> AsyncGenerator[AsyncClient, None]:
    async with _client(super_admin.headers) as client:
        yield client


# ── Data builders ───────────────────────────────────────────────────
class Seed:
    """Create entities through the API as an admin."""

    def __init__(self, client: AsyncClient) -> None:
        self.client = client
        self._n = 0

    def _next(self) -> int:
        self._n += 1
        return self._n

    async def _post(self, path: str, body: dict) -> dict:
        resp = await self.client.post(path, json=body)
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    async def category(self, name: str | None = None) -> dict:
        return await self._post("/categories", {"name": name or f"Category {self._next()}"})

    async def branch(self, name: str | None = None) -> dict:
        return await self._post("/branches", {"name": name or f"Branch {self._next()}"})

    async def department(self, name: str | None = None) -> dict:
        return await self._post("/departments", {"name": name or f"Department {self._next()}"})

    async def employee(self, name: str | None = None, emp_id: str | None = None, **extra) -> dict:
        n = self._next()
        return await self._post(
            "/employees", {"empId": emp_id or f"EMP-{n:03d}", "name": name or f"Employee {n}", **extra}
        )

    async def product(
        self,
        name: str | None = None,
        category_id: int | None = None,
        branch_id: int | None = None,
        **extra,
    ) -> dict:
        if category_id is None:
            category_id = (await self.category())["id"]
        if branch_id is None:
            branch_id = (await self.branch())["id"]
        return await self._post(
            "/products",
            {
                "name": name or f"Laptop {self._next()}",
                "model": "ThinkPad T14",
                "categoryId": category_id,
                "branchId": branch_id,
                **extra,
            },
        )

    async def assignment(self, product_id: int, employee_id: int, **extra) -> dict:
        return await self._post(
            "/product-assignments/assign",
            {"productId": product_id, "employeeId": employee_id, **extra},
        )


@pytest.fixture
def seed(admin_client: AsyncClient) -> Seed:
    return Seed(admin_client)
