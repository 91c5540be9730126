"""
Centralized Test Configuration.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import Pool, StaticPool

from cargo_backend.app.main import app
from cargo_backend.app.db.session import get_db, Base
from cargo_backend.app.core.dependencies import get_notification_sink
from cargo_backend.app.core.jwt import create_access_token
from cargo_backend.app.core.redis_client import get_redis
import cargo_backend.app.core.redis_client as redis_client_module
from cargo_backend.app.models.branch import Branch
from cargo_backend.app.models.enums import UserRole
from cargo_backend.app.models.user import User
from cargo_backend.app.schemas.actor import Actor

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)).lower():
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False
        self.fail = False

    async def ping(self):
        return not self._closed and not self.fail

    async def get(self, key):
        if self.fail:
            raise ConnectionError("redis down")
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self.fail:
            raise ConnectionError("redis down")
        self.store[key] = value
        return True

    async def flushdb(self):
        self.store = {}
        self.fail = False

    async def aclose(self):
        self._closed = True
        self.store = {}


class FakeSink:
    """Notification sink double that records messages and returns a canned result."""

    def __init__(self, result: bool = True):
        self.result = result
        self.sent = []

    async def send(self, channel_id, text, thread_id=None):
        self.sent.append({"channel_id": channel_id, "text": text, "thread_id": thread_id})
        return self.result


# Redis Fixture (Session Scope)
@pytest.fixture(scope="session")
def redis_client_session():
    return MockRedis()


@pytest.fixture(scope="session", autouse=True)
def apply_overrides(redis_client_session):
    """Apply overrides once for the session."""
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = redis_client_session

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    async def override_get_redis():
        return redis_client_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    yield

    # Restore and clear
    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client


@pytest.fixture(autouse=True)
async def setup_database(redis_client_session):
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await redis_client_session.flushdb()

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def make_sink():
    return FakeSink


@pytest.fixture
def sink():
    fake = FakeSink()
    app.dependency_overrides[get_notification_sink] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_notification_sink, None)


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
async def branches(db_session):
    """Two branches: 'almaty' posts to topic 42, 'astana' to the main thread."""
    almaty = Branch(name="Almaty", telegram_thread_id=42)
    astana = Branch(name="Astana")
    db_session.add_all([almaty, astana])
    await db_session.commit()
    return {"almaty": almaty, "astana": astana}


@pytest.fixture
async def users(db_session, branches):
    almaty_id = branches["almaty"].id
    astana_id = branches["astana"].id
    accounts = {
        "customer": User(name="Aigerim", user_code="KH-100", telegram_username="aigerim",
                         role=UserRole.USER, branch_id=almaty_id),
        "other_customer": User(name="Dana", user_code="KH-101",
                               role=UserRole.USER, branch_id=astana_id),
        "admin": User(name="Almaty Desk", role=UserRole.ADMIN, branch_id=almaty_id),
        "other_admin": User(name="Astana Desk", role=UserRole.ADMIN, branch_id=astana_id),
        "superadmin": User(name="Head Office", role=UserRole.SUPERADMIN),
    }
    db_session.add_all(accounts.values())
    await db_session.commit()
    return accounts


@pytest.fixture
def actors(users):
    return {
        key: Actor(id=user.id, role=user.role, branch_id=user.branch_id)
        for key, user in users.items()
    }


@pytest.fixture
def auth_headers(users):
    """Bearer headers per test account."""
    def make(key: str) -> dict:
        user = users[key]
        token = create_access_token(data={
            "sub": f"user-{user.id}",
            "user_id": user.id,
            "role": user.role.value,
            "branch_id": user.branch_id,
        })
        return {"Authorization": f"Bearer {token}"}
    return make
