import fnmatch
import os
import time
from collections.abc import AsyncGenerator

# Settings are read once at import time, so the test environment must be in
# place before anything from app is imported.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-with-enough-entropy-0123456789"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_FORMAT"] = "console"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.core.redis_client import CacheManager, LoginAttemptTracker, get_redis_client
from app.core.security import TokenIssuer, get_password_hash
from app.database import get_db
from app.main import app
from app.models import metadata
from app.services.auth_service import AuthService
from app.services.user_service import UserService

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_PASSWORD = "Password123!"

# Single in-memory database shared by every connection of the test engine
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class FakeRedis:
    """Dict-backed stand-in for the subset of redis.Redis the app uses."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.expiry: dict[str, float] = {}

    def _purge(self, key: str) -> None:
        deadline = self.expiry.get(key)
        if deadline is not None and deadline <= time.monotonic():
            self.data.pop(key, None)
            self.expiry.pop(key, None)

    def ping(self) -> bool:
        return True

    def get(self, key: str) -> str | None:
        self._purge(key)
        return self.data.get(key)

    def set(self, key: str, value: object) -> bool:
        self.data[key] = str(value)
        self.expiry.pop(key, None)
        return True

    def setex(self, key: str, ttl: int, value: object) -> bool:
        self.data[key] = str(value)
        self.expiry[key] = time.monotonic() + ttl
        return True

    def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.expiry.pop(key, None)
        return removed

    def exists(self, *keys: str) -> int:
        count = 0
        for key in keys:
            self._purge(key)
            count += key in self.data
        return count

    def incr(self, key: str) -> int:
        self._purge(key)
        value = int(self.data.get(key, "0")) + 1
        self.data[key] = str(value)
        return value

    def expire(self, key: str, ttl: int) -> bool:
        if key not in self.data:
            return False
        self.expiry[key] = time.monotonic() + ttl
        return True

    def ttl(self, key: str) -> int:
        self._purge(key)
        if key not in self.data:
            return -2
        deadline = self.expiry.get(key)
        if deadline is None:
            return -1
        return int(deadline - time.monotonic())

    def keys(self, pattern: str = "*") -> list[str]:
        for key in list(self.data):
            self._purge(key)
        return [key for key in self.data if fnmatch.fnmatch(key, pattern)]

    def close(self) -> None:
        pass


@pytest.fixture
def fake_redis() -> FakeRedis:
    """Fresh Redis double per test."""
    return FakeRedis()


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession, fake_redis: FakeRedis
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis_client] = lambda: fake_redis

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_service(fake_redis: FakeRedis) -> AuthService:
    """Auth service wired to the Redis double."""
    return AuthService(
        settings,
        TokenIssuer(settings),
        CacheManager(fake_redis),
        LoginAttemptTracker(
            fake_redis,
            max_attempts=settings.max_login_attempts,
            window=settings.login_attempt_window_seconds,
            lockout=settings.account_lockout_seconds,
        ),
    )


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> dict:
    """Create an active customer in the database."""
    user = await UserService().create_user(
        db_session,
        email="customer@example.com",
        phone="+8801712345678",
        password_hash=get_password_hash(TEST_PASSWORD, settings.bcrypt_rounds),
        first_name="Test",
        last_name="Customer",
    )
    return {**user, "password": TEST_PASSWORD}


@pytest_asyncio.fixture
async def login_data(client: AsyncClient, test_user: dict) -> dict:
    """Log the test user in through the API."""
    response = await client.post(
        "/api/auth/login",
        json={"identifier": test_user["email"], "password": test_user["password"]},
    )
    assert response.status_code == 200
    return response.json()


@pytest.fixture
def auth_headers(login_data: dict) -> dict:
    """Bearer headers for the logged-in test user."""
    return {"Authorization": f"Bearer {login_data['accessToken']}"}
