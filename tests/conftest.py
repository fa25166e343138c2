"""
Pytest configuration and shared fixtures for the API tests.
"""

import hashlib
import hmac
import os
import tempfile
import time
from typing import AsyncGenerator, Dict, Optional

# Settings are read at import time, so the environment is prepared first
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["APP_ENV"] = "development"
os.environ["RESEND_API_KEY"] = ""
os.environ["STORAGE_BACKEND"] = "local"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="tipline-uploads-")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import tipline.models  # noqa: F401
from tipline.config import get_settings
from tipline.db.database import Base, get_db
from tipline.models.user import User
from tipline.services.otp_store import OtpStore, get_otp_store
from tipline.services.prediction_service import prediction_service
from tipline.services.security import password_hasher, token_service

settings = get_settings()

# Database URL for testing (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_PASSWORD = "testpassword123"


class FakeOtpStore(OtpStore):
    """OTP store kept in a dict instead of Redis."""

    def __init__(self):
        super().__init__(redis_url="redis://localhost:6379/15")
        self.records: Dict[str, Dict[str, str]] = {}
        self.ttls: Dict[str, int] = {}

    async def save(self, purpose, email, fields, ttl_seconds):
        key = self._key(purpose, email)
        self.records.setdefault(key, {}).update(fields)
        self.ttls[key] = ttl_seconds

    async def load(self, purpose, email):
        return dict(self.records.get(self._key(purpose, email), {}))

    async def delete(self, purpose, email):
        self.records.pop(self._key(purpose, email), None)

    async def ping(self):
        return True

    async def close(self):
        pass


def stripe_signature_header(
    payload: bytes,
    secret: Optional[str] = None,
    timestamp: Optional[int] = None,
) -> str:
    """Build a Stripe-Signature header the way Stripe signs webhook payloads."""
    secret = secret or settings.stripe_webhook_secret
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


@pytest.fixture
async def db_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture
def otp_store() -> FakeOtpStore:
    return FakeOtpStore()


@pytest.fixture(autouse=True)
def clear_prediction_cache():
    """Win rates are cached process-wide; start every test cold."""
    prediction_service.invalidate_cache()
    yield
    prediction_service.invalidate_cache()


@pytest.fixture
async def async_client(
    db_session: AsyncSession,
    otp_store: FakeOtpStore,
) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""
    # Import app here so the environment above is in place
    from tipline.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_otp_store] = lambda: otp_store

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a regular app user."""
    user = User(
        email="test@example.com",
        password=password_hasher.hash(TEST_PASSWORD),
        name="Test User",
        phone="+15550001111",
        type="user",
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def admin_user(db_session: AsyncSession) -> User:
    """Create an admin user."""
    user = User(
        email="admin@example.com",
        password=password_hasher.hash(TEST_PASSWORD),
        name="Admin User",
        type="admin",
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


def _bearer(user: User) -> Dict[str, str]:
    token = token_service.create_token(str(user.id), user.email, user.type)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(test_user: User) -> Dict[str, str]:
    """Generate authentication headers for the test user."""
    return _bearer(test_user)


@pytest.fixture
def admin_headers(admin_user: User) -> Dict[str, str]:
    """Generate authentication headers for the admin user."""
    return _bearer(admin_user)
