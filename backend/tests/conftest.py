"""
Pytest configuration and shared fixtures for backend tests.
"""

import base64
import sys
from pathlib import Path

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

import pytest
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Import after path is set
from infrastructure.config.settings import settings
from infrastructure.database.connection import get_db
from infrastructure.database.models import (
    Base,
    CallJob,
    CallSettings,
    SubscriptionStatus,
    User,
)


# Database URL for testing (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

REVENUECAT_SECRET = "rc-test-secret"
VAPI_SECRET = "vapi-test-secret"
BLOG_HMAC_SECRET = "blog-test-secret"
CLERK_SIGNING_SECRET = "whsec_" + base64.b64encode(b"clerk-test-signing-key-012345").decode()
SITE_URL = "https://api.eveokee.test"
SHARE_BASE_URL = "https://eveokee.test"


@pytest.fixture
async def db_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    """Session factory bound to the test engine, as workflows use outside requests."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def webhook_settings(monkeypatch):
    """Configure every provider secret and public URL for the duration of a test."""
    monkeypatch.setattr(settings, "revenuecat_webhook_secret", REVENUECAT_SECRET)
    monkeypatch.setattr(settings, "vapi_webhook_secret", VAPI_SECRET)
    monkeypatch.setattr(settings, "blog_webhook_hmac_secret", BLOG_HMAC_SECRET)
    monkeypatch.setattr(settings, "clerk_webhook_signing_secret", CLERK_SIGNING_SECRET)
    monkeypatch.setattr(settings, "site_url", SITE_URL)
    monkeypatch.setattr(settings, "share_base_url", SHARE_BASE_URL)
    monkeypatch.setattr(settings, "suno_callback_url", None)
    monkeypatch.setattr(settings, "vapi_credential_id", None)
    return settings


@pytest.fixture
def revenuecat_headers(webhook_settings) -> dict:
    return {"Authorization": f"Bearer {REVENUECAT_SECRET}"}


@pytest.fixture
def vapi_headers(webhook_settings) -> dict:
    return {"Authorization": f"Bearer {VAPI_SECRET}"}


@pytest.fixture
async def async_client(db_session: AsyncSession, webhook_settings) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""
    # Import app here to avoid circular imports
    from main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    # Reset rate limiter state between tests to prevent cross-test 429s
    if hasattr(app.state, "limiter"):
        app.state.limiter.reset()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ============================================================================
# User and subscription fixtures
# ============================================================================

async def create_user(
    db: AsyncSession,
    clerk_id: str,
    tier: str = "free",
    product_id: str = "free-tier",
    used: int = 0,
    last_reset_at: datetime | None = None,
    name: str | None = "Test User",
) -> User:
    """Insert a user with an active subscription snapshot."""
    now = datetime.now(timezone.utc)
    user = User(clerk_id=clerk_id, email=f"{clerk_id}@example.com", name=name)
    db.add(user)
    await db.flush()

    subscription = SubscriptionStatus(
        user_id=user.id,
        platform="clerk",
        product_id=product_id,
        status="active",
        subscription_tier=tier,
        music_generations_used=used,
        last_reset_at=last_reset_at or now,
        last_verified_at=now,
    )
    db.add(subscription)
    await db.flush()

    user.active_subscription_id = subscription.id
    await db.commit()
    await db.refresh(user)
    return user


@pytest.fixture
async def free_user(db_session: AsyncSession) -> User:
    """Free-tier user with no generations used."""
    return await create_user(db_session, "user_free")


@pytest.fixture
async def exhausted_user(db_session: AsyncSession) -> User:
    """Free-tier user who has used the whole allowance this period."""
    return await create_user(
        db_session,
        "user_exhausted",
        used=7,
        last_reset_at=datetime.now(timezone.utc) - timedelta(days=2),
    )


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory for users with a custom tier, usage or reset date."""
    async def _make(clerk_id: str, **kwargs) -> User:
        return await create_user(db_session, clerk_id, **kwargs)
    return _make


@pytest.fixture
def load_subscription(db_session: AsyncSession):
    """Reload a user's subscription snapshot from the database."""
    async def _load(user: User) -> SubscriptionStatus:
        subscription = await db_session.get(SubscriptionStatus, user.active_subscription_id)
        await db_session.refresh(subscription)
        return subscription
    return _load


# ============================================================================
# Call fixtures
# ============================================================================

@pytest.fixture
async def call_settings(db_session: AsyncSession, free_user: User) -> CallSettings:
    settings_row = CallSettings(
        user_id=free_user.id,
        phone_e164="+15551234567",
        timezone="America/New_York",
        time_of_day="09:00",
    )
    db_session.add(settings_row)
    await db_session.commit()
    return settings_row


@pytest.fixture
async def started_call(db_session: AsyncSession, free_user: User, call_settings: CallSettings) -> CallJob:
    """Call job VAPI has started; the end-of-call report has not arrived yet."""
    job = CallJob(
        user_id=free_user.id,
        call_settings_id=call_settings.id,
        status="started",
        vapi_call_id="call-123",
        attempts=1,
    )
    db_session.add(job)
    await db_session.commit()
    return job
