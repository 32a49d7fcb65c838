"""
Pytest configuration and shared fixtures.

Environment defaults are set before anything under `app` is imported, since
app.configs.settings reads them at import time.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "rzp_test_secret")
os.environ.setdefault("PRESENCE_BACKEND", "none")

import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.database.database import Base, get_db
import app.models  # noqa: F401
from app.models.admin import Admin
from app.models.plan import Plan
from app.models.user import User
from app.models.user_subscription import UserSubscription
from app.services.push_service import PushResult, PushService
from app.services.whatsapp_service import WatiService
from app.utils.security import hash_password
from app.utils.time import get_utc_now

TEST_PASSWORD = "secret123"


# ============================================================================
# DATABASE
# ============================================================================

@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


# ============================================================================
# PROVIDER FAKES
# ============================================================================

@pytest.fixture(autouse=True)
def push_sender():
    """Mặc định mọi push đều gửi thành công; từng test có thể đổi return_value / side_effect."""
    mock = AsyncMock(return_value=PushResult(success=True))
    with patch.object(PushService, "send", new=mock):
        yield mock


@pytest.fixture(autouse=True)
def whatsapp_sender():
    mock = AsyncMock(return_value={"success": True, "data": {"result": True}})
    with patch.object(WatiService, "send_template", new=mock):
        yield mock


# ============================================================================
# FACTORIES
# ============================================================================

@pytest.fixture
def make_user(db):
    async def _make_user(**fields) -> User:
        suffix = uuid.uuid4().hex[:8]
        defaults = {
            "email": f"user-{suffix}@example.com",
            "whatsapp": f"91{int(suffix, 16) % 10**10:010d}",
            "hashed_password": hash_password(TEST_PASSWORD),
            "full_name": "Test User",
            "firebase_tokens": [],
        }
        defaults.update(fields)
        user = User(**defaults)
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_plan(db):
    async def _make_plan(**fields) -> Plan:
        defaults = {
            "title": "Monthly",
            "code": f"M{uuid.uuid4().hex[:6].upper()}",
            "description": ["All features"],
            "duration_in_months": 1,
            "actual_price": 999,
            "discounted_price": 499,
            "is_active": True,
        }
        defaults.update(fields)
        plan = Plan(**defaults)
        db.add(plan)
        await db.commit()
        await db.refresh(plan)
        return plan

    return _make_plan


@pytest.fixture
def make_subscription(db):
    """Tạo thẳng một dòng UserSubscription, bỏ qua luồng kích hoạt (dùng cho các job quét)."""
    async def _make_subscription(user: User, plan: Plan, expiry_in: timedelta, **fields) -> UserSubscription:
        now = get_utc_now()
        subscription = UserSubscription(
            user_id=user.id,
            plan_id=plan.id,
            start_date=now - timedelta(days=30),
            expiry_date=now + expiry_in,
            is_active=True,
            **fields,
        )
        db.add(subscription)
        await db.flush()
        user.active_subscription_id = subscription.id
        await db.commit()
        await db.refresh(subscription)
        return subscription

    return _make_subscription


@pytest.fixture
async def admin(db):
    admin = Admin(email="admin@example.com", hashed_password=hash_password(TEST_PASSWORD), role="superadmin")
    db.add(admin)
    await db.commit()
    await db.refresh(admin)
    return admin


# ============================================================================
# HTTP CLIENT
# ============================================================================

@pytest.fixture
async def client(session_factory):
    from main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
