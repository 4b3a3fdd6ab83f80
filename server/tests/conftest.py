"""Test configuration and fixtures."""

import os

# Settings are read at import time; point them at test values first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("CLOVER_WEBHOOK_SECRET", "test-webhook-secret")
os.environ.setdefault("PAYMENT_GATEWAY_MODE", "simulated")

from datetime import datetime, timedelta, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402

import jwt  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from elite_tours.core.config import settings  # noqa: E402
from elite_tours.core.database import Base  # noqa: E402
from elite_tours.core.dependencies import get_db  # noqa: E402
from elite_tours.models import *  # noqa: E402,F403 - Import all models
from elite_tours.models.user import User  # noqa: E402
from elite_tours.schemas.settings import UpdateSettingsRequest  # noqa: E402
from elite_tours.schemas.tour import CreateTourRequest  # noqa: E402
from elite_tours.services.settings_service import SettingsService  # noqa: E402
from elite_tours.services.tour_service import TourService  # noqa: E402

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_CARD = "4111111111111111"
DECLINED_CARD = "4000000000000002"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_session(test_engine):
    """Create a test database session."""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def test_app(test_session):
    """Create a test FastAPI application without lifespan or instrumentation."""
    from fastapi import FastAPI

    from elite_tours.core.exceptions import register_exception_handlers
    from elite_tours.core.middleware import setup_middleware
    from elite_tours.routers import (
        admin_router,
        auth_router,
        bookings_router,
        custom_tours_router,
        dashboard_router,
        health_router,
        payments_router,
        tours_router,
    )

    app = FastAPI(title="Elite Tours API (Test)", version="1.0.0-test")

    setup_middleware(app, enable_logging=True)
    register_exception_handlers(app)

    for router in (
        health_router,
        auth_router,
        tours_router,
        bookings_router,
        custom_tours_router,
        payments_router,
        admin_router,
        dashboard_router,
    ):
        app.include_router(router)

    async def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db

    yield app

    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def make_token(user_id: str, expires_in: timedelta = timedelta(hours=1), secret: str | None = None, **claims) -> str:
    payload = {
        "sub": user_id,
        "exp": datetime.now(timezone.utc) + expires_in,
        **claims,
    }
    return jwt.encode(payload, secret or settings.jwt_secret, algorithm=settings.jwt_algorithm)


def bearer(user_id: str, **claims) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, **claims)}"}


@pytest.fixture
def token_for():
    """Factory for signed bearer tokens: ``token_for("user-1", expires_in=..., secret=...)``."""
    return make_token


@pytest_asyncio.fixture
async def admin_user(test_session):
    user = User(id="admin-1", email="owner@elitetours.example", is_admin=True)
    test_session.add(user)
    await test_session.commit()
    return user


@pytest_asyncio.fixture
async def regular_user(test_session):
    user = User(id="guest-1", email="guest@example.com", is_admin=False)
    test_session.add(user)
    await test_session.commit()
    return user


@pytest.fixture
def admin_headers(admin_user):
    return bearer(admin_user.id)


@pytest.fixture
def user_headers(regular_user):
    return bearer(regular_user.id)


@pytest.fixture
def sample_tour_data():
    """Sample tour data for testing."""
    return {
        "name": "North Shore Adventure",
        "description": "Banzai Pipeline, Waimea Bay and the shrimp trucks",
        "type": "day",
        "price": Decimal("150.00"),
        "duration": 8,
        "max_group_size": 8,
    }


@pytest_asyncio.fixture
async def sample_tour(test_session, sample_tour_data):
    return await TourService(test_session).create_tour(CreateTourRequest(**sample_tour_data))


@pytest_asyncio.fixture
async def payment_settings(test_session):
    """Stored provider credentials so checkout is configured."""
    return await SettingsService(test_session).upsert_settings(
        UpdateSettingsRequest(
            clover_app_id="MERCHANT123",
            clover_api_token="sandbox-token-1234567890",
            clover_environment="sandbox",
        )
    )


@pytest.fixture
def tour_date():
    """A tour date comfortably outside the advance-booking window."""
    day = datetime.now(timezone.utc).date() + timedelta(days=14)
    return datetime(day.year, day.month, day.day, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def booking_payload(sample_tour, tour_date):
    """camelCase public booking body, as the storefront sends it."""
    return {
        "tourId": sample_tour.id,
        "customerName": "Keanu Kahale",
        "customerEmail": "keanu@example.com",
        "customerPhone": "+1 808 555 0100",
        "bookingDate": tour_date.isoformat(),
        "numberOfGuests": 3,
        "specialRequests": "Vegetarian lunch",
    }


@pytest.fixture
def card_payload():
    return {
        "card": {"number": TEST_CARD, "expMonth": "12", "expYear": "2030", "cvv": "123"},
        "billing": {"name": "Keanu Kahale", "zip": "96815"},
    }
