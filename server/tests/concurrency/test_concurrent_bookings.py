"""Concurrency tests for booking operations."""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import event, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from elite_tours.core.database import Base
from elite_tours.core.exceptions import CapacityExceededError, IdempotencyInProgressError
from elite_tours.models.booking import Booking, BookingStatus
from elite_tours.schemas.booking import CheckoutRequest, CreateBookingRequest
from elite_tours.schemas.payment import BillingDetails, CardDetails
from elite_tours.schemas.settings import UpdateSettingsRequest
from elite_tours.schemas.tour import CreateTourRequest
from elite_tours.services.capacity_service import CapacityService
from elite_tours.services.checkout_service import CheckoutService
from elite_tours.services.idempotency_service import IdempotencyService
from elite_tours.services.payment_gateway import TEST_CARD_NUMBER
from elite_tours.services.settings_service import SettingsService
from elite_tours.services.tour_service import TourService


@pytest_asyncio.fixture
async def file_engine(tmp_path):
    """
    File-backed SQLite so each session gets its own connection.

    Transactions start with BEGIN IMMEDIATE, which takes the write lock up
    front; concurrent writers queue on the busy timeout instead of
    deadlocking on lock upgrade.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}",
        connect_args={"timeout": 30},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(file_engine):
    return async_sessionmaker(file_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def small_day(session_factory):
    """One tour and a day that fits five guests."""
    async with session_factory() as session:
        tour = await TourService(session).create_tour(
            CreateTourRequest(name="Hanauma Bay Snorkel", type="day", price=Decimal("150.00"), duration=4)
        )
        await SettingsService(session).upsert_settings(
            UpdateSettingsRequest(
                daily_guest_capacity=5,
                clover_app_id="MERCHANT123",
                clover_api_token="sandbox-token-1234567890",
            )
        )

    day = datetime.now(timezone.utc).date() + timedelta(days=10)
    return tour, datetime(day.year, day.month, day.day, 9, 0, tzinfo=timezone.utc)


def request_for(tour, tour_date, guests: int, customer: int) -> CreateBookingRequest:
    return CreateBookingRequest(
        tour_id=tour.id,
        customer_name=f"Customer {customer}",
        customer_email=f"customer{customer}@example.com",
        booking_date=tour_date,
        number_of_guests=guests,
    )


async def counted_guests(session_factory, tour_date) -> tuple[int, int]:
    async with session_factory() as session:
        booked = await CapacityService(session).booked(tour_date.date())
        stored = await session.scalar(
            select(func.coalesce(func.sum(Booking.number_of_guests), 0)).where(
                Booking.status != BookingStatus.CANCELLED
            )
        )
        await session.commit()
    return booked, stored


@pytest.mark.asyncio
async def test_two_bookings_for_last_spots(session_factory, small_day):
    """Three guests each against five spots: exactly one request wins."""
    tour, tour_date = small_day

    async def book(customer: int):
        async with session_factory() as session:
            return await CheckoutService(session).create_booking(request_for(tour, tour_date, 3, customer))

    results = await asyncio.gather(book(1), book(2), return_exceptions=True)

    winners = [r for r in results if isinstance(r, Booking)]
    losers = [r for r in results if isinstance(r, CapacityExceededError)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert losers[0].problem_details["remaining"] == 2

    assert await counted_guests(session_factory, tour_date) == (3, 3)


@pytest.mark.asyncio
async def test_many_single_guest_bookings_fill_exactly(session_factory, small_day):
    tour, tour_date = small_day

    async def book(customer: int):
        async with session_factory() as session:
            return await CheckoutService(session).create_booking(request_for(tour, tour_date, 1, customer))

    results = await asyncio.gather(*(book(i) for i in range(12)), return_exceptions=True)

    assert sum(isinstance(r, Booking) for r in results) == 5
    assert sum(isinstance(r, CapacityExceededError) for r in results) == 7
    assert await counted_guests(session_factory, tour_date) == (5, 5)


@pytest.mark.asyncio
async def test_concurrent_checkouts_charge_only_what_fits(session_factory, small_day):
    tour, tour_date = small_day

    async def checkout(customer: int):
        base = request_for(tour, tour_date, 3, customer).model_dump()
        request = CheckoutRequest(
            **base,
            card=CardDetails(number=TEST_CARD_NUMBER, exp_month="12", exp_year="2030", cvv="123"),
            billing=BillingDetails(name=f"Customer {customer}"),
        )
        async with session_factory() as session:
            return await CheckoutService(session).checkout(request, idempotency_key=f"checkout-{customer}")

    results = await asyncio.gather(checkout(1), checkout(2), return_exceptions=True)

    paid = [r for r in results if isinstance(r, Booking)]
    assert len(paid) == 1
    assert paid[0].provider_payment_id is not None
    assert sum(isinstance(r, CapacityExceededError) for r in results) == 1
    assert await counted_guests(session_factory, tour_date) == (3, 3)


@pytest.mark.asyncio
async def test_duplicate_keyed_checkouts_charge_once(session_factory, small_day):
    """Same idempotency key sent twice at once: one claim runs the checkout, the other is turned away."""
    tour, tour_date = small_day
    base = request_for(tour, tour_date, 2, 1).model_dump()
    request = CheckoutRequest(
        **base,
        card=CardDetails(number=TEST_CARD_NUMBER, exp_month="12", exp_year="2030", cvv="123"),
        billing=BillingDetails(name="Customer 1"),
    )
    fingerprint = request.model_dump(mode="json", exclude={"card"})

    async def keyed_checkout():
        async with session_factory() as session:
            idempotency = IdempotencyService(session)
            if await idempotency.claim("retry-1", "checkout", fingerprint) is not None:
                return "replayed"
            booking = await CheckoutService(session).checkout(request, idempotency_key="checkout-retry-1")
            await idempotency.store_response("retry-1", "checkout", fingerprint, 201, {"id": booking.id})
            return booking

    results = await asyncio.gather(keyed_checkout(), keyed_checkout(), return_exceptions=True)

    assert sum(isinstance(r, Booking) for r in results) == 1
    # The loser either sees the claim still pending or, if it waited long enough, the stored answer
    assert sum(isinstance(r, IdempotencyInProgressError) or r == "replayed" for r in results) == 1
    assert await counted_guests(session_factory, tour_date) == (2, 2)

    async with session_factory() as session:
        winner = next(r for r in results if isinstance(r, Booking))
        assert await IdempotencyService(session).claim("retry-1", "checkout", fingerprint) == (
            201,
            {"id": winner.id},
        )
