"""Unit tests for tour service."""

from decimal import Decimal
from uuid import uuid4

import pytest

from elite_tours.core.exceptions import NotFoundError
from elite_tours.models.booking import Booking
from elite_tours.schemas.tour import CreateTourRequest, UpdateTourRequest
from elite_tours.services.tour_service import TourService


@pytest.mark.asyncio
async def test_create_tour(test_session, sample_tour_data):
    """Test creating a tour."""
    service = TourService(test_session)

    tour = await service.create_tour(CreateTourRequest(**sample_tour_data))

    assert tour.id is not None
    assert tour.name == sample_tour_data["name"]
    assert tour.price == Decimal("150.00")
    assert tour.is_active is True

    found = await service.get_tour(tour.id)
    assert found.name == sample_tour_data["name"]
    assert found.duration == 8
    assert found.max_group_size == 8


@pytest.mark.asyncio
async def test_get_tour_not_found(test_session):
    """Test getting a non-existent tour returns None."""
    service = TourService(test_session)

    assert await service.get_tour(str(uuid4())) is None
    with pytest.raises(NotFoundError):
        await service.get_tour_or_raise(str(uuid4()))


@pytest.mark.asyncio
async def test_get_tours_lists_active_by_name(test_session):
    service = TourService(test_session)
    for name in ("Waikiki Sunset Sail", "Diamond Head Hike", "Pearl Harbor History"):
        await service.create_tour(CreateTourRequest(name=name, type="day", price=Decimal("99.00"), duration=4))
    hidden = await service.create_tour(
        CreateTourRequest(name="Archived Luau", type="night", price=Decimal("120.00"), duration=3, is_active=False)
    )

    tours = await service.get_tours()

    assert [tour.name for tour in tours] == ["Diamond Head Hike", "Pearl Harbor History", "Waikiki Sunset Sail"]
    assert hidden.id in {tour.id for tour in await service.get_all_tours()}


@pytest.mark.asyncio
async def test_update_tour_is_partial(test_session, sample_tour):
    service = TourService(test_session)

    updated = await service.update_tour(sample_tour.id, UpdateTourRequest(price=Decimal("175.00")))

    assert updated.price == Decimal("175.00")
    assert updated.name == "North Shore Adventure"
    assert updated.duration == 8


@pytest.mark.asyncio
async def test_update_missing_tour(test_session):
    with pytest.raises(NotFoundError):
        await TourService(test_session).update_tour(str(uuid4()), UpdateTourRequest(name="Nope"))


@pytest.mark.asyncio
async def test_delete_tour_is_soft_and_keeps_bookings(test_session, sample_tour, tour_date):
    booking = Booking(
        tour_id=sample_tour.id,
        customer_name="Keanu Kahale",
        customer_email="keanu@example.com",
        booking_date=tour_date,
        number_of_guests=2,
        total_amount=Decimal("324.75"),
    )
    test_session.add(booking)
    await test_session.commit()

    service = TourService(test_session)
    deleted = await service.delete_tour(sample_tour.id)

    assert deleted.is_active is False
    assert sample_tour.id not in {tour.id for tour in await service.get_tours()}
    assert (await service.get_tour(sample_tour.id)) is not None
    await test_session.refresh(booking)
    assert booking.tour_id == sample_tour.id

    with pytest.raises(NotFoundError):
        await service.get_active_tour_or_raise(sample_tour.id)
