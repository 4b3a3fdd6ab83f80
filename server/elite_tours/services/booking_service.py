"""Booking service for persistence operations on reservations."""

import logging
from datetime import date, datetime, timedelta, tzinfo
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import utcnow
from ..core.exceptions import NotFoundError
from ..core.observability import metrics_collector
from ..models.booking import Booking, BookingStatus, PaymentStatus
from ..schemas.booking import UpdateBookingRequest
from .capacity_service import CapacityService, day_bounds, tour_day

logger = logging.getLogger(__name__)

# Statuses whose guests occupy the daily counter
COUNTED_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.COMPLETED)


class BookingService:
    """Service for booking-related operations."""

    def __init__(self, db: AsyncSession, zone: Optional[tzinfo] = None):
        self.db = db
        self.zone = zone
        self.capacity = CapacityService(db)

    async def get_bookings(self) -> list[Booking]:
        """All bookings, newest first."""
        stmt = select(Booking).order_by(Booking.created_at.desc())
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        stmt = select(Booking).where(Booking.id == booking_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_booking_or_raise(self, booking_id: str) -> Booking:
        booking = await self.get_booking(booking_id)
        if not booking:
            logger.warning("Booking not found", extra={"booking_id": booking_id})
            raise NotFoundError(resource_type="booking", resource_id=booking_id)
        return booking

    async def get_bookings_by_date_range(self, start: datetime, end: datetime) -> list[Booking]:
        """
        Bookings whose tour date falls in ``[start, end]``, ascending by date.

        Args:
            start: Inclusive lower bound
            end: Inclusive upper bound
        """
        stmt = (
            select(Booking)
            .where(Booking.booking_date >= start, Booking.booking_date <= end)
            .order_by(Booking.booking_date.asc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_bookings_for_day(self, day: date) -> list[Booking]:
        """Bookings on ``day`` as the business calendar sees it."""
        start, end = day_bounds(day, self.zone)
        end -= timedelta(microseconds=1)
        return await self.get_bookings_by_date_range(start, end)

    async def get_booking_by_payment_id(self, payment_id: str) -> Optional[Booking]:
        stmt = select(Booking).where(Booking.provider_payment_id == payment_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def create_booking(self, values: dict[str, Any], commit: bool = True) -> Booking:
        """
        Insert a booking row.

        ``values`` are already validated and priced by the caller; status
        fields default to ``pending``.
        """
        booking = Booking(**values)
        self.db.add(booking)

        if commit:
            await self.db.commit()
            await self.db.refresh(booking)
        else:
            await self.db.flush()

        logger.info(
            "Booking created",
            extra={
                "booking_id": booking.id,
                "tour_id": booking.tour_id,
                "guests": booking.number_of_guests,
                "total_amount": str(booking.total_amount),
                "status": booking.status,
                "payment_status": booking.payment_status,
                "channel": booking.channel,
            }
        )
        return booking

    async def update_booking(self, booking_id: str, request: UpdateBookingRequest) -> Booking:
        """
        Partial admin edit.

        Cancelling releases the booking's guests from the daily counter; a
        date or guest-count change on a counted booking moves them.
        """
        booking = await self.get_booking_or_raise(booking_id)
        changes = request.model_dump(exclude_unset=True)

        was_counted = booking.status in COUNTED_STATUSES
        old_day = tour_day(booking.booking_date, self.zone)
        old_guests = booking.number_of_guests

        for field, value in changes.items():
            setattr(booking, field, value)

        # Confirmed bookings cannot be left unpaid
        if booking.status == BookingStatus.CONFIRMED and booking.payment_status == PaymentStatus.PENDING:
            booking.payment_status = PaymentStatus.PAID

        is_counted = booking.status in COUNTED_STATUSES
        new_day = tour_day(booking.booking_date, self.zone)

        if was_counted and booking.status == BookingStatus.CANCELLED:
            metrics_collector.record_booking_cancelled()

        if was_counted and (not is_counted or new_day != old_day or booking.number_of_guests != old_guests):
            await self.capacity.release(old_day, old_guests)
        if is_counted and (not was_counted or new_day != old_day or booking.number_of_guests != old_guests):
            await self.capacity.add(new_day, booking.number_of_guests)

        await self.db.commit()
        await self.db.refresh(booking)

        logger.info(
            "Booking updated",
            extra={
                "booking_id": booking.id,
                "fields": sorted(changes),
                "status": booking.status,
                "payment_status": booking.payment_status,
            }
        )
        return booking

    async def update_booking_payment_status(
        self,
        booking_id: str,
        payment_status: PaymentStatus,
        provider_payment_id: Optional[str] = None,
        status: Optional[BookingStatus] = None,
    ) -> Booking:
        """Record a payment outcome, optionally moving the booking status with it."""
        booking = await self.get_booking_or_raise(booking_id)

        previous = booking.payment_status
        booking.payment_status = payment_status
        if provider_payment_id:
            booking.provider_payment_id = provider_payment_id
        if status is not None:
            booking.status = status

        await self.db.commit()
        await self.db.refresh(booking)

        logger.info(
            "Booking payment status changed",
            extra={
                "booking_id": booking.id,
                "from": previous,
                "to": payment_status,
                "status": booking.status,
            }
        )
        return booking

    async def claim_refund(self, booking_id: str, amount: int, total: int) -> bool:
        """
        Add ``amount`` (minor units) to the booking's refunded total unless
        that would pass ``total``. One conditional UPDATE, so concurrent refunds
        cannot together exceed the charge. Callers commit.
        """
        stmt = (
            update(Booking)
            .where(Booking.id == booking_id, Booking.refunded_minor_units + amount <= total)
            .values(refunded_minor_units=Booking.refunded_minor_units + amount, updated_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        result = await self.db.execute(stmt)
        return result.rowcount == 1

    async def revert_refund(self, booking_id: str, amount: int) -> None:
        """Undo a claim whose provider refund did not go through. Callers commit."""
        stmt = (
            update(Booking)
            .where(Booking.id == booking_id, Booking.refunded_minor_units >= amount)
            .values(refunded_minor_units=Booking.refunded_minor_units - amount, updated_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        await self.db.execute(stmt)

    async def delete_booking(self, booking_id: str) -> None:
        """Remove a booking; its guests are returned to the day if still counted."""
        booking = await self.get_booking_or_raise(booking_id)

        if booking.status in COUNTED_STATUSES:
            await self.capacity.release(tour_day(booking.booking_date, self.zone), booking.number_of_guests)

        await self.db.delete(booking)
        await self.db.commit()

        logger.info("Booking deleted", extra={"booking_id": booking_id})
