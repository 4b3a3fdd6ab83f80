"""Daily guest capacity: atomic reserve/release against a per-day counter."""

import logging
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import utcnow
from ..core.exceptions import CapacityExceededError
from ..models.capacity import DailyCapacity
from .dialect import insert_for

logger = logging.getLogger(__name__)


def tour_day(moment: datetime, zone: Optional[tzinfo] = None) -> date:
    """Calendar day of ``moment`` in the business time zone; naive values are UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(zone or settings.business_zone).date()


def day_bounds(day: date, zone: Optional[tzinfo] = None) -> tuple[datetime, datetime]:
    """UTC instants ``[start, end)`` covering ``day`` in the business time zone."""
    zone = zone or settings.business_zone
    start = datetime.combine(day, time.min, tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


class CapacityService:
    """
    Guards the joint capacity of a day across concurrent bookings.

    The check and the increment are one conditional UPDATE, so two requests
    racing for the last spots cannot both succeed. Callers own the
    transaction: nothing here commits.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _ensure_row(self, tour_date: date) -> None:
        insert = insert_for(self.db)
        stmt = (
            insert(DailyCapacity)
            .values(tour_date=tour_date, guests_booked=0, updated_at=utcnow())
            .on_conflict_do_nothing(index_elements=[DailyCapacity.tour_date])
        )
        await self.db.execute(stmt)

    async def booked(self, tour_date: date) -> int:
        stmt = select(DailyCapacity.guests_booked).where(DailyCapacity.tour_date == tour_date)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() or 0

    async def reserve(self, tour_date: date, guests: int, capacity: int) -> None:
        """
        Count ``guests`` against ``tour_date`` if they fit under ``capacity``.

        Raises:
            CapacityExceededError: If the day cannot take the guests
        """
        await self._ensure_row(tour_date)

        stmt = (
            update(DailyCapacity)
            .where(
                DailyCapacity.tour_date == tour_date,
                DailyCapacity.guests_booked + guests <= capacity,
            )
            .values(guests_booked=DailyCapacity.guests_booked + guests, updated_at=utcnow())
        )
        result = await self.db.execute(stmt)

        if result.rowcount != 1:
            remaining = max(capacity - await self.booked(tour_date), 0)
            logger.warning(
                "Daily capacity exhausted",
                extra={
                    "tour_date": tour_date.isoformat(),
                    "requested": guests,
                    "capacity": capacity,
                    "remaining": remaining,
                }
            )
            raise CapacityExceededError(
                requested=guests,
                limit=capacity,
                scope="daily",
                remaining=remaining,
            )

        logger.debug(
            "Daily capacity reserved",
            extra={"tour_date": tour_date.isoformat(), "guests": guests}
        )

    async def add(self, tour_date: date, guests: int) -> None:
        """Count guests without a limit check (admin manual entries)."""
        await self._ensure_row(tour_date)
        stmt = (
            update(DailyCapacity)
            .where(DailyCapacity.tour_date == tour_date)
            .values(guests_booked=DailyCapacity.guests_booked + guests, updated_at=utcnow())
        )
        await self.db.execute(stmt)

    async def release(self, tour_date: date, guests: int) -> None:
        """Return guests to the day; never drops the counter below zero."""
        stmt = (
            update(DailyCapacity)
            .where(DailyCapacity.tour_date == tour_date, DailyCapacity.guests_booked >= guests)
            .values(guests_booked=DailyCapacity.guests_booked - guests, updated_at=utcnow())
        )
        result = await self.db.execute(stmt)

        if result.rowcount != 1:
            # Counter never saw these guests (e.g. bookings entered before tracking); clamp
            await self.db.execute(
                update(DailyCapacity)
                .where(DailyCapacity.tour_date == tour_date)
                .values(guests_booked=0, updated_at=utcnow())
            )
            logger.warning(
                "Daily capacity release clamped at zero",
                extra={"tour_date": tour_date.isoformat(), "guests": guests}
            )
