"""Per-day guest counter used to serialize capacity checks."""

from datetime import date, datetime

from sqlalchemy import CheckConstraint, Date, DateTime, Integer, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base, utcnow


class DailyCapacity(Base):
    """Guests already committed to a calendar day across all tours."""

    __tablename__ = "daily_capacity"

    tour_date: Mapped[date] = mapped_column(Date, primary_key=True)
    guests_booked: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("guests_booked >= 0", name="ck_daily_capacity_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<DailyCapacity(tour_date={self.tour_date}, guests_booked={self.guests_booked})>"
