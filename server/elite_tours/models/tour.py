"""Tour model definition."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import expression

from ..core.database import Base, generate_id, utcnow

if TYPE_CHECKING:
    from .booking import Booking


DEFAULT_MAX_GROUP_SIZE = 8


class TourType(str, Enum):
    """Tour type enumeration."""
    DAY = "day"
    NIGHT = "night"
    CUSTOM = "custom"


class Tour(Base):
    """Tour entity representing a bookable guided experience."""

    __tablename__ = "tours"

    # Primary key
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)

    # Tour information
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[TourType] = mapped_column(String(16), nullable=False)

    # Price per guest, fixed-point
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2, asdecimal=True), nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)  # hours
    max_group_size: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        default=DEFAULT_MAX_GROUP_SIZE
    )
    image_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    # Cleared instead of deleting the row
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=expression.true(),
        index=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now()
    )

    # Constraints
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_tour_price_non_negative"),
        CheckConstraint("duration > 0", name="ck_tour_duration_positive"),
        CheckConstraint("type IN ('day', 'night', 'custom')", name="ck_tour_type_valid"),
    )

    # Relationships
    bookings: Mapped[list["Booking"]] = relationship(
        "Booking",
        back_populates="tour",
        passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Tour(id={self.id}, name='{self.name}', price={self.price}, active={self.is_active})>"
