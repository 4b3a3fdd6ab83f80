"""Custom tour request model definition."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, CheckConstraint, DateTime, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base, generate_id, utcnow
from .booking import BookingStatus


class CustomTourRequest(Base):
    """Non-binding quote request for a bespoke itinerary."""

    __tablename__ = "custom_tours"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)

    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(320), nullable=False)
    customer_phone: Mapped[str | None] = mapped_column(String(64), nullable=True)

    tour_type: Mapped[str] = mapped_column(String(16), nullable=False)
    activities: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    group_size: Mapped[int] = mapped_column(Integer, nullable=False)
    special_requests: Mapped[str | None] = mapped_column(Text, nullable=True)
    estimated_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2, asdecimal=True), nullable=True)

    status: Mapped[BookingStatus] = mapped_column(
        String(20),
        nullable=False,
        default=BookingStatus.PENDING
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("group_size >= 1", name="ck_custom_tour_group_size_positive"),
        CheckConstraint("tour_type IN ('day', 'night', 'custom')", name="ck_custom_tour_type_valid"),
    )

    def __repr__(self) -> str:
        return (
            f"<CustomTourRequest(id={self.id}, tour_type='{self.tour_type}', "
            f"group_size={self.group_size}, status={self.status})>"
        )
