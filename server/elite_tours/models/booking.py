"""Booking model definition."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base, generate_id, utcnow

if TYPE_CHECKING:
    from .tour import Tour


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class PaymentStatus(str, Enum):
    """Payment status enumeration."""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class BookingChannel(str, Enum):
    """Where the booking was entered."""
    ONLINE = "online"
    ADMIN = "admin"


class Booking(Base):
    """Booking entity representing a customer's reservation against a tour."""

    __tablename__ = "bookings"

    # Primary key
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)

    # Kept when the tour goes away
    tour_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("tours.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    # Customer details
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    customer_phone: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Reservation details
    booking_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    number_of_guests: Mapped[int] = mapped_column(Integer, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2, asdecimal=True), nullable=False)
    special_requests: Mapped[str | None] = mapped_column(Text, nullable=True)
    channel: Mapped[BookingChannel] = mapped_column(
        String(16),
        nullable=False,
        default=BookingChannel.ONLINE
    )

    status: Mapped[BookingStatus] = mapped_column(
        String(20),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentStatus.PENDING,
        index=True
    )

    # Payment provider reference
    provider_payment_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)

    # Running total of refunds issued against the payment
    refunded_minor_units: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    # Timestamps
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

    # Constraints
    __table_args__ = (
        CheckConstraint("number_of_guests >= 1", name="ck_booking_guests_positive"),
        CheckConstraint("total_amount >= 0", name="ck_booking_total_non_negative"),
        CheckConstraint("refunded_minor_units >= 0", name="ck_booking_refunded_non_negative"),
        CheckConstraint("length(customer_name) > 0", name="ck_booking_customer_name_not_empty"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="ck_booking_status_valid"
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'paid', 'failed', 'refunded')",
            name="ck_booking_payment_status_valid"
        ),
        CheckConstraint(
            "NOT (status = 'confirmed' AND payment_status = 'pending')",
            name="ck_booking_confirmed_not_unpaid"
        ),
    )

    # Relationships
    tour: Mapped["Tour | None"] = relationship("Tour", back_populates="bookings")

    @property
    def refunded_amount(self) -> Decimal:
        return (Decimal(self.refunded_minor_units or 0) / 100).quantize(Decimal("0.01"))

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, tour_id={self.tour_id}, guests={self.number_of_guests}, "
            f"status={self.status}, payment_status={self.payment_status})>"
        )
