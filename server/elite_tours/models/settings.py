"""Business settings model definition (single row)."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base, utcnow

# Fixed key of the only settings row; upserts conflict on it
SETTINGS_ROW_ID = "default"

DEFAULT_BUSINESS_NAME = "Oahu Elite Tours"
DEFAULT_TAX_RATE = Decimal("8.25")
DEFAULT_TOUR_DURATION = 6
DEFAULT_GROUP_SIZE = 8
DEFAULT_ADVANCE_BOOKING_DAYS = 2
DEFAULT_DAILY_GUEST_CAPACITY = 40


class BusinessSettings(Base):
    """Admin-editable configuration: provider credentials, tax rate, booking rules."""

    __tablename__ = "settings"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=SETTINGS_ROW_ID)

    # Payment provider
    clover_app_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    clover_api_token: Mapped[str | None] = mapped_column(String(512), nullable=True)
    clover_environment: Mapped[str] = mapped_column(String(16), nullable=False, default="sandbox")

    # Business profile
    business_name: Mapped[str] = mapped_column(String(255), nullable=False, default=DEFAULT_BUSINESS_NAME)
    contact_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Booking rules
    tax_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2, asdecimal=True),
        nullable=False,
        default=DEFAULT_TAX_RATE
    )
    default_tour_duration: Mapped[int] = mapped_column(Integer, nullable=False, default=DEFAULT_TOUR_DURATION)
    max_group_size: Mapped[int] = mapped_column(Integer, nullable=False, default=DEFAULT_GROUP_SIZE)
    advance_booking_days: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_ADVANCE_BOOKING_DAYS
    )
    daily_guest_capacity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_DAILY_GUEST_CAPACITY
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("tax_rate >= 0 AND tax_rate <= 100", name="ck_settings_tax_rate_range"),
        CheckConstraint("clover_environment IN ('sandbox', 'production')", name="ck_settings_environment_valid"),
        CheckConstraint("max_group_size >= 1", name="ck_settings_group_size_positive"),
        CheckConstraint("daily_guest_capacity >= 1", name="ck_settings_daily_capacity_positive"),
    )

    def __repr__(self) -> str:
        # Never include the API token
        return (
            f"<BusinessSettings(business_name='{self.business_name}', "
            f"environment='{self.clover_environment}', tax_rate={self.tax_rate})>"
        )
