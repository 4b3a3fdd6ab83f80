"""Booking-related Pydantic schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field, field_validator

from ..models.booking import BookingChannel, BookingStatus, PaymentStatus
from .common import EMAIL_PATTERN, ApiModel, Money, Percentage, as_utc, not_null
from .payment import BillingDetails, CardDetails

MAX_GUESTS_PER_BOOKING = 20


class CreateBookingRequest(ApiModel):
    """
    Public booking payload.

    Status, payment status and provider reference are server-assigned and not
    part of the schema; a client-supplied ``totalAmount`` is accepted for
    display parity only and always recomputed.
    """

    tour_id: str = Field(..., min_length=1, description="Tour to book")
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_email: str = Field(..., max_length=320, pattern=EMAIL_PATTERN)
    customer_phone: Optional[str] = Field(None, max_length=64)
    booking_date: datetime = Field(..., description="Tour date and start time (ISO 8601)")
    number_of_guests: int = Field(..., ge=1, le=MAX_GUESTS_PER_BOOKING)
    special_requests: Optional[str] = Field(None, max_length=2000)
    total_amount: Optional[Decimal] = Field(None, description="Ignored; the server computes the total")

    @field_validator("booking_date")
    @classmethod
    def normalize_booking_date(cls, v: datetime) -> datetime:
        return as_utc(v)


class AdminCreateBookingRequest(CreateBookingRequest):
    """Manual (phone or in-person) booking entered by an admin."""


class UpdateBookingRequest(ApiModel):
    """Admin edit of an existing booking."""

    customer_name: Optional[str] = Field(None, min_length=1, max_length=255)
    customer_email: Optional[str] = Field(None, max_length=320, pattern=EMAIL_PATTERN)
    customer_phone: Optional[str] = Field(None, max_length=64)
    booking_date: Optional[datetime] = None
    number_of_guests: Optional[int] = Field(None, ge=1, le=MAX_GUESTS_PER_BOOKING)
    special_requests: Optional[str] = Field(None, max_length=2000)
    status: Optional[BookingStatus] = None
    payment_status: Optional[PaymentStatus] = None

    @field_validator(
        "customer_name", "customer_email", "booking_date", "number_of_guests", "status", "payment_status"
    )
    @classmethod
    def reject_null(cls, v):
        return not_null(v)

    @field_validator("booking_date")
    @classmethod
    def normalize_booking_date(cls, v: datetime) -> datetime:
        return as_utc(v)


class CheckoutRequest(CreateBookingRequest):
    """Booking payload plus the card to charge."""

    card: CardDetails
    billing: BillingDetails


class PayBookingRequest(ApiModel):
    """Card used to pay an existing pending booking."""

    card: CardDetails
    billing: BillingDetails


class QuoteRequest(ApiModel):
    tour_id: str = Field(..., min_length=1)
    number_of_guests: int = Field(..., ge=1, le=MAX_GUESTS_PER_BOOKING)


class Quote(ApiModel):
    """Server-side price breakdown."""

    tour_id: str
    number_of_guests: int
    unit_price: Money
    subtotal: Money
    tax_rate: Percentage
    tax: Money
    total: Money
    amount_minor_units: int
    currency: str


class Booking(ApiModel):
    """Booking response schema."""

    id: str = Field(..., description="Unique booking ID")
    tour_id: Optional[str] = None
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    booking_date: datetime
    number_of_guests: int
    total_amount: Money
    status: BookingStatus
    payment_status: PaymentStatus
    provider_payment_id: Optional[str] = None
    refunded_amount: Money = Decimal("0.00")
    special_requests: Optional[str] = None
    channel: BookingChannel
    created_at: datetime
    updated_at: datetime


class AvailabilitySummary(ApiModel):
    date: date
    booked_guests: int
    capacity: int
    remaining: int
    available: bool


class BookingSlot(ApiModel):
    """Public view of a booking on the availability calendar; no customer contact details."""

    id: str
    tour_id: Optional[str] = None
    booking_date: datetime
    number_of_guests: int
    status: BookingStatus
