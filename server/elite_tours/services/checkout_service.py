"""
Booking workflow: pricing, rule checks, capacity and payment orchestration.

Every path that creates or pays for a booking goes through here, so the
total is always computed from the stored tour price and the stored tax
rate, never from a client-supplied figure.
"""

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings, settings
from ..core.database import utcnow
from ..core.exceptions import (
    CapacityExceededError,
    ConflictError,
    PaymentFailedError,
    PaymentGatewayError,
    ValidationError,
)
from ..core.observability import metrics_collector
from ..models.booking import Booking, BookingChannel, BookingStatus, PaymentStatus
from ..models.settings import BusinessSettings
from ..models.tour import Tour
from ..schemas.booking import (
    AdminCreateBookingRequest,
    CheckoutRequest,
    CreateBookingRequest,
    PayBookingRequest,
)
from .booking_service import BookingService
from .capacity_service import CapacityService, tour_day
from .payment_gateway import RefundRecord
from .payment_service import PaymentService
from .pricing import PriceQuote, from_minor_units, quote, to_minor_units
from .settings_service import SettingsService
from .tour_service import TourService

logger = logging.getLogger(__name__)

# Webhook event type -> payment status it records
WEBHOOK_TRANSITIONS = {
    "payment.succeeded": PaymentStatus.PAID,
    "payment.failed": PaymentStatus.FAILED,
    "refund.succeeded": PaymentStatus.REFUNDED,
}


class CheckoutService:
    """Orchestrates bookings across tours, settings, capacity and the payment provider."""

    def __init__(self, db: AsyncSession, config: Settings = settings):
        self.db = db
        self.config = config
        self.tours = TourService(db)
        self.bookings = BookingService(db, config.business_zone)
        self.capacity = CapacityService(db)
        self.settings_service = SettingsService(db)
        self.payments = PaymentService(db, config)

    # Rules

    def tour_day(self, moment: datetime) -> date:
        return tour_day(moment, self.config.business_zone)

    async def get_rules(self) -> BusinessSettings:
        return await self.settings_service.get_settings_or_default()

    def check_group_size(self, tour: Tour, guests: int, rules: BusinessSettings) -> None:
        """Guests must fit the tour's group limit, or the business default when the tour has none."""
        limit = tour.max_group_size or rules.max_group_size
        if guests > limit:
            metrics_collector.record_capacity_rejection("group")
            logger.info(
                "Booking rejected - group too large",
                extra={"tour_id": tour.id, "guests": guests, "limit": limit}
            )
            raise CapacityExceededError(requested=guests, limit=limit, scope="group")

    def check_lead_time(self, booking_date: datetime, rules: BusinessSettings, today: Optional[date] = None) -> None:
        """Tour date must be at least ``advance_booking_days`` after today."""
        today = today or tour_day(utcnow(), self.config.business_zone)
        earliest = today + timedelta(days=rules.advance_booking_days)
        if self.tour_day(booking_date) < earliest:
            raise ValidationError.for_field(
                "bookingDate",
                f"Bookings must be made at least {rules.advance_booking_days} day(s) in advance "
                f"(earliest date {earliest.isoformat()})",
            )

    async def quote_booking(self, tour_id: str, guests: int) -> tuple[Tour, PriceQuote]:
        """Price a prospective booking against an active tour and the stored tax rate."""
        tour = await self.tours.get_active_tour_or_raise(tour_id)
        rules = await self.get_rules()
        return tour, quote(tour.price, guests, rules.tax_rate)

    async def _prepare(self, request: CreateBookingRequest) -> tuple[Tour, PriceQuote, BusinessSettings]:
        """Steps shared by every customer-facing path: tour, group size, lead time, price."""
        tour = await self.tours.get_active_tour_or_raise(request.tour_id)
        rules = await self.get_rules()

        self.check_group_size(tour, request.number_of_guests, rules)
        self.check_lead_time(request.booking_date, rules)

        price = quote(tour.price, request.number_of_guests, rules.tax_rate)
        if request.total_amount is not None and request.total_amount != price.total:
            logger.info(
                "Client total ignored",
                extra={"tour_id": tour.id, "client_total": str(request.total_amount), "total": str(price.total)}
            )
        return tour, price, rules

    async def _reserve(self, request: CreateBookingRequest, rules: BusinessSettings) -> None:
        try:
            await self.capacity.reserve(
                self.tour_day(request.booking_date),
                request.number_of_guests,
                rules.daily_guest_capacity,
            )
        except CapacityExceededError:
            await self.db.rollback()
            metrics_collector.record_capacity_rejection("daily")
            raise

    async def _release(self, request: CreateBookingRequest) -> None:
        await self.capacity.release(self.tour_day(request.booking_date), request.number_of_guests)
        await self.db.commit()

    @staticmethod
    def _booking_values(request: CreateBookingRequest, price: PriceQuote) -> dict[str, Any]:
        values = request.model_dump(
            include={
                "tour_id",
                "customer_name",
                "customer_email",
                "customer_phone",
                "booking_date",
                "number_of_guests",
                "special_requests",
            }
        )
        values["total_amount"] = price.total
        return values

    # Workflows

    async def create_booking(self, request: CreateBookingRequest) -> Booking:
        """
        Public reservation without payment.

        Raises:
            NotFoundError: Tour missing or inactive
            CapacityExceededError: Group too large or the day is full
            ValidationError: Tour date inside the advance-booking window
        """
        tour, price, rules = await self._prepare(request)
        await self._reserve(request, rules)

        values = self._booking_values(request, price)
        values.update(
            status=BookingStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            channel=BookingChannel.ONLINE,
        )
        booking = await self.bookings.create_booking(values)

        metrics_collector.record_booking_created(BookingChannel.ONLINE.value, values["payment_status"].value)
        return booking

    async def checkout(self, request: CheckoutRequest, idempotency_key: Optional[str] = None) -> Booking:
        """
        Reserve, charge, then persist a confirmed booking.

        Capacity is reserved and committed before the charge so a concurrent
        checkout cannot take the same spots while the provider is thinking.
        Any failure after that point returns the spots. A declined card leaves
        no booking behind.

        Raises:
            NotFoundError: Tour missing or inactive (no payment is attempted)
            CapacityExceededError: Group too large or the day is full
            ValidationError: Tour date inside the advance-booking window
            PaymentNotConfiguredError: No provider credentials
            PaymentFailedError: Card declined
            PaymentGatewayError: Provider unreachable, erroring or too slow
        """
        tour, price, rules = await self._prepare(request)
        gateway = await self.payments.get_gateway()
        amount = price.total_minor_units

        await self._reserve(request, rules)
        await self.db.commit()

        try:
            result = await self.payments.charge(
                amount,
                request.card,
                request.billing,
                idempotency_key=idempotency_key,
                gateway=gateway,
            )
        except PaymentGatewayError:
            await self._release(request)
            raise

        if not result.success:
            await self._release(request)
            logger.info(
                "Checkout declined",
                extra={
                    "tour_id": tour.id,
                    "amount": amount,
                    "card_last4": request.card.last4,
                    "reason": result.error,
                }
            )
            raise PaymentFailedError(result.error or "Card declined")

        values = self._booking_values(request, price)
        values.update(
            status=BookingStatus.CONFIRMED,
            payment_status=PaymentStatus.PAID,
            provider_payment_id=result.payment_id,
            channel=BookingChannel.ONLINE,
        )
        try:
            booking = await self.bookings.create_booking(values)
        except Exception:
            # Charged but not recorded; the payment id is the reconciliation handle
            logger.critical(
                "Booking insert failed after successful charge",
                extra={"payment_id": result.payment_id, "tour_id": tour.id, "amount": amount},
                exc_info=True,
            )
            raise

        metrics_collector.record_booking_created(BookingChannel.ONLINE.value, values["payment_status"].value)
        logger.info(
            "Checkout completed",
            extra={"booking_id": booking.id, "payment_id": result.payment_id, "amount": amount}
        )
        return booking

    async def pay_booking(self, booking_id: str, request: PayBookingRequest) -> Booking:
        """
        Charge the stored total of a pending booking.

        A decline is recorded on the booking (``paymentStatus=failed``,
        status stays ``pending``) and then raised so the caller sees the reason.

        Raises:
            NotFoundError: Unknown booking
            ConflictError: Booking is not awaiting payment
            PaymentFailedError: Card declined
            PaymentGatewayError: Provider unreachable, erroring or too slow
        """
        booking = await self.bookings.get_booking_or_raise(booking_id)
        if booking.status != BookingStatus.PENDING or booking.payment_status == PaymentStatus.PAID:
            raise ConflictError(
                detail=f"Booking {booking_id} is not awaiting payment",
                conflicting_resource={
                    "id": booking.id,
                    "status": booking.status,
                    "payment_status": booking.payment_status,
                },
            )

        amount = to_minor_units(booking.total_amount)
        result = await self.payments.charge(
            amount,
            request.card,
            request.billing,
            idempotency_key=f"booking-{booking.id}-{booking.updated_at.timestamp():.0f}",
        )

        if not result.success:
            await self.bookings.update_booking_payment_status(booking.id, PaymentStatus.FAILED)
            raise PaymentFailedError(result.error or "Card declined")

        return await self.bookings.update_booking_payment_status(
            booking.id,
            PaymentStatus.PAID,
            provider_payment_id=result.payment_id,
            status=BookingStatus.CONFIRMED,
        )

    async def admin_create_booking(self, request: AdminCreateBookingRequest) -> Booking:
        """
        Manual booking entered by an admin (phone or walk-in, paid offline).

        No lead-time or daily-limit check and no payment call; the guests are
        still counted on the day.
        """
        tour = await self.tours.get_tour_or_raise(request.tour_id)
        rules = await self.get_rules()
        price = quote(tour.price, request.number_of_guests, rules.tax_rate)

        await self.capacity.add(self.tour_day(request.booking_date), request.number_of_guests)

        values = self._booking_values(request, price)
        values.update(
            status=BookingStatus.CONFIRMED,
            payment_status=PaymentStatus.PAID,
            channel=BookingChannel.ADMIN,
        )
        booking = await self.bookings.create_booking(values)

        metrics_collector.record_booking_created(BookingChannel.ADMIN.value, values["payment_status"].value)
        return booking

    async def refund_booking(self, booking_id: str, amount: Optional[Decimal] = None) -> RefundRecord:
        """
        Refund a paid booking in full or in part.

        Refunds add up against the charged total: once they cover it the
        booking is marked ``refunded``, until then it stays ``paid``. Omitting
        ``amount`` refunds whatever is left.

        Raises:
            NotFoundError: Unknown booking
            ConflictError: No captured payment, or already fully refunded
            ValidationError: Amount not positive or above what is left to refund
        """
        booking = await self.bookings.get_booking_or_raise(booking_id)
        if booking.payment_status != PaymentStatus.PAID or not booking.provider_payment_id:
            raise ConflictError(detail=f"Booking {booking_id} has no captured payment to refund")

        total = to_minor_units(booking.total_amount)
        remaining = total - booking.refunded_minor_units
        cents = remaining if amount is None else to_minor_units(amount)
        if cents <= 0:
            raise ValidationError.for_field("amount", "Refund amount must be greater than zero")

        # Claimed before the provider call so two refunds cannot both fit
        if not await self.bookings.claim_refund(booking.id, cents, total):
            await self.db.rollback()
            raise ValidationError.for_field(
                "amount", f"Refund cannot exceed the {from_minor_units(remaining):.2f} not yet refunded"
            )
        await self.db.commit()

        try:
            refund = await self.payments.refund(booking.provider_payment_id, cents)
        except Exception:
            await self.bookings.revert_refund(booking.id, cents)
            await self.db.commit()
            raise

        await self.db.refresh(booking)
        if booking.refunded_minor_units >= total:
            await self.bookings.update_booking_payment_status(booking.id, PaymentStatus.REFUNDED)

        logger.info(
            "Booking refunded",
            extra={"booking_id": booking.id, "amount": cents, "refunded_total": booking.refunded_minor_units}
        )
        return refund

    async def handle_webhook(self, event: dict[str, Any]) -> dict[str, Any]:
        """
        Apply a verified provider event to the matching booking.

        Unknown event types and unmatched payment ids are acknowledged so the
        provider stops retrying.
        """
        event_type = str(event.get("type", ""))
        data = event.get("data")
        if not isinstance(data, dict):
            data = {}
        payment_id = data.get("payment_id") or data.get("charge") or data.get("id")
        if not isinstance(payment_id, str):
            payment_id = None

        target = WEBHOOK_TRANSITIONS.get(event_type)
        booking = await self.bookings.get_booking_by_payment_id(payment_id) if target and payment_id else None

        metrics_collector.record_webhook_event(event_type or "unknown", booking is not None)

        if target is None:
            logger.info("Ignoring webhook event type", extra={"event_type": event_type})
            return {"received": True, "bookingId": None}

        if booking is None:
            logger.warning(
                "Webhook event did not match any booking",
                extra={"event_type": event_type, "payment_id": payment_id}
            )
            return {"received": True, "bookingId": None}

        status = None
        if target == PaymentStatus.PAID and booking.status == BookingStatus.PENDING:
            status = BookingStatus.CONFIRMED

        await self.bookings.update_booking_payment_status(booking.id, target, status=status)
        logger.info(
            "Webhook applied",
            extra={"event_type": event_type, "booking_id": booking.id, "payment_status": target}
        )
        return {"received": True, "bookingId": booking.id}

    async def availability_summary(self, day: date) -> dict[str, Any]:
        rules = await self.get_rules()
        booked = await self.capacity.booked(day)
        remaining = max(rules.daily_guest_capacity - booked, 0)
        return {
            "date": day,
            "booked_guests": booked,
            "capacity": rules.daily_guest_capacity,
            "remaining": remaining,
            "available": remaining > 0,
        }
