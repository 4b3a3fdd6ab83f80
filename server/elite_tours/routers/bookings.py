"""Public booking router: reservations, quotes, availability and checkout."""

import logging
from datetime import date
from typing import Any, Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.dependencies import DB_DEPENDENCY, IDEMPOTENCY_KEY
from ..core.exceptions import STORAGE_EXCEPTIONS, InternalServerError, ProblemDetailsException
from ..schemas.booking import (
    AvailabilitySummary,
    Booking,
    BookingSlot,
    CheckoutRequest,
    CreateBookingRequest,
    PayBookingRequest,
    Quote,
    QuoteRequest,
)
from ..services.booking_service import BookingService
from ..services.checkout_service import CheckoutService
from ..services.idempotency_service import IdempotencyService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["bookings"])

CHECKOUT_METHOD = "checkout"


def _checkout_fingerprint(request: CheckoutRequest) -> dict[str, Any]:
    """Request body for idempotency hashing; card secrets replaced by the last four digits."""
    body = request.model_dump(mode="json", exclude={"card"})
    body["card_last4"] = request.card.last4
    return body


@router.post("/bookings", response_model=Booking, status_code=201)
async def create_booking(
    request: CreateBookingRequest,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """
    Reserve a tour without paying yet.

    The booking starts ``pending``/``pending``; the total is computed here.
    """
    try:
        booking = await CheckoutService(db).create_booking(request)
    except ProblemDetailsException:
        raise
    except STORAGE_EXCEPTIONS:
        raise
    except Exception as e:
        error = InternalServerError()
        logger.error(
            "Unexpected error creating booking",
            extra={"tour_id": request.tour_id, "error_id": error.error_id, "error": str(e)},
            exc_info=True
        )
        raise error from e

    return JSONResponse(status_code=201, content=Booking.model_validate(booking).to_json())


@router.post("/bookings/quote", response_model=Quote)
async def quote_booking(request: QuoteRequest, db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    """Server-side price breakdown for a prospective booking."""
    tour, price = await CheckoutService(db).quote_booking(request.tour_id, request.number_of_guests)

    response_data = Quote(
        tour_id=tour.id,
        number_of_guests=price.guests,
        unit_price=price.unit_price,
        subtotal=price.subtotal,
        tax_rate=price.tax_rate,
        tax=price.tax,
        total=price.total,
        amount_minor_units=price.total_minor_units,
        currency=settings.currency,
    )
    return JSONResponse(content=response_data.to_json())


@router.post("/bookings/{booking_id}/pay", response_model=Booking)
async def pay_booking(
    booking_id: str,
    request: PayBookingRequest,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Pay a pending booking's stored total."""
    try:
        booking = await CheckoutService(db).pay_booking(booking_id, request)
    except ProblemDetailsException:
        raise
    except STORAGE_EXCEPTIONS:
        raise
    except Exception as e:
        error = InternalServerError()
        logger.error(
            "Unexpected error paying booking",
            extra={"booking_id": booking_id, "error_id": error.error_id, "error": str(e)},
            exc_info=True
        )
        raise error from e

    return JSONResponse(content=Booking.model_validate(booking).to_json())


@router.get("/bookings/availability/{day}", response_model=list[BookingSlot])
async def availability(day: date, db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    """Bookings already on a date (YYYY-MM-DD), without customer contact details."""
    bookings = await BookingService(db).get_bookings_for_day(day)
    return JSONResponse(content=[BookingSlot.model_validate(booking).to_json() for booking in bookings])


@router.get("/bookings/availability/{day}/summary", response_model=AvailabilitySummary)
async def availability_summary(day: date, db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    summary = await CheckoutService(db).availability_summary(day)
    return JSONResponse(content=AvailabilitySummary(**summary).to_json())


@router.post("/checkout", response_model=Booking, status_code=201)
async def checkout(
    request: CheckoutRequest,
    db: AsyncSession = DB_DEPENDENCY,
    idempotency_key: Optional[str] = IDEMPOTENCY_KEY,
) -> JSONResponse:
    """
    Book and pay in one step.

    With an ``Idempotency-Key`` header a retried request gets the stored
    answer instead of a second charge. The key is claimed before the charge,
    so a duplicate arriving while the first is still running gets a 409.
    Provider failures (5xx) release the claim so the client may retry them
    with the same key.
    """
    idempotency_service = IdempotencyService(db)
    fingerprint = _checkout_fingerprint(request)

    if idempotency_key:
        cached_response = await idempotency_service.claim(
            idempotency_key=idempotency_key,
            method=CHECKOUT_METHOD,
            request_body=fingerprint,
        )
        if cached_response:
            status_code, response_body = cached_response
            return JSONResponse(status_code=status_code, content=response_body)

    provider_key = f"checkout-{idempotency_key}" if idempotency_key else None

    try:
        booking = await CheckoutService(db).checkout(request, idempotency_key=provider_key)
    except ProblemDetailsException as e:
        if idempotency_key and e.status_code < 500:
            await idempotency_service.store_response(
                idempotency_key=idempotency_key,
                method=CHECKOUT_METHOD,
                request_body=fingerprint,
                status_code=e.status_code,
                response_body=e.problem_details,
                ttl_hours=settings.idempotency_ttl_hours,
            )
        elif idempotency_key:
            await idempotency_service.release(idempotency_key, CHECKOUT_METHOD)
        raise
    except STORAGE_EXCEPTIONS:
        raise
    except Exception as e:
        error = InternalServerError()
        if idempotency_key:
            await idempotency_service.release(idempotency_key, CHECKOUT_METHOD)
        logger.error(
            "Unexpected error in checkout",
            extra={"tour_id": request.tour_id, "error_id": error.error_id, "error": str(e)},
            exc_info=True
        )
        raise error from e

    response_body = Booking.model_validate(booking).to_json()
    if idempotency_key:
        await idempotency_service.store_response(
            idempotency_key=idempotency_key,
            method=CHECKOUT_METHOD,
            request_body=fingerprint,
            status_code=201,
            response_body=response_body,
            ttl_hours=settings.idempotency_ttl_hours,
        )

    return JSONResponse(status_code=201, content=response_body)
