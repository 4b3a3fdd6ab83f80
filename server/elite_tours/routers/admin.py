"""Admin dashboard router: bookings, tours, custom tour requests and payment settings."""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse, RedirectResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import ADMIN_REQUIRED, DB_DEPENDENCY
from ..core.exceptions import ValidationError
from ..core.observability import metrics_collector
from ..models.user import User
from ..schemas.booking import AdminCreateBookingRequest, Booking, UpdateBookingRequest
from ..schemas.custom_tour import CustomTourRequest, UpdateCustomTourRequest
from ..schemas.payment import (
    ConnectionTest,
    CredentialsCheck,
    Refund,
    RefundRequest,
    ValidateCredentialsRequest,
)
from ..schemas.settings import BusinessSettings, UpdateSettingsRequest
from ..schemas.tour import CreateTourRequest, Tour, UpdateTourRequest
from ..services.booking_service import BookingService
from ..services.checkout_service import CheckoutService
from ..services.custom_tour_service import CustomTourService
from ..services.payment_gateway import PaymentGateway
from ..services.payment_service import PaymentService
from ..services.settings_service import SettingsService
from ..services.tour_service import TourService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])

# Provider dashboard redirect lives outside the /api/admin prefix
dashboard_router = APIRouter(prefix="/api/clover", tags=["admin"])


# Bookings

@router.get("/bookings", response_model=list[Booking])
async def list_bookings(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    admin: User = ADMIN_REQUIRED,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """All bookings newest first, or those dated within ``[start, end]`` when both are given."""
    service = BookingService(db)
    if start is not None and end is not None:
        if end < start:
            raise ValidationError.for_field("end", "end must not be before start")
        bookings = await service.get_bookings_by_date_range(start, end)
    else:
        bookings = await service.get_bookings()
    return JSONResponse(content=[Booking.model_validate(booking).to_json() for booking in bookings])


@router.post("/bookings", response_model=Booking, status_code=201)
async def create_manual_booking(
    request: AdminCreateBookingRequest,
    admin: User = ADMIN_REQUIRED,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Phone or in-person booking: confirmed and paid, no card charged."""
    booking = await CheckoutService(db).admin_create_booking(request)
    logger.info("Manual booking entered", extra={"booking_id": booking.id, "admin_id": admin.id})
    return JSONResponse(status_code=201, content=Booking.model_validate(booking).to_json())


@router.get("/bookings/{booking_id}", response_model=Booking)
async def get_booking(
    booking_id: str,
    admin: User = ADMIN_REQUIRED,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    booking = await BookingService(db).get_booking_or_raise(booking_id)
    return JSONResponse(content=Booking.model_validate(booking).to_json())


@router.patch("/bookings/{booking_id}", response_model=Booking)
async def update_booking(
    booking_id: str,
    request: UpdateBookingRequest,
    admin: User = ADMIN_REQUIRED,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    booking = await BookingService(db).update_booking(booking_id, request)
    return JSONResponse(content=Booking.model_validate(booking).to_json())


@router.delete("/bookings/{booking_id}", status_code=204)
async def delete_booking(
    booking_id: str,
    admin: User = ADMIN_REQUIRED,
    db: AsyncSession = DB_DEPENDENCY,
) -> Response:
    await BookingService(db).delete_booking(booking_id)
    logger.info("Booking removed by admin", extra={"booking_id": booking_id, "admin_id": admin.id})
    return Response(status_code=204)


@router.post("/bookings/{booking_id}/refund", response_model=Refund)
async def refund_booking(
    booking_id: str,
    request: Optional[RefundRequest] = None,
    admin: User = ADMIN_REQUIRED,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Refund the full total, or ``amount`` dollars when given."""
    amount = request.amount if request else None
    refund = await CheckoutService(db).refund_booking(booking_id, amount)
    response_data = Refund(
        id=refund.id,
        payment_id=refund.payment_id,
        amount=refund.amount,
        status=refund.status,
    )
    return JSONResponse(content=response_data.to_json())


# Tours

@router.get("/tours", response_model=list[Tour])
async def list_all_tours(admin: User = ADMIN_REQUIRED, db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    """Every tour, including deactivated ones."""
    tours = await TourService(db).get_all_tours()
    return JSONResponse(content=[Tour.model_validate(tour).to_json() for tour in tours])


@router.post("/tours", response_model=Tour, status_code=201)
async def create_tour(
    request: CreateTourRequest,
    admin: User = ADMIN_REQUIRED,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    tour = await TourService(db).create_tour(request)
    return JSONResponse(status_code=201, content=Tour.model_validate(tour).to_json())


@router.patch("/tours/{tour_id}", response_model=Tour)
async def update_tour(
    tour_id: str,
    request: UpdateTourRequest,
    admin: User = ADMIN_REQUIRED,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    tour = await TourService(db).update_tour(tour_id, request)
    return JSONResponse(content=Tour.model_validate(tour).to_json())


@router.delete("/tours/{tour_id}", response_model=Tour)
async def deactivate_tour(
    tour_id: str,
    admin: User = ADMIN_REQUIRED,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Soft delete: the tour leaves the storefront, its bookings keep pointing at it."""
    tour = await TourService(db).delete_tour(tour_id)
    return JSONResponse(content=Tour.model_validate(tour).to_json())


# Custom tour requests

@router.get("/custom-tours", response_model=list[CustomTourRequest])
async def list_custom_tours(admin: User = ADMIN_REQUIRED, db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    custom_tours = await CustomTourService(db).get_custom_tours()
    return JSONResponse(content=[CustomTourRequest.model_validate(item).to_json() for item in custom_tours])


@router.patch("/custom-tours/{custom_tour_id}", response_model=CustomTourRequest)
async def update_custom_tour(
    custom_tour_id: str,
    request: UpdateCustomTourRequest,
    admin: User = ADMIN_REQUIRED,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    custom_tour = await CustomTourService(db).update_custom_tour(custom_tour_id, request)
    return JSONResponse(content=CustomTourRequest.model_validate(custom_tour).to_json())


# Settings

@router.get("/settings", response_model=BusinessSettings)
async def get_settings(admin: User = ADMIN_REQUIRED, db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    """Stored settings with the API token masked, or the defaults if never saved."""
    stored = await SettingsService(db).get_settings_or_default()
    return JSONResponse(content=BusinessSettings.model_validate(stored).to_json())


@router.post("/settings", response_model=BusinessSettings)
async def save_settings(
    request: UpdateSettingsRequest,
    admin: User = ADMIN_REQUIRED,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    stored = await SettingsService(db).upsert_settings(request)
    metrics_collector.record_settings_update()
    logger.info("Settings saved by admin", extra={"admin_id": admin.id})
    return JSONResponse(content=BusinessSettings.model_validate(stored).to_json())


@router.post("/settings/validate-credentials", response_model=CredentialsCheck)
async def validate_credentials(
    request: ValidateCredentialsRequest,
    admin: User = ADMIN_REQUIRED,
) -> JSONResponse:
    """Shape check of credentials before saving; no provider call."""
    check = PaymentGateway.validate_credentials(request.app_id, request.api_token)
    return JSONResponse(content=CredentialsCheck(**check).to_json())


@router.post("/settings/test-connection", response_model=ConnectionTest)
async def test_connection(admin: User = ADMIN_REQUIRED, db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    """Round-trip to the provider with the stored credentials."""
    result = await PaymentService(db).test_connection()
    return JSONResponse(content=ConnectionTest(**result).to_json())


@dashboard_router.get("/dashboard", status_code=302, response_class=RedirectResponse)
async def payment_dashboard(admin: User = ADMIN_REQUIRED, db: AsyncSession = DB_DEPENDENCY) -> RedirectResponse:
    url = await PaymentService(db).get_dashboard_url()
    return RedirectResponse(url=url, status_code=302)
