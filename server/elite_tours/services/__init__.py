"""Service layer package."""

from .booking_service import BookingService
from .capacity_service import CapacityService
from .checkout_service import CheckoutService
from .custom_tour_service import CustomTourService
from .idempotency_service import IdempotencyService
from .payment_service import PaymentService
from .settings_service import SettingsService
from .tour_service import TourService
from .user_service import UserService

__all__ = [
    "BookingService",
    "CapacityService",
    "CheckoutService",
    "CustomTourService",
    "IdempotencyService",
    "PaymentService",
    "SettingsService",
    "TourService",
    "UserService",
]
