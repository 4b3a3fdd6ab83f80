"""Models module exporting all database models."""

from .booking import Booking, BookingChannel, BookingStatus, PaymentStatus
from .capacity import DailyCapacity
from .custom_tour import CustomTourRequest
from .idempotency import IdempotencyRecord
from .settings import SETTINGS_ROW_ID, BusinessSettings
from .tour import Tour, TourType
from .user import User

__all__ = [
    # Identity
    "User",

    # Catalog
    "Tour",
    "TourType",

    # Booking entities
    "Booking",
    "BookingChannel",
    "BookingStatus",
    "PaymentStatus",
    "DailyCapacity",

    # Quote requests
    "CustomTourRequest",

    # Configuration
    "BusinessSettings",
    "SETTINGS_ROW_ID",

    # Idempotency entity
    "IdempotencyRecord",
]
