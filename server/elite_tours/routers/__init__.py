"""FastAPI routers package."""

from .admin import dashboard_router
from .admin import router as admin_router
from .auth import router as auth_router
from .bookings import router as bookings_router
from .custom_tours import router as custom_tours_router
from .health import router as health_router
from .payments import router as payments_router
from .tours import router as tours_router

__all__ = [
    "admin_router",
    "auth_router",
    "bookings_router",
    "custom_tours_router",
    "dashboard_router",
    "health_router",
    "payments_router",
    "tours_router",
]
