"""FastAPI application initialization and configuration."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings
from .core.database import close_db, engine, init_db
from .core.exceptions import register_exception_handlers
from .core.middleware import setup_middleware
from .core.observability import (
    instrument_fastapi,
    instrument_sqlalchemy,
    setup_metrics,
    setup_structured_logging,
    setup_tracing,
)
from .routers import (
    admin_router,
    auth_router,
    bookings_router,
    custom_tours_router,
    dashboard_router,
    health_router,
    payments_router,
    tours_router,
)

setup_structured_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan context manager.

    Handles startup and shutdown events for the FastAPI application.
    """
    logger.info(
        "Starting Elite Tours API",
        extra={
            "environment": settings.environment,
            "debug": settings.debug,
            "payment_gateway_mode": settings.payment_gateway_mode,
        }
    )

    setup_tracing()
    setup_metrics()
    instrument_sqlalchemy(engine)

    # Production schema is owned by Alembic; create_all is a development convenience
    if not settings.is_production:
        await init_db()
        logger.info("Database tables ensured")

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down Elite Tours API")
    await close_db()
    logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    app = FastAPI(
        title="Elite Tours API",
        description="Tour storefront, card checkout and admin dashboard for a guided tour business",
        version="1.0.0",
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    setup_middleware(app, enable_logging=True)

    instrument_fastapi(app)

    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(tours_router)
    app.include_router(bookings_router)
    app.include_router(custom_tours_router)
    app.include_router(payments_router)
    app.include_router(admin_router)
    app.include_router(dashboard_router)

    logger.info("FastAPI application created and configured")

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "elite_tours.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        access_log=True,
    )
