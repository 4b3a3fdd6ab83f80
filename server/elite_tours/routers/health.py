"""Operational router: liveness, readiness and Prometheus metrics."""

import logging

from fastapi import APIRouter, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import ping_db, utcnow
from ..core.dependencies import DB_DEPENDENCY
from ..core.exceptions import STORAGE_EXCEPTIONS
from ..core.observability import get_prometheus_metrics
from ..schemas.health import HealthResponse, HealthStatus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> JSONResponse:
    """Liveness: the process is up. Touches no dependencies."""
    response_data = HealthResponse(
        status=HealthStatus.HEALTHY,
        timestamp=utcnow(),
        checks={"environment": settings.environment},
    )
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.get("/ready", response_model=HealthResponse)
async def readiness_check(db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    """Readiness: the database answers ``SELECT 1``."""
    try:
        await ping_db(db)
    except STORAGE_EXCEPTIONS as e:
        logger.error("Readiness check failed", extra={"error": str(e)})
        response_data = HealthResponse(
            status=HealthStatus.DEGRADED,
            timestamp=utcnow(),
            checks={"database": "unavailable"},
        )
        return JSONResponse(status_code=503, content=response_data.model_dump(mode="json"))

    response_data = HealthResponse(
        status=HealthStatus.READY,
        timestamp=utcnow(),
        checks={"database": "ok"},
    )
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.get(
    "/metrics",
    summary="Prometheus Metrics",
    description="Endpoint for Prometheus to scrape metrics",
    response_class=Response,
    tags=["Observability"]
)
async def metrics():
    return Response(
        content=get_prometheus_metrics(),
        media_type="text/plain; version=0.0.4; charset=utf-8"
    )
