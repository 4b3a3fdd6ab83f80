"""Public tour catalog router."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import DB_DEPENDENCY
from ..core.exceptions import NotFoundError
from ..schemas.tour import Tour
from ..services.tour_service import TourService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tours", tags=["tours"])


@router.get("", response_model=list[Tour])
async def list_tours(db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    """Active tours, ordered by name."""
    tours = await TourService(db).get_tours()
    return JSONResponse(content=[Tour.model_validate(tour).to_json() for tour in tours])


@router.get("/{tour_id}", response_model=Tour)
async def get_tour(tour_id: str, db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    """
    Fetch one tour by id.

    Deactivated tours are still returned so existing booking pages can show them.
    """
    tour = await TourService(db).get_tour(tour_id)
    if tour is None:
        raise NotFoundError(resource_type="tour", resource_id=tour_id)
    return JSONResponse(content=Tour.model_validate(tour).to_json())
