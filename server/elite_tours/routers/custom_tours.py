"""Public custom tour request router."""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import DB_DEPENDENCY
from ..schemas.custom_tour import CreateCustomTourRequest, CustomTourRequest
from ..services.custom_tour_service import CustomTourService

router = APIRouter(prefix="/api/custom-tours", tags=["custom-tours"])


@router.post("", response_model=CustomTourRequest, status_code=201)
async def request_custom_tour(
    request: CreateCustomTourRequest,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Submit a bespoke itinerary; the estimate in the response is non-binding."""
    custom_tour = await CustomTourService(db).create_custom_tour(request)
    return JSONResponse(status_code=201, content=CustomTourRequest.model_validate(custom_tour).to_json())
