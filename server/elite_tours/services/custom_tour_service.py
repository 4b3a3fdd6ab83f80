"""Custom tour request service."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import NotFoundError
from ..models.custom_tour import CustomTourRequest
from ..schemas.custom_tour import CreateCustomTourRequest, UpdateCustomTourRequest
from .pricing import estimate_custom_tour

logger = logging.getLogger(__name__)


class CustomTourService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_custom_tours(self) -> list[CustomTourRequest]:
        stmt = select(CustomTourRequest).order_by(CustomTourRequest.created_at.desc())
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def create_custom_tour(self, request: CreateCustomTourRequest) -> CustomTourRequest:
        """Store a quote request with a server-side estimate; any client estimate is dropped."""
        values = request.model_dump(exclude={"estimated_price"})
        custom_tour = CustomTourRequest(
            **values,
            estimated_price=estimate_custom_tour(request.tour_type, request.activities),
        )

        self.db.add(custom_tour)
        await self.db.commit()
        await self.db.refresh(custom_tour)

        logger.info(
            "Custom tour requested",
            extra={
                "custom_tour_id": custom_tour.id,
                "tour_type": custom_tour.tour_type,
                "activities": len(custom_tour.activities),
                "group_size": custom_tour.group_size,
                "estimated_price": str(custom_tour.estimated_price),
            }
        )
        return custom_tour

    async def update_custom_tour(self, custom_tour_id: str, request: UpdateCustomTourRequest) -> CustomTourRequest:
        stmt = select(CustomTourRequest).where(CustomTourRequest.id == custom_tour_id)
        result = await self.db.execute(stmt)
        custom_tour = result.scalar_one_or_none()
        if not custom_tour:
            raise NotFoundError(resource_type="custom tour request", resource_id=custom_tour_id)

        changes = request.model_dump(exclude_unset=True)
        for field, value in changes.items():
            setattr(custom_tour, field, value)

        await self.db.commit()
        await self.db.refresh(custom_tour)

        logger.info(
            "Custom tour request updated",
            extra={"custom_tour_id": custom_tour.id, "fields": sorted(changes)}
        )
        return custom_tour
