"""Tour service for business logic operations."""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import ConflictError, NotFoundError
from ..models.tour import Tour
from ..schemas.tour import CreateTourRequest, UpdateTourRequest

logger = logging.getLogger(__name__)


class TourService:
    """Service for tour-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_tours(self) -> list[Tour]:
        """Active tours for the storefront, ordered by name."""
        stmt = select(Tour).where(Tour.is_active.is_(True)).order_by(Tour.name)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_all_tours(self) -> list[Tour]:
        """Every tour, including deactivated ones, for the admin dashboard."""
        stmt = select(Tour).order_by(Tour.name)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_tour(self, tour_id: str) -> Optional[Tour]:
        """
        Get tour by ID.

        Args:
            tour_id: Tour ID to search for

        Returns:
            Tour if found, None otherwise
        """
        stmt = select(Tour).where(Tour.id == tour_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_tour_or_raise(self, tour_id: str) -> Tour:
        tour = await self.get_tour(tour_id)
        if not tour:
            logger.warning("Tour not found", extra={"tour_id": tour_id})
            raise NotFoundError(resource_type="tour", resource_id=tour_id)
        return tour

    async def get_active_tour_or_raise(self, tour_id: str) -> Tour:
        """
        Get a tour that can currently be booked.

        Raises:
            NotFoundError: If the tour does not exist or has been deactivated
        """
        tour = await self.get_tour(tour_id)
        if not tour or not tour.is_active:
            logger.warning(
                "Bookable tour not found",
                extra={"tour_id": tour_id, "exists": tour is not None}
            )
            raise NotFoundError(resource_type="tour", resource_id=tour_id)
        return tour

    async def create_tour(self, request: CreateTourRequest) -> Tour:
        """
        Create a new tour.

        Raises:
            ConflictError: If a database constraint rejects the row
        """
        tour = Tour(**request.model_dump())

        try:
            self.db.add(tour)
            await self.db.commit()
            await self.db.refresh(tour)
        except IntegrityError as e:
            await self.db.rollback()
            logger.error(
                "Tour creation failed due to integrity constraint",
                extra={"tour_name": request.name, "error": str(e)}
            )
            raise ConflictError(detail="Tour creation failed due to constraint violation")

        logger.info(
            "Tour created successfully",
            extra={"tour_id": tour.id, "tour_name": tour.name, "price": str(tour.price)}
        )
        return tour

    async def update_tour(self, tour_id: str, request: UpdateTourRequest) -> Tour:
        """Apply a partial update; fields absent from the request are untouched."""
        tour = await self.get_tour_or_raise(tour_id)

        changes = request.model_dump(exclude_unset=True)
        for field, value in changes.items():
            setattr(tour, field, value)

        await self.db.commit()
        await self.db.refresh(tour)

        logger.info(
            "Tour updated",
            extra={"tour_id": tour.id, "fields": sorted(changes)}
        )
        return tour

    async def delete_tour(self, tour_id: str) -> Tour:
        """
        Soft-delete a tour.

        The row stays so existing bookings keep their reference; it simply
        drops out of the storefront listing.
        """
        tour = await self.get_tour_or_raise(tour_id)
        tour.is_active = False

        await self.db.commit()
        await self.db.refresh(tour)

        logger.info("Tour deactivated", extra={"tour_id": tour.id, "tour_name": tour.name})
        return tour
