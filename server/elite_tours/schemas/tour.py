"""Tour-related Pydantic schemas."""

from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from ..models.tour import DEFAULT_MAX_GROUP_SIZE, TourType
from .common import ApiModel, Money, not_null


class CreateTourRequest(ApiModel):
    """Request schema for creating a tour."""

    name: str = Field(..., min_length=1, max_length=255, description="Tour name")
    description: Optional[str] = Field(None, max_length=5000, description="Tour description")
    type: TourType = Field(..., description="day, night or custom")
    price: Money = Field(..., description="Price per guest")
    duration: int = Field(..., gt=0, le=72, description="Duration in hours")
    max_group_size: int = Field(DEFAULT_MAX_GROUP_SIZE, ge=1, le=50, description="Largest party for one booking")
    image_url: Optional[str] = Field(None, max_length=1024, description="Image reference")
    is_active: bool = Field(True, description="Listed in the storefront")


class UpdateTourRequest(ApiModel):
    """Partial update of a tour; omitted fields are left unchanged."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    type: Optional[TourType] = None
    price: Optional[Money] = None
    duration: Optional[int] = Field(None, gt=0, le=72)
    max_group_size: Optional[int] = Field(None, ge=1, le=50)
    image_url: Optional[str] = Field(None, max_length=1024)
    is_active: Optional[bool] = None

    @field_validator("name", "type", "price", "duration", "is_active")
    @classmethod
    def reject_null(cls, v):
        return not_null(v)


class Tour(ApiModel):
    """Tour response schema."""

    id: str = Field(..., description="Unique tour ID")
    name: str
    description: Optional[str] = None
    type: TourType
    price: Money
    duration: int
    max_group_size: Optional[int] = None
    image_url: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
