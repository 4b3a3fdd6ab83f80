"""Custom tour request schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import Field, field_validator

from ..models.booking import BookingStatus
from .common import EMAIL_PATTERN, ApiModel, Money, not_null


class CreateCustomTourRequest(ApiModel):
    """Public quote request; the estimated price is derived server-side."""

    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_email: str = Field(..., max_length=320, pattern=EMAIL_PATTERN)
    customer_phone: Optional[str] = Field(None, max_length=64)
    tour_type: Literal["day", "night", "custom"]
    activities: list[str] = Field(..., min_length=1, max_length=20)
    group_size: int = Field(..., ge=1, le=20)
    special_requests: Optional[str] = Field(None, max_length=2000)
    estimated_price: Optional[Decimal] = Field(None, description="Ignored; recomputed")

    @field_validator("activities")
    @classmethod
    def dedupe_activities(cls, v: list[str]) -> list[str]:
        """Keep the first occurrence of each activity, preserving order."""
        seen: list[str] = []
        for activity in v:
            activity = activity.strip()
            if not activity:
                raise ValueError("Activities must not be blank")
            if activity not in seen:
                seen.append(activity)
        return seen


class UpdateCustomTourRequest(ApiModel):
    status: Optional[BookingStatus] = None
    estimated_price: Optional[Money] = None
    special_requests: Optional[str] = Field(None, max_length=2000)

    @field_validator("status")
    @classmethod
    def reject_null(cls, v):
        return not_null(v)


class CustomTourRequest(ApiModel):
    id: str
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    tour_type: str
    activities: list[str]
    group_size: int
    special_requests: Optional[str] = None
    estimated_price: Optional[Money] = None
    status: BookingStatus
    created_at: datetime
    updated_at: datetime
