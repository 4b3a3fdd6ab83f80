"""Business settings schemas."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import Field, field_serializer, field_validator

from .common import EMAIL_PATTERN, ApiModel, Percentage, not_null


class UpdateSettingsRequest(ApiModel):
    """Settings upsert payload; omitted fields keep their stored value."""

    clover_app_id: Optional[str] = Field(None, max_length=255)
    clover_api_token: Optional[str] = Field(None, max_length=512)
    clover_environment: Optional[Literal["sandbox", "production"]] = None
    business_name: Optional[str] = Field(None, min_length=1, max_length=255)
    contact_email: Optional[str] = Field(None, max_length=320, pattern=EMAIL_PATTERN)
    phone_number: Optional[str] = Field(None, max_length=64)
    tax_rate: Optional[Percentage] = None
    default_tour_duration: Optional[int] = Field(None, ge=1, le=24)
    max_group_size: Optional[int] = Field(None, ge=1, le=50)
    advance_booking_days: Optional[int] = Field(None, ge=0, le=365)
    daily_guest_capacity: Optional[int] = Field(None, ge=1, le=1000)

    @field_validator(
        "clover_environment",
        "business_name",
        "tax_rate",
        "default_tour_duration",
        "max_group_size",
        "advance_booking_days",
        "daily_guest_capacity",
    )
    @classmethod
    def reject_null(cls, v):
        return not_null(v)


class BusinessSettings(ApiModel):
    """Settings as shown to admins; the API token is masked."""

    clover_app_id: Optional[str] = None
    clover_api_token: Optional[str] = None
    clover_environment: str
    business_name: str
    contact_email: Optional[str] = None
    phone_number: Optional[str] = None
    tax_rate: Percentage
    default_tour_duration: int
    max_group_size: int
    advance_booking_days: int
    daily_guest_capacity: int
    updated_at: Optional[datetime] = None

    @field_serializer("clover_api_token")
    def mask_token(self, token: Optional[str]) -> Optional[str]:
        if not token:
            return None
        return "*" * 8 + token[-4:]
