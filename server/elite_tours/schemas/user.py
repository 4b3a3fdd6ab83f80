"""User schemas."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from .common import EMAIL_PATTERN, ApiModel


class UpsertUserRequest(ApiModel):
    id: str = Field(..., min_length=1, max_length=255)
    email: Optional[str] = Field(None, max_length=320, pattern=EMAIL_PATTERN)
    first_name: Optional[str] = Field(None, max_length=255)
    last_name: Optional[str] = Field(None, max_length=255)
    profile_image_url: Optional[str] = Field(None, max_length=1024)


class User(ApiModel):
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    is_admin: bool
    created_at: datetime
    updated_at: datetime
