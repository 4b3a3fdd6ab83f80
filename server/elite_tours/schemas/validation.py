"""Payload validation by entity kind."""

from typing import Any, Mapping

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..core.exceptions import ValidationError
from .booking import AdminCreateBookingRequest, CreateBookingRequest, UpdateBookingRequest
from .custom_tour import CreateCustomTourRequest, UpdateCustomTourRequest
from .settings import UpdateSettingsRequest
from .tour import CreateTourRequest, UpdateTourRequest
from .user import UpsertUserRequest

SCHEMAS: dict[str, type[BaseModel]] = {
    "user": UpsertUserRequest,
    "tour": CreateTourRequest,
    "tour_update": UpdateTourRequest,
    "booking": CreateBookingRequest,
    "admin_booking": AdminCreateBookingRequest,
    "booking_update": UpdateBookingRequest,
    "custom_tour": CreateCustomTourRequest,
    "custom_tour_update": UpdateCustomTourRequest,
    "settings": UpdateSettingsRequest,
}


def violations_from(exc: PydanticValidationError) -> list[dict[str, str]]:
    """Flatten a pydantic error into ``{path, message}`` pairs, one per failing field."""
    return [
        {
            "path": ".".join(str(part) for part in error["loc"]) or "body",
            "message": error["msg"],
        }
        for error in exc.errors()
    ]


def validate(kind: str, payload: Mapping[str, Any]) -> BaseModel:
    """
    Validate a create/update payload for one entity kind.

    Args:
        kind: One of the keys of ``SCHEMAS``
        payload: Raw decoded JSON body (camelCase or snake_case keys)

    Returns:
        The validated schema instance

    Raises:
        KeyError: If ``kind`` is unknown
        ValidationError: Listing every field violation
    """
    schema = SCHEMAS[kind]
    try:
        return schema.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError(violations=violations_from(exc)) from exc
