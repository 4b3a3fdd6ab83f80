"""Unit tests for payload validation by entity kind."""

from decimal import Decimal

import pytest

from elite_tours.core.exceptions import ValidationError
from elite_tours.schemas import validate
from elite_tours.schemas.booking import CreateBookingRequest
from elite_tours.schemas.settings import BusinessSettings, UpdateSettingsRequest


def test_booking_accepts_camel_case():
    booking = validate(
        "booking",
        {
            "tourId": "tour-1",
            "customerName": "Leilani Akana",
            "customerEmail": "leilani@example.com",
            "bookingDate": "2030-03-01T09:00:00Z",
            "numberOfGuests": 2,
        },
    )

    assert isinstance(booking, CreateBookingRequest)
    assert booking.number_of_guests == 2


def test_booking_lists_every_violation():
    with pytest.raises(ValidationError) as exc_info:
        validate(
            "booking",
            {
                "tourId": "tour-1",
                "customerName": "",
                "customerEmail": "not-an-email",
                "bookingDate": "2030-03-01T09:00:00Z",
                "numberOfGuests": 21,
            },
        )

    paths = {violation["path"] for violation in exc_info.value.violations}
    assert {"customerName", "customerEmail", "numberOfGuests"} <= paths
    assert exc_info.value.status_code == 400
    assert exc_info.value.problem_details["code"] == "VALIDATION_ERROR"


def test_booking_ignores_server_assigned_fields():
    """Server-assigned fields are not part of the public payload."""
    booking = validate(
        "booking",
        {
            "tourId": "tour-1",
            "customerName": "Leilani Akana",
            "customerEmail": "leilani@example.com",
            "bookingDate": "2030-03-01T09:00:00Z",
            "numberOfGuests": 2,
            "status": "confirmed",
            "paymentStatus": "paid",
        },
    )

    assert not hasattr(booking, "status")
    assert not hasattr(booking, "payment_status")


@pytest.mark.parametrize(
    "payload,path",
    [
        ({"taxRate": "100.01"}, "taxRate"),
        ({"advanceBookingDays": 366}, "advanceBookingDays"),
        ({"maxGroupSize": 0}, "maxGroupSize"),
        ({"defaultTourDuration": 25}, "defaultTourDuration"),
        ({"cloverEnvironment": "staging"}, "cloverEnvironment"),
    ],
)
def test_settings_ranges(payload, path):
    with pytest.raises(ValidationError) as exc_info:
        validate("settings", payload)

    assert exc_info.value.violations[0]["path"] == path


def test_tour_rejects_negative_price_and_zero_duration():
    with pytest.raises(ValidationError) as exc_info:
        validate("tour", {"name": "Sunset Sail", "type": "night", "price": "-1.00", "duration": 0})

    paths = {violation["path"] for violation in exc_info.value.violations}
    assert paths == {"price", "duration"}


def test_custom_tour_activities_are_unique_and_ordered():
    custom_tour = validate(
        "custom_tour",
        {
            "customerName": "Kai Mahoe",
            "customerEmail": "kai@example.com",
            "tourType": "day",
            "activities": ["hiking", "snorkeling", "hiking", "luau"],
            "groupSize": 4,
        },
    )

    assert custom_tour.activities == ["hiking", "snorkeling", "luau"]


def test_custom_tour_requires_activities():
    with pytest.raises(ValidationError):
        validate(
            "custom_tour",
            {
                "customerName": "Kai Mahoe",
                "customerEmail": "kai@example.com",
                "tourType": "day",
                "activities": [],
                "groupSize": 4,
            },
        )


def test_unknown_kind():
    with pytest.raises(KeyError):
        validate("invoice", {})


def test_money_serializes_as_string():
    request = UpdateSettingsRequest(tax_rate=Decimal("8.25"))

    assert request.to_json()["taxRate"] == "8.25"


def test_settings_response_masks_token():
    shown = BusinessSettings(
        clover_app_id="MERCHANT123",
        clover_api_token="sandbox-token-1234567890",
        clover_environment="sandbox",
        business_name="Oahu Elite Tours",
        tax_rate=Decimal("8.25"),
        default_tour_duration=6,
        max_group_size=8,
        advance_booking_days=2,
        daily_guest_capacity=40,
    ).to_json()

    assert shown["cloverApiToken"] == "********7890"
    assert "sandbox-token" not in str(shown)
