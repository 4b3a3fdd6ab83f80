"""Unit tests for server-side pricing."""

from decimal import Decimal

import pytest

from elite_tours.services.pricing import (
    estimate_custom_tour,
    from_minor_units,
    quote,
    to_minor_units,
)


def test_quote_three_guests_at_default_tax():
    """150.00 x 3 at 8.25%: tax 37.125 rounds half-up to 37.13."""
    price = quote(Decimal("150.00"), 3, Decimal("8.25"))

    assert price.subtotal == Decimal("450.00")
    assert price.tax == Decimal("37.13")
    assert price.total == Decimal("487.13")
    assert price.total_minor_units == 48713


def test_quote_zero_tax():
    price = quote(Decimal("99.99"), 2, Decimal("0"))

    assert price.tax == Decimal("0.00")
    assert price.total == Decimal("199.98")


def test_quote_rejects_zero_guests():
    with pytest.raises(ValueError):
        quote(Decimal("150.00"), 0, Decimal("8.25"))


def test_to_minor_units():
    assert to_minor_units(Decimal("487.13")) == 48713
    assert to_minor_units(Decimal("0.01")) == 1
    assert to_minor_units(Decimal("150")) == 15000


def test_to_minor_units_refuses_fractional_cents():
    with pytest.raises(ValueError, match="fractional cents"):
        to_minor_units(Decimal("10.005"))


def test_from_minor_units():
    assert from_minor_units(48713) == Decimal("487.13")


@pytest.mark.parametrize(
    "tour_type,activities,expected",
    [
        ("day", ["snorkeling"], Decimal("165.00")),
        ("night", ["stargazing", "luau"], Decimal("150.00")),
        ("custom", [], Decimal("120.00")),
    ],
)
def test_estimate_custom_tour(tour_type, activities, expected):
    assert estimate_custom_tour(tour_type, activities) == expected
