"""Server-side price computation for bookings and custom tour estimates."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
HUNDRED = Decimal("100")

# Custom tour estimate: base price by tour type plus a flat fee per activity
CUSTOM_TOUR_BASE_PRICE = {
    "day": Decimal("150.00"),
    "night": Decimal("120.00"),
    "custom": Decimal("120.00"),
}
CUSTOM_TOUR_ACTIVITY_PRICE = Decimal("15.00")


@dataclass(frozen=True)
class PriceQuote:
    """Subtotal, tax and total for one booking, all rounded to cents."""

    unit_price: Decimal
    guests: int
    tax_rate: Decimal
    subtotal: Decimal
    tax: Decimal
    total: Decimal

    @property
    def total_minor_units(self) -> int:
        return to_minor_units(self.total)


def to_cents(amount: Decimal) -> Decimal:
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def quote(unit_price: Decimal, guests: int, tax_rate: Decimal) -> PriceQuote:
    """
    Price a booking.

    ``subtotal = unit_price * guests``, ``tax = subtotal * tax_rate / 100``
    rounded half-up to the cent, ``total = subtotal + tax``.

    Args:
        unit_price: Tour price per guest
        guests: Number of guests (>= 1)
        tax_rate: Percentage, e.g. ``Decimal("8.25")``

    Returns:
        PriceQuote with every figure as a two-place Decimal
    """
    if guests < 1:
        raise ValueError("guests must be at least 1")

    unit_price = to_cents(Decimal(unit_price))
    tax_rate = Decimal(tax_rate)
    subtotal = to_cents(unit_price * guests)
    tax = to_cents(subtotal * tax_rate / HUNDRED)

    return PriceQuote(
        unit_price=unit_price,
        guests=guests,
        tax_rate=tax_rate,
        subtotal=subtotal,
        tax=tax,
        total=subtotal + tax,
    )


def to_minor_units(amount: Decimal) -> int:
    """
    Convert a dollar amount to integer cents.

    Raises:
        ValueError: If the amount carries fractional cents
    """
    cents = Decimal(amount) * HUNDRED
    if cents != cents.to_integral_value():
        raise ValueError(f"Amount {amount} has fractional cents")
    return int(cents)


def from_minor_units(cents: int) -> Decimal:
    return (Decimal(cents) / HUNDRED).quantize(CENT)


def estimate_custom_tour(tour_type: str, activities: list[str]) -> Decimal:
    """Non-binding estimate shown to a customer requesting a bespoke itinerary."""
    base = CUSTOM_TOUR_BASE_PRICE.get(tour_type, CUSTOM_TOUR_BASE_PRICE["day"])
    return to_cents(base + CUSTOM_TOUR_ACTIVITY_PRICE * len(activities))
