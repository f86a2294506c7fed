"""Regional discount policy and unit-price discounting."""

from __future__ import annotations

REGION_DISCOUNTS: dict[str, float] = {
    "NAMER": 0.10,
    "EMEA": 0.15,
    "APAC": 0.08,
}
DEFAULT_DISCOUNT = 0.05


def get_discount_for_region(region: str | None) -> float:
    """Fractional discount for a sales region; unknown regions get the default."""
    return REGION_DISCOUNTS.get((region or "").upper(), DEFAULT_DISCOUNT)


def clamp_discount(discount: object) -> float:
    # Non-numeric discounts count as no discount.
    if isinstance(discount, bool) or not isinstance(discount, (int, float)):
        return 0.0
    return min(1.0, max(0.0, float(discount)))


def apply_discount(unit_price: float | None, discount: object) -> float | None:
    """
    Price after discount: `unit_price * (1 - discount)` with the discount
    clamped to [0, 1]. An absent price is passed through unchanged.
    """
    if unit_price is None:
        return None
    return float(unit_price) * (1 - clamp_discount(discount))
