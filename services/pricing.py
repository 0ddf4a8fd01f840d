from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class PricingRules:
    tax_percentage: Decimal = Decimal("18")
    convenience_fee: Decimal = Decimal("50")
    child_price_percentage: Decimal = Decimal("50")

    @classmethod
    def from_settings(cls, settings) -> "PricingRules":
        return cls(
            tax_percentage=settings.tax_percentage,
            convenience_fee=settings.convenience_fee,
            child_price_percentage=settings.child_price_percentage,
        )


@dataclass(frozen=True)
class PriceBreakdown:
    adult_total: Decimal
    child_total: Decimal
    subtotal: Decimal
    tax: Decimal
    convenience_fee: Decimal
    total: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "adultTotal": float(self.adult_total),
            "childTotal": float(self.child_total),
            "subtotal": float(self.subtotal),
            "tax": float(self.tax),
            "convenienceFee": float(self.convenience_fee),
            "total": float(self.total),
        }


def round_to_unit(value: Decimal) -> Decimal:
    """Round half-up to a whole currency unit."""
    return value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def calculate_booking_total(
    unit_price,
    num_adults: int,
    num_children: int = 0,
    rules: PricingRules | None = None,
) -> PriceBreakdown:
    """
    Price a booking of ``num_adults`` adults and ``num_children`` children.

    Children pay ``child_price_percentage`` of the unit price. Tax applies to
    the subtotal, the flat convenience fee is added after tax, and only the
    final total is rounded.
    """
    rules = rules or PricingRules()
    price = Decimal(str(unit_price))

    adult_total = price * num_adults
    child_total = price * rules.child_price_percentage / HUNDRED * num_children
    subtotal = adult_total + child_total
    tax = subtotal * rules.tax_percentage / HUNDRED
    total = round_to_unit(subtotal + tax + rules.convenience_fee)

    return PriceBreakdown(
        adult_total=adult_total,
        child_total=child_total,
        subtotal=subtotal,
        tax=tax,
        convenience_fee=rules.convenience_fee,
        total=total,
    )


def to_minor_units(amount) -> int:
    """Rupees to paise, rounded to the nearest paisa."""
    return int(round_to_unit(Decimal(str(amount)) * HUNDRED))
