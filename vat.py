"""VAT arithmetic.

Percentages are whole-number percents: ``25`` means 25 %.
"""
import math
from decimal import ROUND_HALF_UP, Decimal

from pydantic import BaseModel


class PriceBreakdown(BaseModel):
    without_vat: float
    with_vat: float
    vat_amount: float
    vat_percentage: float


def round_money(amount: float) -> float:
    """Round to cents, half away from zero."""
    return float(Decimal(str(amount)).quantize(Decimal("0.01"), ROUND_HALF_UP))


def price_with_vat(net: float, percentage: float) -> float:
    return net * (1 + percentage / 100)


def price_without_vat(gross: float, percentage: float) -> float:
    return gross / (1 + percentage / 100)


def vat_amount(net: float, percentage: float) -> float:
    return price_with_vat(net, percentage) - net


def _is_finite_number(value) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def effective_vat(conference_vat, user_default_vat) -> float | None:
    """Conference VAT wins whenever it is set, including an explicit 0."""
    if _is_finite_number(conference_vat):
        return conference_vat
    if _is_finite_number(user_default_vat):
        return user_default_vat
    return None


def price_breakdown(amount: float, percentage: float | None = None) -> PriceBreakdown:
    if not percentage:
        return PriceBreakdown(
            without_vat=amount,
            with_vat=amount,
            vat_amount=0,
            vat_percentage=percentage or 0,
        )
    return PriceBreakdown(
        without_vat=amount,
        with_vat=price_with_vat(amount, percentage),
        vat_amount=vat_amount(amount, percentage),
        vat_percentage=percentage,
    )


def net_and_gross(
    price: float, percentage: float, prices_include_vat: bool = False
) -> tuple[float, float]:
    """Derive (net, gross) from one entered price, both rounded to cents.

    With no positive VAT the entered price is used for both sides.
    """
    if percentage and percentage > 0:
        if prices_include_vat:
            net, gross = price_without_vat(price, percentage), price
        else:
            net, gross = price, price_with_vat(price, percentage)
    else:
        net = gross = price
    return round_money(net), round_money(gross)
