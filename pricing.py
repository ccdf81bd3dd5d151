"""Date-driven tier pricing for conference registrations.

A conference carries three participant tiers (early bird, regular, late).
Which one applies depends only on the date of registration, the early-bird
deadline and how close the conference start is. ``now`` is always passed in
by the caller.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Literal

from pydantic import BaseModel, field_validator

from currency import price_amount_for
from errors import InvalidPricingInput

PricingTier = Literal["early_bird", "regular", "late"]

LATE_WINDOW_DAYS = 14

TIER_DISPLAY_NAMES = {
    "early_bird": "Early Bird",
    "regular": "Regular",
    "late": "Late Registration",
}

Amount = float | dict[str, float | None]


def _none_to_zero(value):
    return 0 if value is None else value


def _check_amount(value):
    amounts = value.values() if isinstance(value, dict) else [value]
    for amount in amounts:
        if amount is not None and amount < 0:
            raise ValueError("amounts must not be negative")
    return value


def to_datetime(value: date | datetime | str) -> datetime:
    """Normalise a date, datetime or ISO string to an aware UTC datetime.

    Plain dates and naive datetimes are taken as UTC.
    """
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as exc:
            raise InvalidPricingInput(f"Invalid date: {value!r}") from exc
    elif not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


class TierPrice(BaseModel):
    amount: Amount = 0
    deadline: str | None = None
    start_date: str | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def amount_default(cls, value):
        return _none_to_zero(value)

    @field_validator("amount")
    @classmethod
    def amount_not_negative(cls, value):
        return _check_amount(value)

    @field_validator("deadline", "start_date")
    @classmethod
    def valid_date(cls, value):
        if value:
            to_datetime(value)
        return value or None


class CustomFeeType(BaseModel):
    """Named participant category priced per tier (VIP, Senior, ...)."""

    id: str
    name: str = ""
    description: str | None = None
    enabled: bool = True
    early_bird: float = 0
    regular: float = 0
    late: float = 0
    capacity: int | None = None
    price_after_capacity_full: float | None = None

    @field_validator("early_bird", "regular", "late", mode="before")
    @classmethod
    def amount_default(cls, value):
        return _none_to_zero(value)

    @field_validator("early_bird", "regular", "late", "price_after_capacity_full")
    @classmethod
    def amount_not_negative(cls, value):
        return _check_amount(value)

    def is_full(self, used: int) -> bool:
        return bool(self.capacity and self.capacity > 0 and used >= self.capacity)

    def amount_for(self, tier: PricingTier, used: int = 0) -> float:
        """Price in ``tier``; once full, the after-capacity price or else the late price."""
        if self.is_full(used):
            if self.price_after_capacity_full is not None:
                return self.price_after_capacity_full
            return self.late
        return getattr(self, tier)


class ConferencePricing(BaseModel):
    currency: str = "EUR"
    vat_percentage: float | None = None
    prices_include_vat: bool = False
    early_bird: TierPrice = TierPrice()
    regular: TierPrice = TierPrice()
    late: TierPrice = TierPrice()
    student_discount: Amount = 0
    accompanying_person_price: Amount | None = None
    custom_fee_types: list[CustomFeeType] = []

    @field_validator("currency", mode="before")
    @classmethod
    def currency_default(cls, value):
        return value or "EUR"

    @field_validator("early_bird", "regular", "late", mode="before")
    @classmethod
    def tier_default(cls, value):
        return {} if value is None else value

    @field_validator("custom_fee_types", mode="before")
    @classmethod
    def fee_types_default(cls, value):
        return [] if value is None else value

    @field_validator("student_discount", mode="before")
    @classmethod
    def discount_default(cls, value):
        return _none_to_zero(value)

    @field_validator("student_discount", "accompanying_person_price")
    @classmethod
    def amounts_not_negative(cls, value):
        return _check_amount(value)

    def amount_for(self, tier: PricingTier) -> float:
        return price_amount_for(getattr(self, tier).amount, self.currency)

    def fee_type(self, fee_type_id: str) -> CustomFeeType | None:
        return next((ft for ft in self.custom_fee_types if ft.id == fee_type_id), None)


class CurrentPricing(BaseModel):
    tier: PricingTier
    participant_price: float
    student_price: float
    accompanying_person_price: float
    currency: str
    deadline: str | None = None
    next_tier: PricingTier | None = None


def resolve_tier(
    pricing: ConferencePricing,
    now: date | datetime,
    conference_start_date: date | datetime | str | None = None,
    late_window_days: int = LATE_WINDOW_DAYS,
) -> PricingTier:
    current = to_datetime(now)

    if conference_start_date is not None:
        until_start = to_datetime(conference_start_date) - current
        if timedelta(0) <= until_start <= timedelta(days=late_window_days):
            return "late"

    deadline = pricing.early_bird.deadline
    if deadline and current < to_datetime(deadline):
        return "early_bird"

    return "regular"


def resolve_pricing(
    pricing: ConferencePricing,
    now: date | datetime,
    conference_start_date: date | datetime | str | None = None,
    late_window_days: int = LATE_WINDOW_DAYS,
) -> CurrentPricing:
    """Prices for the tier in effect at ``now``.

    The student price is the tier price minus the flat student discount and is
    not clamped: a negative result means the discount was entered wrong.
    """
    tier = resolve_tier(pricing, now, conference_start_date, late_window_days)
    participant_price = pricing.amount_for(tier)
    discount = price_amount_for(pricing.student_discount, pricing.currency)

    return CurrentPricing(
        tier=tier,
        participant_price=participant_price,
        student_price=participant_price - discount,
        accompanying_person_price=price_amount_for(
            pricing.accompanying_person_price, pricing.currency
        ),
        currency=pricing.currency,
        deadline=pricing.early_bird.deadline if tier == "early_bird" else None,
        next_tier="regular" if tier == "early_bird" else None,
    )


def tier_display_name(tier: str) -> str:
    return TIER_DISPLAY_NAMES.get(tier, "Standard")
