"""Turn a registration's fee selection into the amount to charge."""
from collections.abc import Mapping
from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, field_validator

from errors import FeeNotFound, InvalidPricingInput
from fees import CustomRegistrationFee
from pricing import LATE_WINDOW_DAYS, ConferencePricing, resolve_pricing, resolve_tier

BuiltinFeeType = Literal["early_bird", "regular", "late", "student", "accompanying_person"]

BUILTIN_FEE_TYPES = ("early_bird", "regular", "late", "student", "accompanying_person")
CUSTOM_FEE_PREFIX = "custom_"
FEE_TYPE_PREFIX = "fee_type_"


class TierSelection(BaseModel):
    kind: Literal["tier"] = "tier"
    # None: whichever tier is in effect on the charge date
    tier: BuiltinFeeType | None = None


class CustomFeeSelection(BaseModel):
    kind: Literal["custom_fee"] = "custom_fee"
    fee_id: str


class FeeTypeSelection(BaseModel):
    """A participant category from ``pricing.custom_fee_types``."""

    kind: Literal["fee_type"] = "fee_type"
    fee_type_id: str


FeeSelection = TierSelection | CustomFeeSelection | FeeTypeSelection


class Conference(BaseModel):
    id: str
    name: str = ""
    slug: str | None = None
    start_date: str | None = None
    pricing: ConferencePricing = ConferencePricing()
    custom_fees: list[CustomRegistrationFee] = []

    @field_validator("pricing", mode="before")
    @classmethod
    def default_pricing(cls, value):
        return {} if value is None else value

    @field_validator("name", mode="before")
    @classmethod
    def default_name(cls, value):
        return value or ""

    @field_validator("custom_fees", mode="before")
    @classmethod
    def default_fees(cls, value):
        return [] if value is None else value


class ChargeAmount(BaseModel):
    amount: float
    currency: str
    fee_type: str | None = None
    # registrations already holding this fee type; the caller decides what to do with it
    sold_count: int = 0


def parse_fee_type(token: str | None) -> FeeSelection:
    """Parse a stored ``registration_fee_type`` token.

    ``custom_{id}`` selects a custom fee, ``fee_type_{id}`` a participant
    category, a built-in name selects that tier and an empty token means the
    tier in effect.
    """
    if not token:
        return TierSelection()
    if token.startswith(CUSTOM_FEE_PREFIX):
        fee_id = token[len(CUSTOM_FEE_PREFIX):]
        if not fee_id:
            raise InvalidPricingInput("Custom fee type is missing the fee id")
        return CustomFeeSelection(fee_id=fee_id)
    if token.startswith(FEE_TYPE_PREFIX):
        fee_type_id = token[len(FEE_TYPE_PREFIX):]
        if not fee_type_id:
            raise InvalidPricingInput("Fee type is missing its id")
        return FeeTypeSelection(fee_type_id=fee_type_id)
    if token in BUILTIN_FEE_TYPES:
        return TierSelection(tier=token)
    raise InvalidPricingInput(f"Unknown registration fee type: {token!r}")


def fee_type_token(selection: FeeSelection) -> str | None:
    if isinstance(selection, CustomFeeSelection):
        return f"{CUSTOM_FEE_PREFIX}{selection.fee_id}"
    if isinstance(selection, FeeTypeSelection):
        return f"{FEE_TYPE_PREFIX}{selection.fee_type_id}"
    return selection.tier


def selection_for(registration: Mapping) -> FeeSelection:
    """Fee selection of a registration row.

    Rows written by the fee picker carry ``registration_fee_id`` and may lack a token.
    """
    token = registration.get("registration_fee_type")
    if not token and registration.get("registration_fee_id"):
        return CustomFeeSelection(fee_id=str(registration["registration_fee_id"]))
    return parse_fee_type(token)


def resolve_charge_amount(
    registration: Mapping | FeeSelection,
    conference: Conference,
    fee_type_usage: Mapping[str, int] | None,
    now: date | datetime,
    late_window_days: int = LATE_WINDOW_DAYS,
    strict: bool = False,
) -> ChargeAmount:
    """Amount and currency to charge for a registration.

    A custom fee is charged at its stored gross price whatever its current
    availability. A participant category is charged its price for the tier in
    effect, or its after-capacity price once ``fee_type_usage`` reaches its
    capacity. A custom fee or category that no longer exists charges 0 unless
    ``strict`` is set, in which case :class:`FeeNotFound` is raised.
    """
    if isinstance(registration, (TierSelection, CustomFeeSelection, FeeTypeSelection)):
        selection = registration
    else:
        selection = selection_for(registration)

    pricing = conference.pricing
    token = fee_type_token(selection)
    sold_count = (fee_type_usage or {}).get(token, 0) if token else 0

    if isinstance(selection, CustomFeeSelection):
        fee = next((f for f in conference.custom_fees if f.id == selection.fee_id), None)
        if fee is None:
            if strict:
                raise FeeNotFound(selection.fee_id)
            return ChargeAmount(
                amount=0, currency=pricing.currency, fee_type=token, sold_count=sold_count
            )
        return ChargeAmount(
            amount=fee.price_gross, currency=fee.currency, fee_type=token, sold_count=sold_count
        )

    if isinstance(selection, FeeTypeSelection):
        fee_type = pricing.fee_type(selection.fee_type_id)
        if fee_type is None:
            if strict:
                raise FeeNotFound(selection.fee_type_id)
            amount = 0
        else:
            tier = resolve_tier(pricing, now, conference.start_date, late_window_days)
            amount = fee_type.amount_for(tier, sold_count)
        return ChargeAmount(
            amount=amount, currency=pricing.currency, fee_type=token, sold_count=sold_count
        )

    current = resolve_pricing(pricing, now, conference.start_date, late_window_days)

    if selection.tier == "student":
        amount = current.student_price
    elif selection.tier == "accompanying_person":
        amount = current.accompanying_person_price
    elif selection.tier is not None:
        amount = pricing.amount_for(selection.tier)
    else:
        amount = current.participant_price

    return ChargeAmount(
        amount=amount, currency=pricing.currency, fee_type=token, sold_count=sold_count
    )
