"""Custom registration fees.

A custom fee is one price with its own validity window and an optional
capacity. The public form gets every fee, unavailable ones included, each
tagged with the reason it cannot be picked.
"""
import re
from collections.abc import Iterable, Mapping
from datetime import date, datetime, timezone
from typing import Literal

from pydantic import BaseModel, field_validator, model_validator

from pricing import ConferencePricing, to_datetime
from vat import effective_vat, net_and_gross

FeeUnavailableReason = Literal["inactive", "not_available_yet", "expired", "sold_out"]

# registrations in these states take a seat
COUNTED_STATUSES = ("confirmed", "paid")

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def check_fee_date(value: str) -> str:
    if not isinstance(value, str) or not DATE_RE.match(value):
        raise ValueError("dates must be in YYYY-MM-DD format")
    date.fromisoformat(value)
    return value


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _not_negative(value):
    if value is not None and value < 0:
        raise ValueError("must not be negative")
    return value


class CustomRegistrationFee(BaseModel):
    id: str
    conference_id: str | None = None
    name: str
    valid_from: str
    valid_to: str
    is_active: bool = True
    price_net: float = 0
    price_gross: float = 0
    capacity: int | None = None
    currency: str = "EUR"
    display_order: int = 0
    created_at: str | None = None
    updated_at: str | None = None

    @field_validator("valid_from", "valid_to")
    @classmethod
    def valid_date(cls, value):
        return check_fee_date(value)

    @field_validator("capacity", mode="before")
    @classmethod
    def blank_capacity(cls, value):
        return _blank_to_none(value)

    @field_validator("price_net", "price_gross", "capacity")
    @classmethod
    def not_negative(cls, value):
        return _not_negative(value)


class FeeOption(BaseModel):
    """Fee as shown on the public registration form."""

    id: str
    name: str
    price_gross: float
    currency: str
    is_available: bool
    disabled_reason: FeeUnavailableReason | None = None
    sold_count: int = 0
    capacity: int | None = None

    def as_payload(self) -> dict:
        payload = self.model_dump()
        if payload["disabled_reason"] is None:
            del payload["disabled_reason"]
        return payload


class AdminFeeView(CustomRegistrationFee):
    sold_count: int = 0
    is_sold_out: bool = False


def as_of_date(now: date | datetime) -> str:
    """The calendar day (UTC) of ``now`` as ``YYYY-MM-DD``."""
    return to_datetime(now).astimezone(timezone.utc).date().isoformat()


def is_fee_sold_out(capacity: int | None, sold_count: int) -> bool:
    if capacity is None or capacity <= 0:
        return False
    return sold_count >= capacity


def is_in_validity_window(valid_from: str, valid_to: str, now: date | datetime) -> bool:
    today = as_of_date(now)
    return valid_from <= today <= valid_to


def unavailable_reason(
    fee: CustomRegistrationFee, sold_count: int, now: date | datetime
) -> FeeUnavailableReason | None:
    """Why ``fee`` cannot be selected, or None when it can.

    Checked in order: inactive, not yet open, expired, sold out.
    """
    if not fee.is_active:
        return "inactive"
    today = as_of_date(now)
    if today < fee.valid_from:
        return "not_available_yet"
    if today > fee.valid_to:
        return "expired"
    if is_fee_sold_out(fee.capacity, sold_count):
        return "sold_out"
    return None


def list_available_fees(
    fees: Iterable[CustomRegistrationFee],
    sold_counts: Mapping[str, int],
    now: date | datetime,
) -> list[FeeOption]:
    options = []
    for fee in fees:
        sold_count = sold_counts.get(fee.id, 0)
        reason = unavailable_reason(fee, sold_count, now)
        options.append(
            FeeOption(
                id=fee.id,
                name=fee.name,
                price_gross=fee.price_gross,
                currency=fee.currency,
                is_available=reason is None,
                disabled_reason=reason,
                sold_count=sold_count,
                capacity=fee.capacity,
            )
        )
    return options


def list_fees_for_admin(
    fees: Iterable[CustomRegistrationFee], sold_counts: Mapping[str, int]
) -> list[AdminFeeView]:
    views = []
    for fee in fees:
        sold_count = sold_counts.get(fee.id, 0)
        views.append(
            AdminFeeView(
                **fee.model_dump(),
                sold_count=sold_count,
                is_sold_out=is_fee_sold_out(fee.capacity, sold_count),
            )
        )
    return views


def count_sold_by_fee(
    registrations: Iterable[Mapping], statuses: Iterable[str] | None = COUNTED_STATUSES
) -> dict[str, int]:
    """Count registrations per ``registration_fee_id``.

    With ``statuses=None`` every registration counts, whatever its state.
    """
    allowed = set(statuses) if statuses is not None else None
    counts: dict[str, int] = {}
    for row in registrations:
        fee_id = row.get("registration_fee_id")
        if not fee_id:
            continue
        if allowed is not None and row.get("status") not in allowed:
            continue
        fee_id = str(fee_id)
        counts[fee_id] = counts.get(fee_id, 0) + 1
    return counts


def count_by_fee_type(registrations: Iterable[Mapping]) -> dict[str, int]:
    """Count registrations per stored ``registration_fee_type`` token."""
    usage: dict[str, int] = {}
    for row in registrations:
        token = row.get("registration_fee_type")
        if token:
            usage[token] = usage.get(token, 0) + 1
    return usage


class FeeInput(BaseModel):
    """Admin payload for creating a fee.

    One price is entered. ``prices_include_vat`` says whether it is gross; the
    other side is derived from the effective VAT.
    """

    name: str
    valid_from: str
    valid_to: str
    is_active: bool = False
    price_net: float | None = None
    price_gross: float | None = None
    prices_include_vat: bool = False
    vat_percentage: float | None = None
    capacity: int | None = None
    currency: str | None = None
    display_order: int | None = None

    @field_validator("name")
    @classmethod
    def name_required(cls, value):
        value = value.strip()
        if not value:
            raise ValueError("Name is required")
        return value

    @field_validator("valid_from", "valid_to")
    @classmethod
    def valid_date(cls, value):
        return check_fee_date(value)

    @field_validator("capacity", "vat_percentage", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        return _blank_to_none(value)

    @field_validator("price_net", "price_gross", "capacity", "vat_percentage")
    @classmethod
    def not_negative(cls, value):
        return _not_negative(value)

    @model_validator(mode="after")
    def window_order(self):
        if self.valid_to < self.valid_from:
            raise ValueError("Valid to must be on or after valid from")
        return self


class FeeUpdate(BaseModel):
    name: str | None = None
    valid_from: str | None = None
    valid_to: str | None = None
    is_active: bool | None = None
    price_net: float | None = None
    price_gross: float | None = None
    prices_include_vat: bool = False
    vat_percentage: float | None = None
    capacity: int | None = None
    display_order: int | None = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value):
        if value is not None:
            value = value.strip()
            if not value:
                raise ValueError("Name must not be empty")
        return value

    @field_validator("valid_from", "valid_to")
    @classmethod
    def valid_date(cls, value):
        return value if value is None else check_fee_date(value)

    @field_validator("capacity", "vat_percentage", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        return _blank_to_none(value)

    @field_validator("price_net", "price_gross", "capacity", "vat_percentage")
    @classmethod
    def not_negative(cls, value):
        return _not_negative(value)

    @model_validator(mode="after")
    def window_order(self):
        if self.valid_from and self.valid_to and self.valid_to < self.valid_from:
            raise ValueError("Valid to must be on or after valid from")
        return self

    @property
    def changes_price(self) -> bool:
        return self.price_net is not None or self.price_gross is not None

    @property
    def changes_vat(self) -> bool:
        return bool({"vat_percentage", "prices_include_vat"} & self.model_fields_set)


def compute_fee_prices(
    price_net: float | None,
    price_gross: float | None,
    prices_include_vat: bool,
    fee_vat: float | None,
    conference_vat: float | None,
) -> tuple[float, float]:
    """(net, gross) for a fee, VAT taken from the fee override or the conference."""
    price = price_gross if price_gross is not None else price_net
    vat = effective_vat(fee_vat, conference_vat) or 0
    return net_and_gross(price or 0, vat, prices_include_vat)


def build_fee_row(
    conference_id: str,
    data: FeeInput,
    pricing: ConferencePricing | None,
    next_order: int,
    default_currency: str = "EUR",
) -> dict:
    """Row to insert for a new fee."""
    net, gross = compute_fee_prices(
        data.price_net,
        data.price_gross,
        data.prices_include_vat,
        data.vat_percentage,
        pricing.vat_percentage if pricing else None,
    )
    currency = (pricing.currency if pricing else None) or data.currency or default_currency
    return {
        "conference_id": conference_id,
        "name": data.name,
        "valid_from": data.valid_from,
        "valid_to": data.valid_to,
        "is_active": data.is_active,
        "price_net": net,
        "price_gross": gross,
        "capacity": data.capacity,
        "currency": currency,
        "display_order": data.display_order if data.display_order is not None else next_order,
    }


def build_fee_updates(
    data: FeeUpdate,
    pricing: ConferencePricing | None,
    stored: CustomRegistrationFee | None = None,
) -> dict:
    """Column updates for an edited fee.

    Prices are recomputed when a price is sent. A change to the VAT fields alone
    reprices ``stored``: its net price when prices exclude VAT, its gross price
    when they include it.
    """
    updates = data.model_dump(
        include={"name", "valid_from", "valid_to", "is_active", "display_order"},
        exclude_none=True,
    )
    if "capacity" in data.model_fields_set:
        updates["capacity"] = data.capacity
    if data.changes_price:
        updates["price_net"], updates["price_gross"] = compute_fee_prices(
            data.price_net,
            data.price_gross,
            data.prices_include_vat,
            data.vat_percentage,
            pricing.vat_percentage if pricing else None,
        )
    elif data.changes_vat and stored is not None:
        updates["price_net"], updates["price_gross"] = compute_fee_prices(
            None if data.prices_include_vat else stored.price_net,
            stored.price_gross if data.prices_include_vat else None,
            data.prices_include_vat,
            data.vat_percentage,
            pricing.vat_percentage if pricing else None,
        )
    return updates
