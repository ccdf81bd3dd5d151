from datetime import date, datetime, timezone

import pytest
from pydantic import ValidationError

from fees import (
    FeeInput,
    FeeUpdate,
    build_fee_row,
    build_fee_updates,
    compute_fee_prices,
    count_by_fee_type,
    count_sold_by_fee,
    is_fee_sold_out,
    is_in_validity_window,
    list_available_fees,
    list_fees_for_admin,
    unavailable_reason,
)
from pricing import ConferencePricing

TODAY = date(2026, 3, 10)


def test_sold_out_at_capacity():
    assert is_fee_sold_out(5, 5)
    assert not is_fee_sold_out(5, 4)
    assert is_fee_sold_out(5, 7)


@pytest.mark.parametrize("capacity", [None, 0, -1])
def test_no_capacity_is_unlimited(capacity):
    assert not is_fee_sold_out(capacity, 10_000)


def test_validity_window_is_inclusive():
    assert is_in_validity_window("2026-03-10", "2026-03-10", TODAY)
    assert not is_in_validity_window("2026-03-11", "2026-03-20", TODAY)
    assert not is_in_validity_window("2026-03-01", "2026-03-09", TODAY)


def test_window_uses_utc_calendar_day():
    late_evening = datetime(2026, 3, 9, 23, 30, tzinfo=timezone.utc)
    assert not is_in_validity_window("2026-03-10", "2026-03-20", late_evening)


def test_available_fee_has_no_reason(make_fee):
    assert unavailable_reason(make_fee(), 0, TODAY) is None


def test_reasons(make_fee):
    assert unavailable_reason(make_fee(is_active=False), 0, TODAY) == "inactive"
    assert unavailable_reason(make_fee(valid_from="2026-04-01"), 0, TODAY) == "not_available_yet"
    assert unavailable_reason(make_fee(valid_to="2026-03-09"), 0, TODAY) == "expired"
    assert unavailable_reason(make_fee(capacity=5), 5, TODAY) == "sold_out"


def test_inactive_wins_over_expired(make_fee):
    fee = make_fee(is_active=False, valid_from="2025-01-01", valid_to="2025-12-31")
    assert unavailable_reason(fee, 0, TODAY) == "inactive"


def test_expired_wins_over_sold_out(make_fee):
    fee = make_fee(valid_to="2026-03-01", capacity=1)
    assert unavailable_reason(fee, 3, TODAY) == "expired"


def test_list_available_fees_keeps_unavailable(make_fee):
    fees = [
        make_fee(id="a", capacity=5),
        make_fee(id="b", is_active=False),
        make_fee(id="c", capacity=2),
        make_fee(id="d", valid_from="2026-05-01"),
    ]

    options = list_available_fees(fees, {"a": 4, "c": 2}, TODAY)

    assert [o.id for o in options] == ["a", "b", "c", "d"]
    assert [o.is_available for o in options] == [True, False, False, False]
    assert [o.disabled_reason for o in options] == [None, "inactive", "sold_out", "not_available_yet"]
    assert options[0].sold_count == 4
    assert options[1].sold_count == 0
    assert options[2].capacity == 2


def test_fee_option_payload(make_fee):
    available, sold_out = list_available_fees(
        [make_fee(id="a"), make_fee(id="b", capacity=1)], {"b": 1}, TODAY
    )

    assert "disabled_reason" not in available.as_payload()
    assert available.as_payload() == {
        "id": "a",
        "name": "Member",
        "price_gross": 125,
        "currency": "EUR",
        "is_available": True,
        "sold_count": 0,
        "capacity": None,
    }
    assert sold_out.as_payload()["disabled_reason"] == "sold_out"


def test_admin_view_ignores_window_and_active_flag(make_fee):
    fees = [
        make_fee(id="a", is_active=False, valid_to="2020-01-31"),
        make_fee(id="b", capacity=3),
    ]

    views = list_fees_for_admin(fees, {"b": 3})

    assert [v.id for v in views] == ["a", "b"]
    assert views[0].sold_count == 0
    assert not views[0].is_sold_out
    assert views[0].price_net == 100
    assert views[1].sold_count == 3
    assert views[1].is_sold_out


def test_count_sold_by_fee_counts_confirmed_and_paid():
    rows = [
        {"registration_fee_id": "a", "status": "confirmed"},
        {"registration_fee_id": "a", "status": "paid"},
        {"registration_fee_id": "a", "status": "cancelled"},
        {"registration_fee_id": "b", "status": "pending"},
        {"registration_fee_id": None, "status": "paid"},
    ]
    assert count_sold_by_fee(rows) == {"a": 2}


def test_count_sold_by_fee_without_status_filter():
    rows = [{"registration_fee_id": "a"}, {"registration_fee_id": "a"}, {"registration_fee_id": "b"}]
    assert count_sold_by_fee(rows, statuses=None) == {"a": 2, "b": 1}


def test_count_by_fee_type():
    rows = [
        {"registration_fee_type": "regular"},
        {"registration_fee_type": "custom_a"},
        {"registration_fee_type": "regular"},
        {"registration_fee_type": None},
    ]
    assert count_by_fee_type(rows) == {"regular": 2, "custom_a": 1}


def test_fee_rejects_malformed_dates(make_fee):
    with pytest.raises(ValidationError):
        make_fee(valid_from="01/03/2026")
    with pytest.raises(ValidationError):
        make_fee(valid_to="2026-02-30")


def test_fee_rejects_negative_values(make_fee):
    with pytest.raises(ValidationError):
        make_fee(capacity=-1)
    with pytest.raises(ValidationError):
        make_fee(price_gross=-5)


def test_fee_input_validation():
    base = {"name": " Early member ", "valid_from": "2026-01-01", "valid_to": "2026-02-01"}

    data = FeeInput(**base, capacity="")
    assert data.name == "Early member"
    assert data.capacity is None

    with pytest.raises(ValidationError):
        FeeInput(**{**base, "name": "   "})
    with pytest.raises(ValidationError):
        FeeInput(**{**base, "valid_to": "2025-12-31"})
    with pytest.raises(ValidationError):
        FeeInput(**base, price_net=-10)


def test_compute_fee_prices_uses_conference_vat():
    assert compute_fee_prices(100, None, False, None, 25) == (100, 125)


def test_compute_fee_prices_gross_input():
    assert compute_fee_prices(None, 125, True, None, 25) == (100, 125)


def test_compute_fee_prices_fee_vat_overrides_conference():
    assert compute_fee_prices(100, None, False, 19, 25) == (100, 119)
    assert compute_fee_prices(100, None, False, 0, 25) == (100, 100)


def test_compute_fee_prices_without_any_vat():
    assert compute_fee_prices(80, None, False, None, None) == (80, 80)
    assert compute_fee_prices(None, None, False, None, 25) == (0, 0)


def test_build_fee_row():
    pricing = ConferencePricing(currency="GBP", vat_percentage=20)
    data = FeeInput(
        name="Workshop",
        valid_from="2026-01-01",
        valid_to="2026-02-01",
        is_active=True,
        price_net=50,
        capacity=30,
        currency="EUR",
    )

    row = build_fee_row("conf-1", data, pricing, next_order=3)

    assert row == {
        "conference_id": "conf-1",
        "name": "Workshop",
        "valid_from": "2026-01-01",
        "valid_to": "2026-02-01",
        "is_active": True,
        "price_net": 50,
        "price_gross": 60,
        "capacity": 30,
        "currency": "GBP",
        "display_order": 3,
    }


def test_build_fee_row_explicit_display_order_and_default_currency():
    data = FeeInput(
        name="Workshop", valid_from="2026-01-01", valid_to="2026-02-01", display_order=0
    )
    row = build_fee_row("conf-1", data, None, next_order=7, default_currency="USD")
    assert row["display_order"] == 0
    assert row["currency"] == "USD"


def test_build_fee_updates_only_sent_fields():
    updates = build_fee_updates(FeeUpdate(name=" Renamed ", is_active=False), None)
    assert updates == {"name": "Renamed", "is_active": False}


def test_build_fee_updates_recomputes_prices():
    pricing = ConferencePricing(vat_percentage=25)
    updates = build_fee_updates(FeeUpdate(price_gross=250, prices_include_vat=True), pricing)
    assert updates == {"price_net": 200, "price_gross": 250}


def test_build_fee_updates_clears_capacity():
    assert build_fee_updates(FeeUpdate(capacity=None), None) == {"capacity": None}
    assert build_fee_updates(FeeUpdate(capacity=""), None) == {"capacity": None}


def test_build_fee_updates_vat_change_reprices_stored_net(make_fee):
    stored = make_fee(price_net=100, price_gross=125)
    updates = build_fee_updates(FeeUpdate(vat_percentage=10), ConferencePricing(vat_percentage=25), stored)
    assert updates == {"price_net": 100, "price_gross": 110}


def test_build_fee_updates_vat_inclusive_reprices_stored_gross(make_fee):
    stored = make_fee(price_net=100, price_gross=125)
    updates = build_fee_updates(FeeUpdate(prices_include_vat=True, vat_percentage=25), None, stored)
    assert updates == {"price_net": 100, "price_gross": 125}


def test_build_fee_updates_vat_change_needs_stored_fee():
    assert build_fee_updates(FeeUpdate(vat_percentage=10), None) == {}
