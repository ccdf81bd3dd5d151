from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

import store
from charges import Conference
from fees import CustomRegistrationFee
from permissions import get_current_profile
from pricing import ConferencePricing
from registration_fees import utc_now


class FakeQuery:
    """Chainable stand-in for a postgrest query builder."""

    def __init__(self, data=None, error=None):
        self.data = data or []
        self.error = error
        self.calls = []

    def __getattr__(self, name):
        if name == "not_":
            self.calls.append(("not_", (), {}))
            return self

        def method(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self

        return method

    def execute(self):
        if self.error is not None:
            raise self.error
        return SimpleNamespace(data=self.data)

    def called(self, name):
        return [call for call in self.calls if call[0] == name]


class FakeSupabase:
    def __init__(self):
        self.queries = {}
        self.tables = []

    def queue(self, table, *queries):
        self.queries.setdefault(table, []).extend(queries)
        return queries

    def table(self, name):
        self.tables.append(name)
        return self.queries[name].pop(0)


@pytest.fixture
def sample_pricing():
    return ConferencePricing(
        currency="EUR",
        early_bird={"amount": 150, "deadline": "2026-03-01T23:59:59Z"},
        regular={"amount": 200},
        late={"amount": 250},
        student_discount=50,
        accompanying_person_price=100,
    )


@pytest.fixture
def make_fee():
    def factory(**overrides):
        data = {
            "id": "fee-1",
            "conference_id": "conf-1",
            "name": "Member",
            "valid_from": "2026-01-01",
            "valid_to": "2026-06-30",
            "is_active": True,
            "price_net": 100,
            "price_gross": 125,
            "capacity": None,
            "currency": "EUR",
            "display_order": 0,
        }
        data.update(overrides)
        return CustomRegistrationFee(**data)

    return factory


@pytest.fixture
def conference(sample_pricing, make_fee):
    return Conference(
        id="conf-1",
        name="Integrative Health 2026",
        slug="ih-2026",
        start_date="2026-06-10",
        pricing=sample_pricing,
        custom_fees=[make_fee()],
    )


@pytest.fixture
def fake_supabase():
    return FakeSupabase()


@pytest.fixture
def app():
    from main import app

    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def supabase(app):
    client = MagicMock(name="supabase")
    app.dependency_overrides[store.get_supabase] = lambda: client
    app.dependency_overrides[store.get_supabase_admin] = lambda: client
    return client


@pytest.fixture
def now(app):
    value = datetime(2026, 2, 15, 12, 0, tzinfo=timezone.utc)
    app.dependency_overrides[utc_now] = lambda: value
    return value


@pytest.fixture
def super_admin(app):
    profile = {"id": "user-1", "role": "super_admin", "active": True}
    app.dependency_overrides[get_current_profile] = lambda: profile
    return profile


@pytest.fixture
def conference_admin(app):
    profile = {"id": "user-2", "role": "conference_admin", "active": True}
    app.dependency_overrides[get_current_profile] = lambda: profile
    return profile


@pytest.fixture
def api(app, supabase, now):
    return TestClient(app)
