from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from postgrest.exceptions import APIError

from src.rider_dispatch.errors import StoreReadFailure, StoreUnavailable, StoreWriteFailure
from src.rider_dispatch.models.domain import StatusHistoryEntry
from src.rider_dispatch.persistence import database


class FakeQuery:
    def __init__(self, client, table):
        self.client = client
        self.table = table
        self.calls = []

    def __getattr__(self, name):
        def record(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self

        return record

    @property
    def not_(self):
        self.calls.append(("not_", (), {}))
        return self

    def execute(self):
        self.client.executed.append(self)
        if self.table in self.client.errors:
            raise self.client.errors[self.table]
        if self.table in self.client.failing:
            raise RuntimeError(f"{self.table} unavailable")
        return SimpleNamespace(data=self.client.rows.get(self.table, []))


class FakeSupabase:
    def __init__(self, rows=None, failing=(), errors=None):
        self.rows = rows or {}
        self.failing = set(failing)
        self.errors = errors or {}
        self.executed = []

    def table(self, name):
        return FakeQuery(self, name)

    def rpc(self, name, params):
        query = FakeQuery(self, f"rpc:{name}")
        query.calls.append(("rpc", (name, params), {}))
        return query


@pytest.fixture
def fake_client(monkeypatch):
    def install(**kwargs):
        client = FakeSupabase(**kwargs)
        monkeypatch.setattr(database, "get_supabase_client", lambda: client)
        return client

    return install


def test_missing_client_raises_store_unavailable(monkeypatch):
    monkeypatch.setattr(database, "get_supabase_client", lambda: None)

    with pytest.raises(StoreUnavailable):
        database.fetch_order("O1")


def test_fetch_order_maps_row(fake_client):
    fake_client(rows={"customer_orders": [{"id": 7, "status": "pending", "rider_id": "R1", "latitude": "-6.2", "longitude": 106.8}]})

    order = database.fetch_order("7")

    assert order.id == "7"
    assert order.status == "pending"
    assert order.latitude == pytest.approx(-6.2)
    assert order.rejection_reason is None


def test_fetch_order_returns_none_when_absent(fake_client):
    fake_client()

    assert database.fetch_order("nope") is None


def test_client_errors_become_store_write_failures(fake_client):
    fake_client(failing={"order_status_history"})

    with pytest.raises(StoreWriteFailure, match="record history for order O1"):
        database.insert_status_history(
            StatusHistoryEntry(order_id="O1", status="accepted", notes=None, latitude=None, longitude=None)
        )


def test_riders_query_filters_and_parses(fake_client):
    client = fake_client(
        rows={
            "profiles": [
                {
                    "id": "R1",
                    "full_name": "Budi",
                    "phone": None,
                    "last_known_lat": -6.2,
                    "last_known_lng": 106.8,
                    "location_updated_at": "2025-03-01T08:55:00Z",
                    "branches": {"name": "Hub A", "address": "Jl. A"},
                },
                {"id": "R2", "last_known_lat": None, "last_known_lng": 106.0, "branches": None},
            ]
        }
    )

    riders = database.fetch_active_riders_with_location()

    assert [rider.id for rider in riders] == ["R1"]
    assert riders[0].location_updated_at == datetime(2025, 3, 1, 8, 55, tzinfo=timezone.utc)
    assert riders[0].branch_name == "Hub A"
    calls = client.executed[0].calls
    assert ("eq", ("role", "rider"), {}) in calls
    assert ("eq", ("is_active", True), {}) in calls
    assert ("is_", ("last_known_lat", "null"), {}) in calls


def test_sum_rider_stock_treats_null_as_zero(fake_client):
    fake_client(
        rows={
            "inventory": [
                {"rider_id": "R1", "stock_quantity": 4},
                {"rider_id": "R1", "stock_quantity": None},
                {"rider_id": "R2", "stock_quantity": 3},
            ]
        }
    )

    assert database.sum_rider_stock(["R1", "R2", "R3"]) == {"R1": 4, "R2": 3, "R3": 0}


def test_upsert_is_keyed_by_rider(fake_client):
    client = fake_client()

    database.upsert_rider_location("R1", 1.0, 2.0, "2025-03-01T09:00:00+00:00", heading=90.0)

    (name, args, kwargs), = client.executed[0].calls
    assert name == "upsert"
    assert kwargs == {"on_conflict": "rider_id"}
    assert args[0]["heading"] == 90.0


def test_parse_timestamp_assumes_utc_for_naive_values():
    assert database.parse_timestamp("2025-03-01T09:00:00") == datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)
    assert database.parse_timestamp(None) is None
    assert database.parse_timestamp("yesterday") is None


def test_parse_timestamp_pads_short_fractions():
    parsed = database.parse_timestamp("2025-03-01T08:55:00.12345+00:00")

    assert parsed == datetime(2025, 3, 1, 8, 55, 0, 123450, tzinfo=timezone.utc)
    assert database.parse_timestamp("2025-03-01T08:55:00.5Z").microsecond == 500000
    assert database.parse_timestamp("2025-03-01T08:55:00.1234567").microsecond == 123456


def _malformed_uuid() -> APIError:
    return APIError(
        {
            "code": "22P02",
            "message": 'invalid input syntax for type uuid: "not-a-uuid"',
            "details": None,
            "hint": None,
        }
    )


def test_malformed_ids_read_as_missing(fake_client):
    fake_client(errors={"customer_orders": _malformed_uuid(), "customer_users": _malformed_uuid()})

    assert database.fetch_order("not-a-uuid") is None
    assert database.find_customer_id("not-a-uuid") is None


def test_read_errors_become_store_read_failures(fake_client):
    fake_client(
        failing={"profiles"},
        errors={"customer_orders": APIError({"code": "42501", "message": "permission denied", "details": None, "hint": None})},
    )

    with pytest.raises(StoreReadFailure, match="load active riders"):
        database.fetch_active_riders_with_location()
    with pytest.raises(StoreReadFailure, match="load order O1"):
        database.fetch_order("O1")


def test_malformed_id_is_an_error_where_it_cannot_mean_missing(fake_client):
    fake_client(errors={"inventory": _malformed_uuid()})

    with pytest.raises(StoreReadFailure):
        database.sum_rider_stock(["not-a-uuid"])


def test_fetch_void_request_maps_embedded_sale(fake_client):
    fake_client(
        rows={
            "transaction_void_requests": [
                {
                    "id": "V1",
                    "status": "pending",
                    "transaction_id": "T1",
                    "branch_id": "B1",
                    "rider_id": "R1",
                    "reason": "Wrong item",
                    "transactions": {"id": "T1", "transaction_number": "TRX-001", "final_amount": "25000", "is_voided": False},
                }
            ]
        }
    )

    request = database.fetch_void_request("V1")

    assert request.transaction.final_amount == 25000.0
    assert request.transaction.transaction_number == "TRX-001"
    assert request.transaction.is_voided is False


def test_stock_increment_calls_rpc(fake_client):
    client = fake_client()

    database.increment_inventory_stock("R1", "P1", -2)

    (name, args, kwargs), = client.executed[0].calls
    assert args == ("increment_inventory_stock", {"p_rider_id": "R1", "p_product_id": "P1", "p_quantity": -2})


def test_rider_moves_count_changed_rows(fake_client):
    client = fake_client(rows={"inventory": [{"id": 1}, {"id": 2}], "shift_management": [{"id": 9}]})

    assert database.move_rider_inventory("R1", "B2") == 2
    assert database.move_active_shifts("R1", "B2") == 1
    assert ("eq", ("status", "active"), {}) in client.executed[1].calls


def test_update_order_status_keeps_given_update_time(fake_client):
    client = fake_client()

    database.update_order_status("O1", "pending", None, include_reason=True, updated_at="2025-01-01T07:30:00+00:00")

    name, args, kwargs = client.executed[0].calls[0]
    assert name == "update"
    assert args[0] == {"status": "pending", "updated_at": "2025-01-01T07:30:00+00:00", "rejection_reason": None}
