from datetime import datetime, timezone

import pytest

from src.rider_dispatch.errors import (
    InvalidState,
    NotFound,
    StoreWriteFailure,
    Unauthorized,
    ValidationFailure,
)
from src.rider_dispatch.models.domain import Order, RiderLocation
from src.rider_dispatch.schemas.orders import OrderCreateRequest, OrderResponseRequest
from src.rider_dispatch.services.orders import service as order_service

WRITE_TIME = "2025-01-01T09:00:00+00:00"


class FakeOrderStore:
    """In-memory stand-in for the order and history tables."""

    def __init__(self, orders=()):
        self.orders = {order.id: order for order in orders}
        self.history = []
        self.status_updates = []
        self.created = []
        self.deleted = []
        self.fail_history = False
        self.fail_statuses = set()
        self.fail_delete = False

    def fetch_order(self, order_id):
        return self.orders.get(order_id)

    def update_order_status(self, order_id, status, rejection_reason=None, *, include_reason=False, updated_at=None):
        self.status_updates.append((order_id, status))
        if status in self.fail_statuses:
            raise StoreWriteFailure(f"orders table rejected status '{status}'")
        order = self.orders[order_id]
        # Replace rather than mutate so earlier snapshots stay intact.
        self.orders[order_id] = Order(
            id=order.id,
            status=status,
            rider_id=order.rider_id,
            latitude=order.latitude,
            longitude=order.longitude,
            rejection_reason=rejection_reason if include_reason else order.rejection_reason,
            updated_at=updated_at or WRITE_TIME,
        )

    def insert_status_history(self, entry):
        if self.fail_history:
            raise StoreWriteFailure("history table rejected insert")
        self.history.append(entry)

    def insert_order(self, record):
        order_id = f"NEW{len(self.created) + 1}"
        self.created.append(record)
        self.orders[order_id] = Order(
            id=order_id,
            status=record["status"],
            rider_id=record["rider_id"],
            latitude=record["latitude"],
            longitude=record["longitude"],
        )
        return order_id

    def delete_order(self, order_id):
        self.deleted.append(order_id)
        if self.fail_delete:
            raise StoreWriteFailure("orders table rejected delete")
        self.orders.pop(order_id, None)

    def install(self, monkeypatch):
        for name in (
            "fetch_order",
            "update_order_status",
            "insert_status_history",
            "insert_order",
            "delete_order",
        ):
            monkeypatch.setattr(order_service, name, getattr(self, name))
        return self


def _order(order_id="O1", status="pending", rider_id="R1") -> Order:
    return Order(
        id=order_id,
        status=status,
        rider_id=rider_id,
        latitude=-6.2,
        longitude=106.8,
        updated_at="2025-01-01T07:30:00+00:00",
    )


@pytest.fixture
def store(monkeypatch):
    return FakeOrderStore([_order()]).install(monkeypatch)


def test_accept_by_assigned_rider(store):
    result = order_service.respond_to_order(
        OrderResponseRequest(order_id="O1", rider_profile_id="R1", action="accept")
    )

    assert result.success is True
    assert result.status == "accepted"
    assert result.reason is None
    assert store.orders["O1"].status == "accepted"
    assert len(store.history) == 1
    entry = store.history[0]
    assert entry.status == "accepted"
    assert (entry.latitude, entry.longitude) == (-6.2, 106.8)


def test_reject_records_reason(store):
    result = order_service.respond_to_order(
        OrderResponseRequest(order_id="O1", rider_profile_id="R1", action="reject", rejection_reason="Out of stock")
    )

    assert result.status == "rejected"
    assert result.reason == "Out of stock"
    assert store.orders["O1"].rejection_reason == "Out of stock"
    assert [entry.notes for entry in store.history] == ["Out of stock"]


def test_reject_without_reason_stores_placeholder(store):
    result = order_service.respond_to_order(
        OrderResponseRequest(order_id="O1", rider_profile_id="R1", action="reject")
    )

    assert result.reason is None
    assert store.orders["O1"].rejection_reason == order_service.settings.default_rejection_reason
    assert store.history[0].notes == order_service.REJECTED_NOTE


def test_missing_order_is_not_found(store):
    with pytest.raises(NotFound):
        order_service.respond_to_order(
            OrderResponseRequest(order_id="missing", rider_profile_id="R1", action="accept")
        )


@pytest.mark.parametrize("current", ["accepted", "rejected", "delivered", "cancelled"])
@pytest.mark.parametrize("action", ["accept", "reject"])
def test_non_pending_order_is_invalid_state(monkeypatch, current, action):
    store = FakeOrderStore([_order(status=current)]).install(monkeypatch)

    with pytest.raises(InvalidState):
        order_service.respond_to_order(
            OrderResponseRequest(order_id="O1", rider_profile_id="R1", action=action)
        )
    assert store.status_updates == []
    assert store.history == []


@pytest.mark.parametrize("action", ["accept", "reject"])
def test_other_rider_is_unauthorized(store, action):
    with pytest.raises(Unauthorized):
        order_service.respond_to_order(
            OrderResponseRequest(order_id="O1", rider_profile_id="R2", action=action)
        )
    assert store.orders["O1"].status == "pending"
    assert store.history == []


def test_unknown_action_writes_nothing(store):
    with pytest.raises(ValidationFailure):
        order_service.respond_to_order(
            OrderResponseRequest(order_id="O1", rider_profile_id="R1", action="ignore")
        )
    assert store.status_updates == []


def test_second_response_fails_precondition(store):
    request = OrderResponseRequest(order_id="O1", rider_profile_id="R1", action="accept")
    order_service.respond_to_order(request)

    with pytest.raises(InvalidState):
        order_service.respond_to_order(request)
    assert len(store.history) == 1


def test_history_failure_restores_pending_status(store):
    store.fail_history = True

    with pytest.raises(StoreWriteFailure):
        order_service.respond_to_order(
            OrderResponseRequest(order_id="O1", rider_profile_id="R1", action="reject", rejection_reason="Busy")
        )
    assert store.orders["O1"].status == "pending"
    assert store.orders["O1"].rejection_reason is None
    assert store.status_updates == [("O1", "rejected"), ("O1", "pending")]


def test_restored_status_keeps_previous_update_time(store):
    store.fail_history = True

    with pytest.raises(StoreWriteFailure):
        order_service.respond_to_order(
            OrderResponseRequest(order_id="O1", rider_profile_id="R1", action="accept")
        )
    assert store.orders["O1"].status == "pending"
    assert store.orders["O1"].updated_at == "2025-01-01T07:30:00+00:00"


def test_failed_status_restore_still_reports_history_failure(store):
    store.fail_history = True
    store.fail_statuses = {"pending"}

    with pytest.raises(StoreWriteFailure, match="history table"):
        order_service.respond_to_order(
            OrderResponseRequest(order_id="O1", rider_profile_id="R1", action="accept")
        )
    assert store.status_updates == [("O1", "accepted"), ("O1", "pending")]
    assert store.orders["O1"].status == "accepted"


def _create_request(**overrides) -> OrderCreateRequest:
    payload = {
        "customer_user_id": "auth-user-1",
        "rider_profile_id": "R1",
        "customer_lat": 0.0,
        "customer_lng": 0.0,
        "delivery_address": "Jl. Merdeka 1",
    }
    payload.update(overrides)
    return OrderCreateRequest(**payload)


def test_create_order_uses_rider_distance_for_eta(store, monkeypatch):
    monkeypatch.setattr(order_service, "find_customer_id", lambda user_id: "CU1")
    monkeypatch.setattr(
        order_service,
        "fetch_rider_location",
        lambda rider_id: RiderLocation(rider_id=rider_id, latitude=0.0001, longitude=1.0, updated_at=None),
    )
    now = datetime(2025, 1, 1, 8, 0, tzinfo=timezone.utc)

    result = order_service.create_order_request(_create_request(), now=now)

    assert result.order_id == "NEW1"
    assert result.eta_minutes == 334
    assert result.estimated_arrival == "2025-01-01T13:34:00+00:00"
    record = store.created[0]
    assert record["status"] == "pending"
    assert record["total_price"] == 0
    assert record["user_id"] == "CU1"
    assert [entry.status for entry in store.history] == ["pending"]
    assert store.history[0].notes == order_service.PENDING_NOTE


def test_create_order_without_rider_location_uses_default_eta(store, monkeypatch):
    monkeypatch.setattr(order_service, "find_customer_id", lambda user_id: "CU1")
    monkeypatch.setattr(order_service, "fetch_rider_location", lambda rider_id: None)

    result = order_service.create_order_request(_create_request(notes="Ring the bell"))

    assert result.eta_minutes == order_service.settings.default_eta_minutes
    assert store.history[0].notes == "Ring the bell"


def test_create_order_unknown_customer(store, monkeypatch):
    monkeypatch.setattr(order_service, "find_customer_id", lambda user_id: None)

    with pytest.raises(NotFound, match="Customer not found"):
        order_service.create_order_request(_create_request())
    assert store.created == []


def test_create_order_history_failure_removes_order(store, monkeypatch):
    monkeypatch.setattr(order_service, "find_customer_id", lambda user_id: "CU1")
    monkeypatch.setattr(order_service, "fetch_rider_location", lambda rider_id: None)
    store.fail_history = True

    with pytest.raises(StoreWriteFailure):
        order_service.create_order_request(_create_request())
    assert store.deleted == ["NEW1"]
    assert "NEW1" not in store.orders


def test_history_lookup_requires_existing_order(store, monkeypatch):
    monkeypatch.setattr(order_service, "list_status_history", lambda order_id: [])

    assert order_service.get_order_history("O1").entries == []
    with pytest.raises(NotFound):
        order_service.get_order_history("missing")


def test_create_order_failed_delete_still_reports_history_failure(store, monkeypatch):
    monkeypatch.setattr(order_service, "find_customer_id", lambda user_id: "CU1")
    monkeypatch.setattr(order_service, "fetch_rider_location", lambda rider_id: None)
    store.fail_history = True
    store.fail_delete = True

    with pytest.raises(StoreWriteFailure, match="history table"):
        order_service.create_order_request(_create_request())
    assert store.deleted == ["NEW1"]
    assert "NEW1" in store.orders
