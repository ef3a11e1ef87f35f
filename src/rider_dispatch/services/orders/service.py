"""Order state transitions: rider responses and new order requests."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from ...config import settings
from ...errors import InvalidState, NotFound, StoreWriteFailure, Unauthorized, ValidationFailure
from ...models.domain import Order, OrderAction, OrderStatus, StatusHistoryEntry
from ...persistence.database import (
    delete_order,
    fetch_order,
    fetch_rider_location,
    find_customer_id,
    insert_order,
    insert_status_history,
    list_status_history,
    update_order_status,
)
from ...schemas.orders import (
    OrderCreateRequest,
    OrderCreateResult,
    OrderResponseRequest,
    OrderResponseResult,
    StatusHistoryModel,
    StatusHistoryResponse,
)
from ..geospatial import eta_minutes, haversine_km

ACCEPTED_NOTE = "Rider accepted the order"
REJECTED_NOTE = "Rider rejected the order"
PENDING_NOTE = "Waiting for rider confirmation"

ORDER_TYPE = "on_the_wheels"
PAYMENT_METHOD = "cash"


def _parse_action(value: str) -> OrderAction:
    try:
        return OrderAction(value)
    except ValueError as exc:
        raise ValidationFailure("Invalid action") from exc


def _check_preconditions(order: Optional[Order], order_id: str, rider_profile_id: str) -> Order:
    if order is None:
        raise NotFound("Order not found")
    if order.status != OrderStatus.PENDING.value:
        raise InvalidState(f"Order {order_id} is not in pending status (status: {order.status})")
    if order.rider_id != rider_profile_id:
        raise Unauthorized("Order not assigned to this rider")
    return order


def _record_transition(order: Order, entry: StatusHistoryEntry) -> None:
    """Append the history entry, undoing the status change if that fails."""
    try:
        insert_status_history(entry)
    except StoreWriteFailure as exc:
        logging.error(
            f"History insert failed for order {order.id}; restoring status '{order.status}': {exc}"
        )
        try:
            update_order_status(
                order.id,
                order.status,
                order.rejection_reason,
                include_reason=True,
                updated_at=order.updated_at,
            )
        except StoreWriteFailure as rollback_exc:
            logging.error(f"Could not restore order {order.id} after failed history insert: {rollback_exc}")
        raise


def respond_to_order(request: OrderResponseRequest) -> OrderResponseResult:
    """Apply a rider's accept/reject decision to a pending order.

    Preconditions are checked in order (existence, pending status, assigned
    rider, known action) and nothing is written unless all of them hold.
    Exactly one status update and one history entry are written on success.
    If the history entry cannot be written the status update is reverted and
    :class:`StoreWriteFailure` propagates.
    """
    logging.info(
        f"Rider response: order={request.order_id} rider={request.rider_profile_id} action={request.action}"
    )

    order = _check_preconditions(
        fetch_order(request.order_id), request.order_id, request.rider_profile_id
    )
    action = _parse_action(request.action)

    if action is OrderAction.ACCEPT:
        update_order_status(order.id, OrderStatus.ACCEPTED.value)
        _record_transition(
            order,
            StatusHistoryEntry(
                order_id=order.id,
                status=OrderStatus.ACCEPTED.value,
                notes=ACCEPTED_NOTE,
                latitude=order.latitude,
                longitude=order.longitude,
            ),
        )
        logging.info(f"Order {order.id} accepted")
        return OrderResponseResult(message="Order accepted", status=OrderStatus.ACCEPTED.value)

    stored_reason = request.rejection_reason or settings.default_rejection_reason
    update_order_status(order.id, OrderStatus.REJECTED.value, stored_reason, include_reason=True)
    _record_transition(
        order,
        StatusHistoryEntry(
            order_id=order.id,
            status=OrderStatus.REJECTED.value,
            notes=request.rejection_reason or REJECTED_NOTE,
            latitude=order.latitude,
            longitude=order.longitude,
        ),
    )
    logging.info(f"Order {order.id} rejected: {request.rejection_reason}")
    return OrderResponseResult(
        message="Order rejected",
        status=OrderStatus.REJECTED.value,
        reason=request.rejection_reason,
    )


def estimate_eta_minutes(rider_profile_id: str, lat: float, lng: float) -> int:
    """ETA from the rider's last known location, or the configured default."""
    location = fetch_rider_location(rider_profile_id)
    if location is None or location.latitude is None or location.longitude is None:
        return settings.default_eta_minutes
    distance = haversine_km(location.latitude, location.longitude, lat, lng)
    return eta_minutes(distance, settings.average_speed_kmh)


def create_order_request(
    request: OrderCreateRequest,
    now: Optional[datetime] = None,
) -> OrderCreateResult:
    """Create a pending order addressed to a specific rider."""
    logging.info(
        f"Creating order request: customer={request.customer_user_id} rider={request.rider_profile_id}"
    )

    customer_id = find_customer_id(request.customer_user_id)
    if customer_id is None:
        raise NotFound("Customer not found")

    eta = estimate_eta_minutes(request.rider_profile_id, request.customer_lat, request.customer_lng)
    current = now or datetime.now(timezone.utc)
    estimated_arrival = (current + timedelta(minutes=eta)).isoformat()

    order_id = insert_order(
        {
            "user_id": customer_id,
            "rider_id": request.rider_profile_id,
            "order_type": ORDER_TYPE,
            "status": OrderStatus.PENDING.value,
            "delivery_address": request.delivery_address,
            "latitude": request.customer_lat,
            "longitude": request.customer_lng,
            "estimated_arrival": estimated_arrival,
            "total_price": 0,
            "payment_method": PAYMENT_METHOD,
        }
    )
    logging.info(f"Order created: {order_id}")

    try:
        insert_status_history(
            StatusHistoryEntry(
                order_id=order_id,
                status=OrderStatus.PENDING.value,
                notes=request.notes or PENDING_NOTE,
                latitude=request.customer_lat,
                longitude=request.customer_lng,
            )
        )
    except StoreWriteFailure as exc:
        logging.error(f"History insert failed for new order {order_id}; deleting it: {exc}")
        try:
            delete_order(order_id)
        except StoreWriteFailure as rollback_exc:
            logging.error(f"Could not delete order {order_id} after failed history insert: {rollback_exc}")
        raise

    return OrderCreateResult(order_id=order_id, estimated_arrival=estimated_arrival, eta_minutes=eta)


def get_order_history(order_id: str) -> StatusHistoryResponse:
    """Audit trail of an order in insertion order."""
    if fetch_order(order_id) is None:
        raise NotFound("Order not found")
    entries = list_status_history(order_id)
    return StatusHistoryResponse(
        order_id=order_id,
        entries=[
            StatusHistoryModel(
                order_id=entry.order_id,
                status=entry.status,
                notes=entry.notes,
                latitude=entry.latitude,
                longitude=entry.longitude,
                created_at=entry.created_at,
            )
            for entry in entries
        ],
    )
