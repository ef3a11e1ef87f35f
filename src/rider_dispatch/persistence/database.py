"""Database persistence for orders, riders, back-office records and permission grants."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional

from postgrest.exceptions import APIError

from ..db.supabase import get_supabase_client
from ..errors import StoreReadFailure, StoreUnavailable, StoreWriteFailure
from ..models.domain import (
    Branch,
    Order,
    Profile,
    RiderLocation,
    RiderProfile,
    SaleTransaction,
    StatusHistoryEntry,
    VoidRequest,
)

ORDERS_TABLE = "customer_orders"
HISTORY_TABLE = "order_status_history"
PROFILES_TABLE = "profiles"
BRANCHES_TABLE = "branches"
RIDER_LOCATIONS_TABLE = "rider_locations"
INVENTORY_TABLE = "inventory"
SHIFTS_TABLE = "shift_management"
CUSTOMER_USERS_TABLE = "customer_users"
PERMISSIONS_TABLE = "user_module_permissions"
VOID_REQUESTS_TABLE = "transaction_void_requests"
TRANSACTIONS_TABLE = "transactions"
TRANSACTION_ITEMS_TABLE = "transaction_items"
FINANCIAL_TABLE = "financial_transactions"

RIDER_ROLE = "rider"

# Postgres "invalid_text_representation", e.g. a malformed uuid in a filter.
INVALID_TEXT_REPRESENTATION = "22P02"

_FRACTION = re.compile(r"\.(\d+)(?=(?:[+-]\d{2}(?::?\d{2})?)?$)")


def _client():
    supabase = get_supabase_client()
    if not supabase:
        raise StoreUnavailable(
            "Supabase not configured. Set DISPATCH_SUPABASE_URL and DISPATCH_SUPABASE_KEY environment variables."
        )
    return supabase


def _execute(query, description: str):
    """Run a PostgREST write, converting client errors into StoreWriteFailure."""
    try:
        return query.execute()
    except Exception as exc:
        logging.error(f"Supabase {description} failed: {exc}")
        raise StoreWriteFailure(f"Failed to {description}: {exc}") from exc


def _select(query, description: str, *, bad_id_is_missing: bool = False) -> list[dict[str, Any]]:
    """Run a PostgREST read and return its rows.

    With ``bad_id_is_missing`` an identifier Postgres cannot parse (such as a
    malformed uuid) yields no rows instead of an error.
    """
    try:
        return list(query.execute().data or [])
    except APIError as exc:
        if bad_id_is_missing and exc.code == INVALID_TEXT_REPRESENTATION:
            logging.info(f"Supabase {description}: identifier rejected as malformed ({exc.message})")
            return []
        logging.error(f"Supabase {description} failed: {exc}")
        raise StoreReadFailure(f"Failed to {description}: {exc}") from exc
    except Exception as exc:
        logging.error(f"Supabase {description} failed: {exc}")
        raise StoreReadFailure(f"Failed to {description}: {exc}") from exc


def _first(rows: Optional[list[dict[str, Any]]]) -> Optional[dict[str, Any]]:
    return rows[0] if rows else None


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a PostgREST timestamp; naive values are taken as UTC.

    Postgres trims trailing zeros from fractional seconds, so the fraction is
    padded (or cut) to microseconds before parsing.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        text = _FRACTION.sub(lambda match: "." + match.group(1)[:6].ljust(6, "0"), text, count=1)
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logging.warning(f"Ignoring unparseable timestamp '{value}'")
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _as_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


def fetch_order(order_id: str) -> Optional[Order]:
    """Load an order's state fields, or None if it does not exist."""
    query = (
        _client()
        .table(ORDERS_TABLE)
        .select("id, status, rider_id, latitude, longitude, rejection_reason, updated_at")
        .eq("id", order_id)
        .limit(1)
    )
    row = _first(_select(query, f"load order {order_id}", bad_id_is_missing=True))
    if not row:
        return None
    return Order(
        id=str(row["id"]),
        status=row.get("status") or "",
        rider_id=row.get("rider_id"),
        latitude=_as_float(row.get("latitude")),
        longitude=_as_float(row.get("longitude")),
        rejection_reason=row.get("rejection_reason"),
        updated_at=row.get("updated_at"),
    )


def update_order_status(
    order_id: str,
    status: str,
    rejection_reason: Optional[str] = None,
    *,
    include_reason: bool = False,
    updated_at: Optional[str] = None,
) -> None:
    """Set an order's status (and optionally its rejection reason).

    ``updated_at`` defaults to now; compensating writes pass the previous value.
    """
    payload: dict[str, Any] = {
        "status": status,
        "updated_at": updated_at or _now_iso(),
    }
    if include_reason:
        payload["rejection_reason"] = rejection_reason
    query = _client().table(ORDERS_TABLE).update(payload).eq("id", order_id)
    _execute(query, f"update order {order_id} to '{status}'")


def insert_order(record: dict[str, Any]) -> str:
    """Insert an order and return its generated id."""
    response = _execute(_client().table(ORDERS_TABLE).insert(record), "create order")
    row = _first(response.data)
    if not row or "id" not in row:
        raise StoreWriteFailure("Failed to create order: no row returned")
    return str(row["id"])


def delete_order(order_id: str) -> None:
    _execute(_client().table(ORDERS_TABLE).delete().eq("id", order_id), f"delete order {order_id}")


def insert_status_history(entry: StatusHistoryEntry) -> None:
    record = {
        "order_id": entry.order_id,
        "status": entry.status,
        "notes": entry.notes,
        "latitude": entry.latitude,
        "longitude": entry.longitude,
    }
    _execute(_client().table(HISTORY_TABLE).insert(record), f"record history for order {entry.order_id}")


def list_status_history(order_id: str) -> list[StatusHistoryEntry]:
    query = (
        _client()
        .table(HISTORY_TABLE)
        .select("order_id, status, notes, latitude, longitude, created_at")
        .eq("order_id", order_id)
        .order("created_at")
    )
    rows = _select(query, f"load history for order {order_id}", bad_id_is_missing=True)
    return [
        StatusHistoryEntry(
            order_id=str(row["order_id"]),
            status=row.get("status") or "",
            notes=row.get("notes"),
            latitude=_as_float(row.get("latitude")),
            longitude=_as_float(row.get("longitude")),
            created_at=parse_timestamp(row.get("created_at")),
        )
        for row in rows
    ]


def find_customer_id(user_id: str) -> Optional[str]:
    """Resolve the ``customer_users`` row id for an auth user id."""
    query = _client().table(CUSTOMER_USERS_TABLE).select("id").eq("user_id", user_id).limit(1)
    row = _first(_select(query, f"look up customer {user_id}", bad_id_is_missing=True))
    return str(row["id"]) if row else None


# ---------------------------------------------------------------------------
# Riders
# ---------------------------------------------------------------------------


def fetch_active_riders_with_location() -> list[RiderProfile]:
    """Active riders whose last known coordinate is set."""
    query = (
        _client()
        .table(PROFILES_TABLE)
        .select(
            "id, full_name, phone, last_known_lat, last_known_lng, location_updated_at, "
            "branch_id, branches(name, address)"
        )
        .eq("role", RIDER_ROLE)
        .eq("is_active", True)
        .not_.is_("last_known_lat", "null")
        .not_.is_("last_known_lng", "null")
    )
    rows = _select(query, "load active riders")

    riders: list[RiderProfile] = []
    for row in rows:
        lat = _as_float(row.get("last_known_lat"))
        lng = _as_float(row.get("last_known_lng"))
        if lat is None or lng is None:
            continue
        branch = row.get("branches") or {}
        riders.append(
            RiderProfile(
                id=str(row["id"]),
                full_name=row.get("full_name"),
                phone=row.get("phone"),
                latitude=lat,
                longitude=lng,
                location_updated_at=parse_timestamp(row.get("location_updated_at")),
                branch_name=branch.get("name"),
                branch_address=branch.get("address"),
            )
        )
    return riders


def sum_rider_stock(rider_ids: list[str]) -> dict[str, int]:
    """Total ``stock_quantity`` per rider; riders without inventory map to 0."""
    totals = {rider_id: 0 for rider_id in rider_ids}
    if not rider_ids:
        return totals
    query = _client().table(INVENTORY_TABLE).select("rider_id, stock_quantity").in_("rider_id", rider_ids)
    for row in _select(query, "load rider inventory"):
        rider_id = str(row.get("rider_id"))
        if rider_id in totals:
            totals[rider_id] += int(row.get("stock_quantity") or 0)
    return totals


def fetch_rider_location(rider_id: str) -> Optional[RiderLocation]:
    """Current profile location fields for a rider, or None if no such profile."""
    query = (
        _client()
        .table(PROFILES_TABLE)
        .select("id, last_known_lat, last_known_lng, location_updated_at")
        .eq("id", rider_id)
        .limit(1)
    )
    row = _first(_select(query, f"load location of rider {rider_id}", bad_id_is_missing=True))
    if not row:
        return None
    return RiderLocation(
        rider_id=str(row["id"]),
        latitude=_as_float(row.get("last_known_lat")),
        longitude=_as_float(row.get("last_known_lng")),
        updated_at=row.get("location_updated_at"),
    )


def update_profile_location(
    rider_id: str,
    lat: Optional[float],
    lng: Optional[float],
    updated_at: Optional[str],
) -> None:
    payload = {
        "last_known_lat": lat,
        "last_known_lng": lng,
        "location_updated_at": updated_at,
    }
    query = _client().table(PROFILES_TABLE).update(payload).eq("id", rider_id)
    _execute(query, f"update profile location of rider {rider_id}")


def upsert_rider_location(
    rider_id: str,
    lat: float,
    lng: float,
    updated_at: str,
    accuracy: Optional[float] = None,
    heading: Optional[float] = None,
    speed: Optional[float] = None,
) -> None:
    record = {
        "rider_id": rider_id,
        "latitude": lat,
        "longitude": lng,
        "accuracy": accuracy,
        "heading": heading,
        "speed": speed,
        "updated_at": updated_at,
    }
    query = _client().table(RIDER_LOCATIONS_TABLE).upsert(record, on_conflict="rider_id")
    _execute(query, f"store live location of rider {rider_id}")


# ---------------------------------------------------------------------------
# Back office: profiles, branches, void requests
# ---------------------------------------------------------------------------


def fetch_profile(profile_id: str) -> Optional[Profile]:
    query = _client().table(PROFILES_TABLE).select("id, role, branch_id, full_name").eq("id", profile_id).limit(1)
    row = _first(_select(query, f"load profile {profile_id}", bad_id_is_missing=True))
    if not row:
        return None
    return Profile(
        id=str(row["id"]),
        role=row.get("role"),
        branch_id=row.get("branch_id"),
        full_name=row.get("full_name"),
    )


def find_branch_by_name(name: str) -> Optional[Branch]:
    """Case-insensitive exact branch name lookup."""
    query = _client().table(BRANCHES_TABLE).select("id, name").ilike("name", name).limit(1)
    row = _first(_select(query, f"look up branch '{name}'"))
    if not row:
        return None
    return Branch(id=str(row["id"]), name=row.get("name") or name)


def update_profile_assignment(profile_id: str, branch_id: Optional[str], role: Optional[str] = None) -> None:
    payload: dict[str, Any] = {"branch_id": branch_id, "updated_at": _now_iso()}
    if role is not None:
        payload["role"] = role
    query = _client().table(PROFILES_TABLE).update(payload).eq("id", profile_id)
    _execute(query, f"reassign profile {profile_id}")


def move_rider_inventory(rider_id: str, branch_id: str) -> int:
    """Point every inventory row of a rider at a branch; returns rows changed."""
    query = _client().table(INVENTORY_TABLE).update({"branch_id": branch_id}).eq("rider_id", rider_id)
    response = _execute(query, f"move inventory of rider {rider_id}")
    return len(response.data or [])


def move_active_shifts(rider_id: str, branch_id: str) -> int:
    query = (
        _client()
        .table(SHIFTS_TABLE)
        .update({"branch_id": branch_id})
        .eq("rider_id", rider_id)
        .eq("status", "active")
    )
    response = _execute(query, f"move active shifts of rider {rider_id}")
    return len(response.data or [])


def fetch_void_request(request_id: str) -> Optional[VoidRequest]:
    """Load a void request with the sale it refers to."""
    query = (
        _client()
        .table(VOID_REQUESTS_TABLE)
        .select(
            "id, status, transaction_id, branch_id, rider_id, reason, "
            "transactions(id, transaction_number, final_amount, is_voided)"
        )
        .eq("id", request_id)
        .limit(1)
    )
    row = _first(_select(query, f"load void request {request_id}", bad_id_is_missing=True))
    if not row:
        return None
    sale = row.get("transactions") or {}
    return VoidRequest(
        id=str(row["id"]),
        status=row.get("status") or "",
        transaction_id=str(row["transaction_id"]),
        branch_id=row.get("branch_id"),
        rider_id=row.get("rider_id"),
        reason=row.get("reason"),
        transaction=SaleTransaction(
            id=str(sale.get("id") or row["transaction_id"]),
            transaction_number=sale.get("transaction_number"),
            final_amount=float(sale.get("final_amount") or 0),
            is_voided=bool(sale.get("is_voided")),
        ),
    )


def update_void_request(
    request_id: str,
    status: str,
    reviewer_id: str,
    reviewer_notes: Optional[str] = None,
) -> None:
    payload = {
        "status": status,
        "reviewed_by": reviewer_id,
        "reviewed_at": _now_iso(),
        "reviewer_notes": reviewer_notes or None,
    }
    query = _client().table(VOID_REQUESTS_TABLE).update(payload).eq("id", request_id)
    _execute(query, f"mark void request {request_id} {status}")


def set_transaction_voided(transaction_id: str, voided_by: str, reason: Optional[str]) -> None:
    payload = {
        "is_voided": True,
        "voided_at": _now_iso(),
        "voided_by": voided_by,
        "void_reason": reason,
    }
    query = _client().table(TRANSACTIONS_TABLE).update(payload).eq("id", transaction_id)
    _execute(query, f"void transaction {transaction_id}")


def clear_transaction_voided(transaction_id: str) -> None:
    payload = {"is_voided": False, "voided_at": None, "voided_by": None, "void_reason": None}
    query = _client().table(TRANSACTIONS_TABLE).update(payload).eq("id", transaction_id)
    _execute(query, f"restore transaction {transaction_id}")


def insert_financial_entry(record: dict[str, Any]) -> str:
    """Insert a ledger row and return its id."""
    response = _execute(_client().table(FINANCIAL_TABLE).insert(record), "record financial entry")
    row = _first(response.data)
    if not row or "id" not in row:
        raise StoreWriteFailure("Failed to record financial entry: no row returned")
    return str(row["id"])


def delete_financial_entry(entry_id: str) -> None:
    query = _client().table(FINANCIAL_TABLE).delete().eq("id", entry_id)
    _execute(query, f"delete financial entry {entry_id}")


def list_transaction_items(transaction_id: str) -> list[tuple[str, int]]:
    """(product_id, quantity) pairs sold in a transaction."""
    query = _client().table(TRANSACTION_ITEMS_TABLE).select("product_id, quantity").eq("transaction_id", transaction_id)
    rows = _select(query, f"load items of transaction {transaction_id}")
    return [(str(row["product_id"]), int(row.get("quantity") or 0)) for row in rows]


def increment_inventory_stock(rider_id: Optional[str], product_id: str, quantity: int) -> None:
    params = {"p_rider_id": rider_id, "p_product_id": product_id, "p_quantity": quantity}
    _execute(_client().rpc("increment_inventory_stock", params), f"adjust stock of {product_id} by {quantity}")


# ---------------------------------------------------------------------------
# Permissions
# ---------------------------------------------------------------------------


def fetch_permission_grants(profile_id: str) -> list[dict[str, Any]]:
    """Granted module permission rows for a profile."""
    query = (
        _client()
        .table(PERMISSIONS_TABLE)
        .select("module_name, permission_type, is_granted")
        .eq("user_id", profile_id)
        .eq("is_granted", True)
    )
    return _select(query, f"load permissions for {profile_id}", bad_id_is_missing=True)


def check_connection() -> bool:
    """Issue a trivial query against the orders table."""
    _select(_client().table(ORDERS_TABLE).select("id").limit(1), "reach the database")
    return True
