"""Domain models for orders, riders and their audit trail."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class OrderStatus(str, Enum):
    """Order states this service reads or writes.

    Other lifecycle states exist in the store; they are kept as raw strings
    on :class:`Order` and only compared against these values.
    """

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class OrderAction(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"


class VoidRequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class VoidAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


@dataclass(slots=True)
class Order:
    """A customer order as stored in ``customer_orders``."""

    id: str
    status: str
    rider_id: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    rejection_reason: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass(slots=True)
class RiderProfile:
    """An active rider with a known last location."""

    id: str
    full_name: Optional[str]
    phone: Optional[str]
    latitude: float
    longitude: float
    location_updated_at: Optional[datetime]
    branch_name: Optional[str] = None
    branch_address: Optional[str] = None


@dataclass(slots=True)
class RiderLocation:
    """A rider's previous profile location, kept for compensating writes."""

    rider_id: str
    latitude: Optional[float]
    longitude: Optional[float]
    updated_at: Optional[str]


@dataclass(slots=True)
class StatusHistoryEntry:
    """Append-only audit record for an order transition."""

    order_id: str
    status: str
    notes: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    created_at: Optional[datetime] = None


@dataclass(slots=True)
class Profile:
    """Any staff or rider profile, as needed for role and branch checks."""

    id: str
    role: Optional[str]
    branch_id: Optional[str]
    full_name: Optional[str] = None


@dataclass(slots=True)
class Branch:
    id: str
    name: str


@dataclass(slots=True)
class SaleTransaction:
    """A point-of-sale transaction referenced by a void request."""

    id: str
    transaction_number: Optional[str]
    final_amount: float
    is_voided: bool


@dataclass(slots=True)
class VoidRequest:
    """A request to void a sale, pending review by a manager."""

    id: str
    status: str
    transaction_id: str
    branch_id: Optional[str]
    rider_id: Optional[str]
    reason: Optional[str]
    transaction: SaleTransaction
