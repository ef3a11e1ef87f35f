"""Rider locator and location update schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class NearbyRidersRequest(BaseModel):
    customer_lat: float = Field(..., ge=-90, le=90)
    customer_lng: float = Field(..., ge=-180, le=180)
    radius_km: Optional[float] = Field(
        default=None,
        gt=0,
        description="Accepted for client compatibility; results are not filtered by it.",
    )


class NearbyRiderModel(BaseModel):
    id: str
    full_name: Optional[str] = None
    phone: str = ""
    distance_km: float
    eta_minutes: int
    total_stock: int
    lat: float
    lng: float
    last_updated: Optional[datetime] = None
    is_online: bool
    branch_name: str = ""
    branch_address: str = ""


class NearbyRidersResponse(BaseModel):
    riders: List[NearbyRiderModel]


class LocationUpdateRequest(BaseModel):
    rider_profile_id: str
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    accuracy: Optional[float] = None
    heading: Optional[float] = None
    speed: Optional[float] = None


class LocationUpdateResult(BaseModel):
    success: bool = True
    message: str = "Location updated"
    timestamp: str


class RiderReassignRequest(BaseModel):
    admin_profile_id: str
    rider_profile_id: str
    target_branch_name: str = Field(..., min_length=1)
    set_role_to_sb_rider: bool = False


class RiderReassignChanges(BaseModel):
    profiles_updated: int = 0
    inventory_updated: int = 0
    shift_management_updated: int = 0
    old_branch_id: Optional[str] = None
    new_branch_id: str
    role_changed: Optional[str] = None


class RiderReassignResult(BaseModel):
    success: bool = True
    message: str
    changes: RiderReassignChanges
