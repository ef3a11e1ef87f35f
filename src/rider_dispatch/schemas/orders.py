"""Order request/response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class OrderResponseRequest(BaseModel):
    order_id: str
    rider_profile_id: str
    action: str = Field(..., description="Either 'accept' or 'reject'.")
    rejection_reason: Optional[str] = None


class OrderResponseResult(BaseModel):
    success: bool = True
    message: str
    status: str
    reason: Optional[str] = None


class OrderCreateRequest(BaseModel):
    customer_user_id: str
    rider_profile_id: str
    customer_lat: float = Field(..., ge=-90, le=90)
    customer_lng: float = Field(..., ge=-180, le=180)
    delivery_address: str
    notes: Optional[str] = None


class OrderCreateResult(BaseModel):
    success: bool = True
    order_id: str
    estimated_arrival: str
    eta_minutes: int


class StatusHistoryModel(BaseModel):
    order_id: str
    status: str
    notes: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    created_at: Optional[datetime] = None


class StatusHistoryResponse(BaseModel):
    order_id: str
    entries: List[StatusHistoryModel]
