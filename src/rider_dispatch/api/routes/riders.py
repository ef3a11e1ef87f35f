"""Rider endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, status

from ...errors import DispatchError
from ...schemas.riders import (
    LocationUpdateRequest,
    LocationUpdateResult,
    NearbyRidersRequest,
    NearbyRidersResponse,
    RiderReassignRequest,
    RiderReassignResult,
)
from ...services.riders import find_nearby_riders, reassign_rider_branch, update_rider_location

router = APIRouter(prefix="/riders", tags=["riders"])


@router.post("/nearby", response_model=NearbyRidersResponse, status_code=status.HTTP_200_OK)
def nearby(payload: NearbyRidersRequest) -> NearbyRidersResponse:
    """Riders ranked for a customer location, online riders first."""
    try:
        return find_nearby_riders(payload)
    except DispatchError:
        raise
    except Exception as exc:
        logging.exception(f"Error finding nearby riders: {exc}")
        raise DispatchError(str(exc)) from exc


@router.post("/location", response_model=LocationUpdateResult, status_code=status.HTTP_200_OK)
def location(payload: LocationUpdateRequest) -> LocationUpdateResult:
    try:
        return update_rider_location(payload)
    except DispatchError:
        raise
    except Exception as exc:
        logging.exception(f"Error updating rider location: {exc}")
        raise DispatchError(str(exc)) from exc


@router.post("/reassign-branch", response_model=RiderReassignResult, status_code=status.HTTP_200_OK)
def reassign_branch(payload: RiderReassignRequest) -> RiderReassignResult:
    """Move a rider to another branch; HO admins only."""
    try:
        return reassign_rider_branch(payload)
    except DispatchError:
        raise
    except Exception as exc:
        logging.exception(f"Error reassigning rider: {exc}")
        raise DispatchError(str(exc)) from exc
