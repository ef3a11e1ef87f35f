"""Rider lookup by proximity and live location updates."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from ...config import settings
from ...errors import NotFound, StoreWriteFailure
from ...persistence.database import (
    fetch_active_riders_with_location,
    fetch_rider_location,
    sum_rider_stock,
    update_profile_location,
    upsert_rider_location,
)
from ...schemas.riders import (
    LocationUpdateRequest,
    LocationUpdateResult,
    NearbyRiderModel,
    NearbyRidersRequest,
    NearbyRidersResponse,
)
from ..geospatial import eta_minutes, haversine_km, is_recent


def find_nearby_riders(
    request: NearbyRidersRequest,
    now: Optional[datetime] = None,
) -> NearbyRidersResponse:
    """Rank riders with a known location by distance to the customer.

    Online riders come first, then offline riders; each group is ordered by
    ascending distance. ``radius_km`` is not used to filter.
    """
    radius_km = request.radius_km or settings.default_radius_km
    logging.info(
        f"Finding nearby riders for ({request.customer_lat}, {request.customer_lng}), radius_km={radius_km}"
    )

    current = now or datetime.now(timezone.utc)
    window = timedelta(minutes=settings.online_window_minutes)

    riders = fetch_active_riders_with_location()
    stock = sum_rider_stock([rider.id for rider in riders])

    entries: list[NearbyRiderModel] = []
    for rider in riders:
        distance = round(
            haversine_km(request.customer_lat, request.customer_lng, rider.latitude, rider.longitude), 2
        )
        entries.append(
            NearbyRiderModel(
                id=rider.id,
                full_name=rider.full_name,
                phone=rider.phone or "",
                distance_km=distance,
                eta_minutes=eta_minutes(distance, settings.average_speed_kmh),
                total_stock=stock.get(rider.id, 0),
                lat=rider.latitude,
                lng=rider.longitude,
                last_updated=rider.location_updated_at,
                is_online=is_recent(rider.location_updated_at, current, window),
                branch_name=rider.branch_name or "",
                branch_address=rider.branch_address or "",
            )
        )

    entries.sort(key=lambda entry: (not entry.is_online, entry.distance_km))
    logging.info(f"Nearby riders found: {len(entries)}")
    return NearbyRidersResponse(riders=entries)


def update_rider_location(
    request: LocationUpdateRequest,
    now: Optional[datetime] = None,
) -> LocationUpdateResult:
    """Store a rider's GPS fix on their profile and in the live location table.

    If the live location upsert fails, the profile's previous location is
    written back before the error propagates.
    """
    rider_id = request.rider_profile_id
    logging.info(f"Updating rider location: rider={rider_id} lat={request.lat} lng={request.lng}")

    previous = fetch_rider_location(rider_id)
    if previous is None:
        raise NotFound(f"Rider profile {rider_id} not found")

    timestamp = (now or datetime.now(timezone.utc)).isoformat()
    update_profile_location(rider_id, request.lat, request.lng, timestamp)
    try:
        upsert_rider_location(
            rider_id,
            request.lat,
            request.lng,
            timestamp,
            accuracy=request.accuracy,
            heading=request.heading,
            speed=request.speed,
        )
    except StoreWriteFailure as exc:
        logging.error(f"Live location upsert failed for rider {rider_id}; restoring profile location: {exc}")
        try:
            update_profile_location(rider_id, previous.latitude, previous.longitude, previous.updated_at)
        except StoreWriteFailure as rollback_exc:
            logging.error(f"Could not restore profile location for rider {rider_id}: {rollback_exc}")
        raise

    logging.info(f"Location updated for rider {rider_id}")
    return LocationUpdateResult(timestamp=timestamp)
