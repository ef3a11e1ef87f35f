"""Geospatial helper functions."""

from __future__ import annotations

import math
from datetime import datetime, timedelta

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def eta_minutes(distance_km: float, speed_kmh: float) -> int:
    """Travel time in whole minutes at a constant average speed."""

    # round() would bank 0.5 to even; arrival estimates round half up.
    return int(math.floor(distance_km / speed_kmh * 60 + 0.5))


def is_recent(timestamp: datetime | None, now: datetime, window: timedelta) -> bool:
    """Return True if ``timestamp`` lies strictly less than ``window`` before ``now``."""

    if timestamp is None:
        return False
    return now - timestamp < window
