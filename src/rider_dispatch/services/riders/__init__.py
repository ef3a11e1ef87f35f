"""Rider service exports."""

from .assignment import reassign_rider_branch
from .service import find_nearby_riders, update_rider_location

__all__ = ["find_nearby_riders", "update_rider_location", "reassign_rider_branch"]
