"""Route group exports."""

from . import health, orders, permissions, riders, voids

__all__ = ["health", "orders", "riders", "permissions", "voids"]
