"""Order service exports."""

from .service import create_order_request, get_order_history, respond_to_order

__all__ = ["respond_to_order", "create_order_request", "get_order_history"]
