"""Void request service exports."""

from .service import review_void_request

__all__ = ["review_void_request"]
