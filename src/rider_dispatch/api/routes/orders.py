"""Order endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Path, status

from ...errors import DispatchError
from ...schemas.orders import (
    OrderCreateRequest,
    OrderCreateResult,
    OrderResponseRequest,
    OrderResponseResult,
    StatusHistoryResponse,
)
from ...services.orders import create_order_request, get_order_history, respond_to_order

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("/respond", response_model=OrderResponseResult, response_model_exclude_none=True, status_code=status.HTTP_200_OK)
def respond(payload: OrderResponseRequest) -> OrderResponseResult:
    """Rider accepts or rejects a pending order."""
    try:
        return respond_to_order(payload)
    except DispatchError:
        raise
    except Exception as exc:
        logging.exception(f"Error in rider order response: {exc}")
        raise DispatchError(str(exc)) from exc


@router.post("/request", response_model=OrderCreateResult, status_code=status.HTTP_200_OK)
def request_order(payload: OrderCreateRequest) -> OrderCreateResult:
    """Customer sends a new order to a chosen rider."""
    try:
        return create_order_request(payload)
    except DispatchError:
        raise
    except Exception as exc:
        logging.exception(f"Error creating order request: {exc}")
        raise DispatchError(str(exc)) from exc


@router.get("/{order_id}/history", response_model=StatusHistoryResponse, status_code=status.HTTP_200_OK)
def order_history(order_id: str = Path(..., description="Order identifier")) -> StatusHistoryResponse:
    try:
        return get_order_history(order_id)
    except DispatchError:
        raise
    except Exception as exc:
        logging.exception(f"Error loading order history: {exc}")
        raise DispatchError(str(exc)) from exc
