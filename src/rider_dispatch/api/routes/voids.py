"""Void request endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, status

from ...errors import DispatchError
from ...schemas.voids import VoidReviewRequest, VoidReviewResult
from ...services.voids import review_void_request

router = APIRouter(prefix="/voids", tags=["voids"])


@router.post("/review", response_model=VoidReviewResult, status_code=status.HTTP_200_OK)
def review(payload: VoidReviewRequest) -> VoidReviewResult:
    try:
        return review_void_request(payload)
    except DispatchError:
        raise
    except Exception as exc:
        logging.exception(f"Error reviewing void request: {exc}")
        raise DispatchError(str(exc)) from exc
