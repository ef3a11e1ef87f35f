"""Void request review schemas."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class VoidReviewRequest(BaseModel):
    void_request_id: str
    reviewer_profile_id: str
    action: str = Field(..., description="Either 'approve' or 'reject'.")
    reviewer_notes: Optional[str] = None


class VoidReviewResult(BaseModel):
    success: bool = True
    message: str
    status: str
