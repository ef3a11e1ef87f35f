"""Permission API schemas."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel


class CapabilitiesResponse(BaseModel):
    profile_id: str
    role: Optional[str] = None
    modules: Dict[str, List[str]]
