"""Permission endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Path, Query

from ...errors import DispatchError
from ...schemas.permissions import CapabilitiesResponse
from ...services.permissions import Role, load_capabilities

router = APIRouter(prefix="/permissions", tags=["permissions"])


@router.get("/{profile_id}", response_model=CapabilitiesResponse)
def get_capabilities(
    profile_id: str = Path(..., description="Profile identifier"),
    role: Role | None = Query(default=None, description="Profile role; ho_admin holds every permission"),
) -> CapabilitiesResponse:
    try:
        capabilities = load_capabilities(profile_id, role)
    except DispatchError:
        raise
    except Exception as exc:
        logging.exception(f"Error loading permissions for {profile_id}: {exc}")
        raise DispatchError(str(exc)) from exc
    return CapabilitiesResponse(
        profile_id=profile_id,
        role=role.value if role else None,
        modules=capabilities.as_dict(),
    )
