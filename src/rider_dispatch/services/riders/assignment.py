"""Moving a rider, with their stock and active shifts, to another branch."""

from __future__ import annotations

import logging

from ...errors import NotFound, StoreWriteFailure, Unauthorized
from ...persistence.database import (
    fetch_profile,
    find_branch_by_name,
    move_active_shifts,
    move_rider_inventory,
    update_profile_assignment,
)
from ...schemas.riders import RiderReassignChanges, RiderReassignRequest, RiderReassignResult
from ..permissions import Role


def reassign_rider_branch(request: RiderReassignRequest) -> RiderReassignResult:
    """Assign a rider to the branch named in the request.

    Only ``ho_admin`` may reassign. The profile update must succeed; moving
    the rider's inventory rows and active shifts is best effort and a failure
    there is logged and counted as zero rows.
    """
    logging.info(
        f"Reassigning rider {request.rider_profile_id} to '{request.target_branch_name}' "
        f"(sb_rider={request.set_role_to_sb_rider})"
    )

    admin = fetch_profile(request.admin_profile_id)
    if admin is None or admin.role != Role.HO_ADMIN.value:
        raise Unauthorized("Only HO Admin can reassign riders")

    rider = fetch_profile(request.rider_profile_id)
    if rider is None:
        raise NotFound(f"Rider not found: {request.rider_profile_id}")

    branch = find_branch_by_name(request.target_branch_name)
    if branch is None:
        raise NotFound(f"Branch not found: {request.target_branch_name}")

    changes = RiderReassignChanges(old_branch_id=rider.branch_id, new_branch_id=branch.id)
    new_role = None
    if request.set_role_to_sb_rider and rider.role != Role.SB_RIDER.value:
        new_role = Role.SB_RIDER.value
        changes.role_changed = f"{rider.role} -> {new_role}"

    update_profile_assignment(rider.id, branch.id, new_role)
    changes.profiles_updated = 1

    try:
        changes.inventory_updated = move_rider_inventory(rider.id, branch.id)
    except StoreWriteFailure as exc:
        logging.warning(f"Inventory of rider {rider.id} not moved: {exc}")
    try:
        changes.shift_management_updated = move_active_shifts(rider.id, branch.id)
    except StoreWriteFailure as exc:
        logging.warning(f"Active shifts of rider {rider.id} not moved: {exc}")

    logging.info(f"Reassignment completed: {changes.model_dump()}")
    return RiderReassignResult(
        message=f"Rider {rider.full_name or rider.id} successfully reassigned to {branch.name}",
        changes=changes,
    )
