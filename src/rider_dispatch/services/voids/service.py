"""Manager review of sale void requests."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from ...errors import InvalidState, NotFound, StoreWriteFailure, Unauthorized, ValidationFailure
from ...models.domain import Profile, VoidAction, VoidRequest, VoidRequestStatus
from ...persistence.database import (
    clear_transaction_voided,
    delete_financial_entry,
    fetch_profile,
    fetch_void_request,
    increment_inventory_stock,
    insert_financial_entry,
    list_transaction_items,
    set_transaction_voided,
    update_void_request,
)
from ...schemas.voids import VoidReviewRequest, VoidReviewResult
from ..permissions import Role

REVIEWER_ROLES = frozenset({Role.HO_ADMIN.value, Role.BRANCH_MANAGER.value, Role.SB_BRANCH_MANAGER.value})

# (transaction_type, account_type) pairs reversed when a sale is voided.
REVERSAL_ACCOUNTS = (("revenue", "sales"), ("asset", "cash"))


def _parse_action(value: str) -> VoidAction:
    try:
        return VoidAction(value)
    except ValueError as exc:
        raise ValidationFailure('Invalid action. Must be "approve" or "reject"') from exc


def _check_reviewer(reviewer: Optional[Profile], void_request: VoidRequest) -> Profile:
    if reviewer is None:
        raise NotFound("Reviewer profile not found")
    if reviewer.role not in REVIEWER_ROLES:
        raise Unauthorized("Insufficient permissions: invalid role")
    if reviewer.role != Role.HO_ADMIN.value and reviewer.branch_id != void_request.branch_id:
        raise Unauthorized("Insufficient permissions: branch mismatch")
    return reviewer


def _undo(steps: list[Callable[[], None]], request_id: str) -> None:
    for step in reversed(steps):
        try:
            step()
        except StoreWriteFailure as exc:
            logging.error(f"Could not undo a write for void request {request_id}: {exc}")


def _approve(void_request: VoidRequest, reviewer: Profile, notes: Optional[str]) -> None:
    """Void the sale, reverse its ledger entries and return its stock to the rider.

    The request is marked approved last. If any write fails, the writes made
    so far are undone in reverse order and the failure propagates.
    """
    sale = void_request.transaction
    if sale.is_voided:
        raise InvalidState("Transaction is already voided")

    items = list_transaction_items(void_request.transaction_id)
    description = f"Void Transaction - {sale.transaction_number}"
    undo: list[Callable[[], None]] = []

    try:
        set_transaction_voided(void_request.transaction_id, reviewer.id, void_request.reason)
        undo.append(lambda: clear_transaction_voided(void_request.transaction_id))

        for transaction_type, account_type in REVERSAL_ACCOUNTS:
            entry_id = insert_financial_entry(
                {
                    "transaction_id": void_request.transaction_id,
                    "branch_id": void_request.branch_id,
                    "transaction_type": transaction_type,
                    "account_type": account_type,
                    "amount": -sale.final_amount,
                    "description": description,
                    "reference_number": sale.transaction_number,
                    "created_by": reviewer.id,
                }
            )
            undo.append(lambda entry_id=entry_id: delete_financial_entry(entry_id))

        for product_id, quantity in items:
            increment_inventory_stock(void_request.rider_id, product_id, quantity)
            undo.append(
                lambda product_id=product_id, quantity=quantity: increment_inventory_stock(
                    void_request.rider_id, product_id, -quantity
                )
            )

        update_void_request(void_request.id, VoidRequestStatus.APPROVED.value, reviewer.id, notes)
    except StoreWriteFailure as exc:
        logging.error(f"Approving void request {void_request.id} failed; undoing {len(undo)} write(s): {exc}")
        _undo(undo, void_request.id)
        raise

    logging.info(f"Void request {void_request.id} approved; {len(items)} item(s) returned to stock")


def review_void_request(request: VoidReviewRequest) -> VoidReviewResult:
    """Approve or reject a pending void request on behalf of a manager."""
    logging.info(
        f"Void review: request={request.void_request_id} reviewer={request.reviewer_profile_id} "
        f"action={request.action}"
    )

    void_request = fetch_void_request(request.void_request_id)
    if void_request is None:
        raise NotFound("Void request not found")
    reviewer = _check_reviewer(fetch_profile(request.reviewer_profile_id), void_request)
    if void_request.status != VoidRequestStatus.PENDING.value:
        raise InvalidState(f"Void request {void_request.id} is not pending (status: {void_request.status})")
    action = _parse_action(request.action)

    if action is VoidAction.APPROVE:
        _approve(void_request, reviewer, request.reviewer_notes)
        return VoidReviewResult(
            message="Transaction voided successfully",
            status=VoidRequestStatus.APPROVED.value,
        )

    update_void_request(void_request.id, VoidRequestStatus.REJECTED.value, reviewer.id, request.reviewer_notes)
    logging.info(f"Void request {void_request.id} rejected")
    return VoidReviewResult(message="Void request rejected", status=VoidRequestStatus.REJECTED.value)
