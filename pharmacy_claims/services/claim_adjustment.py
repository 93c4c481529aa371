"""
Per-item Claim Adjudication.

Applies a reviewer's per-line decisions (approved quantity, approved amount,
rejection reason) to a claim, recomputes its covered amount and moves it to
APPROVED or PARTIALLY_APPROVED through the state machine.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Sequence

from pharmacy_claims.core.enums import ClaimStatus
from pharmacy_claims.schemas.insurance import (
    ClaimItemAdjustment,
    ClaimLineItem,
    InsuranceClaim,
)
from pharmacy_claims.services.claim_state_machine import (
    ClaimStateMachine,
    get_claim_state_machine,
    is_terminal_status,
)
from pharmacy_claims.utils.errors import ClaimItemAdjustmentError
from pharmacy_claims.utils.money import quantize_money, sum_money

logger = logging.getLogger(__name__)


def _approved_amount(item: ClaimLineItem, adjustment: ClaimItemAdjustment) -> Decimal:
    """Amount approved for a line, defaulting to its covered amount per unit."""
    if adjustment.approved_amount is not None:
        amount = quantize_money(adjustment.approved_amount)
        if amount > item.covered_amount:
            raise ClaimItemAdjustmentError(
                f"Approved amount {amount} exceeds covered amount {item.covered_amount}",
                item_id=str(item.id),
            )
        return amount

    return quantize_money(item.covered_amount * adjustment.approved_quantity / item.quantity)


def _validate_adjustments(
    claim: InsuranceClaim, adjustments: Sequence[ClaimItemAdjustment]
) -> None:
    items_by_id = {item.id: item for item in claim.items}
    seen = set()
    for adjustment in adjustments:
        item = items_by_id.get(adjustment.id)
        if item is None:
            raise ClaimItemAdjustmentError(
                f"Claim item {adjustment.id} does not belong to claim {claim.claim_number}",
                item_id=str(adjustment.id),
            )
        if adjustment.id in seen:
            raise ClaimItemAdjustmentError(
                f"Claim item {adjustment.id} adjusted more than once",
                item_id=str(adjustment.id),
            )
        seen.add(adjustment.id)
        if adjustment.approved_quantity > item.quantity:
            raise ClaimItemAdjustmentError(
                f"Approved quantity {adjustment.approved_quantity} exceeds "
                f"claimed quantity {item.quantity}",
                item_id=str(item.id),
            )


def update_claim_items(
    claim: InsuranceClaim,
    adjustments: Sequence[ClaimItemAdjustment],
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
    approved_by: Optional[str] = None,
    state_machine: Optional[ClaimStateMachine] = None,
) -> InsuranceClaim:
    """
    Apply per-item decisions and re-adjudicate the claim.

    A line is approved for at most its covered amount. The claim ends up
    PARTIALLY_APPROVED when the approved total falls below the coverage
    computed at submission, otherwise APPROVED.

    Args:
        claim: Claim to adjust (not modified)
        adjustments: One decision per adjusted line
        notes: Optional note recorded with the resulting transition
        now: Adjudication time, stamped as the approval date
        approved_by: Reviewer recorded on the claim
        state_machine: State machine to use, defaults to the shared one

    Returns:
        Updated copy of the claim in APPROVED or PARTIALLY_APPROVED

    Raises:
        ClaimItemAdjustmentError: Claim is closed, or an adjustment is invalid
        InvalidTransitionError: Claim cannot reach the resulting status
    """
    machine = state_machine or get_claim_state_machine()

    if is_terminal_status(claim.status):
        raise ClaimItemAdjustmentError(
            f"Cannot update items for a claim with status {claim.status.value}",
            claim_number=claim.claim_number,
        )
    _validate_adjustments(claim, adjustments)

    adjusted = claim.model_copy(deep=True)
    by_id = {adjustment.id: adjustment for adjustment in adjustments}
    for item in adjusted.items:
        adjustment = by_id.get(item.id)
        if adjustment is None:
            continue
        item.approved_quantity = adjustment.approved_quantity
        item.approved_amount = _approved_amount(item, adjustment)
        item.rejection_reason = adjustment.rejection_reason

    if adjusted.items:
        # Per-line coverage from submission, already capped by the annual limit
        computed = sum_money(item.covered_amount for item in adjusted.items)
        adjusted.covered_amount = sum_money(
            item.approved_amount if item.approved_amount is not None else item.covered_amount
            for item in adjusted.items
        )
    else:
        computed = adjusted.covered_amount

    target = (
        ClaimStatus.PARTIALLY_APPROVED
        if adjusted.covered_amount < computed
        else ClaimStatus.APPROVED
    )

    logger.info(
        f"Claim {claim.claim_number} items adjusted: "
        f"covered {claim.covered_amount} -> {adjusted.covered_amount}"
    )

    reviewed_at = now or datetime.now(timezone.utc)
    if adjusted.status == target:
        adjusted.approval_date = reviewed_at
        if approved_by is not None:
            adjusted.approved_by = approved_by
        return adjusted
    return machine.transition(
        adjusted, target, notes=notes, now=reviewed_at, approved_by=approved_by
    )
