"""
Claim Status State Machine.

Provides:
- Valid status transitions
- Transition validation
- Side effects of a transition (processed_at, notes, approval and payment details)

State Diagram:
    PENDING -> SUBMITTED | CANCELLED
    SUBMITTED -> UNDER_REVIEW | APPROVED | PARTIALLY_APPROVED | REJECTED | CANCELLED
    UNDER_REVIEW -> APPROVED | PARTIALLY_APPROVED | REJECTED | CANCELLED
    APPROVED -> PAID | CANCELLED
    PARTIALLY_APPROVED -> PAID | CANCELLED
    REJECTED, PAID, CANCELLED: terminal
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from pharmacy_claims.core.enums import ClaimStatus, NotesMode
from pharmacy_claims.schemas.insurance import InsuranceClaim
from pharmacy_claims.utils.errors import (
    ClaimStatusDetailsError,
    InconsistentPartialApprovalError,
    InvalidTransitionError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transition:
    """Represents a valid state transition."""

    from_status: ClaimStatus
    to_status: ClaimStatus
    sets_processed_at: bool = False


@dataclass
class TransitionResult:
    """Result of a transition check."""

    success: bool
    from_status: ClaimStatus
    to_status: Optional[ClaimStatus] = None
    error: Optional[str] = None
    transition: Optional[Transition] = None


# =============================================================================
# Valid Transitions Definition
# =============================================================================


PROCESSED_STATUSES: frozenset[ClaimStatus] = frozenset(
    {
        ClaimStatus.APPROVED,
        ClaimStatus.PARTIALLY_APPROVED,
        ClaimStatus.REJECTED,
        ClaimStatus.PAID,
    }
)

APPROVAL_STATUSES: frozenset[ClaimStatus] = frozenset(
    {
        ClaimStatus.APPROVED,
        ClaimStatus.PARTIALLY_APPROVED,
    }
)

TERMINAL_STATUSES: frozenset[ClaimStatus] = frozenset(
    {
        ClaimStatus.REJECTED,
        ClaimStatus.PAID,
        ClaimStatus.CANCELLED,
    }
)

_ALLOWED: dict[ClaimStatus, tuple[ClaimStatus, ...]] = {
    ClaimStatus.PENDING: (
        ClaimStatus.SUBMITTED,
        ClaimStatus.CANCELLED,
    ),
    ClaimStatus.SUBMITTED: (
        ClaimStatus.UNDER_REVIEW,
        ClaimStatus.APPROVED,
        ClaimStatus.PARTIALLY_APPROVED,
        ClaimStatus.REJECTED,
        ClaimStatus.CANCELLED,
    ),
    ClaimStatus.UNDER_REVIEW: (
        ClaimStatus.APPROVED,
        ClaimStatus.PARTIALLY_APPROVED,
        ClaimStatus.REJECTED,
        ClaimStatus.CANCELLED,
    ),
    ClaimStatus.APPROVED: (
        ClaimStatus.PAID,
        ClaimStatus.CANCELLED,
    ),
    ClaimStatus.PARTIALLY_APPROVED: (
        ClaimStatus.PAID,
        ClaimStatus.CANCELLED,
    ),
}

VALID_TRANSITIONS: list[Transition] = [
    Transition(
        from_status=from_status,
        to_status=to_status,
        sets_processed_at=to_status in PROCESSED_STATUSES,
    )
    for from_status, targets in _ALLOWED.items()
    for to_status in targets
]


# =============================================================================
# State Machine
# =============================================================================


class ClaimStateMachine:
    """
    State machine for claim status transitions.

    Transitions never mutate the claim passed in; ``transition`` returns an
    updated copy or raises, leaving the caller's claim untouched.
    """

    def __init__(self, notes_mode: NotesMode = NotesMode.APPEND):
        """Initialize state machine with transition map."""
        self.notes_mode = notes_mode
        self._transitions: dict[tuple[ClaimStatus, ClaimStatus], Transition] = {}
        self._from_status_map: dict[ClaimStatus, list[Transition]] = {}

        self._build_transition_maps()

    def _build_transition_maps(self) -> None:
        """Build lookup maps for transitions."""
        for transition in VALID_TRANSITIONS:
            self._transitions[(transition.from_status, transition.to_status)] = transition
            self._from_status_map.setdefault(transition.from_status, []).append(transition)

    def get_valid_transitions(self, status: ClaimStatus) -> list[Transition]:
        """Get all valid transitions from a given status."""
        return self._from_status_map.get(status, [])

    def get_next_statuses(self, status: ClaimStatus) -> list[ClaimStatus]:
        """Get all possible next statuses from current status."""
        return [t.to_status for t in self.get_valid_transitions(status)]

    def can_transition(self, from_status: ClaimStatus, to_status: ClaimStatus) -> bool:
        """Check if transition from one status to another is valid."""
        return (from_status, to_status) in self._transitions

    def validate_transition(
        self,
        claim: InsuranceClaim,
        target_status: ClaimStatus,
    ) -> TransitionResult:
        """
        Validate a transition attempt without applying it.

        Args:
            claim: Claim in its current state
            target_status: Requested status

        Returns:
            TransitionResult indicating success/failure
        """
        transition = self._transitions.get((claim.status, target_status))

        if not transition:
            return TransitionResult(
                success=False,
                from_status=claim.status,
                error=f"Invalid transition: {claim.status.value} -> {target_status.value}",
            )

        if (
            target_status == ClaimStatus.PARTIALLY_APPROVED
            and claim.covered_amount >= claim.total_amount
        ):
            return TransitionResult(
                success=False,
                from_status=claim.status,
                error=(
                    f"Partial approval needs covered amount below total "
                    f"({claim.covered_amount} >= {claim.total_amount})"
                ),
                transition=transition,
            )

        return TransitionResult(
            success=True,
            from_status=claim.status,
            to_status=target_status,
            transition=transition,
        )

    def transition(
        self,
        claim: InsuranceClaim,
        target_status: ClaimStatus,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
        approved_by: Optional[str] = None,
        rejection_reason: Optional[str] = None,
        payment_date: Optional[datetime] = None,
        payment_reference: Optional[str] = None,
    ) -> InsuranceClaim:
        """
        Move a claim to a new status.

        Entering APPROVED or PARTIALLY_APPROVED stamps ``approval_date``;
        entering PAID stamps ``payment_date`` unless one is given.

        Args:
            claim: Claim in its current state (not modified)
            target_status: Requested status
            notes: Optional note recorded with the transition
            now: Transition time, defaults to current UTC time
            approved_by: Reviewer, only for APPROVED / PARTIALLY_APPROVED
            rejection_reason: Only for REJECTED
            payment_date: Only for PAID
            payment_reference: Only for PAID

        Returns:
            Updated copy of the claim

        Raises:
            InvalidTransitionError: Target not reachable from the current status
            InconsistentPartialApprovalError: PARTIALLY_APPROVED for a fully covered claim
            ClaimStatusDetailsError: A detail was given for a status it does not belong to
        """
        result = self.validate_transition(claim, target_status)
        if not result.success:
            logger.warning(f"Transition failed for claim {claim.claim_number}: {result.error}")
            if self.can_transition(claim.status, target_status):
                raise InconsistentPartialApprovalError(
                    result.error,
                    claim_number=claim.claim_number,
                    covered_amount=str(claim.covered_amount),
                    total_amount=str(claim.total_amount),
                )
            raise InvalidTransitionError(claim.status, target_status, result.error)

        misplaced = [
            name
            for name, value, statuses in (
                ("approved_by", approved_by, APPROVAL_STATUSES),
                ("rejection_reason", rejection_reason, {ClaimStatus.REJECTED}),
                ("payment_date", payment_date, {ClaimStatus.PAID}),
                ("payment_reference", payment_reference, {ClaimStatus.PAID}),
            )
            if value is not None and target_status not in statuses
        ]
        if misplaced:
            raise ClaimStatusDetailsError(
                f"{', '.join(misplaced)} cannot be recorded on {target_status.value}",
                claim_number=claim.claim_number,
                fields=misplaced,
            )

        timestamp = now or datetime.now(timezone.utc)
        update: dict = {"status": target_status}

        if result.transition.sets_processed_at and claim.processed_at is None:
            update["processed_at"] = timestamp

        if target_status in APPROVAL_STATUSES:
            update["approval_date"] = timestamp
            if approved_by is not None:
                update["approved_by"] = approved_by
        elif target_status == ClaimStatus.REJECTED:
            if rejection_reason is not None:
                update["rejection_reason"] = rejection_reason
        elif target_status == ClaimStatus.PAID:
            update["payment_date"] = payment_date or timestamp
            if payment_reference is not None:
                update["payment_reference"] = payment_reference

        if notes:
            update["notes"] = self._merge_notes(claim.notes, notes)

        logger.info(
            f"Claim {claim.claim_number} transitioned: "
            f"{claim.status.value} -> {target_status.value}"
        )

        return claim.model_copy(update=update, deep=True)

    def _merge_notes(self, existing: Optional[str], notes: str) -> str:
        if self.notes_mode == NotesMode.REPLACE or not existing:
            return notes
        return f"{existing}\n{notes}"


# =============================================================================
# Status Helpers
# =============================================================================


def is_terminal_status(status: ClaimStatus) -> bool:
    """Check if status is terminal (no further transitions)."""
    return status in TERMINAL_STATUSES


def is_processed_status(status: ClaimStatus) -> bool:
    """Check if entering this status stamps processed_at."""
    return status in PROCESSED_STATUSES


def is_benefit_consuming_status(status: ClaimStatus) -> bool:
    """Check if a claim in this status counts against the annual limit."""
    return status in (
        ClaimStatus.APPROVED,
        ClaimStatus.PARTIALLY_APPROVED,
        ClaimStatus.PAID,
    )


def get_status_display_name(status: ClaimStatus) -> str:
    """Get human-readable status name."""
    display_names = {
        ClaimStatus.PENDING: "Pending",
        ClaimStatus.SUBMITTED: "Submitted",
        ClaimStatus.UNDER_REVIEW: "Under Review",
        ClaimStatus.APPROVED: "Approved",
        ClaimStatus.PARTIALLY_APPROVED: "Partially Approved",
        ClaimStatus.REJECTED: "Rejected",
        ClaimStatus.PAID: "Paid",
        ClaimStatus.CANCELLED: "Cancelled",
    }
    return display_names.get(status, status.value)


# =============================================================================
# Singleton Instance
# =============================================================================


_state_machine: Optional[ClaimStateMachine] = None


def get_claim_state_machine() -> ClaimStateMachine:
    """Get singleton state machine instance, configured from settings."""
    global _state_machine
    if _state_machine is None:
        from pharmacy_claims.core.config import get_claims_settings

        _state_machine = ClaimStateMachine(notes_mode=get_claims_settings().NOTES_MODE)
    return _state_machine


def transition_status(
    claim: InsuranceClaim,
    target_status: ClaimStatus,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
    **details: Any,
) -> InsuranceClaim:
    """Transition a claim with the shared state machine."""
    return get_claim_state_machine().transition(
        claim, target_status, notes=notes, now=now, **details
    )
