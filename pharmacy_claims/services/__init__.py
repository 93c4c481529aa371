"""
Services Layer for the claims core.

Exports coverage calculation, claim status lifecycle, eligibility and the
database-backed claims service.
"""

from pharmacy_claims.services.coverage_calculator import (
    CoverageCalculator,
    compute_coverage,
    get_coverage_calculator,
    match_coverage_rule,
)
from pharmacy_claims.services.claim_state_machine import (
    ClaimStateMachine,
    Transition,
    TransitionResult,
    VALID_TRANSITIONS,
    get_claim_state_machine,
    get_status_display_name,
    is_benefit_consuming_status,
    is_processed_status,
    is_terminal_status,
    transition_status,
)
from pharmacy_claims.services.eligibility_checker import (
    EligibilityChecker,
    benefit_year_window,
    check_eligibility,
    used_benefit,
)
from pharmacy_claims.services.claim_adjustment import update_claim_items
from pharmacy_claims.services.claim_statistics import (
    ClaimStatistics,
    ClaimSummary,
    ProviderClaimStats,
    get_claim_statistics,
)
from pharmacy_claims.services.claims_service import ClaimsService, get_submission_lock

__all__ = [
    # Coverage
    "CoverageCalculator",
    "compute_coverage",
    "get_coverage_calculator",
    "match_coverage_rule",
    # State machine
    "ClaimStateMachine",
    "Transition",
    "TransitionResult",
    "VALID_TRANSITIONS",
    "get_claim_state_machine",
    "get_status_display_name",
    "is_benefit_consuming_status",
    "is_processed_status",
    "is_terminal_status",
    "transition_status",
    # Eligibility
    "EligibilityChecker",
    "benefit_year_window",
    "check_eligibility",
    "used_benefit",
    # Adjudication and reporting
    "update_claim_items",
    "ClaimStatistics",
    "ClaimSummary",
    "ProviderClaimStats",
    "get_claim_statistics",
    # Persistence
    "ClaimsService",
    "get_submission_lock",
]
