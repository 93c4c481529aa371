"""
Core Enumerations for Pharmacy Insurance Claims.
"""

from enum import Enum


# =============================================================================
# Claim Lifecycle Enums
# =============================================================================


class ClaimStatus(str, Enum):
    """Insurance claim lifecycle status.

    State Machine Transitions:
    PENDING -> SUBMITTED | CANCELLED
    SUBMITTED -> UNDER_REVIEW | APPROVED | PARTIALLY_APPROVED | REJECTED | CANCELLED
    UNDER_REVIEW -> APPROVED | PARTIALLY_APPROVED | REJECTED | CANCELLED
    APPROVED -> PAID | CANCELLED
    PARTIALLY_APPROVED -> PAID | CANCELLED
    REJECTED, PAID, CANCELLED are terminal
    """

    PENDING = "PENDING"
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    PARTIALLY_APPROVED = "PARTIALLY_APPROVED"
    REJECTED = "REJECTED"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class NotesMode(str, Enum):
    """How transition notes are written onto a claim."""

    APPEND = "append"  # Keep prior notes, add new ones on a new line
    REPLACE = "replace"  # Overwrite prior notes


# =============================================================================
# Coverage Enums
# =============================================================================


class CoverageMatchKind(str, Enum):
    """Which rule supplied the coverage percentage for a line item.

    Ordered from most to least specific.
    """

    EXACT_ITEM = "exact_item"  # PlanCoverageItem.item_id == line.item_id
    CATEGORY = "category"  # PlanCoverageItem.item_type == line.item_type
    DEFAULT = "default"  # Plan-wide coverage_percentage


# =============================================================================
# Eligibility Enums
# =============================================================================


class IneligibilityReason(str, Enum):
    """Why a patient may not file a claim against a plan.

    Listed in evaluation order; the first failing check is reported.
    """

    PLAN_INACTIVE = "PlanInactive"
    PROVIDER_INACTIVE = "ProviderInactive"
    COVERAGE_INACTIVE = "CoverageInactive"
    COVERAGE_NOT_STARTED = "CoverageNotStarted"
    COVERAGE_EXPIRED = "CoverageExpired"
    ANNUAL_LIMIT_EXHAUSTED = "AnnualLimitExhausted"


class BenefitYearBasis(str, Enum):
    """Window against which a plan's annual limit is tracked."""

    CALENDAR = "calendar"  # Jan 1 - Dec 31 of the evaluation date
    ROLLING = "rolling"  # 12 months ending at the evaluation date
