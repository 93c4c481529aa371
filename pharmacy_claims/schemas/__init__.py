"""
Pydantic Schemas for the claims core.
"""

from pharmacy_claims.schemas.coverage import (
    BenefitYearWindow,
    CategoryMatch,
    CoverageMatch,
    CoverageResult,
    DefaultMatch,
    EligibilityResult,
    ExactItemMatch,
    LineCoverageResult,
    LineItemInput,
)
from pharmacy_claims.schemas.insurance import (
    ClaimItemAdjustment,
    ClaimLineItem,
    ClaimLineItemCreate,
    ClaimSubmission,
    InsuranceClaim,
    InsurancePlan,
    InsurancePlanCreate,
    InsurancePlanUpdate,
    InsuranceProvider,
    InsuranceProviderCreate,
    InsuranceProviderUpdate,
    PatientInsurance,
    PlanCoverageItem,
    PlanCoverageItemCreate,
    PlanCoverageItemUpdate,
)

__all__ = [
    # Coverage
    "BenefitYearWindow",
    "CategoryMatch",
    "CoverageMatch",
    "CoverageResult",
    "DefaultMatch",
    "EligibilityResult",
    "ExactItemMatch",
    "LineCoverageResult",
    "LineItemInput",
    # Insurance
    "ClaimItemAdjustment",
    "ClaimLineItem",
    "ClaimLineItemCreate",
    "ClaimSubmission",
    "InsuranceClaim",
    "InsurancePlan",
    "InsurancePlanCreate",
    "InsurancePlanUpdate",
    "InsuranceProvider",
    "InsuranceProviderCreate",
    "InsuranceProviderUpdate",
    "PatientInsurance",
    "PlanCoverageItem",
    "PlanCoverageItemCreate",
    "PlanCoverageItemUpdate",
]
