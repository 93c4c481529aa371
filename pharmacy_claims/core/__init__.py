"""
Core configuration and enumerations.
"""

from pharmacy_claims.core.config import ClaimsSettings, get_claims_settings, reset_claims_settings
from pharmacy_claims.core.enums import (
    BenefitYearBasis,
    ClaimStatus,
    CoverageMatchKind,
    IneligibilityReason,
    NotesMode,
)

__all__ = [
    "ClaimsSettings",
    "get_claims_settings",
    "reset_claims_settings",
    "BenefitYearBasis",
    "ClaimStatus",
    "CoverageMatchKind",
    "IneligibilityReason",
    "NotesMode",
]
