"""
Database Models.
"""

from pharmacy_claims.models.base import Base, TimeStampedModel, UUIDModel
from pharmacy_claims.models.insurance import (
    Claim,
    ClaimItem,
    CoverageItem,
    PatientCoverage,
    Plan,
    Provider,
)

__all__ = [
    "Base",
    "TimeStampedModel",
    "UUIDModel",
    "Claim",
    "ClaimItem",
    "CoverageItem",
    "PatientCoverage",
    "Plan",
    "Provider",
]
