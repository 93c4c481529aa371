"""
Claim Statistics.

Summary counts and amounts over a set of claims, optionally filtered by
provider and submission date, with a per-provider breakdown.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Mapping, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from pharmacy_claims.core.enums import ClaimStatus
from pharmacy_claims.schemas.insurance import InsuranceClaim
from pharmacy_claims.utils.money import ZERO


class ClaimStatusCounts(BaseModel):
    """Claim counts and amounts for one group of claims."""

    total_claims: int = 0
    pending_claims: int = 0
    approved_claims: int = 0
    partially_approved_claims: int = 0
    rejected_claims: int = 0
    paid_claims: int = 0
    cancelled_claims: int = 0
    total_claimed_amount: Decimal = ZERO
    total_covered_amount: Decimal = ZERO

    def add(self, claim: InsuranceClaim) -> None:
        self.total_claims += 1
        if claim.status in (ClaimStatus.PENDING, ClaimStatus.SUBMITTED, ClaimStatus.UNDER_REVIEW):
            self.pending_claims += 1
        elif claim.status == ClaimStatus.APPROVED:
            self.approved_claims += 1
        elif claim.status == ClaimStatus.PARTIALLY_APPROVED:
            self.partially_approved_claims += 1
        elif claim.status == ClaimStatus.REJECTED:
            self.rejected_claims += 1
        elif claim.status == ClaimStatus.PAID:
            self.paid_claims += 1
        elif claim.status == ClaimStatus.CANCELLED:
            self.cancelled_claims += 1
        self.total_claimed_amount += claim.total_amount
        self.total_covered_amount += claim.covered_amount


class ClaimSummary(ClaimStatusCounts):
    approval_rate: float = 0.0
    coverage_rate: float = 0.0


class ProviderClaimStats(ClaimStatusCounts):
    provider_id: UUID
    provider_name: Optional[str] = None


class ClaimStatistics(BaseModel):
    summary: ClaimSummary
    provider_stats: Optional[list[ProviderClaimStats]] = Field(
        None, description="Per-provider breakdown, only when not filtered by provider"
    )


def get_claim_statistics(
    claims: Iterable[InsuranceClaim],
    provider_names: Optional[Mapping[UUID, str]] = None,
    provider_id: Optional[UUID] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> ClaimStatistics:
    """
    Compute claim statistics.

    Args:
        claims: Claims to summarize
        provider_names: Display names for the per-provider breakdown
        provider_id: Only count claims filed with this provider
        start: Only count claims submitted at or after this time
        end: Only count claims submitted at or before this time

    Returns:
        ClaimStatistics with a summary and, when unfiltered, per-provider stats
    """
    provider_names = provider_names or {}
    summary = ClaimSummary()
    per_provider: dict[UUID, ProviderClaimStats] = {}

    for claim in claims:
        if provider_id is not None and claim.provider_id != provider_id:
            continue
        if start is not None and claim.submitted_at < start:
            continue
        if end is not None and claim.submitted_at > end:
            continue

        summary.add(claim)
        if provider_id is None:
            stats = per_provider.get(claim.provider_id)
            if stats is None:
                stats = ProviderClaimStats(
                    provider_id=claim.provider_id,
                    provider_name=provider_names.get(claim.provider_id),
                )
                per_provider[claim.provider_id] = stats
            stats.add(claim)

    if summary.total_claims:
        summary.approval_rate = (
            summary.approved_claims + summary.partially_approved_claims
        ) / summary.total_claims
    if summary.total_claimed_amount > 0:
        summary.coverage_rate = float(summary.total_covered_amount / summary.total_claimed_amount)

    return ClaimStatistics(
        summary=summary,
        provider_stats=list(per_provider.values()) or None,
    )
