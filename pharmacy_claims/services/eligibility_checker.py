"""
Eligibility Checker.

Decides whether a patient may file a new claim against a plan:
- Plan and provider must be active
- The patient's coverage window (when known) must include the claim date
- The plan's annual limit must not be used up within the benefit year

Ineligibility is an expected outcome and is reported as a reason on the
result, never raised.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterable, Optional, Union

from pharmacy_claims.core.enums import BenefitYearBasis, IneligibilityReason
from pharmacy_claims.schemas.coverage import BenefitYearWindow, EligibilityResult
from pharmacy_claims.schemas.insurance import (
    InsuranceClaim,
    InsurancePlan,
    InsuranceProvider,
    PatientInsurance,
)
from pharmacy_claims.services.claim_state_machine import is_benefit_consuming_status
from pharmacy_claims.utils.money import ZERO, quantize_money, sum_money

logger = logging.getLogger(__name__)


REASON_MESSAGES: dict[IneligibilityReason, str] = {
    IneligibilityReason.PLAN_INACTIVE: "Insurance plan is not active",
    IneligibilityReason.PROVIDER_INACTIVE: "Insurance provider is not active",
    IneligibilityReason.COVERAGE_INACTIVE: "Patient's insurance coverage is not active",
    IneligibilityReason.COVERAGE_NOT_STARTED: "Patient's insurance coverage has not started yet",
    IneligibilityReason.COVERAGE_EXPIRED: "Patient's insurance coverage has expired",
    IneligibilityReason.ANNUAL_LIMIT_EXHAUSTED: "Annual benefit limit has been reached",
}


def _as_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def benefit_year_window(
    as_of: Union[date, datetime],
    basis: BenefitYearBasis = BenefitYearBasis.CALENDAR,
) -> BenefitYearWindow:
    """
    Get the benefit year containing a date.

    Calendar: January 1 to December 31 of the date's year.
    Rolling: the twelve months ending on the date (inclusive).
    """
    day = _as_date(as_of)
    if basis == BenefitYearBasis.ROLLING:
        try:
            start = day.replace(year=day.year - 1)
        except ValueError:
            # Feb 29 has no counterpart in the previous year
            start = day.replace(year=day.year - 1, day=28)
        return BenefitYearWindow(start=start + timedelta(days=1), end=day)
    return BenefitYearWindow(start=date(day.year, 1, 1), end=date(day.year, 12, 31))


def used_benefit(
    plan: InsurancePlan,
    prior_claims: Iterable[InsuranceClaim],
    window: BenefitYearWindow,
) -> Decimal:
    """Sum covered amounts of the plan's approved/paid claims within the window."""
    return sum_money(
        claim.covered_amount
        for claim in prior_claims
        if claim.plan_id == plan.id
        and is_benefit_consuming_status(claim.status)
        and window.contains(_as_date(claim.submitted_at))
    )


class EligibilityChecker:
    """Eligibility checks for claim creation."""

    def __init__(self, basis: BenefitYearBasis = BenefitYearBasis.CALENDAR):
        self.basis = basis

    def check_eligibility(
        self,
        plan: InsurancePlan,
        provider: InsuranceProvider,
        prior_claims: Iterable[InsuranceClaim],
        coverage: Optional[PatientInsurance] = None,
        as_of: Optional[Union[date, datetime]] = None,
    ) -> EligibilityResult:
        """
        Check whether a patient may file a claim against a plan.

        Args:
            plan: Plan the claim would be filed against
            provider: Provider owning the plan
            prior_claims: Patient's earlier claims (any status, any date)
            coverage: Patient's enrolment in the plan, if known
            as_of: Evaluation date, defaults to today (UTC)

        Returns:
            EligibilityResult with remaining benefit and the failing reason, if any
        """
        day = _as_date(as_of) if as_of is not None else datetime.now(timezone.utc).date()
        window = benefit_year_window(day, self.basis)

        used = used_benefit(plan, prior_claims, window)
        remaining: Optional[Decimal] = None
        if plan.has_annual_limit:
            remaining = max(ZERO, quantize_money(plan.annual_limit) - used)

        reason = self._first_failure(plan, provider, coverage, day, used)

        result = EligibilityResult(
            is_eligible=reason is None,
            plan_id=plan.id,
            remaining_benefit=remaining,
            used_benefit=used,
            benefit_year=window,
            reason=reason,
            message=REASON_MESSAGES.get(reason) if reason else None,
        )

        if reason:
            logger.info(f"Plan {plan.code} not eligible: {reason.value}")

        return result

    @staticmethod
    def _first_failure(
        plan: InsurancePlan,
        provider: InsuranceProvider,
        coverage: Optional[PatientInsurance],
        day: date,
        used: Decimal,
    ) -> Optional[IneligibilityReason]:
        if not plan.active:
            return IneligibilityReason.PLAN_INACTIVE
        if not provider.active:
            return IneligibilityReason.PROVIDER_INACTIVE

        if coverage is not None:
            if not coverage.active:
                return IneligibilityReason.COVERAGE_INACTIVE
            if day < coverage.start_date:
                return IneligibilityReason.COVERAGE_NOT_STARTED
            if coverage.end_date is not None and day > coverage.end_date:
                return IneligibilityReason.COVERAGE_EXPIRED

        if plan.has_annual_limit and used >= plan.annual_limit:
            return IneligibilityReason.ANNUAL_LIMIT_EXHAUSTED

        return None


# =============================================================================
# Module API
# =============================================================================


def check_eligibility(
    plan: InsurancePlan,
    provider: InsuranceProvider,
    prior_claims: Iterable[InsuranceClaim],
    coverage: Optional[PatientInsurance] = None,
    as_of: Optional[Union[date, datetime]] = None,
    basis: Optional[BenefitYearBasis] = None,
) -> EligibilityResult:
    """Check eligibility using the configured benefit year basis."""
    if basis is None:
        from pharmacy_claims.core.config import get_claims_settings

        basis = get_claims_settings().BENEFIT_YEAR_BASIS
    return EligibilityChecker(basis).check_eligibility(
        plan, provider, prior_claims, coverage=coverage, as_of=as_of
    )
