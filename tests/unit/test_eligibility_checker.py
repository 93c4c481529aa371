"""
Unit Tests for Eligibility Checker.

Tests:
- Plan and provider activity
- Patient coverage window
- Annual limit usage within the benefit year
- Calendar and rolling benefit years
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from pharmacy_claims.core.enums import BenefitYearBasis, ClaimStatus, IneligibilityReason
from pharmacy_claims.schemas.coverage import BenefitYearWindow
from pharmacy_claims.schemas.insurance import PatientInsurance
from pharmacy_claims.services.eligibility_checker import (
    EligibilityChecker,
    benefit_year_window,
    check_eligibility,
    used_benefit,
)

AS_OF = date(2026, 6, 15)


def submitted(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def checker():
    return EligibilityChecker(BenefitYearBasis.CALENDAR)


@pytest.fixture
def limited_plan(plan):
    """The plan fixture with a 100.00 annual limit (same id as make_claim's claims)."""
    return plan.model_copy(update={"annual_limit": Decimal("100.00")})


class TestBenefitYearWindow:
    """Test benefit year boundaries."""

    def test_calendar_year(self):
        window = benefit_year_window(AS_OF, BenefitYearBasis.CALENDAR)

        assert window.start == date(2026, 1, 1)
        assert window.end == date(2026, 12, 31)

    def test_rolling_year(self):
        window = benefit_year_window(AS_OF, BenefitYearBasis.ROLLING)

        assert window.start == date(2025, 6, 16)
        assert window.end == AS_OF

    def test_rolling_year_from_leap_day(self):
        window = benefit_year_window(date(2028, 2, 29), BenefitYearBasis.ROLLING)

        assert window.start == date(2027, 3, 1)

    def test_accepts_datetime(self):
        window = benefit_year_window(submitted(AS_OF))

        assert window.contains(AS_OF)


class TestUsedBenefit:
    """Test summing of benefit already consumed."""

    def test_counts_only_consuming_statuses(self, limited_plan, make_claim):
        claims = [
            make_claim(status=ClaimStatus.APPROVED, covered_amount=Decimal("30.00")),
            make_claim(status=ClaimStatus.PAID, covered_amount=Decimal("20.00")),
            make_claim(status=ClaimStatus.PARTIALLY_APPROVED, covered_amount=Decimal("10.00")),
            make_claim(status=ClaimStatus.SUBMITTED, covered_amount=Decimal("40.00")),
            make_claim(status=ClaimStatus.REJECTED, covered_amount=Decimal("40.00")),
            make_claim(status=ClaimStatus.CANCELLED, covered_amount=Decimal("40.00")),
        ]
        window = BenefitYearWindow(start=date(2026, 1, 1), end=date(2026, 12, 31))

        assert used_benefit(limited_plan, claims, window) == Decimal("60.00")

    def test_ignores_other_plans_and_years(self, limited_plan, make_claim):
        claims = [
            make_claim(status=ClaimStatus.APPROVED, plan_id=uuid4()),
            make_claim(
                status=ClaimStatus.APPROVED,
                submitted_at=submitted(date(2025, 12, 31)),
            ),
        ]
        window = BenefitYearWindow(start=date(2026, 1, 1), end=date(2026, 12, 31))

        assert used_benefit(limited_plan, claims, window) == Decimal("0.00")


class TestEligibility:
    """Test eligibility decisions."""

    def test_eligible_without_limit(self, checker, plan, provider):
        result = checker.check_eligibility(plan, provider, [], as_of=AS_OF)

        assert result.is_eligible is True
        assert result.remaining_benefit is None
        assert result.reason is None

    def test_remaining_benefit(self, checker, limited_plan, provider, make_claim):
        """Limit 100.00 with 90.00 approved leaves 10.00."""
        prior = [make_claim(status=ClaimStatus.APPROVED, covered_amount=Decimal("90.00"))]

        result = checker.check_eligibility(limited_plan, provider, prior, as_of=AS_OF)

        assert result.is_eligible is True
        assert result.remaining_benefit == Decimal("10.00")
        assert result.used_benefit == Decimal("90.00")

    def test_limit_exhausted(self, checker, limited_plan, provider, make_claim):
        prior = [
            make_claim(status=ClaimStatus.APPROVED, covered_amount=Decimal("60.00")),
            make_claim(status=ClaimStatus.PAID, covered_amount=Decimal("40.00")),
        ]

        result = checker.check_eligibility(limited_plan, provider, prior, as_of=AS_OF)

        assert result.is_eligible is False
        assert result.reason == IneligibilityReason.ANNUAL_LIMIT_EXHAUSTED
        assert result.remaining_benefit == Decimal("0.00")

    def test_zero_limit_is_exhausted(self, checker, make_plan, provider):
        plan = make_plan(annual_limit=Decimal("0"))

        result = checker.check_eligibility(plan, provider, [], as_of=AS_OF)

        assert result.reason == IneligibilityReason.ANNUAL_LIMIT_EXHAUSTED

    def test_last_year_claims_do_not_count(self, checker, limited_plan, provider, make_claim):
        prior = [
            make_claim(
                status=ClaimStatus.PAID,
                covered_amount=Decimal("100.00"),
                submitted_at=submitted(date(2025, 11, 1)),
            )
        ]

        result = checker.check_eligibility(limited_plan, provider, prior, as_of=AS_OF)

        assert result.is_eligible is True
        assert result.remaining_benefit == Decimal("100.00")

    def test_rolling_year_counts_last_year_claims(self, limited_plan, provider, make_claim):
        checker = EligibilityChecker(BenefitYearBasis.ROLLING)
        prior = [
            make_claim(
                status=ClaimStatus.PAID,
                covered_amount=Decimal("100.00"),
                submitted_at=submitted(date(2025, 11, 1)),
            )
        ]

        result = checker.check_eligibility(limited_plan, provider, prior, as_of=AS_OF)

        assert result.reason == IneligibilityReason.ANNUAL_LIMIT_EXHAUSTED

    def test_plan_inactive(self, checker, make_plan, provider):
        plan = make_plan(active=False)

        result = checker.check_eligibility(plan, provider, [], as_of=AS_OF)

        assert result.is_eligible is False
        assert result.reason == IneligibilityReason.PLAN_INACTIVE
        assert result.message

    def test_provider_inactive(self, checker, plan, provider):
        inactive = provider.model_copy(update={"active": False})

        result = checker.check_eligibility(plan, inactive, [], as_of=AS_OF)

        assert result.reason == IneligibilityReason.PROVIDER_INACTIVE

    def test_plan_checked_before_provider(self, checker, make_plan, provider):
        plan = make_plan(active=False)
        inactive = provider.model_copy(update={"active": False})

        result = checker.check_eligibility(plan, inactive, [], as_of=AS_OF)

        assert result.reason == IneligibilityReason.PLAN_INACTIVE

    def test_inactive_plan_still_reports_remaining(
        self, checker, make_plan, provider, make_claim
    ):
        plan = make_plan(active=False, annual_limit=Decimal("100.00"))
        prior = [make_claim(plan_id=plan.id, status=ClaimStatus.APPROVED)]

        result = checker.check_eligibility(plan, provider, prior, as_of=AS_OF)

        assert result.remaining_benefit == Decimal("20.00")


class TestPatientCoverage:
    """Test the patient's coverage window."""

    def make_coverage(self, plan, **overrides):
        data = {
            "patient_id": uuid4(),
            "plan_id": plan.id,
            "start_date": date(2026, 1, 1),
            "end_date": date(2026, 12, 31),
        }
        data.update(overrides)
        return PatientInsurance(**data)

    def test_within_window(self, checker, plan, provider):
        coverage = self.make_coverage(plan)

        result = checker.check_eligibility(plan, provider, [], coverage=coverage, as_of=AS_OF)

        assert result.is_eligible is True

    def test_not_started(self, checker, plan, provider):
        coverage = self.make_coverage(plan, start_date=date(2026, 7, 1))

        result = checker.check_eligibility(plan, provider, [], coverage=coverage, as_of=AS_OF)

        assert result.reason == IneligibilityReason.COVERAGE_NOT_STARTED

    def test_expired(self, checker, plan, provider):
        coverage = self.make_coverage(
            plan, start_date=date(2025, 1, 1), end_date=date(2026, 6, 14)
        )

        result = checker.check_eligibility(plan, provider, [], coverage=coverage, as_of=AS_OF)

        assert result.reason == IneligibilityReason.COVERAGE_EXPIRED

    def test_end_date_inclusive(self, checker, plan, provider):
        coverage = self.make_coverage(plan, end_date=AS_OF)

        result = checker.check_eligibility(plan, provider, [], coverage=coverage, as_of=AS_OF)

        assert result.is_eligible is True

    def test_inactive_coverage(self, checker, plan, provider):
        coverage = self.make_coverage(plan, active=False)

        result = checker.check_eligibility(plan, provider, [], coverage=coverage, as_of=AS_OF)

        assert result.reason == IneligibilityReason.COVERAGE_INACTIVE

    def test_end_before_start_rejected(self, plan):
        with pytest.raises(ValueError):
            self.make_coverage(plan, start_date=date(2026, 6, 1), end_date=date(2026, 5, 1))


class TestModuleFunction:
    """Test the settings-driven module function."""

    def test_explicit_basis(self, limited_plan, provider):
        result = check_eligibility(
            limited_plan, provider, [], as_of=AS_OF, basis=BenefitYearBasis.ROLLING
        )

        assert result.benefit_year.start == date(2025, 6, 16)

    def test_default_basis_from_settings(self, plan, provider, monkeypatch):
        from pharmacy_claims.core.config import reset_claims_settings

        monkeypatch.setenv("CLAIMS_BENEFIT_YEAR_BASIS", "rolling")
        reset_claims_settings()
        try:
            result = check_eligibility(plan, provider, [], as_of=AS_OF)
        finally:
            reset_claims_settings()

        assert result.benefit_year.end == AS_OF
