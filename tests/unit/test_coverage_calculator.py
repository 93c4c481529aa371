"""
Unit Tests for Coverage Calculator.

Tests:
- Per-line coverage and rounding
- Coverage override priority (exact item, category, plan default)
- Per-line max amount caps
- Remaining annual benefit cap
- Approval flag aggregation
- Line item and provider validation
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from pharmacy_claims.core.enums import CoverageMatchKind
from pharmacy_claims.schemas.coverage import (
    CategoryMatch,
    DefaultMatch,
    ExactItemMatch,
    LineItemInput,
)
from pharmacy_claims.services.coverage_calculator import (
    CoverageCalculator,
    compute_coverage,
    match_coverage_rule,
)
from pharmacy_claims.utils.errors import InvalidLineItemError, ProviderMismatchError


@pytest.fixture
def calculator():
    return CoverageCalculator()


def line(quantity=1, unit_price="10.00", item_id=None, item_type=None) -> LineItemInput:
    return LineItemInput(
        item_id=item_id,
        item_type=item_type,
        quantity=quantity,
        unit_price=Decimal(unit_price),
    )


# =============================================================================
# Basic Coverage
# =============================================================================


@pytest.mark.unit
class TestBasicCoverage:
    """Test plan-wide coverage on simple claims."""

    def test_single_line_default_coverage(self, calculator, plan):
        """2 x 50.00 at 80% is 80.00 covered."""
        result = calculator.compute_coverage(plan, [line(quantity=2, unit_price="50.00")])

        assert result.total_amount == Decimal("100.00")
        assert result.covered_amount == Decimal("80.00")
        assert result.patient_responsibility == Decimal("20.00")
        assert result.per_line[0].line_total == Decimal("100.00")
        assert result.per_line[0].covered_amount == Decimal("80.00")
        assert result.limit_excess == Decimal("0.00")

    def test_multiple_lines_sum(self, calculator, plan):
        result = calculator.compute_coverage(
            plan,
            [line(quantity=2, unit_price="50.00"), line(quantity=3, unit_price="7.25")],
        )

        assert result.total_amount == Decimal("121.75")
        assert result.covered_amount == Decimal("97.40")
        assert [item.line_number for item in result.per_line] == [1, 2]
        assert result.covered_amount == sum(item.covered_amount for item in result.per_line)

    def test_half_cent_rounds_up(self, calculator, make_plan):
        """12.5% of 0.20 is 0.025, rounded half up to 0.03."""
        plan = make_plan(coverage_percentage=Decimal("12.5"))

        result = calculator.compute_coverage(plan, [line(unit_price="0.20")])

        assert result.covered_amount == Decimal("0.03")

    def test_unit_price_rounded_before_multiplying(self, calculator, plan):
        result = calculator.compute_coverage(plan, [line(quantity=3, unit_price="3.335")])

        assert result.per_line[0].unit_price == Decimal("3.34")
        assert result.total_amount == Decimal("10.02")

    def test_zero_price_line(self, calculator, plan):
        result = calculator.compute_coverage(plan, [line(unit_price="0.00")])

        assert result.total_amount == Decimal("0.00")
        assert result.covered_amount == Decimal("0.00")

    def test_empty_claim(self, calculator, plan):
        result = calculator.compute_coverage(plan, [])

        assert result.total_amount == Decimal("0.00")
        assert result.covered_amount == Decimal("0.00")
        assert result.per_line == []

    @pytest.mark.parametrize("percentage", ["0", "35.5", "100"])
    def test_covered_within_bounds(self, calculator, make_plan, percentage):
        plan = make_plan(coverage_percentage=Decimal(percentage))

        result = calculator.compute_coverage(
            plan, [line(quantity=4, unit_price="19.99"), line(unit_price="0.01")]
        )

        assert Decimal("0.00") <= result.covered_amount <= result.total_amount
        for item in result.per_line:
            assert Decimal("0.00") <= item.covered_amount <= item.line_total

    def test_module_level_function(self, plan):
        result = compute_coverage(plan, [line(quantity=2, unit_price="50.00")])

        assert result.covered_amount == Decimal("80.00")


# =============================================================================
# Coverage Overrides
# =============================================================================


@pytest.mark.unit
class TestCoverageOverrides:
    """Test matching of per-item and per-category overrides."""

    def test_exact_item_beats_category(self, make_plan, make_coverage_item):
        item_id = uuid4()
        category = make_coverage_item(item_type="OTC", coverage_percentage=Decimal("40"))
        exact = make_coverage_item(item_id=item_id, coverage_percentage=Decimal("100"))
        plan = make_plan(coverage_items=[category, exact])

        match = match_coverage_rule(plan, line(item_id=item_id, item_type="OTC"))

        assert isinstance(match, ExactItemMatch)
        assert match.coverage_item_id == exact.id
        assert match.coverage_percentage == Decimal("100")

    def test_category_match(self, make_plan, make_coverage_item):
        category = make_coverage_item(item_type="VACCINE", coverage_percentage=Decimal("100"))
        plan = make_plan(coverage_items=[category])

        match = match_coverage_rule(plan, line(item_id=uuid4(), item_type="VACCINE"))

        assert isinstance(match, CategoryMatch)
        assert match.kind == CoverageMatchKind.CATEGORY

    def test_default_when_nothing_matches(self, make_plan, make_coverage_item):
        plan = make_plan(coverage_items=[make_coverage_item(item_type="VACCINE")])

        match = match_coverage_rule(plan, line(item_id=uuid4(), item_type="OTC"))

        assert isinstance(match, DefaultMatch)
        assert match.coverage_percentage == Decimal("80")

    def test_product_override_does_not_match_by_category(self, make_plan, make_coverage_item):
        """An override tied to a product never applies to other products of its type."""
        other = make_coverage_item(item_id=uuid4(), item_type="OTC")
        plan = make_plan(coverage_items=[other])

        match = match_coverage_rule(plan, line(item_id=uuid4(), item_type="OTC"))

        assert isinstance(match, DefaultMatch)

    def test_first_listed_override_wins(self, make_plan, make_coverage_item):
        first = make_coverage_item(item_type="OTC", coverage_percentage=Decimal("30"))
        second = make_coverage_item(item_type="OTC", coverage_percentage=Decimal("60"))
        plan = make_plan(coverage_items=[first, second])

        match = match_coverage_rule(plan, line(item_type="OTC"))

        assert match.coverage_item_id == first.id

    def test_override_percentage_applied(self, calculator, make_plan, make_coverage_item):
        item_id = uuid4()
        plan = make_plan(
            coverage_items=[make_coverage_item(item_id=item_id, coverage_percentage=Decimal("50"))]
        )

        result = calculator.compute_coverage(
            plan,
            [line(quantity=2, unit_price="50.00", item_id=item_id), line(unit_price="10.00")],
        )

        assert result.per_line[0].covered_amount == Decimal("50.00")
        assert result.per_line[1].covered_amount == Decimal("8.00")
        assert result.per_line[0].match.kind == CoverageMatchKind.EXACT_ITEM
        assert result.per_line[1].match.kind == CoverageMatchKind.DEFAULT

    def test_max_amount_caps_line(self, calculator, make_plan, make_coverage_item):
        plan = make_plan(
            coverage_items=[
                make_coverage_item(
                    item_type="DEVICE",
                    coverage_percentage=Decimal("90"),
                    max_amount=Decimal("25.00"),
                )
            ]
        )

        result = calculator.compute_coverage(
            plan, [line(unit_price="100.00", item_type="DEVICE")]
        )

        assert result.per_line[0].covered_amount == Decimal("25.00")
        assert result.per_line[0].capped_by_max_amount is True

    def test_max_amount_not_reached(self, calculator, make_plan, make_coverage_item):
        plan = make_plan(
            coverage_items=[
                make_coverage_item(
                    item_type="DEVICE",
                    coverage_percentage=Decimal("90"),
                    max_amount=Decimal("25.00"),
                )
            ]
        )

        result = calculator.compute_coverage(plan, [line(unit_price="20.00", item_type="DEVICE")])

        assert result.per_line[0].covered_amount == Decimal("18.00")
        assert result.per_line[0].capped_by_max_amount is False


# =============================================================================
# Annual Benefit Cap
# =============================================================================


@pytest.mark.unit
class TestBenefitCap:
    """Test capping by the remaining annual benefit."""

    def test_remaining_benefit_clamps_total(self, calculator, plan):
        """Computed 80.00 with 10.00 remaining is clamped to 10.00."""
        result = calculator.compute_coverage(
            plan,
            [line(quantity=2, unit_price="50.00")],
            remaining_benefit=Decimal("10.00"),
        )

        assert result.covered_amount == Decimal("10.00")
        assert result.limit_excess == Decimal("70.00")
        assert result.patient_responsibility == Decimal("90.00")
        assert result.per_line[0].covered_amount == Decimal("10.00")

    def test_cap_reduces_lines_in_order(self, calculator, plan):
        result = calculator.compute_coverage(
            plan,
            [line(unit_price="10.00"), line(unit_price="10.00"), line(unit_price="10.00")],
            remaining_benefit=Decimal("12.00"),
        )

        assert [item.covered_amount for item in result.per_line] == [
            Decimal("8.00"),
            Decimal("4.00"),
            Decimal("0.00"),
        ]
        assert result.covered_amount == Decimal("12.00")

    def test_remaining_above_covered_is_no_op(self, calculator, plan):
        result = calculator.compute_coverage(
            plan,
            [line(quantity=2, unit_price="50.00")],
            remaining_benefit=Decimal("500.00"),
        )

        assert result.covered_amount == Decimal("80.00")
        assert result.limit_excess == Decimal("0.00")

    def test_negative_remaining_treated_as_zero(self, calculator, plan):
        result = calculator.compute_coverage(
            plan,
            [line(quantity=2, unit_price="50.00")],
            remaining_benefit=Decimal("-5.00"),
        )

        assert result.covered_amount == Decimal("0.00")
        assert result.patient_responsibility == Decimal("100.00")


# =============================================================================
# Approval
# =============================================================================


@pytest.mark.unit
class TestApprovalRequired:
    """Test aggregation of the approval flag."""

    def test_plan_requires_approval(self, calculator, make_plan):
        plan = make_plan(requires_approval=True)

        result = calculator.compute_coverage(plan, [line()])

        assert result.approval_required is True

    def test_matched_override_requires_approval(self, calculator, make_plan, make_coverage_item):
        plan = make_plan(
            coverage_items=[make_coverage_item(item_type="DEVICE", requires_approval=True)]
        )

        result = calculator.compute_coverage(plan, [line(), line(item_type="DEVICE")])

        assert result.approval_required is True

    def test_unmatched_override_does_not_require_approval(
        self, calculator, make_plan, make_coverage_item
    ):
        plan = make_plan(
            coverage_items=[make_coverage_item(item_type="DEVICE", requires_approval=True)]
        )

        result = calculator.compute_coverage(plan, [line(item_type="OTC")])

        assert result.approval_required is False


# =============================================================================
# Validation
# =============================================================================


@pytest.mark.unit
class TestValidation:
    """Test rejection of invalid input."""

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_non_positive_quantity(self, calculator, plan, quantity):
        with pytest.raises(InvalidLineItemError) as exc_info:
            calculator.compute_coverage(plan, [line(), line(quantity=quantity)])

        assert exc_info.value.context["line_number"] == 2

    def test_negative_unit_price(self, calculator, plan):
        with pytest.raises(InvalidLineItemError):
            calculator.compute_coverage(plan, [line(unit_price="-0.01")])

    def test_provider_mismatch(self, calculator, plan):
        with pytest.raises(ProviderMismatchError):
            calculator.compute_coverage(plan, [line()], provider_id=uuid4())

    def test_matching_provider_accepted(self, calculator, plan, provider):
        result = calculator.compute_coverage(plan, [line()], provider_id=provider.id)

        assert result.plan_id == plan.id
