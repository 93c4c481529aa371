"""
Coverage Calculation Engine.

Computes, for a plan and a list of line items:
- Line totals (quantity x unit price)
- The coverage rule that applies to each line
- Covered amount per line, capped by the override's max amount
- Claim covered amount, capped by the patient's remaining annual benefit
- Whether the claim needs approval before it can be paid
"""

import logging
from decimal import Decimal
from typing import Optional, Sequence
from uuid import UUID

from pharmacy_claims.schemas.coverage import (
    CategoryMatch,
    CoverageMatch,
    CoverageResult,
    DefaultMatch,
    ExactItemMatch,
    LineCoverageResult,
    LineItemInput,
)
from pharmacy_claims.schemas.insurance import InsurancePlan
from pharmacy_claims.utils.errors import InvalidLineItemError, ProviderMismatchError
from pharmacy_claims.utils.money import ZERO, percent_of, quantize_money, sum_money, to_decimal

logger = logging.getLogger(__name__)


def match_coverage_rule(plan: InsurancePlan, line: LineItemInput) -> CoverageMatch:
    """
    Find the most specific coverage rule for a line item.

    Priority: exact item_id override, then item_type override, then the
    plan-wide percentage. Among overrides of the same kind, the first one
    listed on the plan wins.
    """
    if line.item_id is not None:
        for item in plan.coverage_items:
            if item.item_id == line.item_id:
                return ExactItemMatch(
                    coverage_item_id=item.id,
                    coverage_percentage=item.coverage_percentage,
                    max_amount=item.max_amount,
                    requires_approval=item.requires_approval,
                )

    if line.item_type:
        for item in plan.coverage_items:
            # Product-specific overrides only apply through the exact match above
            if item.item_id is None and item.item_type == line.item_type:
                return CategoryMatch(
                    coverage_item_id=item.id,
                    coverage_percentage=item.coverage_percentage,
                    max_amount=item.max_amount,
                    requires_approval=item.requires_approval,
                )

    return DefaultMatch(coverage_percentage=plan.coverage_percentage)


def validate_line_item(line_number: int, line: LineItemInput) -> None:
    """Reject lines with a non-positive quantity or a negative price."""
    if line.quantity <= 0:
        raise InvalidLineItemError(
            f"Line {line_number}: quantity must be positive, got {line.quantity}",
            line_number=line_number,
        )
    if to_decimal(line.unit_price) < 0:
        raise InvalidLineItemError(
            f"Line {line_number}: unit price cannot be negative, got {line.unit_price}",
            line_number=line_number,
        )


class CoverageCalculator:
    """
    Coverage calculator for pharmacy insurance claims.

    Pure and synchronous: the plan and remaining benefit are loaded by the
    caller, and nothing is persisted here.
    """

    def compute_coverage(
        self,
        plan: InsurancePlan,
        line_items: Sequence[LineItemInput],
        remaining_benefit: Optional[Decimal] = None,
        provider_id: Optional[UUID] = None,
    ) -> CoverageResult:
        """
        Compute covered and patient-responsible amounts for a claim.

        Args:
            plan: Plan with its coverage overrides
            line_items: Lines to price
            remaining_benefit: Unused annual benefit, or None when unlimited
            provider_id: Provider the claim is filed with, checked against the plan

        Returns:
            CoverageResult with per-line and claim-level amounts

        Raises:
            InvalidLineItemError: A line has quantity <= 0 or unit price < 0
            ProviderMismatchError: The plan belongs to another provider
        """
        if provider_id is not None and provider_id != plan.provider_id:
            raise ProviderMismatchError(
                f"Plan {plan.code} does not belong to provider {provider_id}",
                plan_id=str(plan.id),
                provider_id=str(provider_id),
            )

        # Validate everything before computing anything
        for number, line in enumerate(line_items, start=1):
            validate_line_item(number, line)

        per_line = [
            self._compute_line(plan, number, line)
            for number, line in enumerate(line_items, start=1)
        ]

        total_amount = sum_money(line.line_total for line in per_line)
        covered_amount = sum_money(line.covered_amount for line in per_line)
        limit_excess = ZERO

        if remaining_benefit is not None:
            cap = max(ZERO, quantize_money(remaining_benefit))
            if covered_amount > cap:
                limit_excess = covered_amount - cap
                covered_amount = cap
                self._apply_benefit_cap(per_line, cap)

        approval_required = plan.requires_approval or any(
            line.match.requires_approval for line in per_line
        )

        result = CoverageResult(
            plan_id=plan.id,
            per_line=per_line,
            total_amount=total_amount,
            covered_amount=covered_amount,
            patient_responsibility=total_amount - covered_amount,
            limit_excess=limit_excess,
            remaining_benefit=remaining_benefit,
            approval_required=approval_required,
        )

        logger.info(
            f"Coverage computed: plan={plan.code}, lines={len(per_line)}, "
            f"total={total_amount}, covered={covered_amount}, "
            f"limit_excess={limit_excess}, approval_required={approval_required}"
        )

        return result

    def _compute_line(
        self,
        plan: InsurancePlan,
        line_number: int,
        line: LineItemInput,
    ) -> LineCoverageResult:
        """Price a single, already validated, line."""
        unit_price = quantize_money(line.unit_price)
        line_total = quantize_money(unit_price * line.quantity)

        match = match_coverage_rule(plan, line)
        covered = percent_of(line_total, match.coverage_percentage)

        capped = False
        if match.max_amount is not None and covered > match.max_amount:
            covered = quantize_money(match.max_amount)
            capped = True

        return LineCoverageResult(
            line_number=line_number,
            item_id=line.item_id,
            item_type=line.item_type,
            quantity=line.quantity,
            unit_price=unit_price,
            line_total=line_total,
            coverage_percentage=match.coverage_percentage,
            covered_amount=covered,
            capped_by_max_amount=capped,
            match=match,
        )

    @staticmethod
    def _apply_benefit_cap(per_line: list[LineCoverageResult], cap: Decimal) -> None:
        """Reduce line coverage in line order so lines sum to the capped total."""
        budget = cap
        for line in per_line:
            allowed = min(line.covered_amount, budget)
            line.covered_amount = allowed
            budget -= allowed


# =============================================================================
# Module API
# =============================================================================


_coverage_calculator: Optional[CoverageCalculator] = None


def get_coverage_calculator() -> CoverageCalculator:
    """Get singleton coverage calculator instance."""
    global _coverage_calculator
    if _coverage_calculator is None:
        _coverage_calculator = CoverageCalculator()
    return _coverage_calculator


def compute_coverage(
    plan: InsurancePlan,
    line_items: Sequence[LineItemInput],
    remaining_benefit: Optional[Decimal] = None,
    provider_id: Optional[UUID] = None,
) -> CoverageResult:
    """Compute coverage with the shared calculator."""
    return get_coverage_calculator().compute_coverage(
        plan, line_items, remaining_benefit=remaining_benefit, provider_id=provider_id
    )
