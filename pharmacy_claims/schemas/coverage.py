"""
Pydantic Schemas for Coverage Calculation and Eligibility.
"""

from datetime import date
from decimal import Decimal
from typing import Annotated, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field

from pharmacy_claims.core.enums import CoverageMatchKind, IneligibilityReason


# =============================================================================
# Coverage Rule Matching
# =============================================================================


class ExactItemMatch(BaseModel):
    """A coverage item targeting this exact product applied."""

    kind: Literal[CoverageMatchKind.EXACT_ITEM] = CoverageMatchKind.EXACT_ITEM
    coverage_item_id: UUID
    coverage_percentage: Decimal
    max_amount: Optional[Decimal] = None
    requires_approval: bool = False


class CategoryMatch(BaseModel):
    """A coverage item targeting the product's category applied."""

    kind: Literal[CoverageMatchKind.CATEGORY] = CoverageMatchKind.CATEGORY
    coverage_item_id: UUID
    coverage_percentage: Decimal
    max_amount: Optional[Decimal] = None
    requires_approval: bool = False


class DefaultMatch(BaseModel):
    """No override applied; the plan-wide percentage is used."""

    kind: Literal[CoverageMatchKind.DEFAULT] = CoverageMatchKind.DEFAULT
    coverage_percentage: Decimal
    max_amount: None = None
    requires_approval: bool = False


CoverageMatch = Annotated[
    Union[ExactItemMatch, CategoryMatch, DefaultMatch],
    Field(discriminator="kind"),
]


# =============================================================================
# Coverage Calculation
# =============================================================================


class LineItemInput(BaseModel):
    """Line item to price. Quantity and price are checked by the calculator."""

    item_id: Optional[UUID] = None
    item_type: Optional[str] = None
    quantity: int
    unit_price: Decimal


class LineCoverageResult(BaseModel):
    """Coverage computed for one line item."""

    line_number: int
    item_id: Optional[UUID] = None
    item_type: Optional[str] = None
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    coverage_percentage: Decimal
    covered_amount: Decimal
    capped_by_max_amount: bool = False
    match: CoverageMatch

    @property
    def patient_amount(self) -> Decimal:
        return self.line_total - self.covered_amount


class CoverageResult(BaseModel):
    """Claim-level coverage outcome."""

    plan_id: UUID
    per_line: list[LineCoverageResult] = Field(default_factory=list)
    total_amount: Decimal = Decimal("0.00")
    covered_amount: Decimal = Decimal("0.00")
    patient_responsibility: Decimal = Decimal("0.00")
    limit_excess: Decimal = Field(
        default=Decimal("0.00"),
        description="Coverage lost to the remaining annual benefit cap",
    )
    remaining_benefit: Optional[Decimal] = None
    approval_required: bool = False


# =============================================================================
# Eligibility
# =============================================================================


class BenefitYearWindow(BaseModel):
    """Inclusive date range of a benefit year."""

    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


class EligibilityResult(BaseModel):
    """Whether a patient may file a claim against a plan."""

    is_eligible: bool
    plan_id: UUID
    remaining_benefit: Optional[Decimal] = Field(
        None, description="Unused annual benefit; None when the plan is unlimited"
    )
    used_benefit: Decimal = Decimal("0.00")
    benefit_year: BenefitYearWindow
    reason: Optional[IneligibilityReason] = None
    message: Optional[str] = None
