"""
Pydantic Schemas for Insurance Providers, Plans and Claims.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from pharmacy_claims.core.enums import ClaimStatus


# =============================================================================
# Provider Schemas
# =============================================================================


class InsuranceProviderBase(BaseModel):
    """Base schema for an insurance provider."""

    name: str = Field(..., min_length=1, max_length=200, description="Provider name")
    contact: Optional[str] = Field(None, max_length=100, description="Contact person/phone")
    email: Optional[str] = Field(None, max_length=255, description="Contact email")
    address: Optional[str] = Field(None, max_length=500, description="Postal address")
    active: bool = Field(default=True, description="Provider accepts new claims")
    approval_required: bool = Field(
        default=False, description="Provider reviews every claim before approval"
    )
    payment_term_days: int = Field(default=30, ge=0, description="Days until payment is due")
    discount_rate: Optional[Decimal] = Field(
        None, ge=0, le=100, description="Pharmacy discount rate (percent)"
    )


class InsuranceProviderCreate(InsuranceProviderBase):
    """Schema for creating a provider."""

    code: str = Field(..., min_length=1, max_length=50, description="Unique provider code")

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()


class InsuranceProviderUpdate(BaseModel):
    """Schema for updating a provider. ``code`` is accepted only to be rejected."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    contact: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = Field(None, max_length=500)
    active: Optional[bool] = None
    approval_required: Optional[bool] = None
    payment_term_days: Optional[int] = Field(None, ge=0)
    discount_rate: Optional[Decimal] = Field(None, ge=0, le=100)


class InsuranceProvider(InsuranceProviderBase):
    """Insurance provider as seen by the claims core."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(default_factory=uuid4)
    code: str


# =============================================================================
# Plan Schemas
# =============================================================================


class PlanCoverageItemBase(BaseModel):
    """Per-item override of a plan's coverage percentage."""

    item_id: Optional[UUID] = Field(None, description="Specific product this override covers")
    item_type: Optional[str] = Field(
        None, max_length=50, description="Product category this override covers"
    )
    coverage_percentage: Decimal = Field(..., ge=0, le=100)
    max_amount: Optional[Decimal] = Field(
        None, ge=0, description="Cap on the covered amount for a single line"
    )
    requires_approval: bool = Field(default=False)

    @model_validator(mode="after")
    def check_target(self) -> "PlanCoverageItemBase":
        """An override must name a product, a category, or both."""
        if self.item_id is None and not self.item_type:
            raise ValueError("Coverage item needs an item_id or an item_type")
        return self


class PlanCoverageItemCreate(PlanCoverageItemBase):
    """Schema for adding a coverage item to a plan."""

    pass


class PlanCoverageItemUpdate(BaseModel):
    """Schema for updating a coverage item."""

    coverage_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    max_amount: Optional[Decimal] = Field(None, ge=0)
    requires_approval: Optional[bool] = None


class PlanCoverageItem(PlanCoverageItemBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(default_factory=uuid4)
    plan_id: Optional[UUID] = None


class InsurancePlanBase(BaseModel):
    """Base schema for an insurance plan."""

    name: str = Field(..., min_length=1, max_length=200, description="Plan name")
    coverage_percentage: Decimal = Field(
        ..., ge=0, le=100, description="Default share of a line paid by the insurer"
    )
    annual_limit: Optional[Decimal] = Field(
        None, ge=0, description="Cap on covered amount per patient per benefit year"
    )
    requires_approval: bool = Field(default=False)
    patient_copay: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        le=100,
        description="Patient share (percent), stored independently of coverage",
    )
    active: bool = Field(default=True)


class InsurancePlanCreate(InsurancePlanBase):
    """Schema for creating a plan."""

    code: str = Field(..., min_length=1, max_length=50, description="Plan code, unique per provider")
    provider_id: UUID

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()


class InsurancePlanUpdate(BaseModel):
    """Schema for updating a plan. ``code`` and ``provider_id`` are immutable."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    provider_id: Optional[UUID] = None
    coverage_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    annual_limit: Optional[Decimal] = Field(None, ge=0)
    requires_approval: Optional[bool] = None
    patient_copay: Optional[Decimal] = Field(None, ge=0, le=100)
    active: Optional[bool] = None


class InsurancePlan(InsurancePlanBase):
    """Insurance plan with its coverage overrides."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(default_factory=uuid4)
    code: str
    provider_id: UUID
    coverage_items: list[PlanCoverageItem] = Field(default_factory=list)

    @property
    def has_annual_limit(self) -> bool:
        """False when the plan caps nothing per benefit year."""
        return self.annual_limit is not None


# =============================================================================
# Patient Coverage
# =============================================================================


class PatientInsurance(BaseModel):
    """A patient's enrolment in a plan, with its coverage window."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(default_factory=uuid4)
    patient_id: UUID
    plan_id: UUID
    policy_number: Optional[str] = Field(None, max_length=100)
    start_date: date
    end_date: Optional[date] = None
    active: bool = True

    @model_validator(mode="after")
    def check_window(self) -> "PatientInsurance":
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


# =============================================================================
# Claim Schemas
# =============================================================================


class ClaimLineItem(BaseModel):
    """A priced line on a claim, with its computed and approved coverage."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(default_factory=uuid4)
    item_id: UUID
    item_type: Optional[str] = None
    quantity: int = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)
    line_total: Decimal = Field(..., ge=0)
    covered_amount: Decimal = Field(default=Decimal("0.00"), ge=0)
    approved_quantity: Optional[int] = Field(None, ge=0)
    approved_amount: Optional[Decimal] = Field(None, ge=0)
    rejection_reason: Optional[str] = None


class InsuranceClaim(BaseModel):
    """Insurance claim as handled by the status machine and adjudication."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(default_factory=uuid4)
    claim_number: str
    provider_id: UUID
    plan_id: UUID
    patient_id: UUID
    sale_id: Optional[UUID] = None
    total_amount: Decimal = Field(..., ge=0)
    covered_amount: Decimal = Field(default=Decimal("0.00"), ge=0)
    status: ClaimStatus = ClaimStatus.PENDING
    approval_required: bool = False
    submitted_at: datetime
    processed_at: Optional[datetime] = None
    notes: Optional[str] = None

    # Review and payment details
    approved_by: Optional[str] = Field(None, max_length=100, description="Reviewer who approved")
    approval_date: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    payment_date: Optional[datetime] = None
    payment_reference: Optional[str] = Field(
        None, max_length=100, description="Payer remittance reference"
    )

    items: list[ClaimLineItem] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_covered_amount(self) -> "InsuranceClaim":
        if self.covered_amount > self.total_amount:
            raise ValueError("covered_amount cannot exceed total_amount")
        return self

    @property
    def patient_amount(self) -> Decimal:
        """Portion of the claim the patient pays."""
        return self.total_amount - self.covered_amount


class ClaimLineItemCreate(BaseModel):
    """A line item as entered at the counter."""

    item_id: UUID
    item_type: Optional[str] = None
    quantity: int
    unit_price: Decimal


class ClaimSubmission(BaseModel):
    """Request to file a new claim."""

    provider_id: UUID
    plan_id: UUID
    patient_id: UUID
    sale_id: Optional[UUID] = None
    notes: Optional[str] = None
    draft: bool = Field(default=False, description="Create in PENDING instead of SUBMITTED")
    items: list[ClaimLineItemCreate] = Field(..., min_length=1)


class ClaimItemAdjustment(BaseModel):
    """Reviewer decision for a single claim line."""

    id: UUID = Field(..., description="Claim line item ID")
    approved_quantity: int = Field(..., ge=0)
    approved_amount: Optional[Decimal] = Field(None, ge=0)
    rejection_reason: Optional[str] = None
