"""
Insurance Models for Pharmacy Claims.

Providers, plans with per-item coverage overrides, patient enrolments,
and claims with their line items.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pharmacy_claims.core.enums import ClaimStatus
from pharmacy_claims.models.base import Base, TimeStampedModel, UUIDModel


class Provider(Base, UUIDModel, TimeStampedModel):
    """
    Insurance provider (payer).

    Never hard-deleted: claims keep referencing it after deactivation.
    """

    __tablename__ = "insurance_providers"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    code: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
        comment="Unique provider code, fixed at creation",
    )
    contact: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    approval_required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    payment_term_days: Mapped[int] = mapped_column(Integer, default=30, nullable=False)
    discount_rate: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(5, 2),
        nullable=True,
        comment="Pharmacy discount rate (percent)",
    )

    def __repr__(self) -> str:
        return f"<Provider(code={self.code}, active={self.active})>"


class Plan(Base, UUIDModel, TimeStampedModel):
    """Insurance plan offered by a provider."""

    __tablename__ = "insurance_plans"
    __table_args__ = (
        UniqueConstraint("provider_id", "code", name="uq_plan_provider_code"),
    )

    provider_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("insurance_providers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Plan code, unique within provider and fixed at creation",
    )
    coverage_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    annual_limit: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        comment="NULL means unlimited",
    )
    requires_approval: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    patient_copay: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        default=Decimal("0"),
        nullable=False,
    )
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    coverage_items: Mapped[list["CoverageItem"]] = relationship(
        back_populates="plan",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="CoverageItem.created_at",
    )

    def __repr__(self) -> str:
        return f"<Plan(code={self.code}, coverage={self.coverage_percentage})>"


class CoverageItem(Base, UUIDModel, TimeStampedModel):
    """Per-product or per-category coverage override on a plan."""

    __tablename__ = "plan_coverage_items"

    plan_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("insurance_plans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    item_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
        comment="Product this override applies to",
    )
    item_type: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        comment="Product category this override applies to",
    )
    coverage_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    max_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    requires_approval: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    plan: Mapped["Plan"] = relationship(back_populates="coverage_items")


class PatientCoverage(Base, UUIDModel, TimeStampedModel):
    """A patient's enrolment in a plan."""

    __tablename__ = "patient_insurance"

    patient_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)
    plan_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("insurance_plans.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    policy_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Claim(Base, UUIDModel, TimeStampedModel):
    """Insurance claim for a pharmacy sale."""

    __tablename__ = "insurance_claims"
    __table_args__ = (
        Index("ix_claims_patient_plan", "patient_id", "plan_id"),
    )

    claim_number: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
        comment="Human-readable claim number (e.g., CLM-20260101-1A2B3C)",
    )
    provider_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("insurance_providers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    plan_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("insurance_plans.id", ondelete="RESTRICT"),
        nullable=False,
    )
    patient_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    sale_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
        comment="Source sale transaction",
    )
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    covered_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        default=Decimal("0.00"),
        nullable=False,
    )
    status: Mapped[ClaimStatus] = mapped_column(
        Enum(ClaimStatus),
        default=ClaimStatus.PENDING,
        nullable=False,
        index=True,
    )
    approval_required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Review and payment
    approved_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    approval_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    payment_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    payment_reference: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="Payer remittance reference",
    )

    items: Mapped[list["ClaimItem"]] = relationship(
        back_populates="claim",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ClaimItem.line_number",
    )

    def __repr__(self) -> str:
        return f"<Claim(claim_number={self.claim_number}, status={self.status})>"


class ClaimItem(Base, UUIDModel):
    """Line item on a claim."""

    __tablename__ = "insurance_claim_items"

    claim_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("insurance_claims.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    item_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    item_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    line_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    covered_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    approved_quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    approved_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    claim: Mapped["Claim"] = relationship(back_populates="items")
