"""Create insurance provider, plan, enrolment and claim tables.

Revision ID: 20260110_001
Revises:
Create Date: 2026-01-10
"""

from alembic import op
import sqlalchemy as sa

# Revision identifiers
revision = "20260110_001"
down_revision = None
branch_labels = None
depends_on = None

CLAIM_STATUSES = (
    "PENDING",
    "SUBMITTED",
    "UNDER_REVIEW",
    "APPROVED",
    "PARTIALLY_APPROVED",
    "REJECTED",
    "PAID",
    "CANCELLED",
)


def timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Create claims tables."""

    op.create_table(
        "insurance_providers",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("contact", sa.String(100), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column("active", sa.Boolean, nullable=False),
        sa.Column("approval_required", sa.Boolean, nullable=False),
        sa.Column("payment_term_days", sa.Integer, nullable=False),
        sa.Column("discount_rate", sa.Numeric(5, 2), nullable=True),
        *timestamps(),
    )
    op.create_index(
        "ix_insurance_providers_code", "insurance_providers", ["code"], unique=True
    )

    op.create_table(
        "insurance_plans",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "provider_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("insurance_providers.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("coverage_percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("annual_limit", sa.Numeric(12, 2), nullable=True),
        sa.Column("requires_approval", sa.Boolean, nullable=False),
        sa.Column("patient_copay", sa.Numeric(5, 2), nullable=False),
        sa.Column("active", sa.Boolean, nullable=False),
        *timestamps(),
        sa.UniqueConstraint("provider_id", "code", name="uq_plan_provider_code"),
    )
    op.create_index("ix_insurance_plans_provider_id", "insurance_plans", ["provider_id"])

    op.create_table(
        "plan_coverage_items",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "plan_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("insurance_plans.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("item_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("item_type", sa.String(50), nullable=True),
        sa.Column("coverage_percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("max_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("requires_approval", sa.Boolean, nullable=False),
        *timestamps(),
    )
    op.create_index("ix_plan_coverage_items_plan_id", "plan_coverage_items", ["plan_id"])

    op.create_table(
        "patient_insurance",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("patient_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column(
            "plan_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("insurance_plans.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("policy_number", sa.String(100), nullable=True),
        sa.Column("start_date", sa.Date, nullable=False),
        sa.Column("end_date", sa.Date, nullable=True),
        sa.Column("active", sa.Boolean, nullable=False),
        *timestamps(),
    )
    op.create_index("ix_patient_insurance_patient_id", "patient_insurance", ["patient_id"])
    op.create_index("ix_patient_insurance_plan_id", "patient_insurance", ["plan_id"])

    op.create_table(
        "insurance_claims",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("claim_number", sa.String(50), nullable=False),
        sa.Column(
            "provider_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("insurance_providers.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "plan_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("insurance_plans.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("patient_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("sale_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("covered_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.Enum(*CLAIM_STATUSES, name="claimstatus"), nullable=False),
        sa.Column("approval_required", sa.Boolean, nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        *timestamps(),
    )
    op.create_index(
        "ix_insurance_claims_claim_number", "insurance_claims", ["claim_number"], unique=True
    )
    op.create_index("ix_insurance_claims_provider_id", "insurance_claims", ["provider_id"])
    op.create_index("ix_insurance_claims_status", "insurance_claims", ["status"])
    op.create_index("ix_insurance_claims_submitted_at", "insurance_claims", ["submitted_at"])
    op.create_index("ix_claims_patient_plan", "insurance_claims", ["patient_id", "plan_id"])

    op.create_table(
        "insurance_claim_items",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "claim_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("insurance_claims.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("line_number", sa.Integer, nullable=False),
        sa.Column("item_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("item_type", sa.String(50), nullable=True),
        sa.Column("quantity", sa.Integer, nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("line_total", sa.Numeric(12, 2), nullable=False),
        sa.Column("covered_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("approved_quantity", sa.Integer, nullable=True),
        sa.Column("approved_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("rejection_reason", sa.Text, nullable=True),
    )
    op.create_index(
        "ix_insurance_claim_items_claim_id", "insurance_claim_items", ["claim_id"]
    )


def downgrade() -> None:
    """Drop claims tables."""
    op.drop_table("insurance_claim_items")
    op.drop_table("insurance_claims")
    op.drop_table("patient_insurance")
    op.drop_table("plan_coverage_items")
    op.drop_table("insurance_plans")
    op.drop_table("insurance_providers")
    if op.get_bind().dialect.name == "postgresql":
        op.execute("DROP TYPE IF EXISTS claimstatus")
