"""Add review and payment details to insurance claims.

Revision ID: 20260301_002
Revises: 20260110_001
Create Date: 2026-03-01
"""

from alembic import op
import sqlalchemy as sa

# Revision identifiers
revision = "20260301_002"
down_revision = "20260110_001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Add approval, rejection and payment columns."""
    with op.batch_alter_table("insurance_claims") as batch_op:
        batch_op.add_column(sa.Column("approved_by", sa.String(100), nullable=True))
        batch_op.add_column(
            sa.Column("approval_date", sa.DateTime(timezone=True), nullable=True)
        )
        batch_op.add_column(sa.Column("rejection_reason", sa.Text, nullable=True))
        batch_op.add_column(
            sa.Column("payment_date", sa.DateTime(timezone=True), nullable=True)
        )
        batch_op.add_column(sa.Column("payment_reference", sa.String(100), nullable=True))


def downgrade() -> None:
    """Drop approval, rejection and payment columns."""
    with op.batch_alter_table("insurance_claims") as batch_op:
        batch_op.drop_column("payment_reference")
        batch_op.drop_column("payment_date")
        batch_op.drop_column("rejection_reason")
        batch_op.drop_column("approval_date")
        batch_op.drop_column("approved_by")
