"""Add company signature and per-deal customer signatures

Revision ID: 003_signatures
Revises: 002_tranzila_columns
Create Date: 2026-03-16
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "003_signatures"
down_revision: Union[str, None] = "002_tranzila_columns"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    inspector = sa.inspect(op.get_bind())
    if "signature_url" not in {c["name"] for c in inspector.get_columns("company_settings")}:
        op.add_column("company_settings", sa.Column("signature_url", sa.Text(), nullable=True))

    if not inspector.has_table("deal_signatures"):
        op.create_table(
            "deal_signatures",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "deal_id",
                sa.Integer(),
                sa.ForeignKey("deals.id", ondelete="CASCADE"),
                nullable=False,
                unique=True,
            ),
            sa.Column("customer_signature_url", sa.Text(), nullable=False),
            sa.Column("signed_by_name", sa.String(255)),
            sa.Column("signed_at", sa.DateTime(timezone=True)),
        )


def downgrade() -> None:
    op.drop_table("deal_signatures")
    op.drop_column("company_settings", "signature_url")
