"""Add additional_company_amount to deals

Revision ID: 004_additional_company_amount
Revises: 003_signatures
Create Date: 2026-03-23

Exchange deals: what the company owes the customer when their car is worth
more than the company's car.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "004_additional_company_amount"
down_revision: Union[str, None] = "003_signatures"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    inspector = sa.inspect(op.get_bind())
    if "additional_company_amount" not in {c["name"] for c in inspector.get_columns("deals")}:
        op.add_column("deals", sa.Column("additional_company_amount", sa.Numeric(12, 2), nullable=True))


def downgrade() -> None:
    op.drop_column("deals", "additional_company_amount")
