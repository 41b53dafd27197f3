"""Add Tranzila document columns to bills

Revision ID: 002_tranzila_columns
Revises: 001_initial
Create Date: 2026-03-09

Stores the vendor document id, number, retrieval key (encrypted) and
issue time on each bill. Skips columns that already exist.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "002_tranzila_columns"
down_revision: Union[str, None] = "001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_COLUMNS = (
    ("tranzila_document_id", sa.String(50)),
    ("tranzila_document_number", sa.String(50)),
    ("tranzila_retrieval_key", sa.Text()),
    ("tranzila_created_at", sa.DateTime(timezone=True)),
)


def upgrade() -> None:
    inspector = sa.inspect(op.get_bind())
    existing = {c["name"] for c in inspector.get_columns("bills")}
    for name, type_ in _COLUMNS:
        if name not in existing:
            op.add_column("bills", sa.Column(name, type_, nullable=True))
    indexes = {i["name"] for i in inspector.get_indexes("bills")}
    if "ix_bills_tranzila_document_number" not in indexes:
        op.create_index("ix_bills_tranzila_document_number", "bills", ["tranzila_document_number"])


def downgrade() -> None:
    op.drop_index("ix_bills_tranzila_document_number", table_name="bills")
    for name, _ in reversed(_COLUMNS):
        op.drop_column("bills", name)
