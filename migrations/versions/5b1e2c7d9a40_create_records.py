"""create records

Revision ID: 5b1e2c7d9a40
Revises:
Create Date: 2026-10-17 09:12:44.301226

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5b1e2c7d9a40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create record storage and unique-value claims."""
    op.create_table(
        "records",
        sa.Column("key", sa.String(length=32), nullable=False),
        sa.Column("collection", sa.String(length=64), nullable=False),
        sa.Column("fields", sa.JSON(), nullable=False),
        sa.Column("credential_hash", sa.String(length=128), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("deleted", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("key"),
    )
    op.create_index("ix_records_collection", "records", ["collection"])
    op.create_index("ix_records_deleted", "records", ["deleted"])

    op.create_table(
        "record_unique_values",
        sa.Column("collection", sa.String(length=64), nullable=False),
        sa.Column("field", sa.String(length=64), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("record_key", sa.String(length=32), nullable=False),
        sa.ForeignKeyConstraint(["record_key"], ["records.key"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("collection", "field", "value"),
    )
    op.create_index(
        "ix_record_unique_values_record_key", "record_unique_values", ["record_key"]
    )


def downgrade() -> None:
    """Drop record storage."""
    op.drop_index("ix_record_unique_values_record_key", table_name="record_unique_values")
    op.drop_table("record_unique_values")
    op.drop_index("ix_records_deleted", table_name="records")
    op.drop_index("ix_records_collection", table_name="records")
    op.drop_table("records")
