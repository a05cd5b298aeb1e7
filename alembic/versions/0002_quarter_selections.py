"""Add quarter_selections table

Revision ID: 0002_quarter_selections
Revises: 0001_initial
Create Date: 2026-10-19

"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "0002_quarter_selections"
down_revision: str | None = "0001_initial"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "quarter_selections",
        sa.Column("quarter_key", sa.String(length=16), nullable=False),
        sa.Column("runs", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("last_run_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("quarter_key"),
    )


def downgrade() -> None:
    op.drop_table("quarter_selections")
