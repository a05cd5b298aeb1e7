"""Initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19

"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "0001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "case_audits",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("owner_user_id", sa.String(length=128), nullable=False),
        sa.Column("auditor_user_id", sa.String(length=128), nullable=True),
        sa.Column("coverage_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("claims_status", sa.String(length=32), nullable=False),
        sa.Column("quarter_key", sa.String(length=16), nullable=False),
        sa.Column("origin", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=32), server_default=sa.text("'PENDING'"), nullable=False),
        sa.Column("rating", sa.String(length=32), nullable=True),
        sa.Column("comment", sa.Text(), server_default=sa.text("''"), nullable=False),
        sa.Column("special_findings", sa.JSON(), nullable=False),
        sa.Column("detailed_findings", sa.JSON(), nullable=False),
        sa.Column("completion_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notification_date", sa.Date(), nullable=True),
        sa.Column("notified_currency", sa.String(length=3), server_default=sa.text("'CHF'"), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_case_audits_quarter_key", "case_audits", ["quarter_key"])
    op.create_index("ix_case_audits_owner_quarter", "case_audits", ["owner_user_id", "quarter_key"])

    op.create_table(
        "quarterly_user_status",
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("quarter_key", sa.String(length=16), nullable=False),
        sa.Column("completed", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("last_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("user_id", "quarter_key"),
    )

    op.create_table(
        "roster_users",
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("display_name", sa.String(length=256), nullable=True),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.Column("department", sa.String(length=64), nullable=True),
        sa.Column("enabled", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("user_id"),
    )

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("actor", sa.String(length=128), server_default=sa.text("'system'"), nullable=False),
        sa.Column("case_id", sa.String(length=64), nullable=True),
        sa.Column("quarter_key", sa.String(length=16), nullable=True),
        sa.Column("detail", sa.JSON(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_events_event_type", "audit_events", ["event_type"])
    op.create_index("ix_audit_events_case_id", "audit_events", ["case_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_events_case_id", table_name="audit_events")
    op.drop_index("ix_audit_events_event_type", table_name="audit_events")
    op.drop_table("audit_events")
    op.drop_table("roster_users")
    op.drop_table("quarterly_user_status")
    op.drop_index("ix_case_audits_owner_quarter", table_name="case_audits")
    op.drop_index("ix_case_audits_quarter_key", table_name="case_audits")
    op.drop_table("case_audits")
