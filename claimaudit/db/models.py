from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Boolean, Date, DateTime, Index, Integer, JSON, Numeric, String, Text, func, text as sql_text
from sqlalchemy.orm import Mapped, mapped_column

from claimaudit.core.constants import (
    DEFAULT_CURRENCY,
    AuditStatus,
    empty_detailed_findings,
    empty_special_findings,
)
from claimaudit.core.errors import InvalidRecord
from claimaudit.db.base import Base
from claimaudit.review.quarters import QuarterPeriod

_ASSIGNED_STATUSES = frozenset({AuditStatus.IN_PROGRESS, AuditStatus.COMPLETED})


class CaseAudit(Base):
    """One claim case under (or pending) review for one quarter.

    ``version`` is the optimistic-concurrency counter: every UPDATE is
    issued as ``... WHERE id = :id AND version = :seen`` and bumps it, so a
    writer holding a stale copy fails instead of overwriting.
    """

    __tablename__ = "case_audits"
    __table_args__ = (
        Index("ix_case_audits_quarter_key", "quarter_key"),
        Index("ix_case_audits_owner_quarter", "owner_user_id", "quarter_key"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    owner_user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    auditor_user_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    coverage_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    claims_status: Mapped[str] = mapped_column(String(32), nullable=False)
    quarter_key: Mapped[str] = mapped_column(String(16), nullable=False)
    origin: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=AuditStatus.PENDING.value, server_default=sql_text("'PENDING'"),
    )
    rating: Mapped[str | None] = mapped_column(String(32), nullable=True)
    comment: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default=sql_text("''"))
    special_findings: Mapped[dict] = mapped_column(JSON, nullable=False, default=empty_special_findings)
    detailed_findings: Mapped[dict] = mapped_column(JSON, nullable=False, default=empty_detailed_findings)
    completion_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notification_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notified_currency: Mapped[str] = mapped_column(
        String(3), nullable=False, default=DEFAULT_CURRENCY, server_default=sql_text("'CHF'"),
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def quarter(self) -> QuarterPeriod:
        return QuarterPeriod.parse(self.quarter_key)

    def check_invariants(self) -> None:
        """Raise ``InvalidRecord`` if the record breaks a lifecycle invariant."""
        if not self.id:
            raise InvalidRecord("case id must be non-empty")
        if not self.owner_user_id:
            raise InvalidRecord(f"CaseAudit {self.id}: owner_user_id must be non-empty")
        if self.status not in set(AuditStatus):
            raise InvalidRecord(f"CaseAudit {self.id}: unknown status {self.status!r}")
        if self.coverage_amount is None or Decimal(self.coverage_amount) < 0:
            raise InvalidRecord(f"CaseAudit {self.id}: coverage_amount must be >= 0")
        assigned = self.status in _ASSIGNED_STATUSES
        if assigned != bool(self.auditor_user_id):
            raise InvalidRecord(
                f"CaseAudit {self.id}: auditor must be set exactly when status is "
                f"IN_PROGRESS or COMPLETED (status={self.status})"
            )
        if (self.status == AuditStatus.COMPLETED) != (self.completion_date is not None):
            raise InvalidRecord(
                f"CaseAudit {self.id}: completion_date must be set exactly when COMPLETED"
            )
        if self.status == AuditStatus.COMPLETED and not (self.rating or "").strip():
            raise InvalidRecord(f"CaseAudit {self.id}: a COMPLETED audit needs a rating")
        if self.auditor_user_id and self.auditor_user_id == self.owner_user_id:
            raise InvalidRecord(f"CaseAudit {self.id}: owner cannot audit their own case")


class QuarterlyUserStatus(Base):
    """Per-owner, per-quarter rollup of completed audits."""

    __tablename__ = "quarterly_user_status"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    quarter_key: Mapped[str] = mapped_column(String(16), primary_key=True)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=sql_text("false"))
    last_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )


class RosterUser(Base):
    __tablename__ = "roster_users"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    display_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    role: Mapped[str] = mapped_column(String(32), nullable=False)
    department: Mapped[str | None] = mapped_column(String(64), nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=sql_text("true"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AuditEvent(Base):
    """Append-only trail of selections and lifecycle transitions."""

    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    actor: Mapped[str] = mapped_column(String(128), nullable=False, server_default=sql_text("'system'"))
    case_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    quarter_key: Mapped[str | None] = mapped_column(String(16), nullable=True)
    detail: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class QuarterSelection(Base):
    """One row per quarter; every selection or pre-load bumps it.

    Selections read the quarter's record count and then insert a batch, so
    two writers racing on one quarter must conflict here.  The row is read
    ``FOR UPDATE`` where the database supports it and is versioned like
    ``CaseAudit`` everywhere else.
    """

    __tablename__ = "quarter_selections"

    quarter_key: Mapped[str] = mapped_column(String(16), primary_key=True)
    runs: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=sql_text("0"))
    last_run_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
