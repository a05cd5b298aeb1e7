from __future__ import annotations

import os
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from claimaudit.core.clock import FixedClock
from claimaudit.core.constants import (
    AuditStatus,
    Origin,
    empty_detailed_findings,
    empty_special_findings,
)
from claimaudit.db.base import Base
from claimaudit.db.models import CaseAudit
from claimaudit.db.repositories import RosterRepository

# Mid-May 2025, inside Q2-2025.
FIXED_NOW = datetime(2025, 5, 15, 9, 30, tzinfo=timezone.utc)


@pytest.fixture()
def db_session():
    """In-memory SQLite session with all tables created."""
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    with Session() as session:
        yield session
    engine.dispose()


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(FIXED_NOW)


@pytest.fixture()
def roster(db_session):
    """Alice (STAFF), Sam (SPECIALIST), Tina (TEAM_LEADER), Rita (READER), Dora (disabled STAFF)."""
    repo = RosterRepository(db_session)
    repo.upsert("alice", role="STAFF", display_name="Alice")
    repo.upsert("sam", role="SPECIALIST", display_name="Sam")
    repo.upsert("tina", role="TEAM_LEADER", display_name="Tina")
    repo.upsert("rita", role="READER", display_name="Rita")
    repo.upsert("dora", role="STAFF", display_name="Dora", enabled=False)
    return repo


@pytest.fixture()
def make_record(db_session):
    """Factory adding a ``CaseAudit`` to the session."""

    def _make(
        record_id: str = "40000001",
        *,
        owner: str = "owen",
        coverage: str = "10000.00",
        status: str = AuditStatus.PENDING.value,
        auditor: str | None = None,
        quarter_key: str = "Q2-2025",
        completion_date: datetime | None = None,
    ) -> CaseAudit:
        record = CaseAudit(
            id=record_id,
            owner_user_id=owner,
            auditor_user_id=auditor,
            coverage_amount=Decimal(coverage),
            claims_status="FULL_COVER",
            quarter_key=quarter_key,
            origin=Origin.USER_QUARTERLY.value,
            status=status,
            comment="",
            special_findings=empty_special_findings(),
            detailed_findings=empty_detailed_findings(),
            completion_date=completion_date,
            notification_date=date(2025, 4, 10),
        )
        db_session.add(record)
        db_session.flush()
        return record

    return _make


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    monkeypatch.setenv("DATABASE_URL", "sqlite+pysqlite:///:memory:")

    from claimaudit.core.settings import get_settings
    from claimaudit.db.session import reset_engine

    get_settings.cache_clear()
    reset_engine()

    from claimaudit.main import app

    with TestClient(app) as test_client:
        yield test_client

    reset_engine()
    get_settings.cache_clear()
    os.environ.pop("DATABASE_URL", None)
