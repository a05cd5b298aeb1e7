from datetime import datetime, timedelta, timezone

import pytest

from claimaudit.core.errors import InvalidRecord
from claimaudit.db.models import CaseAudit
from claimaudit.db.repositories import (
    CaseAuditRepository,
    QuarterlyStatusRepository,
    QuarterSelectionRepository,
    RosterRepository,
)

_DONE_AT = datetime(2025, 5, 1, tzinfo=timezone.utc)


def test_repository_crud_helpers_cover_all_entities(db_session, make_record):
    records = CaseAuditRepository(db_session)
    quarterly = QuarterlyStatusRepository(db_session)
    roster = RosterRepository(db_session)

    record = make_record("40000001")
    make_record("40000002", quarter_key="Q1-2025")
    status = quarterly.create(user_id="owen", quarter_key="Q2-2025", completed=False)
    user = roster.create(user_id="alice", role="STAFF", enabled=True)

    records.update(record, comment="checked")
    roster.update(user, department="Motor")
    db_session.commit()

    assert records.get("40000001").comment == "checked"
    assert quarterly.get(("owen", "Q2-2025")) is status
    assert roster.get("alice").department == "Motor"
    assert len(records.list()) == 2


def test_case_audit_queries(db_session, make_record):
    records = CaseAuditRepository(db_session)
    make_record("40000001")
    make_record("40000002")
    make_record("40000003", quarter_key="Q1-2025")

    assert records.count_for_quarter("Q2-2025") == 2
    assert records.count_for_quarter("Q3-2025") == 0
    assert [r.id for r in records.list_for_quarter("Q2-2025")] == ["40000001", "40000002"]
    assert records.existing_ids(["40000001", "49999999"]) == {"40000001"}
    assert records.existing_ids([]) == set()


def test_has_other_completed(db_session, make_record):
    records = CaseAuditRepository(db_session)
    done_at = datetime(2025, 5, 1, tzinfo=timezone.utc)
    make_record("40000001", status="COMPLETED", auditor="alice", completion_date=done_at)
    make_record("40000002", status="COMPLETED", auditor="alice", completion_date=done_at)
    make_record("40000003", quarter_key="Q1-2025", status="COMPLETED", auditor="alice", completion_date=done_at)

    assert records.has_other_completed("owen", "Q2-2025", exclude_id="40000001") is True
    assert records.has_other_completed("owen", "Q1-2025", exclude_id="40000003") is False
    assert records.has_other_completed("someone", "Q2-2025", exclude_id="40000001") is False


def test_quarterly_upsert_never_clears_timestamp(db_session):
    quarterly = QuarterlyStatusRepository(db_session)
    first = datetime(2025, 5, 1, tzinfo=timezone.utc)

    quarterly.upsert("owen", "Q2-2025", completed=True, last_completed_at=first)
    status = quarterly.upsert("owen", "Q2-2025", completed=False)
    assert status.completed is False
    assert status.last_completed_at == first

    later = first + timedelta(days=3)
    status = quarterly.upsert("owen", "Q2-2025", completed=True, last_completed_at=later)
    assert status.last_completed_at == later
    assert quarterly.get_status("owen", "Q1-2025") is None


def test_roster_upsert_and_role_lookup(db_session):
    roster = RosterRepository(db_session)
    roster.upsert("alice", role="STAFF")
    roster.upsert("rita", role="READER")
    roster.upsert("dora", role="SPECIALIST", enabled=False)
    roster.upsert("alice", role="SPECIALIST", display_name="Alice")

    assert roster.role_of("alice") == "SPECIALIST"
    assert roster.role_of("dora") is None
    assert roster.role_of("nobody") is None
    assert roster.role_of("") is None
    assert [u.user_id for u in roster.all_users()] == ["alice", "dora", "rita"]
    assert [u.user_id for u in roster.active_auditors()] == ["alice"]

    with pytest.raises(ValueError, match="Unknown role"):
        roster.upsert("zed", role="ADMIN")


@pytest.mark.parametrize(
    ("fields", "message"),
    [
        ({"status": "IN_PROGRESS"}, "auditor"),
        ({"status": "PENDING", "auditor_user_id": "alice"}, "auditor"),
        ({"status": "COMPLETED", "auditor_user_id": "alice"}, "completion_date"),
        ({"status": "COMPLETED", "auditor_user_id": "alice", "completion_date": _DONE_AT}, "rating"),
        ({"status": "COMPLETED", "auditor_user_id": "alice", "completion_date": _DONE_AT, "rating": "  "}, "rating"),
        ({"status": "IN_PROGRESS", "auditor_user_id": "owen"}, "own case"),
        ({"status": "ARCHIVED"}, "unknown status"),
        ({"coverage_amount": "-1.00"}, "coverage_amount"),
        ({"owner_user_id": ""}, "owner_user_id"),
    ],
)
def test_case_audit_invariants(fields, message):
    values = {
        "id": "40000001",
        "owner_user_id": "owen",
        "coverage_amount": "100.00",
        "claims_status": "FULL_COVER",
        "quarter_key": "Q2-2025",
        "origin": "USER_QUARTERLY",
        "status": "PENDING",
    }
    values.update(fields)
    with pytest.raises(InvalidRecord, match=message):
        CaseAudit(**values).check_invariants()


def test_case_audit_quarter_property():
    record = CaseAudit(id="x", quarter_key="Q4-2024")
    assert str(record.quarter) == "Q4-2024"
    assert record.quarter.previous().key == "Q3-2024"


def test_quarter_selection_lock(db_session):
    selections = QuarterSelectionRepository(db_session)

    row = selections.lock("Q2-2025")
    assert row in db_session.new
    row.runs += 1
    db_session.flush()
    assert row.version == 1

    again = selections.lock("Q2-2025")
    assert again is row
    assert again.runs == 1
    again.runs += 1
    db_session.flush()
    assert again.version == 2
    assert selections.lock("Q3-2025").runs == 0
