"""Tests for claimaudit/audit/audit_log.py."""
from __future__ import annotations

import pytest

from claimaudit.audit.audit_log import get_case_history, get_events_by_type, record_event
from claimaudit.audit.events import (
    EVENT_AUDIT_COMPLETED,
    EVENT_AUDIT_SAVED,
    EVENT_AUDIT_STARTED,
    EVENT_SELECTION,
    VALID_EVENT_TYPES,
)


# ===========================================================================
# record_event
# ===========================================================================

class TestRecordEvent:
    def test_valid_event_persisted(self, db_session, clock):
        ev = record_event(
            db_session,
            event_type=EVENT_AUDIT_STARTED,
            actor="alice",
            timestamp=clock.now(),
            case_id="40000001",
            quarter_key="Q2-2025",
            detail={"status": "IN_PROGRESS", "version": 2},
        )
        db_session.commit()

        assert ev.id is not None
        assert ev.event_type == EVENT_AUDIT_STARTED
        assert ev.actor == "alice"
        assert ev.case_id == "40000001"
        assert ev.detail == {"status": "IN_PROGRESS", "version": 2}

    def test_invalid_event_type_raises(self, db_session, clock):
        with pytest.raises(ValueError, match="Invalid event_type"):
            record_event(db_session, event_type="bogus", actor="system", timestamp=clock.now())

    def test_empty_actor_raises(self, db_session, clock):
        with pytest.raises(ValueError, match="actor must be a non-empty string"):
            record_event(db_session, event_type=EVENT_SELECTION, actor="", timestamp=clock.now())

    def test_whitespace_actor_raises(self, db_session, clock):
        with pytest.raises(ValueError, match="actor must be a non-empty string"):
            record_event(db_session, event_type=EVENT_SELECTION, actor="   ", timestamp=clock.now())

    def test_event_types_are_distinct(self):
        assert len(VALID_EVENT_TYPES) == 6

    def test_only_type_actor_and_case_logged(self, db_session, clock, caplog):
        with caplog.at_level("DEBUG"):
            record_event(
                db_session,
                event_type=EVENT_AUDIT_SAVED,
                actor="alice",
                timestamp=clock.now(),
                case_id="40000001",
                detail={"status": "IN_PROGRESS", "note": "secret detail"},
            )

        assert "audit_saved" in caplog.text
        assert "alice" in caplog.text
        assert "40000001" in caplog.text
        assert "secret detail" not in caplog.text


# ===========================================================================
# get_case_history
# ===========================================================================

class TestGetCaseHistory:
    def test_returns_events_in_insertion_order(self, db_session, clock):
        now = clock.now()
        for event_type in (EVENT_AUDIT_STARTED, EVENT_AUDIT_SAVED, EVENT_AUDIT_COMPLETED):
            record_event(db_session, event_type=event_type, actor="alice", timestamp=now, case_id="c-1")
        record_event(db_session, event_type=EVENT_AUDIT_STARTED, actor="sam", timestamp=now, case_id="c-2")
        db_session.commit()

        history = get_case_history(db_session, "c-1")
        assert [e.event_type for e in history] == [EVENT_AUDIT_STARTED, EVENT_AUDIT_SAVED, EVENT_AUDIT_COMPLETED]

    def test_unknown_case_returns_empty(self, db_session):
        assert get_case_history(db_session, "nonexistent") == []


# ===========================================================================
# get_events_by_type
# ===========================================================================

class TestGetEventsByType:
    def test_returns_only_matching_type(self, db_session, clock):
        record_event(db_session, event_type=EVENT_SELECTION, actor="system", timestamp=clock.now())
        record_event(db_session, event_type=EVENT_AUDIT_STARTED, actor="alice", timestamp=clock.now())
        record_event(db_session, event_type=EVENT_SELECTION, actor="system", timestamp=clock.now())
        db_session.commit()

        results = get_events_by_type(db_session, EVENT_SELECTION)
        assert len(results) == 2
        assert all(e.event_type == EVENT_SELECTION for e in results)

    def test_filters_by_quarter(self, db_session, clock):
        record_event(db_session, event_type=EVENT_SELECTION, actor="system", timestamp=clock.now(), quarter_key="Q1-2025")
        record_event(db_session, event_type=EVENT_SELECTION, actor="system", timestamp=clock.now(), quarter_key="Q2-2025")

        results = get_events_by_type(db_session, EVENT_SELECTION, "Q2-2025")
        assert [e.quarter_key for e in results] == ["Q2-2025"]
        assert len(get_events_by_type(db_session, EVENT_SELECTION)) == 2

    def test_invalid_type_raises(self, db_session):
        with pytest.raises(ValueError, match="Invalid event_type"):
            get_events_by_type(db_session, "not_real")
