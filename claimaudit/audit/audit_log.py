"""Append-only audit logger.

Provides ``record_event()`` to persist ``AuditEvent`` rows.  Rows are
never updated or deleted.

Review comments and findings are never written to the trail or the log,
only the event type, actor and case id.
"""
from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from claimaudit.audit.events import VALID_EVENT_TYPES
from claimaudit.db.models import AuditEvent

logger = logging.getLogger(__name__)


def record_event(
    db_session: Session,
    event_type: str,
    actor: str,
    timestamp: datetime,
    case_id: str | None = None,
    quarter_key: str | None = None,
    detail: dict | None = None,
) -> AuditEvent:
    """Create and persist an ``AuditEvent``.

    Raises ``ValueError`` for invalid inputs.  Flushes but does **not**
    commit; the caller controls the transaction boundary.
    """
    if event_type not in VALID_EVENT_TYPES:
        raise ValueError(
            f"Invalid event_type {event_type!r}; "
            f"must be one of {sorted(VALID_EVENT_TYPES)}"
        )

    if not actor or not actor.strip():
        raise ValueError("actor must be a non-empty string")

    event = AuditEvent(
        event_type=event_type,
        actor=actor,
        case_id=case_id,
        quarter_key=quarter_key,
        detail=detail,
        timestamp=timestamp,
    )
    db_session.add(event)
    db_session.flush()

    logger.info("Audit event recorded: type=%s actor=%s case=%s", event_type, actor, case_id)
    return event


def get_case_history(
    db_session: Session,
    case_id: str,
) -> list[AuditEvent]:
    """Return all ``AuditEvent`` rows for *case_id*, oldest first."""
    stmt = (
        select(AuditEvent)
        .where(AuditEvent.case_id == case_id)
        .order_by(AuditEvent.id.asc())
    )
    return list(db_session.execute(stmt).scalars().all())


def get_events_by_type(
    db_session: Session,
    event_type: str,
    quarter_key: str | None = None,
) -> list[AuditEvent]:
    """Return all ``AuditEvent`` rows of *event_type*, oldest first.

    Pass *quarter_key* to keep only events recorded for that quarter.
    """
    if event_type not in VALID_EVENT_TYPES:
        raise ValueError(
            f"Invalid event_type {event_type!r}; "
            f"must be one of {sorted(VALID_EVENT_TYPES)}"
        )
    stmt = (
        select(AuditEvent)
        .where(AuditEvent.event_type == event_type)
        .order_by(AuditEvent.id.asc())
    )
    if quarter_key is not None:
        stmt = stmt.where(AuditEvent.quarter_key == quarter_key)
    return list(db_session.execute(stmt).scalars().all())
