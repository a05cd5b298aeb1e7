"""Case audit lifecycle state machine.

Manages per-record ``status`` transitions:

    PENDING → IN_PROGRESS ⇄ IN_PROGRESS (save) → COMPLETED
                   ↖──────────── reopen ─────────────┘

Every transition is authorized by ``can_act`` against the actor's roster
role, changes exactly one ``CaseAudit`` row, and appends one audit event.
``complete`` and ``reopen`` also refresh the owner's quarterly rollup.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from claimaudit.audit.audit_log import record_event
from claimaudit.audit.events import (
    EVENT_AUDIT_COMPLETED,
    EVENT_AUDIT_REOPENED,
    EVENT_AUDIT_SAVED,
    EVENT_AUDIT_STARTED,
)
from claimaudit.core.clock import Clock, SystemClock
from claimaudit.core.constants import AuditStatus
from claimaudit.core.errors import (
    CaseNotFound,
    ConcurrentModification,
    IncompleteReview,
    InvalidTransition,
    PermissionDenied,
)
from claimaudit.db.models import CaseAudit
from claimaudit.db.repositories import (
    CaseAuditRepository,
    QuarterlyStatusRepository,
    RosterRepository,
)
from claimaudit.review.permissions import can_act
from claimaudit.review.quarters import QuarterPeriod
from claimaudit.review.schemas import ReviewPayload

logger = logging.getLogger(__name__)


class ActionKind(StrEnum):
    START = "start"
    SAVE = "save"
    COMPLETE = "complete"
    REOPEN = "reopen"


# Allowed transitions: current_status → {valid target statuses}
_TRANSITIONS: dict[str, set[str]] = {
    AuditStatus.PENDING: {AuditStatus.IN_PROGRESS},
    AuditStatus.IN_PROGRESS: {AuditStatus.IN_PROGRESS, AuditStatus.COMPLETED},
    AuditStatus.COMPLETED: {AuditStatus.IN_PROGRESS},
}

# Action → (statuses it may start from, target status)
_ACTION_EDGES: dict[ActionKind, tuple[frozenset[str], str]] = {
    ActionKind.START: (frozenset({AuditStatus.PENDING, AuditStatus.IN_PROGRESS}), AuditStatus.IN_PROGRESS),
    ActionKind.SAVE: (frozenset({AuditStatus.PENDING, AuditStatus.IN_PROGRESS}), AuditStatus.IN_PROGRESS),
    ActionKind.COMPLETE: (frozenset({AuditStatus.IN_PROGRESS}), AuditStatus.COMPLETED),
    ActionKind.REOPEN: (frozenset({AuditStatus.COMPLETED}), AuditStatus.IN_PROGRESS),
}

_ACTION_EVENT_MAP: dict[ActionKind, str] = {
    ActionKind.START: EVENT_AUDIT_STARTED,
    ActionKind.SAVE: EVENT_AUDIT_SAVED,
    ActionKind.COMPLETE: EVENT_AUDIT_COMPLETED,
    ActionKind.REOPEN: EVENT_AUDIT_REOPENED,
}


@dataclass(frozen=True, slots=True)
class QuarterlyStatusView:
    user_id: str
    quarter_key: str
    completed: bool
    last_completed_at: datetime | None


class AuditLifecycle:
    """Authorize and apply case audit transitions."""

    def __init__(self, db_session: Session, clock: Clock | None = None) -> None:
        self.db = db_session
        self.clock = clock or SystemClock()
        self.records = CaseAuditRepository(db_session)
        self.quarterly = QuarterlyStatusRepository(db_session)
        self.roster = RosterRepository(db_session)

    # -- queries ------------------------------------------------------------

    def can_transition(self, current_status: str, to_status: str) -> bool:
        """Return whether *current_status* → *to_status* is an edge of the lifecycle."""
        return to_status in _TRANSITIONS.get(current_status, set())

    def get_record(self, record_id: str) -> CaseAudit:
        record = self.records.get(record_id)
        if record is None:
            raise CaseNotFound(record_id)
        return record

    def can_act(self, record_id: str, acting_user_id: str) -> bool:
        """Whether *acting_user_id* may act on *record_id* right now.

        Adds the owner check on top of ``permissions.can_act``: no transition
        may leave the owner as the auditor of their own case.
        """
        record = self.get_record(record_id)
        return self._is_allowed(record, acting_user_id)

    def quarterly_status(self, user_id: str, quarter: QuarterPeriod) -> QuarterlyStatusView:
        status = self.quarterly.get_status(user_id, str(quarter))
        if status is None:
            return QuarterlyStatusView(user_id, str(quarter), completed=False, last_completed_at=None)
        return QuarterlyStatusView(
            user_id, str(quarter), completed=status.completed, last_completed_at=status.last_completed_at,
        )

    # -- transitions --------------------------------------------------------

    def start_or_update(
        self,
        record_id: str,
        acting_user_id: str,
        payload: ReviewPayload | None = None,
        *,
        expected_version: int | None = None,
        kind: ActionKind | str = ActionKind.START,
    ) -> CaseAudit:
        """Move to (or stay in) IN_PROGRESS as *acting_user_id*, merging *payload*."""
        kind = ActionKind(kind)
        if kind not in (ActionKind.START, ActionKind.SAVE):
            raise ValueError(f"start_or_update cannot run action {kind.value!r}")
        record = self._authorize(record_id, acting_user_id, kind, expected_version)

        changes = self._payload_changes(record, payload)
        self._apply(record, changes, status=AuditStatus.IN_PROGRESS.value, auditor_user_id=acting_user_id)
        self._flush(record)
        self._log(kind, record, acting_user_id)
        return record

    def complete(
        self,
        record_id: str,
        acting_user_id: str,
        payload: ReviewPayload | None = None,
        *,
        expected_version: int | None = None,
    ) -> CaseAudit:
        """Finish the review; the rating after merging *payload* must be set."""
        record = self._authorize(record_id, acting_user_id, ActionKind.COMPLETE, expected_version)

        changes = self._payload_changes(record, payload)
        if not changes.get("rating", record.rating):
            raise IncompleteReview(f"CaseAudit {record_id} cannot be completed without a rating")

        now = self.clock.now()
        self._apply(
            record, changes,
            status=AuditStatus.COMPLETED.value, auditor_user_id=acting_user_id, completion_date=now,
        )
        self._flush(record)
        self._refresh_rollup(record, completed=True, last_completed_at=now)
        self._log(ActionKind.COMPLETE, record, acting_user_id)
        return record

    def reopen(
        self,
        record_id: str,
        acting_user_id: str,
        *,
        expected_version: int | None = None,
    ) -> CaseAudit:
        """Return a COMPLETED record to IN_PROGRESS, keeping its review content."""
        record = self._authorize(record_id, acting_user_id, ActionKind.REOPEN, expected_version)

        self._apply(
            record, {},
            status=AuditStatus.IN_PROGRESS.value, auditor_user_id=acting_user_id, completion_date=None,
        )
        self._flush(record)
        self._refresh_rollup(
            record,
            completed=self.records.has_other_completed(
                record.owner_user_id, record.quarter_key, exclude_id=record.id,
            ),
        )
        self._log(ActionKind.REOPEN, record, acting_user_id)
        return record

    def act(
        self,
        record_id: str,
        acting_user_id: str,
        kind: str,
        payload: ReviewPayload | None = None,
        *,
        expected_version: int | None = None,
    ) -> CaseAudit:
        """Dispatch a ``start``/``save``/``complete``/``reopen`` request."""
        try:
            action = ActionKind(kind)
        except ValueError:
            raise ValueError(
                f"Unknown action {kind!r}; must be one of {sorted(a.value for a in ActionKind)}"
            ) from None

        if action is ActionKind.COMPLETE:
            return self.complete(record_id, acting_user_id, payload, expected_version=expected_version)
        if action is ActionKind.REOPEN:
            if payload is not None and payload.model_fields_set:
                raise ValueError("reopen does not accept a review payload")
            return self.reopen(record_id, acting_user_id, expected_version=expected_version)
        return self.start_or_update(
            record_id, acting_user_id, payload, expected_version=expected_version, kind=action,
        )

    # -- internals ----------------------------------------------------------

    def _is_allowed(self, record: CaseAudit, acting_user_id: str) -> bool:
        if not acting_user_id or record.owner_user_id == acting_user_id:
            return False
        return can_act(acting_user_id, self.roster.role_of(acting_user_id), record)

    def _authorize(
        self,
        record_id: str,
        acting_user_id: str,
        kind: ActionKind,
        expected_version: int | None,
    ) -> CaseAudit:
        """Run every check for *kind*; nothing is written before all pass."""
        record = self.get_record(record_id)

        if expected_version is not None and record.version != expected_version:
            raise ConcurrentModification(
                f"CaseAudit {record_id} is at version {record.version}, "
                f"caller expected {expected_version}"
            )

        if not self._is_allowed(record, acting_user_id):
            logger.info("Denied %s on case %s for user %s", kind.value, record_id, acting_user_id)
            raise PermissionDenied(
                f"User {acting_user_id!r} may not {kind.value} CaseAudit {record_id}"
            )

        sources, target = _ACTION_EDGES[kind]
        if record.status not in sources or not self.can_transition(record.status, target):
            raise InvalidTransition(
                f"Invalid transition {record.status!r} → {target!r} for action {kind.value!r}"
            )
        return record

    @staticmethod
    def _payload_changes(record: CaseAudit, payload: ReviewPayload | None) -> dict[str, object]:
        if payload is None:
            return {}
        return payload.merged_into(
            special_findings=record.special_findings,
            detailed_findings=record.detailed_findings,
        )

    @staticmethod
    def _apply(record: CaseAudit, changes: dict[str, object], **fields: object) -> None:
        for key, value in {**changes, **fields}.items():
            setattr(record, key, value)
        # A save that changes nothing still bumps the version.
        flag_modified(record, "status")

    def _flush(self, record: CaseAudit) -> None:
        record_id = record.id
        try:
            self.db.flush()
        except StaleDataError as exc:
            self.db.rollback()
            logger.info("Concurrent write on case %s; update discarded", record_id)
            raise ConcurrentModification(
                f"CaseAudit {record_id} was modified by another request; refetch and retry"
            ) from exc

    def _refresh_rollup(
        self,
        record: CaseAudit,
        *,
        completed: bool,
        last_completed_at: datetime | None = None,
    ) -> None:
        record_id = record.id
        try:
            self.quarterly.upsert(
                record.owner_user_id,
                record.quarter_key,
                completed=completed,
                last_completed_at=last_completed_at,
            )
        except IntegrityError as exc:
            # Another request created the same rollup row first.
            self.db.rollback()
            raise ConcurrentModification(
                f"Quarterly status for case {record_id} was modified concurrently; refetch and retry"
            ) from exc

    def _log(self, kind: ActionKind, record: CaseAudit, acting_user_id: str) -> None:
        record_event(
            self.db,
            event_type=_ACTION_EVENT_MAP[kind],
            actor=acting_user_id,
            timestamp=self.clock.now(),
            case_id=record.id,
            quarter_key=record.quarter_key,
            detail={"status": record.status, "version": record.version},
        )
