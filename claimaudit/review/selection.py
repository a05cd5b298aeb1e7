"""Persisted quarterly selection.

Wraps ``SelectionPlanner`` with the case audit store: cases already stored
for the quarter count as carried over, stored ids are never drawn again,
and every batch is recorded in the audit trail.
"""
from __future__ import annotations

import logging
import random
import threading
from collections.abc import Iterable, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from claimaudit.audit.audit_log import record_event
from claimaudit.audit.events import EVENT_PRE_LOADED, EVENT_SELECTION
from claimaudit.core.clock import Clock, SystemClock
from claimaudit.core.constants import AuditStatus, Origin, empty_detailed_findings, empty_special_findings
from claimaudit.core.errors import ConcurrentModification, DuplicateCase, SelectionExhausted
from claimaudit.db.models import CaseAudit
from claimaudit.db.repositories import (
    CaseAuditRepository,
    QuarterlyStatusRepository,
    QuarterSelectionRepository,
    RosterRepository,
)
from claimaudit.review.quarters import QuarterPeriod
from claimaudit.review.sampling import SelectionPlanner
from claimaudit.review.schemas import CandidateCase, PreLoadedCase

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"

# Re-plans allowed when synthesized ids turn out to be stored already.
MAX_PLAN_ATTEMPTS = 5


class SelectionService:
    """Select, store and list a quarter's case audits."""

    def __init__(
        self,
        db_session: Session,
        clock: Clock | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.db = db_session
        self.clock = clock or SystemClock()
        self.planner = SelectionPlanner(rng)
        self.records = CaseAuditRepository(db_session)
        self.quarterly = QuarterlyStatusRepository(db_session)
        self.roster = RosterRepository(db_session)
        self.selections = QuarterSelectionRepository(db_session)

    def select_quarterly(
        self,
        quarter: QuarterPeriod,
        pool: Iterable[CandidateCase],
        *,
        actor: str = SYSTEM_ACTOR,
        cancel_event: threading.Event | None = None,
    ) -> list[CaseAudit]:
        """Top the quarter up to its full batch and return the new records.

        Raises ``ConcurrentModification`` when another request selected or
        loaded cases for the same quarter in the meantime; the session is
        rolled back and nothing is stored.
        """
        quarter_key = str(quarter)
        now = self.clock.now()
        lock = self.selections.lock(quarter_key)
        pre_loaded_count = self.records.count_for_quarter(quarter_key)

        batch = self._plan_unstored(quarter, list(pool), pre_loaded_count, cancel_event)
        if not batch:
            if lock in self.db.new:
                self.db.expunge(lock)
            return []

        lock.runs += 1
        lock.last_run_at = now
        self._store(quarter_key, batch)
        record_event(
            self.db,
            event_type=EVENT_SELECTION,
            actor=actor,
            timestamp=now,
            quarter_key=quarter_key,
            detail={
                "pre_loaded_count": pre_loaded_count,
                "case_ids": [record.id for record in batch],
            },
        )
        return batch

    def load_pre_loaded(
        self,
        quarter: QuarterPeriod,
        items: Sequence[PreLoadedCase],
        *,
        actor: str = SYSTEM_ACTOR,
    ) -> list[CaseAudit]:
        """Store carried-over cases for *quarter*.

        All items are validated before any is written; one bad item rejects
        the whole batch.  COMPLETED items roll up into the owner's quarterly
        status.
        """
        quarter_key = str(quarter)
        ids = [item.case_id for item in items]
        duplicates = sorted({case_id for case_id in ids if ids.count(case_id) > 1})
        duplicates += sorted(self.records.existing_ids(ids) - set(duplicates))
        if duplicates:
            raise DuplicateCase(f"Case ids already present: {', '.join(duplicates)}")

        now = self.clock.now()
        records = [self._materialize(item, quarter_key, now) for item in items]
        for record in records:
            record.check_invariants()

        lock = self.selections.lock(quarter_key)
        lock.runs += 1
        lock.last_run_at = now
        self._store(quarter_key, records)
        for record in records:
            if record.status == AuditStatus.COMPLETED:
                self.quarterly.upsert(
                    record.owner_user_id,
                    quarter_key,
                    completed=True,
                    last_completed_at=record.completion_date,
                )

        record_event(
            self.db,
            event_type=EVENT_PRE_LOADED,
            actor=actor,
            timestamp=now,
            quarter_key=quarter_key,
            detail={"case_ids": ids},
        )
        logger.info("Loaded %d carried-over audits for %s", len(records), quarter_key)
        return records

    def records_by_origin(self, quarter: QuarterPeriod) -> dict[str, list[CaseAudit]]:
        """Stored records for *quarter*, grouped by origin (every origin present)."""
        grouped: dict[str, list[CaseAudit]] = {origin.value: [] for origin in Origin}
        for record in self.records.list_for_quarter(str(quarter)):
            grouped.setdefault(record.origin, []).append(record)
        return grouped

    def _plan_unstored(
        self,
        quarter: QuarterPeriod,
        pool: list[CandidateCase],
        pre_loaded_count: int,
        cancel_event: threading.Event | None,
    ) -> list[CaseAudit]:
        """Plan a batch whose ids are all new to the store.

        Stored pool ids are excluded up front.  Synthesized ids are only
        known after planning, so a clash with the store means planning again
        with those ids excluded too.
        """
        auditors = self.roster.active_auditors()
        exclude_ids = self.records.existing_ids(candidate.case_id for candidate in pool)
        for _ in range(MAX_PLAN_ATTEMPTS):
            batch = self.planner.plan(
                quarter,
                pool,
                pre_loaded_count,
                auditors,
                exclude_ids=exclude_ids,
                cancel_event=cancel_event,
            )
            clashes = self.records.existing_ids(record.id for record in batch)
            if not clashes:
                return batch
            logger.info("Planned ids %s for %s are already stored; planning again", sorted(clashes), quarter)
            exclude_ids |= clashes

        logger.error("Selection for %s kept producing stored case ids", quarter)
        raise SelectionExhausted(
            f"Selection for {quarter} kept producing stored case ids after {MAX_PLAN_ATTEMPTS} attempts"
        )

    def _store(self, quarter_key: str, records: list[CaseAudit]) -> None:
        try:
            self.records.add_all(records)
        except (StaleDataError, IntegrityError) as exc:
            self.db.rollback()
            logger.info("Concurrent selection on %s; batch discarded", quarter_key)
            raise ConcurrentModification(
                f"Audits for {quarter_key} were modified by another request; refetch and retry"
            ) from exc

    @staticmethod
    def _materialize(item: PreLoadedCase, quarter_key: str, now) -> CaseAudit:
        review = item.review.merged_into(
            special_findings=empty_special_findings(),
            detailed_findings=empty_detailed_findings(),
        )
        completion_date = item.completion_date
        if item.status == AuditStatus.COMPLETED and completion_date is None:
            completion_date = now
        return CaseAudit(
            id=item.case_id,
            owner_user_id=item.owner_user_id,
            auditor_user_id=item.auditor_user_id,
            coverage_amount=item.coverage_amount,
            claims_status=item.claims_status.value,
            quarter_key=quarter_key,
            origin=Origin.PRE_LOADED.value,
            status=item.status.value,
            rating=review.get("rating"),
            comment=review.get("comment", ""),
            special_findings=review.get("special_findings", empty_special_findings()),
            detailed_findings=review.get("detailed_findings", empty_detailed_findings()),
            completion_date=completion_date,
            notification_date=item.notification_date,
            notified_currency=item.notified_currency,
        )
