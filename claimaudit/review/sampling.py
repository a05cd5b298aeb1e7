"""Quarterly selection planner.

Builds a quarter's review batch: a fixed total of eight cases, six from
the quarter itself and up to two drawn at random from the previous
quarter.  Cases carried over from earlier sessions count against the
total and drain the current-quarter share first.  When the pool is too
small the shortfall is filled with synthesized cases so the batch is
always complete.
"""
from __future__ import annotations

import logging
import random
import threading
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from claimaudit.core.constants import (
    DEFAULT_CURRENCY,
    AuditStatus,
    ClaimsStatus,
    Origin,
    empty_detailed_findings,
    empty_special_findings,
)
from claimaudit.core.errors import InvalidQuarterFormat, SelectionCancelled, SelectionExhausted
from claimaudit.db.models import CaseAudit
from claimaudit.review.quarters import QuarterPeriod
from claimaudit.review.roles import SYNTHESIS_CEILINGS, Role, RosterEntry, is_active_auditor
from claimaudit.review.schemas import CandidateCase

logger = logging.getLogger(__name__)

TARGET_TOTAL = 8
CURRENT_QUARTER_TARGET = 6
PREVIOUS_QUARTER_MAX = 2

CANCEL_CHECK_INTERVAL = 1000

# Synthesized case numbers look like the feed's: 8 digits starting with 4.
SYNTHETIC_CASE_BASE = 40_000_000
SYNTHETIC_CASE_SPAN = 100_000
FILLER_MIN_COVERAGE = Decimal("500.00")
FILLER_MAX_DAY = 28


def is_synthetic_case_id(case_id: str) -> bool:
    """Whether *case_id* falls in the range synthesized filler cases draw from."""
    if not (case_id.isascii() and case_id.isdigit()) or len(case_id) != len(str(SYNTHETIC_CASE_BASE)):
        return False
    return SYNTHETIC_CASE_BASE <= int(case_id) < SYNTHETIC_CASE_BASE + SYNTHETIC_CASE_SPAN


@dataclass(frozen=True, slots=True)
class SelectionQuota:
    total_needed: int
    current_needed: int
    previous_needed: int

    @classmethod
    def for_pre_loaded(cls, pre_loaded_count: int) -> SelectionQuota:
        """Return the quota left after *pre_loaded_count* carried-over cases (pure)."""
        if pre_loaded_count < 0:
            raise ValueError(f"pre_loaded_count must be >= 0; got {pre_loaded_count}")
        total = max(0, TARGET_TOTAL - pre_loaded_count)
        current = max(0, CURRENT_QUARTER_TARGET - pre_loaded_count)
        previous = min(PREVIOUS_QUARTER_MAX, total - current) if total > current else 0
        return cls(total_needed=total, current_needed=current, previous_needed=previous)

    @property
    def batch_size(self) -> int:
        return self.current_needed + self.previous_needed


class SelectionPlanner:
    """Turn a pool of candidate cases into a batch of PENDING case audits.

    The planner does no I/O and never mutates its inputs; pass a seeded
    ``random.Random`` for reproducible draws.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self.rng = rng or random.Random()

    def plan(
        self,
        quarter: QuarterPeriod,
        pool: Iterable[CandidateCase],
        pre_loaded_count: int,
        roster: Sequence[RosterEntry] = (),
        *,
        exclude_ids: Iterable[str] = (),
        cancel_event: threading.Event | None = None,
    ) -> list[CaseAudit]:
        """Return new ``CaseAudit`` rows for *quarter* (not added to any session).

        *exclude_ids* are case ids already stored; they are never selected
        and never reused for synthesized cases.
        """
        quota = SelectionQuota.for_pre_loaded(pre_loaded_count)
        if quota.batch_size == 0:
            logger.info("Quarter %s already has %d audits; nothing to select", quarter, pre_loaded_count)
            return []

        excluded = set(exclude_ids)
        current_cases, previous_cases = self._partition(quarter, pool, excluded, cancel_event)

        current_drawn = self._draw_spread_across_owners(current_cases, quota.current_needed)
        previous_drawn = self._draw(previous_cases, quota.previous_needed)

        taken_ids = excluded | {c.case_id for c in current_cases} | {c.case_id for c in previous_cases}
        auditors = [entry for entry in roster if is_active_auditor(entry)]
        current_fill = self._synthesize(
            quarter, quota.current_needed - len(current_drawn), auditors, taken_ids,
        )
        previous_fill = self._synthesize(
            quarter.previous(), quota.previous_needed - len(previous_drawn), auditors, taken_ids,
        )

        batch = [
            self._materialize(c, quarter, Origin.USER_QUARTERLY)
            for c in current_drawn + current_fill
        ] + [
            self._materialize(c, quarter, Origin.PREVIOUS_QUARTER_RANDOM)
            for c in previous_drawn + previous_fill
        ]

        if len(batch) != quota.batch_size or len({r.id for r in batch}) != len(batch):
            logger.error(
                "Selection for %s produced %d audits; expected %d distinct",
                quarter, len(batch), quota.batch_size,
            )
            raise SelectionExhausted(
                f"Selection for {quarter} produced {len(batch)} audits; "
                f"expected {quota.batch_size}"
            )

        logger.info(
            "Planned %d audits for %s (current=%d/%d previous=%d/%d synthesized=%d)",
            len(batch), quarter,
            len(current_drawn), quota.current_needed,
            len(previous_drawn), quota.previous_needed,
            len(current_fill) + len(previous_fill),
        )
        return batch

    # -- pool handling ------------------------------------------------------

    def _partition(
        self,
        quarter: QuarterPeriod,
        pool: Iterable[CandidateCase],
        excluded: set[str],
        cancel_event: threading.Event | None,
    ) -> tuple[list[CandidateCase], list[CandidateCase]]:
        previous = quarter.previous()
        current_cases: list[CandidateCase] = []
        previous_cases: list[CandidateCase] = []
        seen: set[str] = set()

        for index, candidate in enumerate(pool):
            if cancel_event is not None and index % CANCEL_CHECK_INTERVAL == 0 and cancel_event.is_set():
                raise SelectionCancelled(f"Selection for {quarter} cancelled after {index} candidates")
            if candidate.case_id in excluded or candidate.case_id in seen:
                continue
            seen.add(candidate.case_id)
            try:
                candidate_quarter = QuarterPeriod.from_date(candidate.notification_date)
            except InvalidQuarterFormat:
                logger.debug("Candidate %s has an out-of-range notification date; skipped", candidate.case_id)
                continue
            if candidate_quarter == quarter:
                current_cases.append(candidate)
            elif candidate_quarter == previous:
                previous_cases.append(candidate)

        return current_cases, previous_cases

    def _draw(self, candidates: list[CandidateCase], count: int) -> list[CandidateCase]:
        if count <= 0:
            return []
        return self.rng.sample(candidates, min(count, len(candidates)))

    def _draw_spread_across_owners(self, candidates: list[CandidateCase], count: int) -> list[CandidateCase]:
        """Random draw taking one case per owner before any owner gets a second."""
        if count <= 0:
            return []
        shuffled = list(candidates)
        self.rng.shuffle(shuffled)

        picked: list[CandidateCase] = []
        leftovers: list[CandidateCase] = []
        owners: set[str] = set()
        for candidate in shuffled:
            if len(picked) < count and candidate.owner_user_id not in owners:
                picked.append(candidate)
                owners.add(candidate.owner_user_id)
            else:
                leftovers.append(candidate)
        picked.extend(leftovers[: count - len(picked)])
        return picked

    # -- filler -------------------------------------------------------------

    def _synthesize(
        self,
        quarter: QuarterPeriod,
        count: int,
        auditors: list[RosterEntry],
        taken_ids: set[str],
    ) -> list[CandidateCase]:
        """Make *count* plausible candidates notified in *quarter*.

        Owners rotate through *auditors* from a random starting point.
        *taken_ids* is extended with every id handed out.
        """
        if count <= 0:
            return []
        if not auditors:
            logger.error("Cannot synthesize %d candidates for %s: no active auditors", count, quarter)
            raise SelectionExhausted(
                f"Pool short by {count} cases for {quarter} and no active users to assign them to"
            )

        offset = self.rng.randrange(len(auditors))
        filler: list[CandidateCase] = []
        for i in range(count):
            owner = auditors[(offset + i) % len(auditors)]
            filler.append(
                CandidateCase(
                    case_id=self._new_case_id(taken_ids),
                    owner_user_id=owner.user_id,
                    coverage_amount=self._coverage_for(owner.role),
                    claims_status=self.rng.choice(list(ClaimsStatus)),
                    notification_date=date(
                        quarter.year,
                        self.rng.choice(quarter.months()),
                        self.rng.randint(1, FILLER_MAX_DAY),
                    ),
                    notified_currency=DEFAULT_CURRENCY,
                )
            )
        logger.debug("Synthesized %d candidates for %s", count, quarter)
        return filler

    def _new_case_id(self, taken_ids: set[str]) -> str:
        if sum(1 for case_id in taken_ids if is_synthetic_case_id(case_id)) >= SYNTHETIC_CASE_SPAN:
            raise SelectionExhausted("No free synthetic case numbers left")
        while True:
            case_id = str(SYNTHETIC_CASE_BASE + self.rng.randrange(SYNTHETIC_CASE_SPAN))
            if case_id not in taken_ids:
                taken_ids.add(case_id)
                return case_id

    def _coverage_for(self, role: str) -> Decimal:
        ceiling = SYNTHESIS_CEILINGS[Role(role)]
        cents = self.rng.randint(int(FILLER_MIN_COVERAGE * 100), int(ceiling * 100))
        return Decimal(cents).scaleb(-2)

    @staticmethod
    def _materialize(candidate: CandidateCase, quarter: QuarterPeriod, origin: Origin) -> CaseAudit:
        return CaseAudit(
            id=candidate.case_id,
            owner_user_id=candidate.owner_user_id,
            auditor_user_id=None,
            coverage_amount=candidate.coverage_amount,
            claims_status=candidate.claims_status.value,
            quarter_key=str(quarter),
            origin=origin.value,
            status=AuditStatus.PENDING.value,
            rating=None,
            comment="",
            special_findings=empty_special_findings(),
            detailed_findings=empty_detailed_findings(),
            completion_date=None,
            notification_date=candidate.notification_date,
            notified_currency=candidate.notified_currency,
        )
