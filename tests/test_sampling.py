"""Tests for claimaudit/review/sampling.py."""
from __future__ import annotations

import random
import threading
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

import pytest

from claimaudit.core.errors import SelectionCancelled, SelectionExhausted
from claimaudit.review.quarters import QuarterPeriod
from claimaudit.review.roles import SPECIALIST_COVERAGE_LIMIT, STAFF_COVERAGE_LIMIT
from claimaudit.review.sampling import SelectionPlanner, SelectionQuota, is_synthetic_case_id
from claimaudit.review.schemas import CandidateCase

Q2_2025 = QuarterPeriod.of(2, 2025)


@dataclass
class _Entry:
    user_id: str
    role: str
    enabled: bool = True


ROSTER = [
    _Entry("alice", "STAFF"),
    _Entry("sam", "SPECIALIST"),
    _Entry("tina", "TEAM_LEADER"),
    _Entry("rita", "READER"),
]


def _candidate(case_id: str, notified: date, owner: str = "owen", coverage: str = "1000.00") -> CandidateCase:
    return CandidateCase(
        case_id=case_id,
        owner_user_id=owner,
        coverage_amount=Decimal(coverage),
        claims_status="FULL_COVER",
        notification_date=notified,
    )


def _current(n: int, owner: str | None = None) -> list[CandidateCase]:
    return [
        _candidate(f"C{i}", date(2025, 4 + i % 3, 1 + i % 28), owner or f"owner{i}")
        for i in range(n)
    ]


def _previous(n: int) -> list[CandidateCase]:
    return [_candidate(f"P{i}", date(2025, 1 + i % 3, 5), f"prev{i}") for i in range(n)]


@pytest.fixture()
def planner() -> SelectionPlanner:
    return SelectionPlanner(random.Random(1234))


# ===========================================================================
# SelectionQuota
# ===========================================================================

class TestQuota:
    @pytest.mark.parametrize(
        ("pre_loaded", "total", "current", "previous"),
        [
            (0, 8, 6, 2),
            (1, 7, 5, 2),
            (2, 6, 4, 2),
            (3, 5, 3, 2),
            (4, 4, 2, 2),
            (5, 3, 1, 2),
            (6, 2, 0, 2),
            (7, 1, 0, 1),
            (8, 0, 0, 0),
            (12, 0, 0, 0),
        ],
    )
    def test_quota_values(self, pre_loaded, total, current, previous):
        quota = SelectionQuota.for_pre_loaded(pre_loaded)
        assert (quota.total_needed, quota.current_needed, quota.previous_needed) == (total, current, previous)

    @pytest.mark.parametrize("pre_loaded", range(0, 9))
    def test_shares_add_up_to_total(self, pre_loaded):
        quota = SelectionQuota.for_pre_loaded(pre_loaded)
        assert quota.current_needed + quota.previous_needed == quota.total_needed
        assert pre_loaded + quota.batch_size == 8

    def test_negative_count_raises(self):
        with pytest.raises(ValueError, match="pre_loaded_count"):
            SelectionQuota.for_pre_loaded(-1)


# ===========================================================================
# plan — pool large enough
# ===========================================================================

class TestPlanFromPool:
    def test_full_batch_from_pool(self, planner):
        batch = planner.plan(Q2_2025, _current(10) + _previous(5), 0, ROSTER)

        assert len(batch) == 8
        assert len({r.id for r in batch}) == 8
        current = [r for r in batch if r.origin == "USER_QUARTERLY"]
        previous = [r for r in batch if r.origin == "PREVIOUS_QUARTER_RANDOM"]
        assert len(current) == 6 and all(r.id.startswith("C") for r in current)
        assert len(previous) == 2 and all(r.id.startswith("P") for r in previous)

    def test_records_are_pending_in_target_quarter(self, planner):
        batch = planner.plan(Q2_2025, _current(10) + _previous(5), 0, ROSTER)
        for record in batch:
            assert record.status == "PENDING"
            assert record.auditor_user_id is None
            assert record.completion_date is None
            assert record.quarter_key == "Q2-2025"
            assert record.rating is None

    def test_nothing_needed_returns_empty(self, planner):
        assert planner.plan(Q2_2025, _current(10), 8, ROSTER) == []

    def test_ignores_other_quarters(self, planner):
        stale = [_candidate("OLD", date(2024, 11, 3)), _candidate("NEXT", date(2025, 8, 3))]
        batch = planner.plan(Q2_2025, _current(10) + _previous(5) + stale, 0, ROSTER)
        assert {"OLD", "NEXT"}.isdisjoint({r.id for r in batch})

    def test_pool_not_mutated(self, planner):
        pool = _current(10) + _previous(5)
        snapshot = list(pool)
        planner.plan(Q2_2025, pool, 0, ROSTER)
        assert pool == snapshot

    def test_duplicate_ids_collapse(self, planner):
        pool = _current(10) + _current(10) + _previous(5)
        batch = planner.plan(Q2_2025, pool, 0, ROSTER)
        assert len({r.id for r in batch}) == 8

    def test_excluded_ids_never_drawn(self, planner):
        pool = _current(8) + _previous(3)
        batch = planner.plan(Q2_2025, pool, 0, ROSTER, exclude_ids={"C0", "C1", "P0"})
        assert {"C0", "C1", "P0"}.isdisjoint({r.id for r in batch})

    def test_spreads_across_owners_first(self, planner):
        pool = _current(20, owner="busy")
        pool += [_candidate(f"X{i}", date(2025, 5, 2), f"solo{i}") for i in range(6)]
        batch = planner.plan(Q2_2025, pool, 2, ROSTER)
        current_owners = [r.owner_user_id for r in batch if r.origin == "USER_QUARTERLY"]
        assert len(current_owners) == 4
        assert len(set(current_owners)) == 4

    def test_seeded_planner_is_reproducible(self):
        pool = _current(10) + _previous(5)
        first = SelectionPlanner(random.Random(7)).plan(Q2_2025, pool, 0, ROSTER)
        second = SelectionPlanner(random.Random(7)).plan(Q2_2025, pool, 0, ROSTER)
        assert [r.id for r in first] == [r.id for r in second]

    def test_accepts_a_generator(self, planner):
        pool = _current(10) + _previous(5)
        batch = planner.plan(Q2_2025, (c for c in pool), 0, ROSTER)
        assert len(batch) == 8


# ===========================================================================
# plan — filler
# ===========================================================================

class TestFiller:
    def test_q2_2025_scenario(self, planner):
        """4 current and 1 previous in the pool, 2 carried over: 4 + 2 selected."""
        pool = _current(4) + _previous(1)
        batch = planner.plan(Q2_2025, pool, 2, ROSTER)

        assert len(batch) == 6
        current = [r for r in batch if r.origin == "USER_QUARTERLY"]
        previous = [r for r in batch if r.origin == "PREVIOUS_QUARTER_RANDOM"]
        assert sorted(r.id for r in current) == ["C0", "C1", "C2", "C3"]
        assert len(previous) == 2
        assert "P0" in {r.id for r in previous}

        synthesized = [r for r in previous if r.id != "P0"][0]
        assert QuarterPeriod.of(1, 2025).contains(synthesized.notification_date)
        assert synthesized.quarter_key == "Q2-2025"

    def test_synthesized_case_shape(self, planner):
        batch = planner.plan(Q2_2025, [], 0, ROSTER)

        assert len(batch) == 8
        for record in batch:
            assert len(record.id) == 8 and record.id.startswith("4")
            assert record.owner_user_id in {"alice", "sam", "tina"}
            assert record.notified_currency == "CHF"
            assert 1 <= record.notification_date.day <= 28
            ceiling = STAFF_COVERAGE_LIMIT if record.owner_user_id == "alice" else SPECIALIST_COVERAGE_LIMIT
            assert Decimal("500.00") <= record.coverage_amount <= ceiling

    def test_synthesized_dates_follow_origin(self, planner):
        batch = planner.plan(Q2_2025, [], 0, ROSTER)
        for record in batch:
            expected = Q2_2025 if record.origin == "USER_QUARTERLY" else Q2_2025.previous()
            assert expected.contains(record.notification_date)

    def test_filler_rotates_owners(self, planner):
        batch = planner.plan(Q2_2025, [], 0, ROSTER)
        owners = [r.owner_user_id for r in batch if r.origin == "USER_QUARTERLY"]
        assert {"alice", "sam", "tina"} == set(owners)

    def test_synthesized_ids_avoid_excluded(self):
        excluded = {str(40_000_000 + i) for i in range(99_990)}
        batch = SelectionPlanner(random.Random(3)).plan(Q2_2025, [], 0, ROSTER, exclude_ids=excluded)
        assert excluded.isdisjoint({r.id for r in batch})

    def test_ids_outside_synthetic_range_do_not_exhaust(self, planner):
        excluded = {str(50_000_000 + i) for i in range(100_000)} | {"C0", "0040000001"}
        batch = planner.plan(Q2_2025, [], 0, ROSTER, exclude_ids=excluded)
        assert len(batch) == 8

    def test_full_synthetic_range_exhausts(self, planner):
        excluded = {str(40_000_000 + i) for i in range(100_000)}
        with pytest.raises(SelectionExhausted, match="synthetic"):
            planner.plan(Q2_2025, [], 0, ROSTER, exclude_ids=excluded)

    @pytest.mark.parametrize(
        ("case_id", "expected"),
        [("40000000", True), ("40099999", True), ("40100000", False), ("39999999", False),
         ("0040000001", False), ("4000000", False), ("C0", False), ("４0000000", False)],
    )
    def test_is_synthetic_case_id(self, case_id, expected):
        assert is_synthetic_case_id(case_id) is expected

    def test_no_active_auditors_raises(self, planner):
        roster = [_Entry("rita", "READER"), _Entry("dora", "STAFF", enabled=False)]
        with pytest.raises(SelectionExhausted):
            planner.plan(Q2_2025, _current(2), 0, roster)

    def test_no_roster_needed_when_pool_suffices(self, planner):
        batch = planner.plan(Q2_2025, _current(10) + _previous(5), 0, [])
        assert len(batch) == 8


# ===========================================================================
# plan — cancellation
# ===========================================================================

class TestCancellation:
    def test_set_event_cancels(self, planner):
        event = threading.Event()
        event.set()
        with pytest.raises(SelectionCancelled):
            planner.plan(Q2_2025, _current(10), 0, ROSTER, cancel_event=event)

    def test_unset_event_runs(self, planner):
        batch = planner.plan(Q2_2025, _current(10) + _previous(5), 0, ROSTER, cancel_event=threading.Event())
        assert len(batch) == 8

    def test_event_set_mid_stream(self, planner):
        event = threading.Event()

        def pool():
            for i in range(5000):
                if i == 1500:
                    event.set()
                yield _candidate(f"S{i}", date(2025, 5, 1), f"o{i}")

        with pytest.raises(SelectionCancelled, match="after 2000"):
            planner.plan(Q2_2025, pool(), 0, ROSTER, cancel_event=event)
