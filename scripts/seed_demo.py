#!/usr/bin/env python3
"""Seed demo data: a roster, two carried-over audits and the current quarter's selection.

Usage:
    python scripts/seed_demo.py          # uses DATABASE_URL from env / .env
    DATABASE_URL=... python scripts/seed_demo.py
"""
from __future__ import annotations

import random
import sys
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

# Ensure project root is on sys.path
sys.path.insert(0, ".")

from claimaudit.core.clock import SystemClock
from claimaudit.core.settings import get_settings
from claimaudit.db.base import Base
from claimaudit.db.repositories import RosterRepository
from claimaudit.db.session import build_engine
from claimaudit.review.quarters import QuarterPeriod
from claimaudit.review.schemas import CandidateCase, PreLoadedCase
from claimaudit.review.selection import SelectionService

DEMO_ROSTER = [
    # (user_id, display name, role, department)
    ("amuller", "Anna Müller", "STAFF", "Motor"),
    ("bkeller", "Beat Keller", "STAFF", "Property"),
    ("cfavre", "Claire Favre", "SPECIALIST", "Liability"),
    ("dmeier", "Daniel Meier", "TEAM_LEADER", "Motor"),
    ("erossi", "Elena Rossi", "READER", "Compliance"),
]


def _demo_pool(quarter: QuarterPeriod, rng: random.Random) -> list[CandidateCase]:
    """A handful of feed cases, half in the quarter and half in the one before."""
    owners = [user_id for user_id, _, role, _ in DEMO_ROSTER if role != "READER"]
    pool = []
    for i, period in enumerate([quarter] * 5 + [quarter.previous()] * 3):
        pool.append(
            CandidateCase(
                case_id=str(41_000_000 + i),
                owner_user_id=owners[i % len(owners)],
                coverage_amount=Decimal(rng.randint(50_000, 12_000_000)).scaleb(-2),
                claims_status=rng.choice(["FULL_COVER", "PARTIAL_COVER", "DECLINED", "PENDING"]),
                notification_date=date(period.year, period.months()[i % 3], 1 + i),
            )
        )
    return pool


def seed(session: Session) -> None:
    """Insert the demo roster, carried-over audits and a quarterly selection."""
    roster = RosterRepository(session)
    for user_id, name, role, department in DEMO_ROSTER:
        roster.upsert(user_id, role=role, display_name=name, department=department)

    seed_value = get_settings().selection_seed
    rng = random.Random(seed_value if seed_value is not None else 2025)
    clock = SystemClock()
    quarter = QuarterPeriod.current(clock)
    service = SelectionService(session, clock=clock, rng=rng)

    carried = service.load_pre_loaded(quarter, [
        PreLoadedCase(
            case_id="43000001",
            owner_user_id="amuller",
            coverage_amount=Decimal("8400.00"),
            claims_status="FULL_COVER",
            status="COMPLETED",
            auditor_user_id="cfavre",
            review={"rating": "SUCCESSFULLY_FULFILLED", "special_findings": {"perfect_timing": True}},
        ),
        PreLoadedCase(
            case_id="43000002",
            owner_user_id="bkeller",
            coverage_amount=Decimal("22150.50"),
            claims_status="PARTIAL_COVER",
            status="IN_PROGRESS",
            auditor_user_id="dmeier",
            review={"comment": "Waiting for the surveyor's report"},
        ),
    ])
    selected = service.select_quarterly(quarter, _demo_pool(quarter, rng))

    session.commit()
    print(f"Seeded {len(DEMO_ROSTER)} roster users, {len(carried)} carried-over and {len(selected)} selected audits for {quarter}.")


def main() -> None:
    settings = get_settings()
    engine = build_engine(settings.database_url)
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        seed(session)


if __name__ == "__main__":
    main()
