"""FastAPI dependency injection — database sessions and service factories."""
from __future__ import annotations

import random
from collections.abc import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from claimaudit.core.clock import Clock, SystemClock
from claimaudit.core.settings import get_settings
from claimaudit.db.session import get_session_factory
from claimaudit.review.selection import SelectionService
from claimaudit.review.workflow import AuditLifecycle


def get_db() -> Generator[Session, None, None]:
    """Yield a SQLAlchemy session; commit on success, rollback on error."""
    factory = get_session_factory()
    db = factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_clock() -> Clock:
    return SystemClock()


def get_lifecycle(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> AuditLifecycle:
    """Return an AuditLifecycle bound to the current DB session."""
    return AuditLifecycle(db, clock=clock)


def get_selection_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> SelectionService:
    """Return a SelectionService; draws are reproducible when SELECTION_SEED is set."""
    seed = get_settings().selection_seed
    rng = random.Random(seed) if seed is not None else None
    return SelectionService(db, clock=clock, rng=rng)
