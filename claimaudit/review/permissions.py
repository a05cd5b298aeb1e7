"""Who may act on a case audit right now.

``can_act`` is a pure function of the actor and the record.  Rule order
matters: the team-leader self-audit rule and in-progress exclusivity are
checked before any coverage ceiling, so a team leader is never stopped by
a ceiling but is always stopped on their own case.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Protocol

from claimaudit.core.constants import AuditStatus
from claimaudit.review.roles import (
    PRIVILEGED_ROLES,
    SPECIALIST_COVERAGE_LIMIT,
    STAFF_COVERAGE_LIMIT,
    VALID_ROLES,
    Role,
)


class AuditTarget(Protocol):
    owner_user_id: str
    auditor_user_id: str | None
    status: str
    coverage_amount: Decimal


def can_act(acting_user_id: str | None, acting_role: str | None, record: AuditTarget) -> bool:
    """Return whether *acting_user_id* with *acting_role* may act on *record*."""
    if not acting_user_id or acting_role not in VALID_ROLES or acting_role == Role.READER:
        return False

    if acting_role == Role.TEAM_LEADER and record.owner_user_id == acting_user_id:
        return False

    if record.status == AuditStatus.IN_PROGRESS:
        if record.auditor_user_id == acting_user_id:
            return True
        if record.owner_user_id == acting_user_id:
            return False
        # Take-over of someone else's in-progress review.
        return acting_role in PRIVILEGED_ROLES

    coverage = Decimal(str(record.coverage_amount))
    if acting_role == Role.STAFF and coverage > STAFF_COVERAGE_LIMIT:
        return False
    if acting_role == Role.SPECIALIST and coverage > SPECIALIST_COVERAGE_LIMIT:
        return False
    return True
