"""Reviewer roles and coverage ceilings.

Roles:
- STAFF: reviews low-exposure cases only
- SPECIALIST: reviews cases up to the specialist ceiling
- TEAM_LEADER: no ceiling, but never reviews their own cases
- READER: read-only, never acts on a case
"""
from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from enum import StrEnum
from typing import Protocol


class Role(StrEnum):
    STAFF = "STAFF"
    SPECIALIST = "SPECIALIST"
    TEAM_LEADER = "TEAM_LEADER"
    READER = "READER"


VALID_ROLES: frozenset[str] = frozenset(role.value for role in Role)

STAFF_COVERAGE_LIMIT = Decimal("30000")
SPECIALIST_COVERAGE_LIMIT = Decimal("150000")

# None means unlimited.
COVERAGE_LIMITS: dict[Role, Decimal | None] = {
    Role.STAFF: STAFF_COVERAGE_LIMIT,
    Role.SPECIALIST: SPECIALIST_COVERAGE_LIMIT,
    Role.TEAM_LEADER: None,
    Role.READER: Decimal("0"),
}

# Team leaders have no permission ceiling, but synthesized cases for them
# stay within the specialist range.
SYNTHESIS_CEILINGS: dict[Role, Decimal] = {
    Role.STAFF: STAFF_COVERAGE_LIMIT,
    Role.SPECIALIST: SPECIALIST_COVERAGE_LIMIT,
    Role.TEAM_LEADER: SPECIALIST_COVERAGE_LIMIT,
}

PRIVILEGED_ROLES: frozenset[Role] = frozenset({Role.TEAM_LEADER, Role.SPECIALIST})


class RosterEntry(Protocol):
    user_id: str
    role: str
    enabled: bool


def parse_role(role: str) -> Role:
    """Return the ``Role`` for *role*; raise ``ValueError`` if unknown."""
    if role not in VALID_ROLES:
        raise ValueError(
            f"Unknown role {role!r}; must be one of {sorted(VALID_ROLES)}"
        )
    return Role(role)


def coverage_limit(role: str) -> Decimal | None:
    """Return the highest coverage amount *role* may review unsupervised."""
    return COVERAGE_LIMITS[parse_role(role)]


def is_active_auditor(entry: RosterEntry) -> bool:
    return bool(entry.enabled) and entry.role != Role.READER


def active_auditors(roster: Iterable[RosterEntry]) -> list[RosterEntry]:
    """Enabled, non-reader roster entries in roster order."""
    return [entry for entry in roster if is_active_auditor(entry)]
