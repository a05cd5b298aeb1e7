"""Error taxonomy for the audit engine.

Each error also derives from the builtin exception callers would catch for
the same concern (``KeyError`` for lookups, ``PermissionError`` for
authorization, ``ValueError`` for bad input), so route handlers can catch
either the specific class or the broad builtin.
"""
from __future__ import annotations


class AuditError(Exception):
    """Base class for all audit engine errors."""


class InvalidQuarterFormat(AuditError, ValueError):
    """Quarter string is not ``Q<1-4>-<yyyy>`` or is out of range."""


class CaseNotFound(AuditError, KeyError):
    """No case audit record with the requested id."""

    def __init__(self, case_id: str) -> None:
        super().__init__(case_id)
        self.case_id = case_id

    def __str__(self) -> str:
        return f"CaseAudit {self.case_id} not found"


class PermissionDenied(AuditError, PermissionError):
    """Acting user may not act on the record right now."""


class IncompleteReview(AuditError, ValueError):
    """Completion attempted without a rating."""


class InvalidTransition(AuditError, ValueError):
    """Requested lifecycle edge does not exist from the current status."""


class InvalidRecord(AuditError, ValueError):
    """Record fields violate a case audit invariant."""


class DuplicateCase(AuditError, ValueError):
    """A record with this case id already exists."""


class ConcurrentModification(AuditError, RuntimeError):
    """Another writer changed the record first; refetch and retry."""


class SelectionExhausted(AuditError, RuntimeError):
    """Planner could not fill its quota even with synthesized candidates."""


class SelectionCancelled(AuditError, RuntimeError):
    """Planner stopped because its cancellation event was set."""
