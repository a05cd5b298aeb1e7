"""Event type constants for the append-only audit trail."""
from __future__ import annotations

EVENT_SELECTION = "selection"
EVENT_PRE_LOADED = "pre_loaded"
EVENT_AUDIT_STARTED = "audit_started"
EVENT_AUDIT_SAVED = "audit_saved"
EVENT_AUDIT_COMPLETED = "audit_completed"
EVENT_AUDIT_REOPENED = "audit_reopened"

VALID_EVENT_TYPES: frozenset[str] = frozenset({
    EVENT_SELECTION,
    EVENT_PRE_LOADED,
    EVENT_AUDIT_STARTED,
    EVENT_AUDIT_SAVED,
    EVENT_AUDIT_COMPLETED,
    EVENT_AUDIT_REOPENED,
})
