"""Case audit routes — quarterly selection, review actions and status.

Engine errors are translated to HTTP status codes here and nowhere else.
Review comments are returned to callers but never logged.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from claimaudit.api.deps import get_db, get_lifecycle, get_selection_service
from claimaudit.audit.audit_log import get_case_history, get_events_by_type
from claimaudit.audit.events import EVENT_PRE_LOADED, EVENT_SELECTION
from claimaudit.core.constants import DETAILED_FINDING_LABELS, SPECIAL_FINDING_LABELS, Rating
from claimaudit.core.errors import (
    AuditError,
    CaseNotFound,
    ConcurrentModification,
    DuplicateCase,
    IncompleteReview,
    InvalidQuarterFormat,
    InvalidRecord,
    InvalidTransition,
    PermissionDenied,
    SelectionExhausted,
)
from claimaudit.db.models import AuditEvent, CaseAudit
from claimaudit.review.quarters import QuarterPeriod
from claimaudit.review.schemas import CandidateCase, PreLoadedCase, ReviewPayload
from claimaudit.review.selection import SelectionService
from claimaudit.review.workflow import AuditLifecycle

router = APIRouter(prefix="/audits", tags=["audits"])


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class SelectionBody(BaseModel):
    candidates: list[CandidateCase] = []


class PreLoadedBody(BaseModel):
    cases: list[PreLoadedCase]


class ActionBody(BaseModel):
    acting_user_id: str
    kind: str
    review: ReviewPayload | None = None
    expected_version: int | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

# Checked in order; the first matching class wins.
_ERROR_STATUS: list[tuple[type[AuditError], int]] = [
    (InvalidQuarterFormat, 400),
    (CaseNotFound, 404),
    (PermissionDenied, 403),
    (IncompleteReview, 422),
    (InvalidRecord, 422),
    (InvalidTransition, 409),
    (ConcurrentModification, 409),
    (DuplicateCase, 409),
    (SelectionExhausted, 500),
]


def _http_error(exc: AuditError) -> HTTPException:
    for error_type, status_code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


def _parse_quarter(quarter: str) -> QuarterPeriod:
    try:
        return QuarterPeriod.parse(quarter)
    except InvalidQuarterFormat as exc:
        raise _http_error(exc)


def _serialize_record(record: CaseAudit) -> dict:
    return {
        "id": record.id,
        "owner_user_id": record.owner_user_id,
        "auditor_user_id": record.auditor_user_id,
        "coverage_amount": str(record.coverage_amount),
        "claims_status": record.claims_status,
        "quarter_key": record.quarter_key,
        "origin": record.origin,
        "status": record.status,
        "rating": record.rating,
        "comment": record.comment,
        "special_findings": record.special_findings,
        "detailed_findings": record.detailed_findings,
        "completion_date": record.completion_date.isoformat() if record.completion_date else None,
        "notification_date": record.notification_date.isoformat() if record.notification_date else None,
        "notified_currency": record.notified_currency,
        "version": record.version,
    }


def _serialize_event(ev: AuditEvent) -> dict:
    return {
        "event_type": ev.event_type,
        "actor": ev.actor,
        "case_id": ev.case_id,
        "quarter_key": ev.quarter_key,
        "detail": ev.detail,
        "timestamp": ev.timestamp.isoformat() if ev.timestamp else None,
    }


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.post("/selections/{quarter}", summary="Select the quarter's audit batch")
def select_quarter(
    quarter: str,
    body: SelectionBody,
    service: SelectionService = Depends(get_selection_service),
):
    period = _parse_quarter(quarter)
    try:
        batch = service.select_quarterly(period, body.candidates)
    except AuditError as exc:
        raise _http_error(exc)
    return {"quarter": str(period), "selected": [_serialize_record(r) for r in batch]}


@router.post("/pre-loaded/{quarter}", summary="Store carried-over audits")
def load_pre_loaded(
    quarter: str,
    body: PreLoadedBody,
    service: SelectionService = Depends(get_selection_service),
):
    period = _parse_quarter(quarter)
    try:
        records = service.load_pre_loaded(period, body.cases)
    except AuditError as exc:
        raise _http_error(exc)
    return {"quarter": str(period), "loaded": [_serialize_record(r) for r in records]}


@router.get("/quarters/{quarter}", summary="List a quarter's audits by origin")
def get_quarter(quarter: str, service: SelectionService = Depends(get_selection_service)):
    period = _parse_quarter(quarter)
    grouped = service.records_by_origin(period)
    return {
        "quarter": str(period),
        "audits": {
            origin: [_serialize_record(r) for r in records]
            for origin, records in grouped.items()
        },
    }


@router.get("/quarters/{quarter}/runs", summary="Selections and pre-loads recorded for a quarter")
def get_quarter_runs(quarter: str, db: Session = Depends(get_db)):
    period = _parse_quarter(quarter)
    return {
        "quarter": str(period),
        "selections": [_serialize_event(ev) for ev in get_events_by_type(db, EVENT_SELECTION, str(period))],
        "pre_loaded": [_serialize_event(ev) for ev in get_events_by_type(db, EVENT_PRE_LOADED, str(period))],
    }


@router.get("/status/{user_id}/{quarter}", summary="Quarterly completion status of a user")
def get_quarterly_status(
    user_id: str,
    quarter: str,
    lifecycle: AuditLifecycle = Depends(get_lifecycle),
):
    period = _parse_quarter(quarter)
    status = lifecycle.quarterly_status(user_id, period)
    return {
        "user_id": status.user_id,
        "quarter": status.quarter_key,
        "completed": status.completed,
        "last_completed_at": status.last_completed_at.isoformat() if status.last_completed_at else None,
    }


@router.get("/findings", summary="Rating scale and finding keys with display labels")
def get_findings():
    return {
        "ratings": [rating.value for rating in Rating],
        "special_findings": [
            {"key": key.value, "label": label} for key, label in SPECIAL_FINDING_LABELS.items()
        ],
        "detailed_findings": [
            {"key": key.value, "label": label} for key, label in DETAILED_FINDING_LABELS.items()
        ],
    }


@router.get("/{record_id}", summary="Get one case audit")
def get_record(record_id: str, lifecycle: AuditLifecycle = Depends(get_lifecycle)):
    try:
        record = lifecycle.get_record(record_id)
    except CaseNotFound as exc:
        raise _http_error(exc)
    return _serialize_record(record)


@router.get("/{record_id}/permissions", summary="Whether a user may act on a case audit")
def get_permissions(
    record_id: str,
    user_id: str,
    lifecycle: AuditLifecycle = Depends(get_lifecycle),
):
    try:
        allowed = lifecycle.can_act(record_id, user_id)
    except CaseNotFound as exc:
        raise _http_error(exc)
    return {"record_id": record_id, "user_id": user_id, "allowed": allowed}


@router.post("/{record_id}/actions", summary="Start, save, complete or reopen a review")
def post_action(
    record_id: str,
    body: ActionBody,
    lifecycle: AuditLifecycle = Depends(get_lifecycle),
):
    try:
        record = lifecycle.act(
            record_id,
            body.acting_user_id,
            body.kind,
            body.review,
            expected_version=body.expected_version,
        )
    except AuditError as exc:
        raise _http_error(exc)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _serialize_record(record)


@router.get("/{record_id}/history", summary="Audit trail of a case audit")
def get_history(record_id: str, db: Session = Depends(get_db)):
    if db.get(CaseAudit, record_id) is None:
        raise _http_error(CaseNotFound(record_id))
    return [_serialize_event(ev) for ev in get_case_history(db, record_id)]
