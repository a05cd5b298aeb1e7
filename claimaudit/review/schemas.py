"""Validated inputs of the audit engine.

Everything that arrives from outside (review payloads, the candidate case
feed, carried-over cases) is parsed into one of these models once, at the
boundary, and trusted from then on.
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from claimaudit.core.constants import (
    DEFAULT_CURRENCY,
    AuditStatus,
    ClaimsStatus,
    DetailedFinding,
    Rating,
    SpecialFinding,
)


class ReviewPayload(BaseModel):
    """Review output written by a start, save or complete action.

    Every field is optional; only fields that are set are merged into the
    record.  Finding maps are merged key by key.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    rating: Rating | None = None
    comment: str | None = None
    special_findings: dict[SpecialFinding, bool] | None = None
    detailed_findings: dict[DetailedFinding, bool] | None = None

    @field_validator("rating", mode="before")
    @classmethod
    def _blank_rating_is_unset(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def merged_into(self, *, special_findings: dict, detailed_findings: dict) -> dict[str, object]:
        """Return the column values this payload writes, given the current findings."""
        changes: dict[str, object] = {}
        if self.rating is not None:
            changes["rating"] = self.rating.value
        if self.comment is not None:
            changes["comment"] = self.comment
        if self.special_findings is not None:
            merged = dict(special_findings or {})
            merged.update({key.value: bool(flag) for key, flag in self.special_findings.items()})
            changes["special_findings"] = merged
        if self.detailed_findings is not None:
            merged = dict(detailed_findings or {})
            merged.update({key.value: bool(flag) for key, flag in self.detailed_findings.items()})
            changes["detailed_findings"] = merged
        return changes


class CandidateCase(BaseModel):
    """One case offered by the case-management feed for selection."""

    model_config = ConfigDict(frozen=True)

    case_id: str = Field(min_length=1, max_length=64)
    owner_user_id: str = Field(min_length=1, max_length=128)
    coverage_amount: Decimal = Field(ge=0, decimal_places=2)
    claims_status: ClaimsStatus
    notification_date: date
    notified_currency: str = Field(default=DEFAULT_CURRENCY, min_length=3, max_length=3)


class PreLoadedCase(BaseModel):
    """A case carried over from an earlier session with its review state."""

    model_config = ConfigDict(extra="forbid")

    case_id: str = Field(min_length=1, max_length=64)
    owner_user_id: str = Field(min_length=1, max_length=128)
    coverage_amount: Decimal = Field(ge=0, decimal_places=2)
    claims_status: ClaimsStatus
    notification_date: date | None = None
    notified_currency: str = Field(default=DEFAULT_CURRENCY, min_length=3, max_length=3)
    status: AuditStatus = AuditStatus.PENDING
    auditor_user_id: str | None = None
    completion_date: datetime | None = None
    review: ReviewPayload = Field(default_factory=ReviewPayload)
