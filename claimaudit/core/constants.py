"""Canonical enumerations shared by the audit engine, the database layer
and the HTTP surface.

Values are stored verbatim in the database, so renaming a member is a
schema change.
"""
from __future__ import annotations

from enum import StrEnum


class AuditStatus(StrEnum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class Origin(StrEnum):
    """How a record entered the quarter's batch."""

    USER_QUARTERLY = "USER_QUARTERLY"
    PREVIOUS_QUARTER_RANDOM = "PREVIOUS_QUARTER_RANDOM"
    PRE_LOADED = "PRE_LOADED"


class ClaimsStatus(StrEnum):
    FULL_COVER = "FULL_COVER"
    PARTIAL_COVER = "PARTIAL_COVER"
    DECLINED = "DECLINED"
    PENDING = "PENDING"


class Rating(StrEnum):
    NOT_FULFILLED = "NOT_FULFILLED"
    PARTIALLY_FULFILLED = "PARTIALLY_FULFILLED"
    MOSTLY_FULFILLED = "MOSTLY_FULFILLED"
    SUCCESSFULLY_FULFILLED = "SUCCESSFULLY_FULFILLED"
    EXCELLENTLY_FULFILLED = "EXCELLENTLY_FULFILLED"


class DetailedFinding(StrEnum):
    FACTS_INCORRECT = "facts_incorrect"
    TERMS_INCORRECT = "terms_incorrect"
    COVERAGE_INCORRECT = "coverage_incorrect"
    ADDITIONAL_COVERAGE_MISSED = "additional_coverage_missed"
    DECISION_NOT_COMMUNICATED = "decision_not_communicated"
    COLLECTION_INCORRECT = "collection_incorrect"
    RECOURSE_WRONG = "recourse_wrong"
    COST_RISK_WRONG = "cost_risk_wrong"
    BPR_WRONG = "bpr_wrong"
    COMMUNICATION_POOR = "communication_poor"


class SpecialFinding(StrEnum):
    FEEDBACK = "feedback"
    COMMUNICATION = "communication"
    RECOURSE = "recourse"
    NEGOTIATION = "negotiation"
    PERFECT_TIMING = "perfect_timing"


# Display labels, kept next to the keys so exports and UIs agree.
DETAILED_FINDING_LABELS: dict[DetailedFinding, str] = {
    DetailedFinding.FACTS_INCORRECT: "Facts incorrect",
    DetailedFinding.TERMS_INCORRECT: "Terms incorrect",
    DetailedFinding.COVERAGE_INCORRECT: "Coverage incorrect",
    DetailedFinding.ADDITIONAL_COVERAGE_MISSED: "Additional coverage missed",
    DetailedFinding.DECISION_NOT_COMMUNICATED: "Decision not communicated",
    DetailedFinding.COLLECTION_INCORRECT: "Collection incorrect",
    DetailedFinding.RECOURSE_WRONG: "Recourse wrong",
    DetailedFinding.COST_RISK_WRONG: "Cost risk wrong",
    DetailedFinding.BPR_WRONG: "BPR wrong",
    DetailedFinding.COMMUNICATION_POOR: "Communication poor",
}

SPECIAL_FINDING_LABELS: dict[SpecialFinding, str] = {
    SpecialFinding.FEEDBACK: "Feedback",
    SpecialFinding.COMMUNICATION: "Communication",
    SpecialFinding.RECOURSE: "Recourse",
    SpecialFinding.NEGOTIATION: "Negotiation",
    SpecialFinding.PERFECT_TIMING: "Perfect timing",
}

DEFAULT_CURRENCY = "CHF"


def empty_detailed_findings() -> dict[str, bool]:
    return {finding.value: False for finding in DetailedFinding}


def empty_special_findings() -> dict[str, bool]:
    return {finding.value: False for finding in SpecialFinding}
