# mindful_kids/services/workflow.py
"""Closed transition tables for every status column that carries trust meaning.

Each table maps a current status to the set of statuses it may move to.
All status writes go through ``ensure_transition`` so the rules live in one place.
"""
from typing import Dict, FrozenSet

from .. import models
from ..crud import InvalidStateError

ApplicationStatus = models.ApplicationStatus
ClinicApplicationStatus = models.ClinicApplicationStatus
VerificationStatus = models.VerificationStatus
CredentialStatus = models.CredentialStatus
ReportStatus = models.ReportStatus


THERAPIST_APPLICATION: Dict[str, FrozenSet[str]] = {
    ApplicationStatus.draft: frozenset({ApplicationStatus.pending}),
    ApplicationStatus.pending: frozenset({ApplicationStatus.approved, ApplicationStatus.rejected}),
    ApplicationStatus.approved: frozenset(),
    ApplicationStatus.rejected: frozenset(),
}

CLINIC_APPLICATION: Dict[str, FrozenSet[str]] = {
    ClinicApplicationStatus.pending: frozenset({ClinicApplicationStatus.approved, ClinicApplicationStatus.rejected}),
    ClinicApplicationStatus.approved: frozenset(),
    ClinicApplicationStatus.rejected: frozenset(),
}

# verified -> verified is a re-review and refreshes last_verification_review_at
PSYCHOLOGIST_VERIFICATION: Dict[str, FrozenSet[str]] = {
    VerificationStatus.pending: frozenset({
        VerificationStatus.pending, VerificationStatus.verified,
        VerificationStatus.rejected, VerificationStatus.suspended,
    }),
    VerificationStatus.verified: frozenset({
        VerificationStatus.verified, VerificationStatus.suspended,
        VerificationStatus.rejected, VerificationStatus.expired,
    }),
    VerificationStatus.suspended: frozenset({
        VerificationStatus.suspended, VerificationStatus.verified, VerificationStatus.rejected,
    }),
    VerificationStatus.rejected: frozenset({
        VerificationStatus.rejected, VerificationStatus.verified, VerificationStatus.pending,
    }),
    VerificationStatus.expired: frozenset({
        VerificationStatus.expired, VerificationStatus.verified, VerificationStatus.suspended,
        VerificationStatus.rejected, VerificationStatus.pending,
    }),
}

CREDENTIAL: Dict[str, FrozenSet[str]] = {
    CredentialStatus.pending: frozenset({
        CredentialStatus.pending, CredentialStatus.verified, CredentialStatus.rejected,
    }),
    CredentialStatus.verified: frozenset({CredentialStatus.verified, CredentialStatus.pending, CredentialStatus.expired}),
    CredentialStatus.rejected: frozenset({CredentialStatus.rejected, CredentialStatus.pending}),
    CredentialStatus.expired: frozenset({CredentialStatus.expired, CredentialStatus.pending}),
}

REPORT: Dict[str, FrozenSet[str]] = {
    ReportStatus.open: frozenset({
        ReportStatus.open, ReportStatus.under_review, ReportStatus.resolved, ReportStatus.dismissed,
    }),
    ReportStatus.under_review: frozenset({
        ReportStatus.open, ReportStatus.under_review, ReportStatus.resolved, ReportStatus.dismissed,
    }),
    ReportStatus.resolved: frozenset({ReportStatus.resolved, ReportStatus.under_review}),
    ReportStatus.dismissed: frozenset({ReportStatus.dismissed, ReportStatus.under_review}),
}

TRANSITIONS = {
    "therapist_application": THERAPIST_APPLICATION,
    "clinic_application": CLINIC_APPLICATION,
    "psychologist": PSYCHOLOGIST_VERIFICATION,
    "credential": CREDENTIAL,
    "report": REPORT,
}


def can_transition(entity: str, current, target) -> bool:
    table = TRANSITIONS[entity]
    return target in table.get(current, frozenset())


def ensure_transition(entity: str, current, target, message: str = None) -> None:
    """Raise InvalidStateError unless ``current -> target`` is allowed for ``entity``."""
    if not can_transition(entity, current, target):
        current_value = getattr(current, "value", current)
        target_value = getattr(target, "value", target)
        raise InvalidStateError(message or f"Cannot change {entity.replace('_', ' ')} from {current_value} to {target_value}")
