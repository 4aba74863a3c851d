"""
Submission lifecycle rules.

    pending  -> approved | rejected   (reviewer)
    rejected -> pending               (resubmission)

Auto-approval is a read-time rule: a pending entry older than the configured
age counts as approved even before a sweep persists it.
"""

from datetime import datetime, timedelta
from typing import Optional, Union

from fitleague.config import Config
from fitleague.constants import ScoringConstants
from fitleague.database.models import SubmissionStatus
from fitleague.utils.errors import StateError, ValidationError

ALLOWED_TRANSITIONS = {
    SubmissionStatus.PENDING: {SubmissionStatus.APPROVED, SubmissionStatus.REJECTED},
    SubmissionStatus.REJECTED: {SubmissionStatus.PENDING},
    SubmissionStatus.APPROVED: set(),
}


def can_transition(current: SubmissionStatus, target: SubmissionStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


def ensure_transition(current: SubmissionStatus, target: SubmissionStatus):
    if not can_transition(current, target):
        raise StateError(f"Cannot change a {current.value} submission to {target.value}")


def parse_decision(decision: Union[SubmissionStatus, str]) -> SubmissionStatus:
    """Reviewer decision as a status; only approved and rejected are decisions"""
    try:
        status = SubmissionStatus(decision)
    except ValueError:
        raise ValidationError(f"Unknown decision '{decision}'", "decision") from None
    if status not in (SubmissionStatus.APPROVED, SubmissionStatus.REJECTED):
        raise ValidationError("Decision must be approved or rejected", "decision")
    return status


def points_for_status(status: SubmissionStatus) -> Optional[int]:
    """Awarded points stored alongside a status"""
    if status == SubmissionStatus.APPROVED:
        return ScoringConstants.POINTS_PER_APPROVED_DAY
    if status == SubmissionStatus.REJECTED:
        return 0
    return None


def is_auto_approvable(
    status: SubmissionStatus,
    created_at: datetime,
    now: datetime,
    auto_approve_hours: Optional[int] = None,
) -> bool:
    hours = Config.AUTO_APPROVE_HOURS if auto_approve_hours is None else auto_approve_hours
    return status == SubmissionStatus.PENDING and now - created_at > timedelta(hours=hours)


def effective_status(
    status: SubmissionStatus,
    created_at: datetime,
    now: datetime,
    auto_approve_hours: Optional[int] = None,
) -> SubmissionStatus:
    """Status used for scoring, with auto-approval applied"""
    if is_auto_approvable(status, created_at, now, auto_approve_hours):
        return SubmissionStatus.APPROVED
    return status
