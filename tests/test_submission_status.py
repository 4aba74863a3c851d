from datetime import datetime, timedelta

import pytest

from fitleague.database.models import SubmissionStatus
from fitleague.utils.errors import StateError, ValidationError
from fitleague.utils.submission_status import (
    can_transition, effective_status, ensure_transition, is_auto_approvable, parse_decision, points_for_status
)

PENDING = SubmissionStatus.PENDING
APPROVED = SubmissionStatus.APPROVED
REJECTED = SubmissionStatus.REJECTED


def test_allowed_transitions():
    assert can_transition(PENDING, APPROVED)
    assert can_transition(PENDING, REJECTED)
    assert can_transition(REJECTED, PENDING)
    assert not can_transition(APPROVED, REJECTED)
    assert not can_transition(REJECTED, APPROVED)


def test_ensure_transition_raises_state_error():
    with pytest.raises(StateError):
        ensure_transition(APPROVED, PENDING)


def test_points_follow_status():
    assert points_for_status(APPROVED) == 1
    assert points_for_status(REJECTED) == 0
    assert points_for_status(PENDING) is None


def test_auto_approval_after_configured_hours():
    created = datetime(2024, 3, 1, 8, 0)
    assert not is_auto_approvable(PENDING, created, created + timedelta(hours=47, minutes=59), 48)
    assert not is_auto_approvable(PENDING, created, created + timedelta(hours=48), 48)
    assert is_auto_approvable(PENDING, created, created + timedelta(hours=48, seconds=1), 48)
    assert not is_auto_approvable(REJECTED, created, created + timedelta(days=10), 48)


def test_effective_status():
    created = datetime(2024, 3, 1, 8, 0)
    assert effective_status(PENDING, created, created + timedelta(hours=1), 48) == PENDING
    assert effective_status(PENDING, created, created + timedelta(hours=49), 48) == APPROVED
    assert effective_status(REJECTED, created, created + timedelta(hours=49), 48) == REJECTED


def test_parse_decision():
    assert parse_decision("approved") == APPROVED
    assert parse_decision(REJECTED) == REJECTED
    for bad in ("maybe", "pending", PENDING):
        with pytest.raises(ValidationError):
            parse_decision(bad)
