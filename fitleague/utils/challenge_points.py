"""
Challenge point caps and display scaling.

For team and sub-team challenges the pool is split per member of the
submitting group (internal cap ``I``) while the leaderboard shows points on
the scale of the largest group (visible cap ``V``). With 300 points, a team of
3 and a largest team of 5: I = 100, V = 60, and an award of 80 displays as 48.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional

from fitleague.database.models import ChallengeStatus, ChallengeType
from fitleague.utils.errors import CapExceededError, ValidationError

_EPSILON = 1e-9

REVIEWABLE_STATUSES = (ChallengeStatus.SUBMISSION_CLOSED, ChallengeStatus.PUBLISHED)


@dataclass(frozen=True)
class ChallengeCaps:
    challenge_type: ChallengeType
    total_points: float
    internal_cap: float
    visible_cap: float
    group_size: Optional[int] = None
    max_group_size: Optional[int] = None

    @property
    def scope(self) -> str:
        if self.challenge_type == ChallengeType.TEAM:
            return "team member"
        if self.challenge_type == ChallengeType.SUB_TEAM:
            return "sub-team member"
        return "submission"


def compute_caps(
    challenge_type: ChallengeType,
    total_points: float,
    group_size: Optional[int] = None,
    max_group_size: Optional[int] = None,
) -> ChallengeCaps:
    """
    Caps for one submission.

    Args:
        challenge_type: Individual, team or sub-team
        total_points: Challenge pool
        group_size: Size of the submitting team or sub-team
        max_group_size: Largest team (or sub-team) in the challenge

    Raises:
        ValidationError: If a group challenge has no usable group size
    """
    if challenge_type == ChallengeType.INDIVIDUAL:
        return ChallengeCaps(challenge_type, total_points, total_points, total_points)

    if not group_size or group_size <= 0:
        raise ValidationError("Team size must be positive to award group challenge points", "group_size")
    max_group_size = max(max_group_size or group_size, group_size)

    return ChallengeCaps(
        challenge_type=challenge_type,
        total_points=total_points,
        internal_cap=round(total_points / group_size, 2),
        visible_cap=round(total_points / max_group_size, 2),
        group_size=group_size,
        max_group_size=max_group_size,
    )


def validate_award(awarded_points: float, caps: ChallengeCaps) -> float:
    """Return the award unchanged or raise if it is negative or above the cap"""
    if awarded_points is None:
        raise ValidationError("Awarded points are required", "awarded_points")
    if awarded_points < 0:
        raise ValidationError("Awarded points cannot be negative", "awarded_points")
    if awarded_points > caps.internal_cap + _EPSILON:
        raise CapExceededError(awarded_points, caps.internal_cap, caps.scope)
    return awarded_points


def visible_points(awarded_points: Optional[float], caps: ChallengeCaps) -> float:
    """Points shown on the leaderboard for an award"""
    if not awarded_points:
        return 0
    if caps.challenge_type == ChallengeType.INDIVIDUAL:
        return awarded_points
    if caps.internal_cap <= 0:
        return 0
    return min(round(awarded_points * caps.visible_cap / caps.internal_cap), caps.visible_cap)


def effective_challenge_status(
    status: ChallengeStatus,
    start_date: Optional[date],
    end_date: Optional[date],
    today: date,
) -> ChallengeStatus:
    """
    Status with date-driven phases applied.

    Draft, submission_closed, published and closed are stored decisions. A
    scheduled or active challenge moves forward with the calendar.
    """
    if status not in (ChallengeStatus.SCHEDULED, ChallengeStatus.ACTIVE):
        return status
    if end_date and today > end_date:
        return ChallengeStatus.SUBMISSION_CLOSED
    if start_date is None or today >= start_date:
        return ChallengeStatus.ACTIVE
    return ChallengeStatus.SCHEDULED
