"""
Leaderboard data models for settled standings and the real-time window.

Provides immutable data transfer objects produced by the pure leaderboard
builder and cached by the leaderboard service.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Dict, Iterator, Optional, Tuple

from fitleague.data_models.submission import SubmissionRecord
from fitleague.database.models import ChallengeType


class NormalizationMode(Enum):
    """Whether team totals are reported raw or rescaled by team size."""
    RAW = "raw"
    NORMALIZED = "normalized"


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of calendar days."""
    start: date
    end: date

    @property
    def is_empty(self) -> bool:
        return self.end < self.start

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def days(self) -> Iterator[date]:
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)

    def __str__(self):
        return f"{self.start.isoformat()}..{self.end.isoformat()}"


@dataclass(frozen=True)
class MemberRecord:
    id: int
    display_name: str
    team_id: Optional[int]


@dataclass(frozen=True)
class TeamRecord:
    id: int
    name: str
    member_count: int


@dataclass(frozen=True)
class ChallengeAwardRecord:
    """An approved challenge award, already scaled for display."""
    challenge_id: int
    challenge_type: ChallengeType
    member_id: int
    team_id: Optional[int]
    awarded_points: float
    visible_points: float
    end_date: Optional[date]


@dataclass(frozen=True)
class TeamSizeStats:
    """Roster size statistics across a league's teams."""
    min_size: int
    max_size: int
    avg_size: float
    has_variance: bool

    @classmethod
    def from_sizes(cls, sizes) -> 'TeamSizeStats':
        sizes = [size for size in sizes if size > 0]
        if not sizes:
            return cls(0, 0, 0.0, False)
        return cls(
            min_size=min(sizes),
            max_size=max(sizes),
            avg_size=round(sum(sizes) / len(sizes), 2),
            has_variance=min(sizes) != max(sizes),
        )


@dataclass(frozen=True)
class MemberScore:
    member_id: int
    team_id: Optional[int]
    points: int
    rr_sum: float
    avg_rr: Optional[float]
    submission_count: int = 0
    rest_days: int = 0


@dataclass(frozen=True)
class TeamScore:
    team_id: int
    points: int
    avg_rr: Optional[float]
    submission_count: int = 0


@dataclass(frozen=True)
class LeaderboardStats:
    total_submissions: int = 0
    approved: int = 0
    pending: int = 0
    rejected: int = 0
    total_rr: float = 0.0


@dataclass(frozen=True)
class TeamRanking:
    """Single team leaderboard row."""
    rank: int
    team_id: int
    team_name: str
    points: float
    raw_points: int
    challenge_bonus: float
    total_points: float
    avg_rr: Optional[float]
    member_count: int
    submission_count: int
    normalized: bool = False


@dataclass(frozen=True)
class IndividualRanking:
    """Single member leaderboard row."""
    rank: int
    member_id: int
    display_name: str
    team_id: Optional[int]
    team_name: Optional[str]
    points: int
    avg_rr: Optional[float]
    challenge_bonus: float
    total_points: float
    submission_count: int
    missed_days: int = 0


@dataclass(frozen=True)
class PendingTeamRow:
    rank: int
    team_id: int
    team_name: str
    points_by_date: Dict[date, int]
    total_points: int
    avg_rr: Optional[float]


@dataclass(frozen=True)
class PendingWindow:
    """Real-time scores for today and yesterday, pending entries included."""
    dates: Tuple[date, ...]
    teams: Tuple[PendingTeamRow, ...]


@dataclass(frozen=True)
class LeaderboardSnapshot:
    """Complete computed leaderboard for one cache key."""
    league_id: int
    date_range: DateRange
    mode: NormalizationMode
    teams: Tuple[TeamRanking, ...]
    individuals: Tuple[IndividualRanking, ...]
    pending_window: PendingWindow
    stats: LeaderboardStats
    team_size_stats: TeamSizeStats
    computed_at: datetime
    is_final: bool = True
    unsettled_dates: Tuple[date, ...] = field(default_factory=tuple)
    is_stale: bool = False


@dataclass(frozen=True)
class LeagueData:
    """Detached league state a leaderboard is computed from."""
    league_id: int
    start_date: date
    end_date: date
    timezone: str
    normalize_enabled: bool
    members: Tuple[MemberRecord, ...]
    teams: Tuple[TeamRecord, ...]
    submissions: Tuple[SubmissionRecord, ...]
    challenge_awards: Tuple[ChallengeAwardRecord, ...] = ()
