"""
Point aggregation over current daily entries.

One point per effectively approved day regardless of RR. Average RR is the
RR sum over approved days and is None when a member has no approved days.
Entries are always processed in (date, id) order so float sums do not depend
on the order rows came back from the database.
"""

from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional

from fitleague.constants import ScoringConstants
from fitleague.data_models.leaderboard import DateRange, LeaderboardStats, MemberScore, TeamScore
from fitleague.data_models.submission import SubmissionRecord
from fitleague.database.models import EntryKind, SubmissionStatus
from fitleague.utils.submission_status import effective_status


def ordered(records: Iterable[SubmissionRecord], date_range: Optional[DateRange] = None) -> List[SubmissionRecord]:
    """Records inside the range sorted by (date, id)"""
    selected = [
        record for record in records
        if date_range is None or date_range.contains(record.entry_date)
    ]
    return sorted(selected, key=lambda record: (record.entry_date, record.id))


def average_rr(rr_sum: float, points: int) -> Optional[float]:
    if points == 0:
        return None
    return round(rr_sum / points, 2)


def aggregate_members(
    records: Iterable[SubmissionRecord],
    now: datetime,
    date_range: Optional[DateRange] = None,
    auto_approve_hours: Optional[int] = None,
) -> Dict[int, MemberScore]:
    """
    Per-member points and average RR.

    Args:
        records: Current submissions (superseded rows excluded)
        now: Naive UTC instant used for auto-approval
        date_range: Optional inclusive day range
        auto_approve_hours: Override for the auto-approval age

    Returns:
        Mapping of member id to MemberScore for every member with an entry
    """
    points = defaultdict(int)
    rr_sums = defaultdict(float)
    counts = defaultdict(int)
    rest_days = defaultdict(int)
    teams = {}

    for record in ordered(records, date_range):
        teams[record.member_id] = record.team_id
        counts[record.member_id] += 1
        status = effective_status(record.status, record.created_at, now, auto_approve_hours)
        if status != SubmissionStatus.APPROVED:
            continue
        points[record.member_id] += ScoringConstants.POINTS_PER_APPROVED_DAY
        rr_sums[record.member_id] += record.rr_value
        if record.kind == EntryKind.REST:
            rest_days[record.member_id] += 1

    return {
        member_id: MemberScore(
            member_id=member_id,
            team_id=teams[member_id],
            points=points[member_id],
            rr_sum=rr_sums[member_id],
            avg_rr=average_rr(rr_sums[member_id], points[member_id]),
            submission_count=counts[member_id],
            rest_days=rest_days[member_id],
        )
        for member_id in sorted(counts)
    }


def aggregate_teams(member_scores: Dict[int, MemberScore], team_ids: Iterable[int]) -> Dict[int, TeamScore]:
    """
    Team totals from member scores.

    Team average RR weights each member's average by their approved days,
    which is the team's RR sum over the team's points.
    """
    points = defaultdict(int)
    rr_sums = defaultdict(float)
    counts = defaultdict(int)
    for member_id in sorted(member_scores):
        score = member_scores[member_id]
        if score.team_id is None:
            continue
        points[score.team_id] += score.points
        rr_sums[score.team_id] += score.rr_sum
        counts[score.team_id] += score.submission_count

    return {
        team_id: TeamScore(
            team_id=team_id,
            points=points[team_id],
            avg_rr=average_rr(rr_sums[team_id], points[team_id]),
            submission_count=counts[team_id],
        )
        for team_id in sorted(set(team_ids))
    }


def count_missed_days(submitted_dates: Iterable[date], league_start: date, league_end: date, today: date) -> int:
    """Days from league start through yesterday (capped at league end) without any entry"""
    last_day = min(today - timedelta(days=1), league_end)
    if last_day < league_start:
        return 0
    submitted = set(submitted_dates)
    return sum(1 for day in DateRange(league_start, last_day).days() if day not in submitted)


def compute_stats(
    records: Iterable[SubmissionRecord],
    now: datetime,
    date_range: Optional[DateRange] = None,
    auto_approve_hours: Optional[int] = None,
) -> LeaderboardStats:
    approved = pending = rejected = 0
    total_rr = 0.0
    selected = ordered(records, date_range)
    for record in selected:
        status = effective_status(record.status, record.created_at, now, auto_approve_hours)
        if status == SubmissionStatus.APPROVED:
            approved += 1
            total_rr += record.rr_value
        elif status == SubmissionStatus.PENDING:
            pending += 1
        else:
            rejected += 1
    return LeaderboardStats(
        total_submissions=len(selected),
        approved=approved,
        pending=pending,
        rejected=rejected,
        total_rr=round(total_rr, 2),
    )
