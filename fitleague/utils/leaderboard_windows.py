"""
Settled and real-time leaderboard windows.

The settled board covers league start through ``today - settled_delay_days``
so reviewers have time to act before a day counts; those standings are
audit-stable. The real-time window shows today and yesterday including
pending entries and is never ranked against the settled board.

Everything here is pure: the leaderboard service gathers a LeagueData bundle
and runs ``build_leaderboard`` on a worker thread.
"""

from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Dict, Optional, Tuple

from fitleague.config import Config
from fitleague.data_models.leaderboard import (
    DateRange, IndividualRanking, LeaderboardSnapshot, LeagueData, NormalizationMode,
    PendingTeamRow, PendingWindow, TeamRanking, TeamSizeStats
)
from fitleague.database.models import ChallengeType, SubmissionStatus
from fitleague.utils.normalization import normalize, resolve_mode
from fitleague.utils.point_aggregator import (
    aggregate_members, aggregate_teams, average_rr, compute_stats, count_missed_days, ordered
)
from fitleague.utils.submission_status import effective_status


def settled_end(today: date, settled_delay_days: Optional[int] = None) -> date:
    delay = Config.SETTLED_DELAY_DAYS if settled_delay_days is None else settled_delay_days
    return today - timedelta(days=delay)


def settled_range(league_start: date, league_end: date, today: date, settled_delay_days: Optional[int] = None) -> DateRange:
    """Default settled range; empty (end before start) early in a league"""
    return DateRange(league_start, min(settled_end(today, settled_delay_days), league_end))


def unsettled_dates(date_range: DateRange, today: date, settled_delay_days: Optional[int] = None) -> Tuple[date, ...]:
    """Days in the range still open for review"""
    cutoff = settled_end(today, settled_delay_days)
    return tuple(day for day in date_range.days() if day > cutoff)


def pending_window_dates(today: date, league_start: date, league_end: date) -> Tuple[date, ...]:
    """Today and yesterday, limited to league days"""
    candidates = (today, today - timedelta(days=1))
    return tuple(day for day in candidates if league_start <= day <= league_end)


def ranking_key(total_points: float, avg_rr: Optional[float], entity_id: int):
    """Total desc, avg RR desc with None last, id asc"""
    return (-total_points, avg_rr is None, -(avg_rr or 0.0), entity_id)


def _team_bonus(data: LeagueData, date_range: DateRange) -> Dict[int, float]:
    bonus = defaultdict(float)
    for award in sorted(data.challenge_awards, key=lambda a: (a.challenge_id, a.member_id)):
        if award.team_id is None:
            continue
        if award.end_date is None or not date_range.contains(award.end_date):
            continue
        bonus[award.team_id] += award.awarded_points
    return bonus


def _member_bonus(data: LeagueData, date_range: DateRange) -> Dict[int, float]:
    bonus = defaultdict(float)
    for award in sorted(data.challenge_awards, key=lambda a: (a.challenge_id, a.member_id)):
        if award.end_date is None or not date_range.contains(award.end_date):
            continue
        if award.challenge_type == ChallengeType.INDIVIDUAL:
            bonus[award.member_id] += award.awarded_points
        else:
            bonus[award.member_id] += award.visible_points
    return bonus


def rank_teams(
    data: LeagueData,
    date_range: DateRange,
    mode: NormalizationMode,
    now: datetime,
    auto_approve_hours: Optional[int] = None,
) -> Tuple[Tuple[TeamRanking, ...], TeamSizeStats]:
    stats = TeamSizeStats.from_sizes(team.member_count for team in data.teams)
    member_scores = aggregate_members(data.submissions, now, date_range, auto_approve_hours)
    team_scores = aggregate_teams(member_scores, (team.id for team in data.teams))
    bonus = _team_bonus(data, date_range)

    rows = []
    for team in data.teams:
        score = team_scores[team.id]
        if mode == NormalizationMode.NORMALIZED:
            points = round(normalize(score.points, team.member_count, stats).value, 2)
        else:
            points = score.points
        challenge_bonus = round(bonus.get(team.id, 0.0), 2)
        rows.append(dict(
            team_id=team.id,
            team_name=team.name,
            points=points,
            raw_points=score.points,
            challenge_bonus=challenge_bonus,
            total_points=round(points + challenge_bonus, 2),
            avg_rr=score.avg_rr,
            member_count=team.member_count,
            submission_count=score.submission_count,
            normalized=mode == NormalizationMode.NORMALIZED,
        ))

    rows.sort(key=lambda row: ranking_key(row['total_points'], row['avg_rr'], row['team_id']))
    return tuple(TeamRanking(rank=index, **row) for index, row in enumerate(rows, start=1)), stats


def rank_individuals(
    data: LeagueData,
    date_range: DateRange,
    now: datetime,
    today: date,
    limit: Optional[int] = None,
    auto_approve_hours: Optional[int] = None,
) -> Tuple[IndividualRanking, ...]:
    limit = Config.LEADERBOARD_INDIVIDUAL_LIMIT if limit is None else limit
    member_scores = aggregate_members(data.submissions, now, date_range, auto_approve_hours)
    bonus = _member_bonus(data, date_range)
    team_names = {team.id: team.name for team in data.teams}

    submitted_dates = defaultdict(set)
    for record in data.submissions:
        submitted_dates[record.member_id].add(record.entry_date)

    rows = []
    for member in data.members:
        score = member_scores.get(member.id)
        points = score.points if score else 0
        challenge_bonus = round(bonus.get(member.id, 0.0), 2)
        rows.append(dict(
            member_id=member.id,
            display_name=member.display_name,
            team_id=member.team_id,
            team_name=team_names.get(member.team_id),
            points=points,
            avg_rr=score.avg_rr if score else None,
            challenge_bonus=challenge_bonus,
            total_points=round(points + challenge_bonus, 2),
            submission_count=score.submission_count if score else 0,
            missed_days=count_missed_days(submitted_dates[member.id], data.start_date, data.end_date, today),
        ))

    rows.sort(key=lambda row: ranking_key(row['total_points'], row['avg_rr'], row['member_id']))
    return tuple(IndividualRanking(rank=index, **row) for index, row in enumerate(rows[:limit], start=1))


def build_pending_window(
    data: LeagueData,
    today: date,
    now: datetime,
    auto_approve_hours: Optional[int] = None,
) -> PendingWindow:
    """Per-team points for today and yesterday counting approved and pending entries"""
    dates = pending_window_dates(today, data.start_date, data.end_date)
    window = set(dates)
    points = defaultdict(lambda: defaultdict(int))
    rr_sums = defaultdict(float)

    for record in ordered(data.submissions):
        if record.entry_date not in window or record.team_id is None:
            continue
        status = effective_status(record.status, record.created_at, now, auto_approve_hours)
        if status == SubmissionStatus.REJECTED:
            continue
        points[record.team_id][record.entry_date] += 1
        rr_sums[record.team_id] += record.rr_value

    rows = []
    for team in data.teams:
        by_date = {day: points[team.id].get(day, 0) for day in dates}
        total = sum(by_date.values())
        rows.append((team, by_date, total, average_rr(rr_sums[team.id], total)))

    rows.sort(key=lambda row: (-row[1].get(today, 0), -row[2], row[0].id))
    return PendingWindow(
        dates=dates,
        teams=tuple(
            PendingTeamRow(
                rank=index,
                team_id=team.id,
                team_name=team.name,
                points_by_date=by_date,
                total_points=total,
                avg_rr=avg,
            )
            for index, (team, by_date, total, avg) in enumerate(rows, start=1)
        ),
    )


def build_leaderboard(
    data: LeagueData,
    today: date,
    now: datetime,
    date_range: Optional[DateRange] = None,
    mode: Optional[NormalizationMode] = None,
    settled_delay_days: Optional[int] = None,
    individual_limit: Optional[int] = None,
    auto_approve_hours: Optional[int] = None,
) -> LeaderboardSnapshot:
    """
    Compute a complete leaderboard snapshot.

    Args:
        data: Detached league state
        today: League-local calendar day
        now: Naive UTC instant for auto-approval and the computed-at stamp
        date_range: Caller range; defaults to the settled range
        mode: Requested normalization; None follows the league setting

    Returns:
        LeaderboardSnapshot with ``is_final`` False when the range reaches
        into days that are still open for review
    """
    if date_range is None:
        date_range = settled_range(data.start_date, data.end_date, today, settled_delay_days)
    resolved_mode = resolve_mode(mode, data.normalize_enabled)
    open_days = unsettled_dates(date_range, today, settled_delay_days)

    teams, size_stats = rank_teams(data, date_range, resolved_mode, now, auto_approve_hours)

    return LeaderboardSnapshot(
        league_id=data.league_id,
        date_range=date_range,
        mode=resolved_mode,
        teams=teams,
        individuals=rank_individuals(data, date_range, now, today, individual_limit, auto_approve_hours),
        pending_window=build_pending_window(data, today, now, auto_approve_hours),
        stats=compute_stats(data.submissions, now, date_range, auto_approve_hours),
        team_size_stats=size_stats,
        computed_at=now,
        is_final=not open_days,
        unsettled_dates=open_days,
    )
