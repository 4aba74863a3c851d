from datetime import date, datetime, timedelta

from fitleague.data_models.leaderboard import DateRange
from fitleague.data_models.submission import SubmissionRecord
from fitleague.database.models import EntryKind, SubmissionStatus
from fitleague.utils.point_aggregator import (
    aggregate_members, aggregate_teams, compute_stats, count_missed_days, ordered
)

NOW = datetime(2024, 3, 10, 12, 0)
RECENT = NOW - timedelta(hours=1)


def record(id, member_id, team_id, day, rr=1.0, status=SubmissionStatus.APPROVED, kind=EntryKind.WORKOUT, created_at=RECENT):
    return SubmissionRecord(id, member_id, team_id, date(2024, 3, day), kind, status, rr, created_at)


def test_one_point_per_approved_day_regardless_of_rr():
    scores = aggregate_members([
        record(1, 10, 1, 1, rr=2.0),
        record(2, 10, 1, 2, rr=1.0),
        record(3, 11, 1, 1, rr=1.1),
    ], NOW)
    assert scores[10].points == 2
    assert scores[11].points == 1
    assert scores[10].avg_rr == 1.5


def test_rejected_and_pending_entries_score_nothing():
    scores = aggregate_members([
        record(1, 10, 1, 1, status=SubmissionStatus.REJECTED),
        record(2, 10, 1, 2, status=SubmissionStatus.PENDING),
    ], NOW)
    assert scores[10].points == 0
    assert scores[10].avg_rr is None
    assert scores[10].submission_count == 2


def test_old_pending_entries_count_as_approved():
    old = NOW - timedelta(hours=49)
    scores = aggregate_members([record(1, 10, 1, 1, status=SubmissionStatus.PENDING, created_at=old)], NOW)
    assert scores[10].points == 1


def test_rest_days_score_like_workouts():
    scores = aggregate_members([record(1, 10, 1, 1, kind=EntryKind.REST)], NOW)
    assert scores[10].points == 1
    assert scores[10].rest_days == 1


def test_date_range_filters_entries():
    scores = aggregate_members(
        [record(1, 10, 1, 1), record(2, 10, 1, 5)],
        NOW,
        DateRange(date(2024, 3, 2), date(2024, 3, 6)),
    )
    assert scores[10].points == 1


def test_team_avg_rr_is_weighted_by_points():
    members = aggregate_members([
        record(1, 10, 1, 1, rr=2.0),
        record(2, 11, 1, 1, rr=1.0),
        record(3, 11, 1, 2, rr=1.0),
        record(4, 11, 1, 3, rr=1.0),
    ], NOW)
    teams = aggregate_teams(members, [1, 2])
    assert teams[1].points == 4
    assert teams[1].avg_rr == 1.25
    assert teams[2].points == 0
    assert teams[2].avg_rr is None


def test_ordering_is_independent_of_input_order():
    records = [record(3, 10, 1, 2), record(1, 10, 1, 1), record(2, 11, 1, 1)]
    assert [r.id for r in ordered(records)] == [1, 2, 3]
    assert aggregate_members(records, NOW) == aggregate_members(list(reversed(records)), NOW)


def test_missed_days_through_yesterday():
    submitted = {date(2024, 3, 1), date(2024, 3, 3)}
    assert count_missed_days(submitted, date(2024, 3, 1), date(2024, 3, 31), date(2024, 3, 5)) == 2
    assert count_missed_days(submitted, date(2024, 3, 1), date(2024, 3, 31), date(2024, 3, 1)) == 0


def test_stats_count_by_status():
    stats = compute_stats([
        record(1, 10, 1, 1, rr=1.5),
        record(2, 10, 1, 2, status=SubmissionStatus.PENDING),
        record(3, 11, 1, 1, status=SubmissionStatus.REJECTED),
    ], NOW)
    assert (stats.total_submissions, stats.approved, stats.pending, stats.rejected) == (3, 1, 1, 1)
    assert stats.total_rr == 1.5
