import random
from datetime import date, datetime, timedelta

from fitleague.data_models.leaderboard import (
    ChallengeAwardRecord, DateRange, LeagueData, MemberRecord, NormalizationMode, TeamRecord
)
from fitleague.data_models.submission import SubmissionRecord
from fitleague.database.models import ChallengeType, EntryKind, SubmissionStatus
from fitleague.utils.leaderboard_windows import (
    build_leaderboard, pending_window_dates, ranking_key, settled_range
)

TODAY = date(2024, 3, 10)
NOW = datetime(2024, 3, 10, 12, 0)
RECENT = NOW - timedelta(hours=1)

MEMBERS = (
    MemberRecord(10, "Asha", 1),
    MemberRecord(11, "Ben", 1),
    MemberRecord(12, "Chen", 1),
    MemberRecord(20, "Dana", 2),
    MemberRecord(21, "Eli", 2),
)
TEAMS = (TeamRecord(1, "Alpha", 3), TeamRecord(2, "Bravo", 2))


def entry(id, member_id, team_id, day, rr=1.0, status=SubmissionStatus.APPROVED):
    return SubmissionRecord(id, member_id, team_id, date(2024, 3, day), EntryKind.WORKOUT, status, rr, RECENT)


def league_data(submissions, awards=(), normalize=False):
    return LeagueData(
        league_id=1,
        start_date=date(2024, 3, 1),
        end_date=date(2024, 3, 31),
        timezone='UTC',
        normalize_enabled=normalize,
        members=MEMBERS,
        teams=TEAMS,
        submissions=tuple(submissions),
        challenge_awards=tuple(awards),
    )


SUBMISSIONS = [
    entry(1, 10, 1, 1, rr=1.5),
    entry(2, 11, 1, 2, rr=1.0),
    entry(3, 20, 2, 1, rr=2.0),
    entry(4, 21, 2, 9, status=SubmissionStatus.PENDING),
    entry(5, 12, 1, 10, status=SubmissionStatus.REJECTED),
]


def test_settled_range_lags_today():
    assert settled_range(date(2024, 3, 1), date(2024, 3, 31), TODAY, 2) == DateRange(date(2024, 3, 1), date(2024, 3, 8))
    assert settled_range(date(2024, 3, 1), date(2024, 3, 31), date(2024, 3, 2), 2).is_empty


def test_settled_standings():
    snapshot = build_leaderboard(league_data(SUBMISSIONS), TODAY, NOW, settled_delay_days=2)
    assert snapshot.date_range == DateRange(date(2024, 3, 1), date(2024, 3, 8))
    assert [(row.team_name, row.points, row.avg_rr) for row in snapshot.teams] == [
        ("Alpha", 2, 1.25),
        ("Bravo", 1, 2.0),
    ]
    assert snapshot.is_final
    assert snapshot.mode == NormalizationMode.RAW


def test_ties_break_on_avg_rr_then_id():
    submissions = SUBMISSIONS + [entry(6, 21, 2, 2, rr=1.2)]
    snapshot = build_leaderboard(league_data(submissions), TODAY, NOW, settled_delay_days=2)
    assert [row.team_name for row in snapshot.teams] == ["Bravo", "Alpha"]
    assert [row.rank for row in snapshot.teams] == [1, 2]

    assert ranking_key(3, None, 1) > ranking_key(3, 1.0, 2)
    assert ranking_key(3, 1.0, 1) < ranking_key(3, 1.0, 2)


def test_ordering_is_deterministic():
    shuffled = list(SUBMISSIONS)
    random.Random(7).shuffle(shuffled)
    first = build_leaderboard(league_data(SUBMISSIONS), TODAY, NOW, settled_delay_days=2)
    second = build_leaderboard(league_data(shuffled), TODAY, NOW, settled_delay_days=2)
    assert first.teams == second.teams
    assert first.individuals == second.individuals


def test_range_reaching_open_days_is_not_final():
    snapshot = build_leaderboard(
        league_data(SUBMISSIONS), TODAY, NOW,
        date_range=DateRange(date(2024, 3, 1), TODAY),
        settled_delay_days=2,
    )
    assert not snapshot.is_final
    assert snapshot.unsettled_dates == (date(2024, 3, 9), date(2024, 3, 10))


def test_normalized_mode_scales_smaller_teams():
    snapshot = build_leaderboard(league_data(SUBMISSIONS, normalize=True), TODAY, NOW, settled_delay_days=2)
    bravo = next(row for row in snapshot.teams if row.team_name == "Bravo")
    assert snapshot.mode == NormalizationMode.NORMALIZED
    assert bravo.points == 1.5
    assert bravo.raw_points == 1


def test_pending_window_includes_pending_entries():
    snapshot = build_leaderboard(league_data(SUBMISSIONS), TODAY, NOW, settled_delay_days=2)
    window = snapshot.pending_window
    assert window.dates == (date(2024, 3, 10), date(2024, 3, 9))
    bravo = next(row for row in window.teams if row.team_name == "Bravo")
    alpha = next(row for row in window.teams if row.team_name == "Alpha")
    assert bravo.points_by_date == {date(2024, 3, 10): 0, date(2024, 3, 9): 1}
    assert alpha.total_points == 0


def test_pending_window_dates_stay_inside_league():
    assert pending_window_dates(date(2024, 3, 1), date(2024, 3, 1), date(2024, 3, 31)) == (date(2024, 3, 1),)


def test_challenge_bonus_counts_settled_awards_only():
    awards = [
        ChallengeAwardRecord(1, ChallengeType.TEAM, 10, 1, 80.0, 48.0, date(2024, 3, 5)),
        ChallengeAwardRecord(2, ChallengeType.INDIVIDUAL, 20, 2, 500.0, 500.0, date(2024, 3, 9)),
    ]
    snapshot = build_leaderboard(league_data(SUBMISSIONS, awards), TODAY, NOW, settled_delay_days=2)

    alpha = snapshot.teams[0]
    assert alpha.team_name == "Alpha"
    assert alpha.challenge_bonus == 80
    assert alpha.total_points == 82

    top = snapshot.individuals[0]
    assert (top.display_name, top.challenge_bonus, top.total_points) == ("Asha", 48, 49)


def test_individuals_track_missed_days():
    snapshot = build_leaderboard(league_data(SUBMISSIONS), TODAY, NOW, settled_delay_days=2, individual_limit=3)
    assert len(snapshot.individuals) == 3
    asha = next(row for row in snapshot.individuals if row.member_id == 10)
    assert asha.missed_days == 8
