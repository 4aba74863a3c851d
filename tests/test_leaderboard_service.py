import asyncio
from datetime import date

import pytest

from conftest import create_league
from fitleague.data_models.leaderboard import DateRange, NormalizationMode
from fitleague.data_models.submission import MetricKind, WorkoutMetric
from fitleague.database.models import EntryKind
from fitleague.operations.submission_operations import SubmissionOperations
from fitleague.services.leaderboard import LeaderboardService
from fitleague.utils.errors import LeaderboardTimeoutError, ValidationError


@pytest.fixture
def service(db, event_bus, clock):
    return LeaderboardService(db.session_factory, event_bus=event_bus, clock=clock)


@pytest.fixture
def ops(db, event_bus, clock):
    return SubmissionOperations(db, event_bus=event_bus, clock=clock)


async def approved_run(ops, league, member_id, day, reviewer_id):
    result = await ops.submit_entry(
        member_id, league.league_id, date(2024, 3, day), EntryKind.WORKOUT,
        workout_type="run", metric=WorkoutMetric(MetricKind.DISTANCE, 6),
    )
    await ops.review_submission(result.submission.id, reviewer_id, "approved")
    return result.submission


@pytest.mark.asyncio
async def test_settled_leaderboard_from_database(service, ops, league):
    await approved_run(ops, league, league.player(0), 5, league.captain(0))
    await approved_run(ops, league, league.player(0, 2), 6, league.captain(0))
    await approved_run(ops, league, league.player(1), 5, league.captain(1))

    snapshot = await service.compute_leaderboard(league.league_id)
    assert snapshot.date_range == DateRange(date(2024, 3, 1), date(2024, 3, 8))
    assert [(row.team_id, row.points) for row in snapshot.teams] == [
        (league.team_ids[0], 2),
        (league.team_ids[1], 1),
    ]
    assert snapshot.teams[0].avg_rr == 1.5
    assert snapshot.is_final
    assert not snapshot.is_stale


@pytest.mark.asyncio
async def test_second_call_is_served_from_cache(service, league):
    first = await service.compute_leaderboard(league.league_id)
    assert await service.compute_leaderboard(league.league_id) is first
    assert await service.compute_leaderboard(league.league_id, force_refresh=True) is not first


@pytest.mark.asyncio
async def test_scoring_events_invalidate_cached_snapshot(service, ops, league):
    before = await service.compute_leaderboard(league.league_id)
    await approved_run(ops, league, league.player(0), 5, league.captain(0))

    after = await service.compute_leaderboard(league.league_id)
    assert after is not before
    assert after.stats.approved == 1


@pytest.mark.asyncio
async def test_normalized_request_on_opted_out_league_is_raw(service, league):
    snapshot = await service.compute_leaderboard(league.league_id, normalization_mode=NormalizationMode.NORMALIZED)
    assert snapshot.mode == NormalizationMode.RAW


@pytest.mark.asyncio
async def test_normalized_league(db, event_bus, clock):
    scaled = await create_league(db, team_sizes=(4, 2), normalize=True)
    ops = SubmissionOperations(db, event_bus=event_bus, clock=clock)
    service = LeaderboardService(db.session_factory, event_bus=event_bus, clock=clock)
    await approved_run(ops, scaled, scaled.player(1), 5, scaled.captain(1))

    snapshot = await service.compute_leaderboard(scaled.league_id)
    small = next(row for row in snapshot.teams if row.team_id == scaled.team_ids[1])
    assert snapshot.mode == NormalizationMode.NORMALIZED
    assert (small.points, small.raw_points) == (2, 1)


@pytest.mark.asyncio
async def test_pending_window(service, ops, league):
    await ops.submit_entry(league.player(1), league.league_id, date(2024, 3, 10), EntryKind.REST)
    window = await service.get_pending_window(league.league_id)
    assert window.dates == (date(2024, 3, 10), date(2024, 3, 9))
    assert window.teams[0].team_id == league.team_ids[1]
    assert window.teams[0].total_points == 1


@pytest.mark.asyncio
async def test_timeout_serves_last_known_snapshot(service, league, monkeypatch):
    cached = await service.compute_leaderboard(league.league_id)
    service.cache.invalidate_league(league.league_id)

    async def slow_compute(*args, **kwargs):
        await asyncio.sleep(1)

    monkeypatch.setattr(service, "_compute", slow_compute)
    stale = await service.compute_leaderboard(league.league_id, timeout=0.05)
    assert stale.is_stale
    assert stale.computed_at == cached.computed_at


@pytest.mark.asyncio
async def test_timeout_without_cache_raises(service, league, monkeypatch):
    async def slow_compute(*args, **kwargs):
        await asyncio.sleep(1)

    monkeypatch.setattr(service, "_compute", slow_compute)
    with pytest.raises(LeaderboardTimeoutError):
        await service.compute_leaderboard(league.league_id, timeout=0.05)


@pytest.mark.asyncio
async def test_refresh_recomputes(service, league):
    first = await service.compute_leaderboard(league.league_id)
    refreshed = await service.refresh_leaderboard_cache(league.league_id)
    assert refreshed is not first
    assert await service.compute_leaderboard(league.league_id) is refreshed


@pytest.mark.asyncio
async def test_unknown_league(service):
    with pytest.raises(ValidationError):
        await service.compute_leaderboard(999)
