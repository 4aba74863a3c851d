import dataclasses
from datetime import date, datetime, timedelta

import pytest

from fitleague.data_models.leaderboard import (
    DateRange, LeaderboardSnapshot, LeaderboardStats, NormalizationMode, PendingWindow, TeamSizeStats
)
from fitleague.services.event_bus import LeagueEventBus, SubmissionReviewed
from fitleague.services.leaderboard_cache import CacheKey, LeaderboardCache

RANGE = DateRange(date(2024, 3, 1), date(2024, 3, 8))
T0 = datetime(2024, 3, 10, 12, 0)


def snapshot(computed_at=T0, league_id=1):
    return LeaderboardSnapshot(
        league_id=league_id,
        date_range=RANGE,
        mode=NormalizationMode.RAW,
        teams=(),
        individuals=(),
        pending_window=PendingWindow(dates=(), teams=()),
        stats=LeaderboardStats(),
        team_size_stats=TeamSizeStats.from_sizes([]),
        computed_at=computed_at,
    )


@pytest.fixture
def cache():
    return LeaderboardCache(default_ttl=60, clock=lambda: T0)


@pytest.fixture
def key():
    return CacheKey.for_range(1, RANGE, NormalizationMode.RAW)


def test_put_then_get(cache, key):
    value = snapshot()
    assert cache.put(key, value)
    assert cache.get(key) is value


def test_keys_separate_modes(cache, key):
    cache.put(key, snapshot())
    assert cache.get(key._replace(mode=NormalizationMode.NORMALIZED)) is None


def test_expired_entry_is_a_miss(cache, key):
    cache.put(key, snapshot())
    assert cache.get(key, max_age_seconds=-1) is None


def test_invalidation_keeps_last_known(cache, key):
    value = snapshot()
    cache.put(key, value)
    cache.invalidate_league(1)
    assert cache.get(key) is None
    assert cache.get_last_known(key) is value


def test_invalidation_is_per_league(cache, key):
    other = CacheKey.for_range(2, RANGE, NormalizationMode.RAW)
    cache.put(key, snapshot())
    cache.put(other, snapshot(league_id=2))
    cache.invalidate_league(1)
    assert cache.get(other) is not None
    assert cache.keys_for_league(2) == (other,)


def test_older_snapshot_does_not_replace_newer(cache, key):
    newer = snapshot(T0 + timedelta(seconds=5))
    cache.put(key, newer)
    assert not cache.put(key, snapshot(T0))
    assert cache.get(key) is newer


def test_snapshot_computed_before_invalidation_is_refused(key):
    cache = LeaderboardCache(clock=lambda: T0 + timedelta(seconds=1))
    cache.invalidate_league(1)
    assert not cache.put(key, snapshot(T0))
    assert cache.put(key, snapshot(T0 + timedelta(seconds=2)))


def test_events_invalidate_through_bus(cache, key):
    bus = LeagueEventBus()
    bus.subscribe_all(cache.handle_event)
    cache.put(key, snapshot())
    bus.publish(SubmissionReviewed(league_id=1, submission_id=5, reviewer_id=2, status="approved"))
    assert cache.get(key) is None


def test_cleanup_keeps_size_bounded():
    cache = LeaderboardCache(max_size=2, clock=lambda: T0)
    for league_id in range(1, 5):
        cache.put(CacheKey.for_range(league_id, RANGE, NormalizationMode.RAW), snapshot(league_id=league_id))
    assert len(cache._cache) == 2


def test_stale_flag_is_not_stored(cache, key):
    value = snapshot()
    cache.put(key, value)
    stale = dataclasses.replace(cache.get_last_known(key), is_stale=True)
    assert stale.is_stale and not cache.get(key).is_stale
