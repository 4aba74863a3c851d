"""
Leaderboard snapshot cache.

Snapshots are keyed by league, date range and normalization mode. Any scoring
event for a league invalidates all of its snapshots. Invalidated snapshots are
kept as "last known" values so a timed-out computation can still answer.
"""

import threading
import time
from datetime import datetime
from typing import Dict, NamedTuple, Optional, Tuple

from fitleague.constants import CacheConstants
from fitleague.data_models.leaderboard import DateRange, LeaderboardSnapshot, NormalizationMode
from fitleague.services.event_bus import LeagueEvent
from fitleague.utils.league_time import utc_now
from fitleague.utils.logger import setup_logger

logger = setup_logger(__name__)


class CacheKey(NamedTuple):
    league_id: int
    start: object
    end: object
    mode: NormalizationMode

    @classmethod
    def for_range(cls, league_id: int, date_range: DateRange, mode: NormalizationMode) -> 'CacheKey':
        return cls(league_id, date_range.start, date_range.end, mode)


class _Entry(NamedTuple):
    stored_at: float
    snapshot: LeaderboardSnapshot
    valid: bool


class LeaderboardCache:
    """TTL cache with event-driven invalidation and last-write-wins puts."""

    def __init__(self, default_ttl: int = CacheConstants.DEFAULT_CACHE_TTL, max_size: int = CacheConstants.MAX_CACHE_SIZE, clock=utc_now):
        self.clock = clock  # Must match the clock stamping snapshot computed_at
        self.default_ttl = default_ttl
        self._cache_max_size = max_size
        self._cache: Dict[CacheKey, _Entry] = {}
        self._invalidated_at: Dict[int, datetime] = {}
        self._lock = threading.Lock()

    def get(self, key: CacheKey, max_age_seconds: Optional[float] = None) -> Optional[LeaderboardSnapshot]:
        """Valid snapshot no older than ``max_age_seconds`` (default TTL when None)"""
        ttl = self.default_ttl if max_age_seconds is None else max_age_seconds
        entry = self._cache.get(key)
        if entry is None or not entry.valid:
            logger.debug(f"Cache miss for {key}")
            return None
        if time.time() - entry.stored_at > ttl:
            logger.debug(f"Cache entry for {key} older than {ttl}s")
            return None
        logger.debug(f"Cache hit for {key}")
        return entry.snapshot

    def get_last_known(self, key: CacheKey) -> Optional[LeaderboardSnapshot]:
        """Most recent snapshot for the key even if invalidated or expired"""
        entry = self._cache.get(key)
        return entry.snapshot if entry else None

    def put(self, key: CacheKey, snapshot: LeaderboardSnapshot) -> bool:
        """
        Store a snapshot unless a newer one is already cached.

        A snapshot computed before the league's last invalidation is refused,
        since it may not include the change that triggered it.

        Returns:
            True if the snapshot was stored
        """
        with self._lock:
            invalidated_at = self._invalidated_at.get(key.league_id)
            if invalidated_at and snapshot.computed_at < invalidated_at:
                logger.debug(f"Refusing snapshot for {key} computed before invalidation")
                return False

            existing = self._cache.get(key)
            if existing and existing.valid and existing.snapshot.computed_at > snapshot.computed_at:
                logger.debug(f"Keeping newer snapshot for {key}")
                return False

            self._cache[key] = _Entry(time.time(), snapshot, True)

            if len(self._cache) > self._cache_max_size:
                self._cleanup_cache()
            return True

    def invalidate_league(self, league_id: int, at: Optional[datetime] = None):
        """Mark every snapshot of a league stale"""
        with self._lock:
            self._invalidated_at[league_id] = at or self.clock()
            for key, entry in list(self._cache.items()):
                if key.league_id == league_id and entry.valid:
                    self._cache[key] = entry._replace(valid=False)
        logger.debug(f"Invalidated leaderboard cache for league {league_id}")

    def handle_event(self, event: LeagueEvent):
        """Event bus subscriber"""
        self.invalidate_league(event.league_id)

    def invalidate_all(self):
        """Clear entire cache."""
        logger.info("Clearing entire leaderboard cache")
        with self._lock:
            self._cache.clear()
            self._invalidated_at.clear()

    def keys_for_league(self, league_id: int) -> Tuple[CacheKey, ...]:
        return tuple(key for key in self._cache if key.league_id == league_id)

    def _cleanup_cache(self):
        """Remove oldest cache entries to stay within size limit."""
        sorted_items = sorted(self._cache.items(), key=lambda x: x[1].stored_at, reverse=True)
        self._cache = dict(sorted_items[:self._cache_max_size])
        logger.debug(f"Cleaned leaderboard cache, kept {len(self._cache)} entries")
