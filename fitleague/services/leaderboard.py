"""
Leaderboard service for settled standings and the real-time window.

Loads a detached copy of league state, runs the pure builder on a worker
thread under a timeout, and caches the resulting snapshot. When computation
times out the last known snapshot for the same key is returned flagged stale.
"""

import asyncio
import dataclasses
import logging
from typing import Callable, Optional

from sqlalchemy import func, select

from fitleague.config import Config
from fitleague.constants import CacheConstants
from fitleague.data_models.leaderboard import (
    DateRange, LeaderboardSnapshot, LeagueData, MemberRecord, NormalizationMode, PendingWindow, TeamRecord
)
from fitleague.data_models.submission import SubmissionRecord
from fitleague.database.models import League, Member, Submission, Team
from fitleague.operations.challenge_operations import load_award_records
from fitleague.services.base import BaseService
from fitleague.services.event_bus import LeagueEventBus
from fitleague.services.leaderboard_cache import CacheKey, LeaderboardCache
from fitleague.utils.errors import LeaderboardTimeoutError, ValidationError
from fitleague.utils.league_time import league_today, utc_now
from fitleague.utils.leaderboard_windows import build_leaderboard, settled_range
from fitleague.utils.normalization import resolve_mode

logger = logging.getLogger(__name__)


class LeaderboardService(BaseService):
    """Computes, caches and serves league leaderboards."""

    def __init__(
        self,
        session_factory,
        config_service=None,
        cache: Optional[LeaderboardCache] = None,
        event_bus: Optional[LeagueEventBus] = None,
        clock: Callable = utc_now,
    ):
        super().__init__(session_factory)
        self.config_service = config_service
        self.clock = clock
        self.cache = cache or LeaderboardCache(
            default_ttl=self._setting('cache.leaderboard_ttl_seconds', CacheConstants.DEFAULT_CACHE_TTL),
            max_size=self._setting('cache.leaderboard_max_size', CacheConstants.MAX_CACHE_SIZE),
            clock=clock,
        )
        if event_bus is not None:
            event_bus.subscribe_all(self.cache.handle_event)

    def _setting(self, key: str, default):
        if self.config_service is None:
            return default
        return self.config_service.get(key, default)

    async def compute_leaderboard(
        self,
        league_id: int,
        date_range: Optional[DateRange] = None,
        normalization_mode: Optional[NormalizationMode] = None,
        timeout: Optional[float] = None,
        max_age_seconds: Optional[float] = None,
        force_refresh: bool = False,
    ) -> LeaderboardSnapshot:
        """
        Get the leaderboard for a league.

        Args:
            league_id: League to rank
            date_range: Caller range; defaults to the settled range
            normalization_mode: None follows the league setting; NORMALIZED on a
                league that has not opted in is served RAW
            timeout: Seconds to wait for computation
            max_age_seconds: Accept a cached snapshot at most this old
            force_refresh: Skip the cache read and recompute

        Returns:
            LeaderboardSnapshot, possibly a stale last-known value on timeout

        Raises:
            LeaderboardTimeoutError: Computation timed out with nothing cached
        """
        now = self.clock()
        async with self.get_session() as session:
            league = await session.get(League, league_id)
            if league is None:
                raise ValidationError(f"League {league_id} not found", "league_id")
            today = league_today(league.timezone, now)
            settled_delay = self._setting('leaderboard.settled_delay_days', Config.SETTLED_DELAY_DAYS)
            resolved_range = date_range or settled_range(league.start_date, league.end_date, today, settled_delay)
            mode = resolve_mode(normalization_mode, league.normalize_points_by_team_size)

        key = CacheKey.for_range(league_id, resolved_range, mode)
        if not force_refresh:
            cached = self.cache.get(key, max_age_seconds)
            if cached is not None:
                return cached

        timeout = timeout if timeout is not None else self._setting(
            'leaderboard.compute_timeout_seconds', Config.LEADERBOARD_TIMEOUT_SECONDS
        )
        try:
            snapshot = await asyncio.wait_for(
                self._compute(league_id, resolved_range, mode, now, today),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            last_known = self.cache.get_last_known(key)
            if last_known is None:
                logger.error(f"Leaderboard for league {league_id} timed out after {timeout}s with no cached value")
                raise LeaderboardTimeoutError(league_id, timeout)
            logger.warning(f"Leaderboard for league {league_id} timed out; serving snapshot from {last_known.computed_at}")
            return dataclasses.replace(last_known, is_stale=True)

        self.cache.put(key, snapshot)
        return snapshot

    async def refresh_leaderboard_cache(self, league_id: int) -> LeaderboardSnapshot:
        """Drop every cached snapshot for a league and recompute the default one"""
        self.cache.invalidate_league(league_id)
        logger.info(f"Forced leaderboard refresh for league {league_id}")
        return await self.compute_leaderboard(league_id, force_refresh=True)

    async def get_pending_window(self, league_id: int, **kwargs) -> PendingWindow:
        """Real-time scores for today and yesterday"""
        snapshot = await self.compute_leaderboard(league_id, **kwargs)
        return snapshot.pending_window

    async def load_league_data(self, league_id: int) -> LeagueData:
        """Detached copy of everything the builder needs"""
        async with self.get_session() as session:
            league = await session.get(League, league_id)

            members = (await session.execute(
                select(Member).where(Member.league_id == league_id).order_by(Member.id)
            )).scalars().all()

            team_rows = (await session.execute(
                select(Team, func.count(Member.id))
                .outerjoin(Member, Member.team_id == Team.id)
                .where(Team.league_id == league_id)
                .group_by(Team.id)
                .order_by(Team.id)
            )).all()

            submission_rows = (await session.execute(
                select(Submission, Member.team_id)
                .join(Member, Member.id == Submission.member_id)
                .where(Submission.league_id == league_id, Submission.is_current == True)
                .order_by(Submission.date, Submission.id)
            )).all()

            awards = await load_award_records(session, league_id)

            return LeagueData(
                league_id=league.id,
                start_date=league.start_date,
                end_date=league.end_date,
                timezone=league.timezone,
                normalize_enabled=league.normalize_points_by_team_size,
                members=tuple(MemberRecord(m.id, m.display_name, m.team_id) for m in members),
                teams=tuple(TeamRecord(team.id, team.name, count) for team, count in team_rows),
                submissions=tuple(
                    SubmissionRecord(
                        id=sub.id,
                        member_id=sub.member_id,
                        team_id=team_id,
                        entry_date=sub.date,
                        kind=sub.kind,
                        status=sub.status,
                        rr_value=sub.rr_value,
                        created_at=sub.created_at,
                    )
                    for sub, team_id in submission_rows
                ),
                challenge_awards=tuple(awards),
            )

    async def _compute(self, league_id, date_range, mode, now, today) -> LeaderboardSnapshot:
        data = await self.load_league_data(league_id)
        snapshot = await asyncio.to_thread(
            build_leaderboard,
            data,
            today,
            now,
            date_range,
            mode,
            self._setting('leaderboard.settled_delay_days', Config.SETTLED_DELAY_DAYS),
            self._setting('leaderboard.individual_limit', Config.LEADERBOARD_INDIVIDUAL_LIMIT),
            self._setting('scoring.auto_approve_hours', Config.AUTO_APPROVE_HOURS),
        )
        logger.debug(
            f"Computed leaderboard for league {league_id} over {date_range} ({mode.value}): "
            f"{len(snapshot.teams)} teams, {snapshot.stats.total_submissions} entries"
        )
        return snapshot
