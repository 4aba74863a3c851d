"""
Challenge Operations

Handles challenge entries, reviewer awards and the publish/close lifecycle.
Awards are capped per submission: individual challenges by the full pool,
team and sub-team challenges by the pool split across the submitting group.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fitleague.data_models.leaderboard import ChallengeAwardRecord
from fitleague.database.database import Database
from fitleague.database.models import (
    Challenge, ChallengeStatus, ChallengeSubmission, ChallengeType, League,
    Member, MemberRole, SubmissionStatus, SubTeam, SubTeamMember
)
from fitleague.operations.submission_operations import publish_after_commit
from fitleague.services.event_bus import ChallengeAwardChanged, ChallengePublished, LeagueEventBus
from fitleague.utils.challenge_points import (
    REVIEWABLE_STATUSES, ChallengeCaps, compute_caps, effective_challenge_status,
    validate_award, visible_points
)
from fitleague.utils.errors import AuthorizationError, StateError, ValidationError
from fitleague.utils.league_time import league_today, utc_now
from fitleague.utils.logger import setup_logger
from fitleague.utils.submission_status import parse_decision


@dataclass
class ChallengeAward:
    """Result of approving, updating or rejecting a challenge entry"""
    submission: ChallengeSubmission
    caps: ChallengeCaps
    visible_points: float


def is_challenge_manager(member: Optional[Member], league_id: int) -> bool:
    return (
        member is not None
        and member.league_id == league_id
        and member.role in (MemberRole.HOST, MemberRole.GOVERNOR)
    )


async def caps_for_entry(session: AsyncSession, entry: ChallengeSubmission, challenge: Challenge) -> ChallengeCaps:
    """Caps for an entry; group challenges measure against the largest group"""
    if challenge.challenge_type == ChallengeType.INDIVIDUAL:
        return compute_caps(challenge.challenge_type, challenge.total_points)

    if challenge.challenge_type == ChallengeType.TEAM:
        sizes = await team_sizes(session, challenge.league_id)
        group_size = sizes.get(entry.team_id, 0)
    else:
        sizes = await sub_team_sizes(session, challenge.id)
        group_size = sizes.get(entry.sub_team_id, 0)

    return compute_caps(
        challenge.challenge_type,
        challenge.total_points,
        group_size=group_size,
        max_group_size=max(sizes.values(), default=group_size),
    )


async def team_sizes(session: AsyncSession, league_id: int) -> dict:
    result = await session.execute(
        select(Member.team_id, func.count(Member.id))
        .where(Member.league_id == league_id, Member.team_id.is_not(None))
        .group_by(Member.team_id)
    )
    return {team_id: count for team_id, count in result.all()}


async def sub_team_sizes(session: AsyncSession, challenge_id: int) -> dict:
    result = await session.execute(
        select(SubTeam.id, func.count(SubTeamMember.id))
        .outerjoin(SubTeamMember, SubTeamMember.sub_team_id == SubTeam.id)
        .where(SubTeam.challenge_id == challenge_id)
        .group_by(SubTeam.id)
    )
    return {sub_team_id: count for sub_team_id, count in result.all()}


async def load_award_records(session: AsyncSession, league_id: int) -> List[ChallengeAwardRecord]:
    """Approved awards with their visible points for leaderboard building"""
    result = await session.execute(
        select(ChallengeSubmission, Challenge)
        .join(Challenge, Challenge.id == ChallengeSubmission.challenge_id)
        .where(
            Challenge.league_id == league_id,
            ChallengeSubmission.status == SubmissionStatus.APPROVED,
        )
        .order_by(ChallengeSubmission.challenge_id, ChallengeSubmission.id)
    )
    records = []
    caps_cache = {}
    for entry, challenge in result.all():
        team_id = entry.team_id
        if team_id is None:
            member = await session.get(Member, entry.member_id)
            team_id = member.team_id if member else None

        cache_key = (challenge.id, entry.team_id, entry.sub_team_id)
        if cache_key not in caps_cache:
            caps_cache[cache_key] = await caps_for_entry(session, entry, challenge)
        caps = caps_cache[cache_key]

        records.append(ChallengeAwardRecord(
            challenge_id=challenge.id,
            challenge_type=challenge.challenge_type,
            member_id=entry.member_id,
            team_id=team_id,
            awarded_points=entry.awarded_points or 0.0,
            visible_points=visible_points(entry.awarded_points, caps),
            end_date=challenge.end_date,
        ))
    return records


class ChallengeOperations:
    """
    Service class for challenge-related operations.

    Only hosts and governors review challenge entries, and only once the
    challenge has stopped accepting submissions.
    """

    def __init__(self, db: Database, event_bus: Optional[LeagueEventBus] = None, clock: Callable = utc_now):
        """
        Initialize ChallengeOperations with database connection.

        Args:
            db: Database instance for persistence
            event_bus: Receives ChallengeAwardChanged and ChallengePublished events
            clock: Returns the current naive UTC time
        """
        self.db = db
        self.event_bus = event_bus
        self.clock = clock
        self.logger = setup_logger(f"{__name__}.ChallengeOperations")

    async def get_effective_status(self, challenge: Challenge, session: AsyncSession) -> ChallengeStatus:
        """Stored status advanced by the league-local calendar"""
        league = await session.get(League, challenge.league_id)
        today = league_today(league.timezone, self.clock())
        return effective_challenge_status(challenge.status, challenge.start_date, challenge.end_date, today)

    async def submit_challenge_entry(
        self,
        challenge_id: int,
        member_id: int,
        proof_url: Optional[str] = None,
        sub_team_id: Optional[int] = None,
        session: Optional[AsyncSession] = None,
    ) -> ChallengeSubmission:
        """
        Record a member's entry for an active challenge.

        Team challenges attach the member's team; sub-team challenges require
        the member to belong to the given sub-team.
        """
        async def _submit(session: AsyncSession) -> ChallengeSubmission:
            challenge = await session.get(Challenge, challenge_id)
            member = await session.get(Member, member_id)
            if challenge is None or member is None or member.league_id != challenge.league_id:
                raise AuthorizationError("enter this challenge")

            status = await self.get_effective_status(challenge, session)
            if status != ChallengeStatus.ACTIVE:
                raise StateError(f"Challenge '{challenge.name}' is not accepting entries ({status.value})")

            team_id = None
            if challenge.challenge_type in (ChallengeType.TEAM, ChallengeType.SUB_TEAM):
                if member.team_id is None:
                    raise ValidationError("You must be on a team to enter this challenge", "team_id")
                team_id = member.team_id

            chosen_sub_team = sub_team_id if challenge.challenge_type == ChallengeType.SUB_TEAM else None
            if challenge.challenge_type == ChallengeType.SUB_TEAM:
                if chosen_sub_team is None or not await self._is_sub_team_member(session, chosen_sub_team, member_id, challenge_id):
                    raise ValidationError("Choose a sub-team you belong to", "sub_team_id")

            entry = ChallengeSubmission(
                challenge_id=challenge_id,
                member_id=member_id,
                team_id=team_id,
                sub_team_id=chosen_sub_team,
                status=SubmissionStatus.PENDING,
                proof_url=proof_url,
                created_at=self.clock(),
            )
            session.add(entry)
            await session.flush()
            self.logger.info(f"Member {member_id} entered challenge {challenge_id} (entry {entry.id})")
            return entry

        if session:
            return await _submit(session)
        async with self.db.transaction() as txn_session:
            return await _submit(txn_session)

    async def distribute_challenge_points(
        self,
        challenge_id: int,
        submission_id: int,
        awarded_points: float,
        session: Optional[AsyncSession] = None,
    ) -> ChallengeAward:
        """
        Approve a challenge entry with a capped award.

        Raises:
            CapExceededError: Award above the entry's internal cap
            StateError: Challenge still accepting entries or already closed
        """
        async def _distribute(session: AsyncSession) -> ChallengeAward:
            entry, challenge = await self._load_entry(session, submission_id, challenge_id)
            await self._ensure_reviewable(session, challenge)
            return await self._apply_decision(session, entry, challenge, SubmissionStatus.APPROVED, awarded_points, None)

        if session:
            return await _distribute(session)
        async with self.db.transaction() as txn_session:
            return await _distribute(txn_session)

    async def review_challenge_submission(
        self,
        submission_id: int,
        reviewer_id: int,
        decision: Union[SubmissionStatus, str],
        awarded_points: Optional[float] = None,
        session: Optional[AsyncSession] = None,
    ) -> ChallengeAward:
        """
        Approve, update or reject a challenge entry.

        Approving without points awards the entry's cap. Approving an already
        approved entry updates the award and re-validates it. Rejecting
        clears the award.
        """
        decision = parse_decision(decision)

        async def _review(session: AsyncSession) -> ChallengeAward:
            entry, challenge = await self._load_entry(session, submission_id)
            reviewer = await session.get(Member, reviewer_id)
            if not is_challenge_manager(reviewer, challenge.league_id):
                raise AuthorizationError("review challenge submissions")
            await self._ensure_reviewable(session, challenge)
            return await self._apply_decision(session, entry, challenge, decision, awarded_points, reviewer.id)

        if session:
            return await _review(session)
        async with self.db.transaction() as txn_session:
            return await _review(txn_session)

    async def publish_challenge(
        self,
        challenge_id: int,
        actor_id: int,
        session: Optional[AsyncSession] = None,
    ) -> Challenge:
        """
        Publish results once submissions are closed and all are reviewed.

        Raises:
            StateError: Already published, still open, or entries pending
        """
        async def _publish(session: AsyncSession) -> Challenge:
            challenge = await session.get(Challenge, challenge_id)
            actor = await session.get(Member, actor_id)
            if challenge is None or not is_challenge_manager(actor, challenge.league_id):
                raise AuthorizationError("publish this challenge")

            status = await self.get_effective_status(challenge, session)
            if status in (ChallengeStatus.PUBLISHED, ChallengeStatus.CLOSED):
                raise StateError(f"Challenge '{challenge.name}' is already published")
            if status != ChallengeStatus.SUBMISSION_CLOSED:
                raise StateError(f"Challenge '{challenge.name}' must close submissions before publishing")

            pending = await session.scalar(
                select(func.count(ChallengeSubmission.id)).where(
                    ChallengeSubmission.challenge_id == challenge_id,
                    ChallengeSubmission.status == SubmissionStatus.PENDING,
                )
            )
            if pending:
                raise StateError(f"Review all {pending} pending submission(s) before publishing")

            challenge.status = ChallengeStatus.PUBLISHED
            challenge.published_at = self.clock()
            await session.flush()

            self.logger.info(f"Published challenge {challenge_id} by member {actor_id}")
            publish_after_commit(session, self.event_bus, ChallengePublished(
                league_id=challenge.league_id,
                challenge_id=challenge_id,
            ))
            return challenge

        if session:
            return await _publish(session)
        async with self.db.transaction() as txn_session:
            return await _publish(txn_session)

    async def close_challenge(
        self,
        challenge_id: int,
        actor_id: int,
        session: Optional[AsyncSession] = None,
    ) -> Challenge:
        """Archive a published challenge; awards stay on the leaderboard"""
        async def _close(session: AsyncSession) -> Challenge:
            challenge = await session.get(Challenge, challenge_id)
            actor = await session.get(Member, actor_id)
            if challenge is None or not is_challenge_manager(actor, challenge.league_id):
                raise AuthorizationError("close this challenge")
            if challenge.status != ChallengeStatus.PUBLISHED:
                raise StateError(f"Only published challenges can be closed (is {challenge.status.value})")
            challenge.status = ChallengeStatus.CLOSED
            await session.flush()
            self.logger.info(f"Closed challenge {challenge_id}")
            return challenge

        if session:
            return await _close(session)
        async with self.db.transaction() as txn_session:
            return await _close(txn_session)

    async def get_caps(self, submission_id: int, session: Optional[AsyncSession] = None) -> ChallengeCaps:
        """Award caps for an entry"""
        async def _caps(session: AsyncSession) -> ChallengeCaps:
            entry, challenge = await self._load_entry(session, submission_id)
            return await caps_for_entry(session, entry, challenge)

        if session:
            return await _caps(session)
        async with self.db.get_session() as db_session:
            return await _caps(db_session)

    async def _apply_decision(
        self,
        session: AsyncSession,
        entry: ChallengeSubmission,
        challenge: Challenge,
        decision: SubmissionStatus,
        awarded_points: Optional[float],
        reviewer_id: Optional[int],
    ) -> ChallengeAward:
        caps = await caps_for_entry(session, entry, challenge)

        if decision == SubmissionStatus.APPROVED:
            points = caps.internal_cap if awarded_points is None else awarded_points
            entry.awarded_points = validate_award(points, caps)
        else:
            entry.awarded_points = None

        previous = entry.status
        entry.status = decision
        entry.reviewed_by = reviewer_id
        entry.reviewed_at = self.clock()
        await session.flush()

        self.logger.info(
            f"Challenge entry {entry.id} {previous.value} -> {decision.value} "
            f"with {entry.awarded_points} point(s) (cap {caps.internal_cap})"
        )
        publish_after_commit(session, self.event_bus, ChallengeAwardChanged(
            league_id=challenge.league_id,
            challenge_id=challenge.id,
            challenge_submission_id=entry.id,
        ))
        return ChallengeAward(
            submission=entry,
            caps=caps,
            visible_points=visible_points(entry.awarded_points, caps),
        )

    async def _ensure_reviewable(self, session: AsyncSession, challenge: Challenge):
        status = await self.get_effective_status(challenge, session)
        if status not in REVIEWABLE_STATUSES:
            raise StateError(
                f"Challenge '{challenge.name}' submissions can only be reviewed after submissions close ({status.value})"
            )

    async def _load_entry(self, session: AsyncSession, submission_id: int, challenge_id: Optional[int] = None):
        entry = await session.get(ChallengeSubmission, submission_id)
        if entry is None or (challenge_id is not None and entry.challenge_id != challenge_id):
            raise AuthorizationError("review this challenge submission")
        challenge = await session.get(Challenge, entry.challenge_id)
        return entry, challenge

    async def _is_sub_team_member(self, session: AsyncSession, sub_team_id: int, member_id: int, challenge_id: int) -> bool:
        found = await session.scalar(
            select(func.count(SubTeamMember.id))
            .join(SubTeam, SubTeam.id == SubTeamMember.sub_team_id)
            .where(
                SubTeamMember.sub_team_id == sub_team_id,
                SubTeamMember.member_id == member_id,
                SubTeam.challenge_id == challenge_id,
            )
        )
        return bool(found)
