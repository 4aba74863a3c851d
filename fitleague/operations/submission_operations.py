"""
Submission Operations

Handles creating, overwriting and reviewing daily workout and rest-day
entries. Creation and overwrite are serialized per member; every change
publishes a league event once its transaction commits so cached leaderboards
are dropped.
"""

from datetime import date
from typing import Callable, List, Optional, Union

from sqlalchemy import event, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fitleague.data_models.submission import (
    RRResult, SubmissionResult, SubmissionView, SubmitResult, WorkoutMetric
)
from fitleague.database.database import Database
from fitleague.database.models import EntryKind, League, Member, MemberRole, Submission, SubmissionStatus
from fitleague.services.event_bus import LeagueEvent, LeagueEventBus, SubmissionCreated, SubmissionReviewed
from fitleague.services.submission_locks import SubmissionLocks
from fitleague.utils.errors import (
    AuthorizationError, ConflictError, StateError, ValidationError
)
from fitleague.utils.league_time import ensure_valid_offset, local_date_for_offset, utc_now
from fitleague.utils.logger import setup_logger
from fitleague.utils.reupload_window import ensure_within_window, window_anchor
from fitleague.utils.rr_calculator import RRCalculator
from fitleague.utils.submission_status import effective_status, ensure_transition, parse_decision, points_for_status


def publish_after_commit(session: AsyncSession, event_bus: Optional[LeagueEventBus], league_event: LeagueEvent):
    """Deliver an event only if the session's transaction commits"""
    if event_bus is None:
        return

    def _deliver(_session):
        event_bus.publish(league_event)

    event.listen(session.sync_session, "after_commit", _deliver, once=True)


def can_review(reviewer: Member, member: Member) -> bool:
    """
    Captains review their own team, governors and hosts any team.

    Nobody but the host may review their own entry.
    """
    if reviewer.league_id != member.league_id:
        return False
    if reviewer.id == member.id and reviewer.role != MemberRole.HOST:
        return False
    if reviewer.role in (MemberRole.HOST, MemberRole.GOVERNOR):
        return True
    if reviewer.role == MemberRole.CAPTAIN:
        return reviewer.team_id is not None and reviewer.team_id == member.team_id
    return False


class SubmissionOperations:
    """
    Service class for daily entry operations.

    Owns the submission state machine: creation, overwrite within the
    resubmission window, and reviewer decisions.
    """

    def __init__(
        self,
        db: Database,
        event_bus: Optional[LeagueEventBus] = None,
        locks: Optional[SubmissionLocks] = None,
        rr_calculator: Optional[RRCalculator] = None,
        clock: Callable = utc_now,
    ):
        """
        Initialize SubmissionOperations with database connection.

        Args:
            db: Database instance for persistence
            event_bus: Receives SubmissionCreated and SubmissionReviewed events
            locks: Per-member lock provider
            rr_calculator: RR scoring with the league's activity catalog
            clock: Returns the current naive UTC time
        """
        self.db = db
        self.event_bus = event_bus
        self.locks = locks or SubmissionLocks()
        self.rr_calculator = rr_calculator or RRCalculator()
        self.clock = clock
        self.logger = setup_logger(f"{__name__}.SubmissionOperations")

    async def preview_rr(
        self,
        member_id: int,
        kind: EntryKind,
        workout_type: Optional[str] = None,
        metric: Optional[WorkoutMetric] = None,
        entry_date: Optional[date] = None,
        session: Optional[AsyncSession] = None,
    ) -> RRResult:
        """
        Compute RR for an entry without storing it.

        The member's age on the entry date selects the threshold tier.
        """
        async def _preview(session: AsyncSession) -> RRResult:
            member = await session.get(Member, member_id)
            if member is None:
                raise AuthorizationError("preview entries")
            day = entry_date or self.clock().date()
            return self.rr_calculator.calculate(kind, workout_type, metric, age=member.age_on(day))

        if session:
            return await _preview(session)
        async with self.db.get_session() as db_session:
            return await _preview(db_session)

    async def submit_entry(
        self,
        member_id: int,
        league_id: int,
        entry_date: date,
        kind: EntryKind,
        workout_type: Optional[str] = None,
        metric: Optional[WorkoutMetric] = None,
        overwrite: bool = False,
        expected_version: Optional[int] = None,
        proof_url: Optional[str] = None,
        notes: Optional[str] = None,
        utc_offset_minutes: int = 0,
        exemption_reason: Optional[str] = None,
        session: Optional[AsyncSession] = None,
    ) -> SubmitResult:
        """
        Create or overwrite the entry for (member, date).

        Args:
            member_id: Submitting league member
            league_id: League the entry counts for
            entry_date: Member-local calendar day
            kind: Workout or rest day
            workout_type: Activity name for workouts
            metric: The single populated measurement
            overwrite: Replace an existing current entry
            expected_version: Version of the entry being replaced, required
                when overwriting
            proof_url: Proof reference from the storage service
            notes: Free text shown to reviewers
            utc_offset_minutes: Submitter's offset, local minus UTC
            exemption_reason: Why a rest day past the allowance should count
            session: Optional existing database session

        Returns:
            SubmitResult with the new entry and the one it replaced

        Raises:
            ConflictError: Entry exists and overwrite was not requested, or
                the version guard failed
            WindowExpiredError: The existing entry can no longer be replaced
            ValidationError: Bad date, offset, metric or proof, RR below
                minimum, or rest allowance used up without an exemption reason
            StateError: League already completed
        """
        async def _submit(session: AsyncSession) -> SubmitResult:
            now = self.clock()
            member = await session.get(Member, member_id)
            if member is None or member.league_id != league_id:
                raise AuthorizationError("submit entries for this league")

            league = await session.get(League, league_id)
            if league.is_completed:
                raise StateError("This league has ended; entries are final")

            ensure_valid_offset(utc_offset_minutes)
            if entry_date > local_date_for_offset(now, utc_offset_minutes):
                raise ValidationError("Entries cannot be dated in the future", "date")
            if not league.contains_date(entry_date):
                raise ValidationError("Date is outside the league dates", "date")
            if league.require_proof and kind == EntryKind.WORKOUT and not proof_url:
                raise ValidationError("Proof is required for workouts in this league", "proof_url")

            rr = self.rr_calculator.ensure_submittable(
                kind, workout_type, metric, age=member.age_on(entry_date)
            )

            if kind == EntryKind.REST and not exemption_reason:
                used = await self._count_rest_days(session, member_id, league_id, exclude_date=entry_date)
                if used >= league.rest_days_allowed:
                    raise ValidationError(
                        f"All {league.rest_days_allowed} rest day(s) are used; add an exemption reason to request another",
                        "exemption_reason",
                    )

            existing = await self._get_current(session, member_id, entry_date)
            if existing is not None:
                if not overwrite:
                    raise ConflictError(SubmissionView.from_model(existing))
                if expected_version is None:
                    raise ValidationError("Overwriting needs the version of the entry being replaced", "expected_version")
                if existing.version != expected_version:
                    raise ConflictError(
                        SubmissionView.from_model(existing),
                        f"Version mismatch for {entry_date}: expected {expected_version}, found {existing.version}"
                    )
                ensure_within_window(
                    window_anchor(existing.reviewed_at, existing.created_at),
                    existing.utc_offset_minutes,
                    now,
                )
                existing.is_current = False
                existing.modified_at = now
                await session.flush()

            submission = Submission(
                member_id=member_id,
                league_id=league_id,
                date=entry_date,
                kind=kind,
                workout_type=workout_type if kind == EntryKind.WORKOUT else None,
                rr_value=rr.rr_value,
                status=SubmissionStatus.PENDING,
                proof_url=proof_url,
                notes=notes,
                utc_offset_minutes=utc_offset_minutes,
                exemption_reason=exemption_reason if kind == EntryKind.REST else None,
                is_current=True,
                reupload_of=existing.id if existing else None,
                version=existing.version + 1 if existing else 1,
                created_at=now,
                **(rr.metric.as_fields() if rr.metric else {}),
            )
            session.add(submission)
            await session.flush()

            if existing is not None:
                existing.superseded_by = submission.id
                await session.flush()
                self.logger.info(
                    f"Member {member_id} replaced entry {existing.id} with {submission.id} for {entry_date}"
                )
            else:
                self.logger.info(f"Member {member_id} submitted entry {submission.id} for {entry_date}")

            publish_after_commit(session, self.event_bus, SubmissionCreated(
                league_id=league_id,
                submission_id=submission.id,
                member_id=member_id,
                replaced_id=existing.id if existing else None,
            ))
            return SubmitResult(submission=submission, replaced=existing, created=existing is None)

        async with self.locks.hold(member_id):
            if session:
                return await _submit(session)
            try:
                async with self.db.transaction() as txn_session:
                    return await _submit(txn_session)
            except IntegrityError:
                # Another process won the race past the lock
                existing = await self.get_current_submission(member_id, entry_date)
                if existing is None:
                    raise
                raise ConflictError(SubmissionView.from_model(existing))

    async def review_submission(
        self,
        submission_id: int,
        reviewer_id: int,
        decision: Union[SubmissionStatus, str],
        awarded_points: Optional[int] = None,
        rejection_reason: Optional[str] = None,
        session: Optional[AsyncSession] = None,
    ) -> SubmissionResult:
        """
        Approve or reject a daily entry.

        Approval awards exactly 1 point and rejection 0; any other
        ``awarded_points`` is a ValidationError. A missing entry and a
        reviewer without authority raise the same AuthorizationError.
        """
        decision = parse_decision(decision)
        expected_points = points_for_status(decision)
        if awarded_points is not None and awarded_points != expected_points:
            raise ValidationError(
                f"A {decision.value} daily entry is worth exactly {expected_points} point(s)",
                "awarded_points",
            )

        async def _review(session: AsyncSession) -> SubmissionResult:
            now = self.clock()
            submission = await session.get(Submission, submission_id)
            reviewer = await session.get(Member, reviewer_id)
            if submission is None or reviewer is None:
                raise AuthorizationError("review this submission")
            member = await session.get(Member, submission.member_id)
            if not can_review(reviewer, member):
                raise AuthorizationError("review this submission")

            if not submission.is_current:
                raise StateError("This entry was replaced by a newer submission")
            league = await session.get(League, submission.league_id)
            if league.is_completed:
                raise StateError("This league has ended; entries are final")

            previous = submission.status
            current = effective_status(submission.status, submission.created_at, now)
            if current == decision and previous == decision:
                return SubmissionResult(submission=submission, previous_status=previous, changed=False)
            if current != SubmissionStatus.APPROVED or decision != SubmissionStatus.APPROVED:
                ensure_transition(current, decision)

            submission.status = decision
            submission.awarded_points = expected_points
            submission.reviewed_by = reviewer.id
            submission.reviewed_at = now
            submission.modified_at = now
            submission.rejection_reason = rejection_reason if decision == SubmissionStatus.REJECTED else None
            await session.flush()

            self.logger.info(
                f"Reviewer {reviewer.id} {decision.value} entry {submission.id} "
                f"(member {submission.member_id}, {submission.date})"
            )
            publish_after_commit(session, self.event_bus, SubmissionReviewed(
                league_id=submission.league_id,
                submission_id=submission.id,
                reviewer_id=reviewer.id,
                status=decision.value,
            ))
            return SubmissionResult(submission=submission, previous_status=previous)

        if session:
            return await _review(session)
        async with self.db.transaction() as txn_session:
            return await _review(txn_session)

    async def get_current_submission(
        self,
        member_id: int,
        entry_date: date,
        session: Optional[AsyncSession] = None,
    ) -> Optional[Submission]:
        """Current entry for (member, date), or None"""
        if session:
            return await self._get_current(session, member_id, entry_date)
        async with self.db.get_session() as db_session:
            return await self._get_current(db_session, member_id, entry_date)

    async def get_submission_history(
        self,
        member_id: int,
        entry_date: date,
        session: Optional[AsyncSession] = None,
    ) -> List[Submission]:
        """Every version for (member, date), oldest first, superseded ones included"""
        async def _history(session: AsyncSession) -> List[Submission]:
            result = await session.execute(
                select(Submission)
                .where(Submission.member_id == member_id, Submission.date == entry_date)
                .order_by(Submission.version, Submission.id)
            )
            return list(result.scalars().all())

        if session:
            return await _history(session)
        async with self.db.get_session() as db_session:
            return await _history(db_session)

    async def list_reviewable(
        self,
        reviewer_id: int,
        session: Optional[AsyncSession] = None,
    ) -> List[Submission]:
        """Pending current entries the reviewer may act on, oldest first"""
        async def _list(session: AsyncSession) -> List[Submission]:
            reviewer = await session.get(Member, reviewer_id)
            if reviewer is None:
                raise AuthorizationError("review submissions")
            result = await session.execute(
                select(Submission, Member)
                .join(Member, Member.id == Submission.member_id)
                .where(
                    Submission.league_id == reviewer.league_id,
                    Submission.is_current == True,
                    Submission.status == SubmissionStatus.PENDING,
                )
                .order_by(Submission.date, Submission.id)
            )
            return [submission for submission, member in result.all() if can_review(reviewer, member)]

        if session:
            return await _list(session)
        async with self.db.get_session() as db_session:
            return await _list(db_session)

    async def get_member_by_discord_id(self, discord_id: int, league_id: int) -> Optional[Member]:
        """League membership for a Discord user"""
        async with self.db.get_session() as session:
            result = await session.execute(
                select(Member).where(Member.discord_id == discord_id, Member.league_id == league_id)
            )
            return result.scalar_one_or_none()

    async def _get_current(self, session: AsyncSession, member_id: int, entry_date: date) -> Optional[Submission]:
        result = await session.execute(
            select(Submission).where(
                Submission.member_id == member_id,
                Submission.date == entry_date,
                Submission.is_current == True,
            )
        )
        return result.scalar_one_or_none()

    async def _count_rest_days(self, session: AsyncSession, member_id: int, league_id: int, exclude_date: date) -> int:
        """Current plain rest entries that use up the allowance; exemptions sit outside it"""
        return await session.scalar(
            select(func.count(Submission.id)).where(
                Submission.member_id == member_id,
                Submission.league_id == league_id,
                Submission.kind == EntryKind.REST,
                Submission.is_current == True,
                Submission.status != SubmissionStatus.REJECTED,
                Submission.exemption_reason.is_(None),
                Submission.date != exclude_date,
            )
        )
