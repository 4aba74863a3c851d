"""
Auto-approval sweep.

Pending entries older than the auto-approval age already count as approved
when leaderboards are computed. The sweep persists that decision so the
stored status matches what members see; it is meant to run periodically.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy import select

from fitleague.config import Config
from fitleague.database.models import League, LeagueStatus, Submission, SubmissionStatus
from fitleague.operations.submission_operations import publish_after_commit
from fitleague.services.base import BaseService
from fitleague.services.event_bus import LeagueEventBus, SubmissionReviewed
from fitleague.utils.league_time import utc_now
from fitleague.utils.submission_status import points_for_status

logger = logging.getLogger(__name__)


class AutoApprovalService(BaseService):
    """Persists approvals for pending entries past the review deadline."""

    def __init__(
        self,
        session_factory,
        config_service=None,
        event_bus: Optional[LeagueEventBus] = None,
        clock: Callable = utc_now,
    ):
        super().__init__(session_factory)
        self.config_service = config_service
        self.event_bus = event_bus
        self.clock = clock

    @property
    def auto_approve_hours(self) -> int:
        if self.config_service is None:
            return Config.AUTO_APPROVE_HOURS
        return self.config_service.get('scoring.auto_approve_hours', Config.AUTO_APPROVE_HOURS)

    async def sweep(self, now: Optional[datetime] = None) -> List[int]:
        """
        Approve every overdue pending entry in leagues that are not completed.

        Returns:
            Ids of the entries approved by this sweep
        """
        now = now or self.clock()
        cutoff = now - timedelta(hours=self.auto_approve_hours)

        async def _sweep() -> List[int]:
            async with self.get_session() as session:
                result = await session.execute(
                    select(Submission)
                    .join(League, League.id == Submission.league_id)
                    .where(
                        Submission.is_current == True,
                        Submission.status == SubmissionStatus.PENDING,
                        Submission.created_at < cutoff,
                        League.status != LeagueStatus.COMPLETED,
                    )
                    .order_by(Submission.created_at, Submission.id)
                )
                approved = []
                for submission in result.scalars().all():
                    submission.status = SubmissionStatus.APPROVED
                    submission.awarded_points = points_for_status(SubmissionStatus.APPROVED)
                    submission.reviewed_at = now
                    submission.modified_at = now
                    approved.append(submission.id)
                    publish_after_commit(session, self.event_bus, SubmissionReviewed(
                        league_id=submission.league_id,
                        submission_id=submission.id,
                        reviewer_id=None,
                        status=SubmissionStatus.APPROVED.value,
                    ))
                return approved

        approved = await self.execute_with_retry(_sweep)
        if approved:
            logger.info(f"Auto-approved {len(approved)} entries older than {self.auto_approve_hours}h")
        return approved
