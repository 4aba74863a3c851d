"""
In-process event bus for scoring changes.

Operations publish an event after their transaction commits; the leaderboard
cache subscribes and drops every snapshot for the affected league.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Type

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeagueEvent:
    league_id: int


@dataclass(frozen=True)
class SubmissionCreated(LeagueEvent):
    submission_id: int
    member_id: int
    replaced_id: Optional[int] = None


@dataclass(frozen=True)
class SubmissionReviewed(LeagueEvent):
    submission_id: int
    reviewer_id: Optional[int]
    status: str


@dataclass(frozen=True)
class ChallengeAwardChanged(LeagueEvent):
    challenge_id: int
    challenge_submission_id: int


@dataclass(frozen=True)
class ChallengePublished(LeagueEvent):
    challenge_id: int


Handler = Callable[[LeagueEvent], None]


class LeagueEventBus:
    """Synchronous publish/subscribe keyed by event type."""

    def __init__(self):
        self._handlers: Dict[Type[LeagueEvent], List[Handler]] = defaultdict(list)

    def subscribe(self, event_type: Type[LeagueEvent], handler: Handler):
        self._handlers[event_type].append(handler)

    def subscribe_all(self, handler: Handler):
        """Receive every league event"""
        self.subscribe(LeagueEvent, handler)

    def publish(self, event: LeagueEvent):
        """Deliver an event to handlers of its type and its base types"""
        for event_type in type(event).__mro__:
            for handler in self._handlers.get(event_type, ()):
                try:
                    handler(event)
                except Exception as e:
                    # Subscribers must not undo a committed write
                    logger.error(f"Event handler {handler!r} failed for {event}: {e}", exc_info=True)
