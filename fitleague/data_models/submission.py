"""
Submission data models for the scoring engine.

Immutable value objects passed between the RR calculator, the submission
state machine and the command surface.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional

from fitleague.database.models import EntryKind, SubmissionStatus
from fitleague.utils.errors import ValidationError


class MetricKind(Enum):
    """Raw measurement a workout can be scored on."""
    DISTANCE = "distance"
    DURATION = "duration"
    STEPS = "steps"
    HOLES = "holes"


@dataclass(frozen=True)
class WorkoutMetric:
    """Exactly one populated measurement for a workout."""
    kind: MetricKind
    value: float

    def __post_init__(self):
        if self.value is None or not math.isfinite(self.value) or self.value < 0:
            raise ValidationError(f"{self.kind.value.capitalize()} must be a finite non-negative number", self.kind.value)

    @classmethod
    def from_fields(
        cls,
        duration: Optional[float] = None,
        distance: Optional[float] = None,
        steps: Optional[int] = None,
        holes: Optional[int] = None,
    ) -> Optional['WorkoutMetric']:
        """
        Build a metric from loose form fields.

        Returns None when no field is populated. Raises ValidationError when
        more than one is, since a workout is scored on a single measurement.
        """
        populated = [
            (kind, value) for kind, value in (
                (MetricKind.DURATION, duration),
                (MetricKind.DISTANCE, distance),
                (MetricKind.STEPS, steps),
                (MetricKind.HOLES, holes),
            )
            if value is not None
        ]
        if len(populated) > 1:
            names = ", ".join(kind.value for kind, _ in populated)
            raise ValidationError(f"Provide only one measurement, got {names}", "metrics")
        if not populated:
            return None
        kind, value = populated[0]
        return cls(kind=kind, value=float(value))

    def as_fields(self) -> dict:
        """Column values for persisting this metric"""
        value = int(self.value) if self.kind in (MetricKind.STEPS, MetricKind.HOLES) else self.value
        return {self.kind.value: value}


@dataclass(frozen=True)
class RRResult:
    """Outcome of scoring one entry."""
    rr_value: float
    can_submit: bool
    metric: Optional[WorkoutMetric] = None
    reason: Optional[str] = None


@dataclass
class SubmitResult:
    """Result of creating or overwriting a daily entry"""
    submission: object
    replaced: Optional[object] = None
    created: bool = True

    @property
    def is_overwrite(self) -> bool:
        return self.replaced is not None


@dataclass
class SubmissionResult:
    """Result of a reviewer decision"""
    submission: object
    previous_status: object
    changed: bool = True


@dataclass(frozen=True)
class SubmissionRecord:
    """Detached view of a current submission used by pure aggregation code."""
    id: int
    member_id: int
    team_id: Optional[int]
    entry_date: date
    kind: EntryKind
    status: SubmissionStatus
    rr_value: float
    created_at: datetime


@dataclass(frozen=True)
class SubmissionView:
    """Detached copy of an entry that stays readable after rollback."""
    id: int
    member_id: int
    date: date
    kind: EntryKind
    status: SubmissionStatus
    rr_value: float
    version: int
    created_at: datetime
    reviewed_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, submission) -> 'SubmissionView':
        return cls(
            id=submission.id,
            member_id=submission.member_id,
            date=submission.date,
            kind=submission.kind,
            status=submission.status,
            rr_value=submission.rr_value,
            version=submission.version,
            created_at=submission.created_at,
            reviewed_at=submission.reviewed_at,
        )
