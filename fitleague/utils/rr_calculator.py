"""
Run-Rate (RR) calculation for daily workout entries.

Each activity is scored on a single raw measurement. A metric scorer turns
that measurement into an RR value in [0, 2.0]; workouts need at least 1.0 to
be accepted and rest days are fixed at 1.0.

Scorers follow the strategy pattern so age-tiered thresholds and per-activity
reference units can be swapped without touching the calculator.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional, Tuple
import logging

from fitleague.constants import ScoringConstants
from fitleague.data_models.submission import MetricKind, RRResult, WorkoutMetric
from fitleague.database.models import EntryKind
from fitleague.utils.errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActivityType:
    """An activity and the measurements it may be scored on."""
    name: str
    metrics: Tuple[MetricKind, ...]
    reference_distance_km: float = ScoringConstants.REFERENCE_DISTANCE_KM

    @property
    def has_measurement(self) -> bool:
        return bool(self.metrics)


@dataclass(frozen=True)
class AgeThresholds:
    """Reference units that depend on the member's age."""
    duration_minutes: float
    steps_floor: int
    steps_ceiling: int


def thresholds_for_age(age: Optional[int]) -> AgeThresholds:
    """Pick the threshold tier for a member's age (None means standard)"""
    if age is not None and age > ScoringConstants.ELDER_AGE:
        return AgeThresholds(
            ScoringConstants.SENIOR_DURATION_MINUTES,
            ScoringConstants.ELDER_STEPS_FLOOR,
            ScoringConstants.ELDER_STEPS_CEILING,
        )
    if age is not None and age > ScoringConstants.SENIOR_AGE:
        return AgeThresholds(
            ScoringConstants.SENIOR_DURATION_MINUTES,
            ScoringConstants.SENIOR_STEPS_FLOOR,
            ScoringConstants.SENIOR_STEPS_CEILING,
        )
    return AgeThresholds(
        ScoringConstants.REFERENCE_DURATION_MINUTES,
        ScoringConstants.STEPS_FLOOR,
        ScoringConstants.STEPS_CEILING,
    )


_DISTANCE_OR_DURATION = (MetricKind.DISTANCE, MetricKind.DURATION)

DEFAULT_ACTIVITIES: Dict[str, ActivityType] = {
    'run': ActivityType('run', _DISTANCE_OR_DURATION),
    'walk': ActivityType('walk', _DISTANCE_OR_DURATION),
    'hiking': ActivityType('hiking', _DISTANCE_OR_DURATION),
    'cycling': ActivityType('cycling', _DISTANCE_OR_DURATION, ScoringConstants.REFERENCE_CYCLING_KM),
    'swimming': ActivityType('swimming', (MetricKind.DURATION,)),
    'gym': ActivityType('gym', (MetricKind.DURATION,)),
    'yoga': ActivityType('yoga', (MetricKind.DURATION,)),
    'hiit': ActivityType('hiit', (MetricKind.DURATION,)),
    'dance': ActivityType('dance', (MetricKind.DURATION,)),
    'meditation': ActivityType('meditation', (MetricKind.DURATION,)),
    'badminton_pickleball': ActivityType('badminton_pickleball', (MetricKind.DURATION,)),
    'basketball_cricket': ActivityType('basketball_cricket', (MetricKind.DURATION,)),
    'steps': ActivityType('steps', (MetricKind.STEPS,)),
    'golf': ActivityType('golf', (MetricKind.HOLES,)),
}


class MetricScorer(ABC):
    """Turns one raw measurement into an uncapped RR value."""

    @abstractmethod
    def raw_score(self, value: float) -> float:
        pass

    @abstractmethod
    def minimum_for_full_credit(self) -> float:
        """Measurement that yields RR 1.0"""
        pass

    @abstractmethod
    def describe_minimum(self) -> str:
        pass

    def score(self, value: float) -> float:
        return round(min(self.raw_score(value), ScoringConstants.RR_MAX), 2)


class DistanceScorer(MetricScorer):
    def __init__(self, reference_km: float):
        self.reference_km = reference_km

    def raw_score(self, value: float) -> float:
        return value / self.reference_km

    def minimum_for_full_credit(self) -> float:
        return self.reference_km

    def describe_minimum(self) -> str:
        return f"distance to at least {self.reference_km:g} km"


class DurationScorer(MetricScorer):
    def __init__(self, reference_minutes: float):
        self.reference_minutes = reference_minutes

    def raw_score(self, value: float) -> float:
        return value / self.reference_minutes

    def minimum_for_full_credit(self) -> float:
        return self.reference_minutes

    def describe_minimum(self) -> str:
        return f"duration to at least {self.reference_minutes:g} minutes"


class StepsScorer(MetricScorer):
    """Linear from floor (RR 1.0) to ceiling (RR 2.0); nothing below the floor."""

    def __init__(self, floor: int, ceiling: int):
        if ceiling <= floor:
            raise ValueError("Steps ceiling must be above the floor")
        self.floor = floor
        self.ceiling = ceiling

    def raw_score(self, value: float) -> float:
        if value < self.floor:
            return 0.0
        capped = min(value, self.ceiling)
        return 1 + (capped - self.floor) / (self.ceiling - self.floor)

    def minimum_for_full_credit(self) -> float:
        return self.floor

    def describe_minimum(self) -> str:
        return f"steps to at least {self.floor:,}"


class HolesScorer(MetricScorer):
    def raw_score(self, value: float) -> float:
        return value / ScoringConstants.REFERENCE_HOLES

    def minimum_for_full_credit(self) -> float:
        return ScoringConstants.REFERENCE_HOLES

    def describe_minimum(self) -> str:
        return f"holes to at least {ScoringConstants.REFERENCE_HOLES:g}"


class MetricScorerFactory:
    """Factory for metric scorers based on activity and member age"""

    @staticmethod
    def create_scorer(kind: MetricKind, activity: ActivityType, age: Optional[int] = None) -> MetricScorer:
        thresholds = thresholds_for_age(age)
        if kind == MetricKind.DISTANCE:
            return DistanceScorer(activity.reference_distance_km)
        elif kind == MetricKind.DURATION:
            return DurationScorer(thresholds.duration_minutes)
        elif kind == MetricKind.STEPS:
            return StepsScorer(thresholds.steps_floor, thresholds.steps_ceiling)
        elif kind == MetricKind.HOLES:
            return HolesScorer()
        else:
            raise ValueError(f"Unknown metric kind: {kind}")


class RRCalculator:
    """Scores daily entries against an activity catalog."""

    def __init__(self, activities: Optional[Dict[str, ActivityType]] = None):
        self.activities = dict(DEFAULT_ACTIVITIES if activities is None else activities)

    def register_activity(self, activity: ActivityType):
        """Add or replace a league-specific activity"""
        self.activities[activity.name] = activity

    def get_activity(self, workout_type: Optional[str]) -> ActivityType:
        if not workout_type:
            raise ValidationError("Workout type is required", "workout_type")
        activity = self.activities.get(workout_type.lower())
        if activity is None:
            raise ValidationError(f"Unknown workout type '{workout_type}'", "workout_type")
        return activity

    def calculate(
        self,
        kind: EntryKind,
        workout_type: Optional[str] = None,
        metric: Optional[WorkoutMetric] = None,
        age: Optional[int] = None,
    ) -> RRResult:
        """
        Compute RR for one entry without storing anything.

        Structural problems (unknown activity, missing or unsupported metric)
        raise ValidationError. A well-formed workout that falls short of RR 1.0
        returns ``can_submit=False`` with a reason naming what to increase.
        """
        if kind == EntryKind.REST:
            if metric is not None:
                raise ValidationError("Rest days cannot include workout metrics", "metrics")
            return RRResult(rr_value=ScoringConstants.REST_DAY_RR, can_submit=True)

        activity = self.get_activity(workout_type)

        if not activity.has_measurement:
            if metric is not None:
                raise ValidationError(f"{activity.name} does not take a measurement", "metrics")
            return RRResult(rr_value=ScoringConstants.REST_DAY_RR, can_submit=True)

        if metric is None:
            allowed = " or ".join(kind.value for kind in activity.metrics)
            raise ValidationError(f"Provide {allowed} for {activity.name}", "metrics")
        if metric.kind not in activity.metrics:
            raise ValidationError(f"{activity.name} cannot be scored on {metric.kind.value}", metric.kind.value)

        scorer = MetricScorerFactory.create_scorer(metric.kind, activity, age)
        rr_value = scorer.score(metric.value)

        if rr_value < ScoringConstants.RR_MIN:
            reason = f"RR {rr_value:.2f} is below {ScoringConstants.RR_MIN:.1f}. Increase {scorer.describe_minimum()}."
            logger.debug(f"Entry for {activity.name} below minimum RR: {metric.kind.value}={metric.value}")
            return RRResult(rr_value=rr_value, can_submit=False, metric=metric, reason=reason)

        return RRResult(rr_value=rr_value, can_submit=True, metric=metric)

    def ensure_submittable(self, *args, **kwargs) -> RRResult:
        """Same as calculate but raises ValidationError when RR is too low"""
        result = self.calculate(*args, **kwargs)
        if not result.can_submit:
            raise ValidationError(result.reason, "rr_value")
        return result
