"""
Team-size normalization.

When teams differ in size a league may opt in to scaling each team's total
by ``max_size / team_size`` so a smaller roster is not penalized. Values carry
their representation so a total is never normalized twice.
"""

from dataclasses import dataclass
from typing import Optional, Union

from fitleague.data_models.leaderboard import NormalizationMode, TeamSizeStats
from fitleague.utils.errors import StateError


@dataclass(frozen=True)
class ScaledPoints:
    value: float
    raw_value: float
    representation: NormalizationMode = NormalizationMode.RAW
    factor: float = 1.0

    @property
    def is_normalized(self) -> bool:
        return self.representation == NormalizationMode.NORMALIZED


def normalization_factor(team_size: int, max_size: int) -> float:
    """Scaling factor for a team; 1 when either size is unknown"""
    if team_size <= 0 or max_size <= 0:
        return 1.0
    return max_size / team_size


def has_team_size_variance(stats: TeamSizeStats) -> bool:
    return stats.has_variance


def normalize(points: Union[ScaledPoints, int, float], team_size: int, stats: TeamSizeStats) -> ScaledPoints:
    """
    Rescale a raw team total against the largest team.

    Raises:
        StateError: If the value is already normalized
    """
    if isinstance(points, ScaledPoints):
        if points.is_normalized:
            raise StateError("Team points are already normalized")
        raw = points.raw_value
    else:
        raw = points
    factor = normalization_factor(team_size, stats.max_size)
    return ScaledPoints(
        value=raw * factor,
        raw_value=raw,
        representation=NormalizationMode.NORMALIZED,
        factor=factor,
    )


def denormalize(points: ScaledPoints) -> ScaledPoints:
    """Recover the raw total"""
    if not points.is_normalized:
        return points
    return ScaledPoints(value=points.raw_value, raw_value=points.raw_value)


def raw(points: Union[int, float]) -> ScaledPoints:
    return ScaledPoints(value=points, raw_value=points)


def resolve_mode(requested: Optional[NormalizationMode], league_enabled: bool) -> NormalizationMode:
    """Normalization only applies to leagues that opted in"""
    if requested is None:
        return NormalizationMode.NORMALIZED if league_enabled else NormalizationMode.RAW
    if requested == NormalizationMode.NORMALIZED and not league_enabled:
        return NormalizationMode.RAW
    return requested
