import pytest

from fitleague.data_models.leaderboard import NormalizationMode, TeamSizeStats
from fitleague.utils.errors import StateError
from fitleague.utils.normalization import (
    denormalize, has_team_size_variance, normalization_factor, normalize, raw, resolve_mode
)


@pytest.fixture
def stats():
    return TeamSizeStats.from_sizes([3, 5, 4])


def test_team_size_stats(stats):
    assert (stats.min_size, stats.max_size, stats.avg_size) == (3, 5, 4.0)
    assert has_team_size_variance(stats)
    assert not has_team_size_variance(TeamSizeStats.from_sizes([4, 4]))


def test_smaller_team_is_scaled_up(stats):
    scaled = normalize(30, 3, stats)
    assert scaled.value == pytest.approx(50)
    assert scaled.factor == pytest.approx(5 / 3)
    assert scaled.is_normalized


def test_normalization_is_reversible(stats):
    scaled = normalize(raw(7), 3, stats)
    assert denormalize(scaled).value == 7
    assert not denormalize(scaled).is_normalized


def test_double_normalization_raises(stats):
    with pytest.raises(StateError):
        normalize(normalize(10, 3, stats), 3, stats)


def test_unknown_sizes_leave_points_unchanged():
    assert normalization_factor(0, 5) == 1.0
    assert normalization_factor(3, 0) == 1.0


def test_mode_requires_league_opt_in():
    assert resolve_mode(None, True) == NormalizationMode.NORMALIZED
    assert resolve_mode(None, False) == NormalizationMode.RAW
    assert resolve_mode(NormalizationMode.NORMALIZED, False) == NormalizationMode.RAW
    assert resolve_mode(NormalizationMode.RAW, True) == NormalizationMode.RAW
