"""FitLeague scoring and leaderboard engine."""

__version__ = "0.1.0"
