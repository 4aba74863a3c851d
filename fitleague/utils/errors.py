"""
Typed exceptions for the scoring engine with user-friendly error messages.

Every engine error carries a technical ``message`` for logs and a
``user_message`` that can be shown to a league member as-is.
"""

class LeagueEngineError(Exception):
    """Base exception for scoring and leaderboard errors."""
    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        self.message = message
        self.user_message = user_message or message

class ValidationError(LeagueEngineError):
    """Raised when submitted data is malformed or out of range."""
    def __init__(self, reason: str, field: str = None):
        self.field = field
        super().__init__(
            f"Validation failed{f' on {field}' if field else ''}: {reason}",
            f"❌ {reason}"
        )

class CapExceededError(ValidationError):
    """Raised when a challenge award is above the allowed cap."""
    def __init__(self, awarded: float, cap: float, scope: str = "submission"):
        self.awarded = awarded
        self.cap = cap
        LeagueEngineError.__init__(
            self,
            f"Award {awarded} exceeds {scope} cap {cap}",
            f"❌ Points cannot exceed {cap:g} for this {scope}."
        )
        self.field = "awarded_points"

class ConflictError(LeagueEngineError):
    """Raised when a current submission already occupies (member, date)."""
    def __init__(self, existing, reason: str = None):
        self.existing = existing
        entry_date = getattr(existing, 'date', None)
        super().__init__(
            reason or f"Submission already exists for {entry_date}",
            f"❌ You already have an entry for {entry_date}. Resubmit with overwrite to replace it."
        )

class AuthorizationError(LeagueEngineError):
    """Raised when an actor may not perform an action.

    Missing targets and missing authority produce the same message so
    callers cannot discover other teams' submissions.
    """
    def __init__(self, action: str = "perform this action"):
        super().__init__(
            f"Not authorized to {action}",
            "❌ You don't have permission to do that."
        )

class WindowExpiredError(LeagueEngineError):
    """Raised when a resubmission arrives after its window closed."""
    def __init__(self, deadline):
        self.deadline = deadline
        super().__init__(
            f"Resubmission window closed at {deadline.isoformat()}",
            "❌ The resubmission window for this entry has closed."
        )

class StateError(LeagueEngineError):
    """Raised when an operation is not valid for the current lifecycle state."""
    def __init__(self, reason: str):
        super().__init__(reason, f"❌ {reason}")

class LeaderboardTimeoutError(LeagueEngineError):
    """Raised when leaderboard computation times out with nothing cached."""
    def __init__(self, league_id: int, timeout: float):
        super().__init__(
            f"Leaderboard for league {league_id} did not finish within {timeout}s",
            "❌ The leaderboard is taking too long to compute. Please try again shortly."
        )

class DatabaseError(LeagueEngineError):
    """Raised when database operations fail; callers may retry."""
    def __init__(self, operation: str, details: str = None):
        super().__init__(
            f"Database error during {operation}: {details}",
            "❌ Database error occurred. Please try again later."
        )
