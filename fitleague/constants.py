"""
Engine-wide constants for the FitLeague scoring engine.

Holds the reference units behind Run-Rate scoring, cache sizing and the
colors used by the Discord command surface.
"""

class ScoringConstants:
    """Constants related to Run-Rate (RR) calculation."""
    
    # Accepted RR range for a workout
    RR_MIN = 1.0
    RR_MAX = 2.0
    REST_DAY_RR = 1.0
    
    # Reference units that produce RR 1.0
    REFERENCE_DISTANCE_KM = 4.0
    REFERENCE_CYCLING_KM = 10.0
    REFERENCE_DURATION_MINUTES = 45.0
    REFERENCE_HOLES = 9.0
    
    # Steps map linearly from floor (RR 1.0) to ceiling (RR 2.0)
    STEPS_FLOOR = 10000
    STEPS_CEILING = 20000
    
    # Age tiers soften the thresholds for older members
    SENIOR_AGE = 65
    SENIOR_DURATION_MINUTES = 30.0
    SENIOR_STEPS_FLOOR = 5000
    SENIOR_STEPS_CEILING = 10000
    ELDER_AGE = 75
    ELDER_STEPS_FLOOR = 3000
    ELDER_STEPS_CEILING = 6000
    
    # One point per approved day
    POINTS_PER_APPROVED_DAY = 1
    
    # Total rest days per member before an exemption reason is needed
    DEFAULT_REST_DAYS_ALLOWED = 1
    
    # Submitter offsets from UTC-12:00 to UTC+14:00
    MIN_UTC_OFFSET_MINUTES = -720
    MAX_UTC_OFFSET_MINUTES = 840

class CacheConstants:
    """Constants for caching behavior."""
    
    # Default freshness for leaderboard snapshots (seconds)
    DEFAULT_CACHE_TTL = 300  # 5 minutes
    
    # Maximum snapshots kept before the oldest are evicted
    MAX_CACHE_SIZE = 500

class UIConstants:
    """Constants for Discord presentation."""
    
    # Embed colors
    COLOR_SUCCESS = 0x00FF00
    COLOR_ERROR = 0xFF0000
    COLOR_WARNING = 0xFFA500
    COLOR_INFO = 0x0099FF
    COLOR_GOLD = 0xFFD700
    
    # Rows shown per leaderboard embed
    LEADERBOARD_DISPLAY_LIMIT = 10
