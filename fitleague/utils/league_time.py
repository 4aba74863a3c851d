"""Timezone helpers; all stored timestamps are naive UTC."""

from datetime import date, datetime, timedelta, timezone
from typing import Optional

import pytz

from fitleague.constants import ScoringConstants
from fitleague.utils.errors import ValidationError


def utc_now() -> datetime:
    """Current time as naive UTC, matching stored columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_league_timezone(timezone_name: str):
    try:
        return pytz.timezone(timezone_name or 'UTC')
    except pytz.UnknownTimeZoneError:
        raise ValidationError(f"Unknown timezone '{timezone_name}'", "timezone")


def league_today(timezone_name: str, now: Optional[datetime] = None) -> date:
    """Calendar day in the league's zone for a naive UTC instant"""
    now = now or utc_now()
    tz = get_league_timezone(timezone_name)
    return pytz.utc.localize(now).astimezone(tz).date()


def utc_offset_minutes(timezone_name: str, now: Optional[datetime] = None) -> int:
    """Offset of a zone at the given instant, local minus UTC"""
    now = now or utc_now()
    tz = get_league_timezone(timezone_name)
    offset = pytz.utc.localize(now).astimezone(tz).utcoffset()
    return int(offset.total_seconds() // 60)


def local_date_for_offset(now: datetime, offset_minutes: int) -> date:
    return (now + timedelta(minutes=offset_minutes)).date()


def ensure_valid_offset(offset_minutes: int) -> int:
    """Reject offsets no real zone uses (UTC-12:00 to UTC+14:00)"""
    if not (ScoringConstants.MIN_UTC_OFFSET_MINUTES <= offset_minutes <= ScoringConstants.MAX_UTC_OFFSET_MINUTES):
        raise ValidationError(
            f"UTC offset must be between {ScoringConstants.MIN_UTC_OFFSET_MINUTES} "
            f"and {ScoringConstants.MAX_UTC_OFFSET_MINUTES} minutes",
            "utc_offset_minutes",
        )
    return offset_minutes
