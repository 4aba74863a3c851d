"""
Resubmission window for daily entries.

An entry may be replaced until the end of the calendar day after it was
reviewed (or created, while unreviewed), measured in the submitter's local
time. A rejection at 2024-03-10 22:00 local can be fixed until
2024-03-11 23:59:59.999999 local.
"""

from datetime import datetime, time, timedelta
from typing import Optional

from fitleague.config import Config
from fitleague.utils.errors import WindowExpiredError


def window_anchor(reviewed_at: Optional[datetime], created_at: datetime) -> datetime:
    """The instant the window is measured from"""
    return reviewed_at or created_at


def reupload_deadline(anchor: datetime, utc_offset_minutes: int = 0) -> datetime:
    """
    Last instant (naive UTC) a replacement is accepted.

    Args:
        anchor: Naive UTC review or creation time
        utc_offset_minutes: Submitter's offset, local minus UTC

    Returns:
        Naive UTC datetime of 23:59:59.999999 local on the following day
    """
    offset = timedelta(minutes=utc_offset_minutes)
    local_anchor = anchor + offset
    last_day = local_anchor.date() + timedelta(days=Config.REUPLOAD_GRACE_DAYS)
    return datetime.combine(last_day, time.max) - offset


def is_within_window(anchor: datetime, utc_offset_minutes: int, now: datetime) -> bool:
    return now <= reupload_deadline(anchor, utc_offset_minutes)


def ensure_within_window(anchor: datetime, utc_offset_minutes: int, now: datetime):
    """Raise WindowExpiredError once the deadline has passed"""
    deadline = reupload_deadline(anchor, utc_offset_minutes)
    if now > deadline:
        raise WindowExpiredError(deadline)
    return deadline
