from datetime import datetime, timedelta

import pytest

from fitleague.utils.errors import WindowExpiredError
from fitleague.utils.reupload_window import (
    ensure_within_window, is_within_window, reupload_deadline, window_anchor
)

IST = 330


def test_deadline_is_end_of_next_local_day():
    # 2024-03-10 22:00 IST
    anchor = datetime(2024, 3, 10, 16, 30)
    deadline = reupload_deadline(anchor, IST)
    local = deadline + timedelta(minutes=IST)
    assert local.date().isoformat() == "2024-03-11"
    assert (local.hour, local.minute, local.second) == (23, 59, 59)


def test_window_boundaries_with_offset():
    anchor = datetime(2024, 3, 10, 16, 30)
    last_instant = datetime(2024, 3, 11, 18, 29, 59, 999999)
    assert is_within_window(anchor, IST, last_instant)
    assert not is_within_window(anchor, IST, last_instant + timedelta(microseconds=1))


def test_offset_moves_the_local_day():
    # 20:00 UTC is already the next day in IST
    anchor = datetime(2024, 3, 10, 20, 0)
    assert reupload_deadline(anchor, 0) == datetime(2024, 3, 11, 23, 59, 59, 999999)
    assert reupload_deadline(anchor, IST) == datetime(2024, 3, 12, 18, 29, 59, 999999)


def test_review_time_anchors_the_window():
    created = datetime(2024, 3, 1, 9, 0)
    reviewed = datetime(2024, 3, 3, 9, 0)
    assert window_anchor(reviewed, created) == reviewed
    assert window_anchor(None, created) == created


def test_ensure_within_window_raises_after_deadline():
    anchor = datetime(2024, 3, 10, 12, 0)
    assert ensure_within_window(anchor, 0, datetime(2024, 3, 11, 23, 0)) == datetime(2024, 3, 11, 23, 59, 59, 999999)
    with pytest.raises(WindowExpiredError) as exc_info:
        ensure_within_window(anchor, 0, datetime(2024, 3, 12, 0, 0))
    assert exc_info.value.deadline == datetime(2024, 3, 11, 23, 59, 59, 999999)
