from datetime import datetime, timedelta

import pytest

from interpreter_booking.utils.booking_time import (
    convert_to_hours_mins,
    format_due,
    format_elapsed,
    overlaps,
    session_time_text,
    will_expire_at,
)

CREATED = datetime(2026, 3, 10, 10, 0)


@pytest.mark.parametrize(
    "hours_ahead, expected",
    [
        (2, CREATED + timedelta(minutes=90)),
        (24, CREATED + timedelta(minutes=90)),
        (25, CREATED + timedelta(hours=16)),
        (72, CREATED + timedelta(hours=16)),
        (80, CREATED + timedelta(hours=80)),
        (90, CREATED + timedelta(hours=90)),
        (120, CREATED + timedelta(hours=72)),
    ],
)
def test_will_expire_at_windows(hours_ahead, expected):
    """Acceptance window shrinks with notice; far bookings expire two days before due"""
    due = CREATED + timedelta(hours=hours_ahead)
    assert will_expire_at(due, CREATED) == expected


def test_convert_to_hours_mins():
    assert convert_to_hours_mins(45) == "45min"
    assert convert_to_hours_mins(60) == "1h"
    assert convert_to_hours_mins(90) == "01h 30min"


def test_format_elapsed_clamps_negative_spans():
    start = datetime(2026, 3, 10, 10, 0)
    assert format_elapsed(start, start + timedelta(hours=1, minutes=5, seconds=7)) == "01:05:07"
    assert format_elapsed(start, start - timedelta(minutes=5)) == "00:00:00"


def test_session_time_text_is_localized():
    assert session_time_text("01:30:00") == "01 tim 30 min"


def test_overlaps_is_half_open():
    """A session ending exactly when the next one starts does not overlap it"""
    start = datetime(2026, 3, 12, 9, 0)
    assert not overlaps(start, 60, start + timedelta(minutes=60), 30)
    assert overlaps(start, 60, start + timedelta(minutes=59), 30)
    assert overlaps(start + timedelta(minutes=30), 10, start, 60)


def test_format_due_uses_business_timezone():
    # 13:00 UTC is 14:00 in Stockholm in March (CET)
    assert format_due(datetime(2026, 3, 12, 13, 0)) == "2026-03-12 14:00"
