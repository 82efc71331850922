from datetime import datetime

import pytest

from interpreter_booking.services.business_hours import BusinessHours


@pytest.fixture
def hours():
    return BusinessHours(tz_name="Europe/Stockholm", night_start_hour=22, night_end_hour=7)


@pytest.mark.parametrize(
    "utc, night",
    [
        (datetime(2026, 3, 10, 21, 30), True),  # 22:30 local
        (datetime(2026, 3, 10, 20, 59), False),  # 21:59 local
        (datetime(2026, 3, 11, 5, 30), True),  # 06:30 local
        (datetime(2026, 3, 11, 6, 0), False),  # 07:00 local
        (datetime(2026, 3, 11, 12, 0), False),
    ],
)
def test_is_night_time(hours, utc, night):
    assert hours.is_night_time(utc) is night


def test_next_window_is_next_morning_on_weekdays(hours):
    assert hours.next_business_window_start(datetime(2026, 3, 10, 21, 30)) == datetime(2026, 3, 11, 6, 0)


def test_next_window_same_morning_after_midnight(hours):
    assert hours.next_business_window_start(datetime(2026, 3, 11, 3, 0)) == datetime(2026, 3, 11, 6, 0)


def test_next_window_skips_weekend(hours):
    """Friday night and Saturday morning both wait for Monday 07:00"""
    monday_open = datetime(2026, 3, 16, 6, 0)
    assert hours.next_business_window_start(datetime(2026, 3, 13, 21, 30)) == monday_open
    assert hours.next_business_window_start(datetime(2026, 3, 14, 5, 0)) == monday_open


def test_next_window_handles_daylight_saving(hours):
    # Summer time starts 2026-03-29; 07:00 CEST is 05:00 UTC
    assert hours.next_business_window_start(datetime(2026, 3, 30, 20, 30)) == datetime(2026, 3, 31, 5, 0)


def test_weekends_can_be_business_days():
    hours = BusinessHours(skip_weekends=False)
    assert hours.next_business_window_start(datetime(2026, 3, 13, 21, 30)) == datetime(2026, 3, 14, 6, 0)
