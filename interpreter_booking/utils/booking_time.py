"""
Booking time helpers

All timestamps are stored as naive UTC datetimes.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable
from zoneinfo import ZoneInfo

from ..config import BUSINESS_TIMEZONE
from ..i18n import translate

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def will_expire_at(due: datetime, created_at: datetime) -> datetime:
    """
    When an unaccepted booking times out.

    Short-notice bookings get a short acceptance window; bookings far in the
    future expire two days before they are due.
    """
    gap = due - created_at
    if gap <= timedelta(hours=24):
        return created_at + timedelta(minutes=90)
    if gap <= timedelta(hours=72):
        return created_at + timedelta(hours=16)
    if gap <= timedelta(hours=90):
        return due
    return due - timedelta(hours=48)


def convert_to_hours_mins(minutes: int) -> str:
    """Format a duration in minutes as e.g. '45min', '1h' or '01h 30min'"""
    if minutes < 60:
        return f"{minutes}min"
    if minutes == 60:
        return "1h"
    hours, mins = divmod(minutes, 60)
    return f"{hours:02d}h {mins:02d}min"


def format_elapsed(start: datetime, end: datetime) -> str:
    """Elapsed time between two timestamps as H:M:S (negative spans clamp to zero)"""
    seconds = max(int((end - start).total_seconds()), 0)
    hours, rest = divmod(seconds, 3600)
    mins, secs = divmod(rest, 60)
    return f"{hours:02d}:{mins:02d}:{secs:02d}"


def session_time_text(session_time: str) -> str:
    """'01:30:00' -> '01 tim 30 min'"""
    parts = session_time.split(":")
    hours = parts[0] if parts else "0"
    mins = parts[1] if len(parts) > 1 else "0"
    return translate("session.elapsed", {"hours": hours, "minutes": mins})


def overlaps(a_start: datetime, a_minutes: int, b_start: datetime, b_minutes: int) -> bool:
    """Half-open interval overlap of two sessions"""
    a_end = a_start + timedelta(minutes=a_minutes)
    b_end = b_start + timedelta(minutes=b_minutes)
    return a_start < b_end and a_end > b_start


def to_local(value: datetime, tz_name: str = BUSINESS_TIMEZONE) -> datetime:
    """Naive UTC -> aware local time in the business timezone"""
    return value.replace(tzinfo=timezone.utc).astimezone(ZoneInfo(tz_name))


def format_due(due: datetime) -> str:
    return to_local(due).strftime("%Y-%m-%d %H:%M")
