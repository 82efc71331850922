"""
Business-window oracle

Decides whether "now" falls inside the night window and when the next business
window opens, in the business timezone. Inputs and outputs are naive UTC.
"""

import logging
from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from ..config import BUSINESS_TIMEZONE, NIGHT_END_HOUR, NIGHT_START_HOUR

logger = logging.getLogger(__name__)


class BusinessHours:
    def __init__(
        self,
        tz_name: str = BUSINESS_TIMEZONE,
        night_start_hour: int = NIGHT_START_HOUR,
        night_end_hour: int = NIGHT_END_HOUR,
        skip_weekends: bool = True,
    ):
        self.tz = ZoneInfo(tz_name)
        self.night_start_hour = night_start_hour
        self.night_end_hour = night_end_hour
        self.skip_weekends = skip_weekends

    def _local(self, now: datetime) -> datetime:
        return now.replace(tzinfo=timezone.utc).astimezone(self.tz)

    def is_night_time(self, now: datetime) -> bool:
        hour = self._local(now).hour
        if self.night_start_hour > self.night_end_hour:
            # Window wraps midnight, e.g. 22 -> 7
            return hour >= self.night_start_hour or hour < self.night_end_hour
        return self.night_start_hour <= hour < self.night_end_hour

    def next_business_window_start(self, now: datetime) -> datetime:
        """Next opening at night_end_hour local time, skipping Saturday and Sunday"""
        local = self._local(now)
        candidate = datetime.combine(local.date(), time(self.night_end_hour), tzinfo=self.tz)
        if candidate <= local:
            candidate = datetime.combine(
                local.date() + timedelta(days=1), time(self.night_end_hour), tzinfo=self.tz
            )
        while self.skip_weekends and candidate.weekday() >= 5:
            candidate = datetime.combine(
                candidate.date() + timedelta(days=1), time(self.night_end_hour), tzinfo=self.tz
            )
        return candidate.astimezone(timezone.utc).replace(tzinfo=None)
