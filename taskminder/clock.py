"""Calendar and wall-clock helpers.

Dates are plain ``datetime.date`` values and scheduled times are
``datetime.time`` values in local wall-clock time. Weekdays use the
0=Sunday .. 6=Saturday convention throughout taskminder.
"""

from __future__ import annotations

import datetime as dt
import re
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")

WEEKDAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


def format_date(value: dt.date) -> str:
    """Return ``YYYY-MM-DD``."""
    return value.isoformat()


def parse_date(value: str) -> dt.date:
    """Parse ``YYYY-MM-DD``."""
    return dt.date.fromisoformat(value)


def format_time(value: dt.time) -> str:
    """Return ``HH:MM``."""
    return value.strftime("%H:%M")


def parse_time(value: str) -> dt.time:
    """Parse an ``HH:MM`` string into a time of day.

    Raises:
        ValueError: If the string is not a valid 24h time.
    """
    match = _TIME_RE.match(value.strip())
    if not match:
        raise ValueError(f"Invalid time of day: {value!r} (expected HH:MM)")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError(f"Invalid time of day: {value!r}")
    return dt.time(hours, minutes)


def weekday(value: dt.date) -> int:
    """Day of week with 0=Sunday .. 6=Saturday."""
    return value.isoweekday() % 7


def combine(day: dt.date, time_of_day: dt.time, tzinfo: Optional[dt.tzinfo] = None) -> dt.datetime:
    """Build the instant a time of day falls on for a given date."""
    return dt.datetime.combine(day, time_of_day, tzinfo=tzinfo)


def describe_days(days_of_week: Iterable[int]) -> str:
    """Human readable list such as ``Mon, Wed, Fri``."""
    return ", ".join(WEEKDAY_NAMES[d] for d in sorted(set(days_of_week)))


class Clock:
    """Source of the current local time.

    With no zone configured the system local zone is used.
    """

    def __init__(self, tz: Optional[ZoneInfo] = None) -> None:
        self._tz = tz

    @property
    def tzinfo(self) -> Optional[dt.tzinfo]:
        return self._tz

    def now(self) -> dt.datetime:
        if self._tz is not None:
            return dt.datetime.now(self._tz)
        return dt.datetime.now().astimezone()

    def today(self) -> dt.date:
        return self.now().date()
