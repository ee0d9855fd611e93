"""Time-of-day parsing and wall-clock boundary helpers."""

from __future__ import annotations

import datetime as dt
import re
from typing import Callable
from zoneinfo import ZoneInfo

Now = Callable[[], dt.datetime]

_FLEXIBLE_24H = re.compile(r"^(?P<hour>\d{1,2}):(?P<minute>\d{2})$")


def parse_time_of_day(text: str, is_24_hour: bool = True) -> dt.time:
    """Parses ``H:MM``/``HH:MM`` (or ``hh:mm AM``) into a ``datetime.time``.

    The 12-hour form is tried first when ``is_24_hour`` is false; the
    flexible 24-hour form is always accepted as a fallback.
    """
    if text is None:
        raise ValueError("time of day is missing")
    value = text.strip()
    if not is_24_hour:
        try:
            return dt.datetime.strptime(value.upper(), "%I:%M %p").time()
        except ValueError:
            pass
    match = _FLEXIBLE_24H.match(value)
    if not match:
        raise ValueError(f"invalid time of day {text!r}, expected HH:MM")
    hour, minute = int(match.group("hour")), int(match.group("minute"))
    if hour > 23 or minute > 59:
        raise ValueError(f"invalid time of day {text!r}")
    return dt.time(hour, minute)


def now_in(tz: ZoneInfo) -> Now:
    """Returns a zero-argument clock reading the current time in ``tz``."""
    return lambda: dt.datetime.now(tz)


def today_at(time_of_day: dt.time, now: dt.datetime) -> dt.datetime:
    """The instant ``time_of_day`` on the calendar day of ``now`` (same zone)."""
    return now.replace(hour=time_of_day.hour, minute=time_of_day.minute,
                       second=0, microsecond=0)


def next_occurrence(time_of_day: dt.time, now: dt.datetime) -> dt.datetime:
    """Like :func:`today_at`, but rolled to tomorrow when already past."""
    instant = today_at(time_of_day, now)
    if instant < now:
        instant += dt.timedelta(days=1)
    return instant
