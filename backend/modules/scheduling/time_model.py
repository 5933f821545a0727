"""
modules/scheduling/time_model.py
---------------------------------
Wall-clock ↔ minute-offset conversion and interval arithmetic.

All engine components work in integer minutes since midnight. Parsing never
raises: malformed input yields None and the caller excludes the record from
whatever check it was running.
"""

from __future__ import annotations
import re
from typing import Optional

import config
from schemas.scheduling import TimeInterval

_LAST_MINUTE: int = config.MINUTES_PER_DAY - 1
_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*$")


def parse_time_to_minutes(value: object) -> Optional[int]:
    """Parse "HH:MM" or "HH:MM:SS" into minutes since midnight (seconds dropped)."""
    if not isinstance(value, str):
        return None
    match = _TIME_RE.match(value)
    if match is None:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    seconds = int(match.group(3)) if match.group(3) else 0
    if hours > 23 or minutes > 59 or seconds > 59:
        return None
    return hours * 60 + minutes


def minutes_to_time_string(minutes: float) -> str:
    """Format minutes since midnight as "HH:MM:SS", clamped into [0, 1439]."""
    clamped = max(0, min(_LAST_MINUTE, int(round(minutes))))
    return f"{clamped // 60:02d}:{clamped % 60:02d}:00"


def interval_for(start_time: Optional[str], end_time: Optional[str]) -> Optional[TimeInterval]:
    """Return the interval for a start/end pair, or None if either is unusable."""
    start = parse_time_to_minutes(start_time)
    end = parse_time_to_minutes(end_time)
    if start is None or end is None or end <= start:
        return None
    return TimeInterval(start, end)


def intervals_overlap(a: TimeInterval, b: TimeInterval) -> bool:
    return a.overlaps(b)


def duration_minutes(start_time: Optional[str], end_time: Optional[str]) -> int:
    """
    Minutes between two wall-clock times. An end before the start is read as
    an overnight activity ending the next day. Returns 0 on bad input.
    """
    start = parse_time_to_minutes(start_time)
    end = parse_time_to_minutes(end_time)
    if start is None or end is None:
        return 0
    if end < start:
        return (config.MINUTES_PER_DAY - start) + end
    return end - start


def format_duration(minutes: int) -> str:
    """Human-readable duration: "45m", "3h", "2h 30m"."""
    if minutes < 0:
        return "0m"
    hours, mins = divmod(int(minutes), 60)
    if hours == 0:
        return f"{mins}m"
    if mins == 0:
        return f"{hours}h"
    return f"{hours}h {mins}m"


def format_hour(hour: int) -> str:
    """12-hour label for a grid row, e.g. 0 → "12 AM", 15 → "3 PM"."""
    if hour == 0:
        return "12 AM"
    if hour == 12:
        return "12 PM"
    if hour < 12:
        return f"{hour} AM"
    return f"{hour - 12} PM"
