"""Working-day resolution.

A working day starts at a boundary hour (06:00 by default) rather than at
midnight, so a sale at 01:30 belongs to the previous calendar date. All hours
are evaluated in one fixed reference timezone, never in the caller's local
zone.

Examples:
    >>> from datetime import datetime
    >>> working_day(datetime(2024, 3, 2, 1, 15))
    datetime.date(2024, 3, 1)
    >>> working_day(datetime(2024, 3, 2, 6, 0))
    datetime.date(2024, 3, 2)
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional, Union
from zoneinfo import ZoneInfo

from daily_ops.config import DEFAULT_BOUNDARY_HOUR, DEFAULT_TIMEZONE

TzLike = Union[str, ZoneInfo]

_TIME_ONLY_RE = re.compile(r"^\d{1,2}:\d{2}(:\d{2}(\.\d+)?)?$")
_DATE_ONLY_RE = re.compile(r"^(\d{4}-\d{2}-\d{2}|\d{8})$")
# Epoch values above this are milliseconds.
_EPOCH_MS_THRESHOLD = 10**11


def _zone(tz: TzLike) -> ZoneInfo:
    return tz if isinstance(tz, ZoneInfo) else ZoneInfo(tz)


def to_reference_time(ts: datetime, tz: TzLike = DEFAULT_TIMEZONE) -> datetime:
    """Express a datetime as wall-clock time in the reference zone.

    Naive datetimes are taken to be wall-clock already; aware ones are
    converted.
    """
    zone = _zone(tz)
    if ts.tzinfo is None:
        return ts.replace(tzinfo=zone)
    return ts.astimezone(zone)


def parse_timestamp(
    value: Any,
    fallback_date: Optional[date] = None,
    tz: TzLike = DEFAULT_TIMEZONE,
) -> Optional[datetime]:
    """Parse the many timestamp shapes found in raw documents.

    Accepts datetimes, dates (midnight), epoch seconds or milliseconds,
    ISO-8601 strings (a trailing ``Z`` is UTC), and time-only strings such
    as ``"19:00"``, which are combined with fallback_date.

    Args:
        value: Raw value.
        fallback_date: Date used for time-only strings.
        tz: Reference timezone.

    Returns:
        Aware datetime in the reference zone, or None if unparseable.

    """
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return to_reference_time(value, tz)
    if isinstance(value, date):
        return to_reference_time(datetime.combine(value, time()), tz)
    if isinstance(value, (int, float)):
        seconds = value / 1000 if abs(value) >= _EPOCH_MS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc).astimezone(_zone(tz))
        except (OverflowError, OSError, ValueError):
            return None

    s = str(value).strip()
    if _TIME_ONLY_RE.match(s):
        if fallback_date is None:
            return None
        hours, _, rest = s.partition(":")
        try:
            t = time.fromisoformat(f"{int(hours):02d}:{rest}")
        except ValueError:
            return None
        return to_reference_time(datetime.combine(fallback_date, t), tz)

    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(s)
    except ValueError:
        try:
            parsed = datetime.strptime(s, "%Y-%m-%d %H:%M:%S")
        except ValueError:
            return None
    return to_reference_time(parsed, tz)


def working_day(
    timestamp: datetime,
    boundary_hour: int = DEFAULT_BOUNDARY_HOUR,
    tz: TzLike = DEFAULT_TIMEZONE,
) -> date:
    """Return the working day a timestamp belongs to.

    Args:
        timestamp: Naive (reference wall-clock) or aware datetime.
        boundary_hour: Hour at which the working day starts.
        tz: Reference timezone.

    Returns:
        The calendar date of the working day.

    """
    local = to_reference_time(timestamp, tz)
    if local.hour < boundary_hour:
        return local.date() - timedelta(days=1)
    return local.date()


def hour_of_day(timestamp: datetime, tz: TzLike = DEFAULT_TIMEZONE) -> int:
    """Hour (0-23) of a timestamp in the reference zone."""
    return to_reference_time(timestamp, tz).hour


def business_day_bounds(
    day: date,
    boundary_hour: int = DEFAULT_BOUNDARY_HOUR,
    tz: TzLike = DEFAULT_TIMEZONE,
) -> tuple[datetime, datetime]:
    """Return the half-open [start, end) interval covered by a working day."""
    zone = _zone(tz)
    start = datetime.combine(day, time(hour=boundary_hour), tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), time(hour=boundary_hour), tzinfo=zone)
    return start, end


def is_date_only(value: Any) -> bool:
    """True for a date without a time part (``date``, ``"2024-03-01"``, ``"20240301"``)."""
    if isinstance(value, datetime):
        return False
    if isinstance(value, date):
        return True
    return isinstance(value, str) and bool(_DATE_ONLY_RE.match(value.strip()))


def is_time_only(value: Any) -> bool:
    """True for a clock time without a date, such as ``"19:00"``."""
    return isinstance(value, str) and bool(_TIME_ONLY_RE.match(value.strip()))


def resolve_moment(
    value: Any,
    day: Optional[date] = None,
    boundary_hour: int = DEFAULT_BOUNDARY_HOUR,
    tz: TzLike = DEFAULT_TIMEZONE,
) -> Optional[datetime]:
    """Parse a raw time value, anchoring partial values to a working day.

    A date without a time is the start of that working day, so it is never
    attributed to the day before. A clock time is placed inside working day
    `day`: times before the boundary hour fall on the next calendar date, so a
    line rung at 00:10 on a ticket opened at 23:50 stays on the same working
    day. Anything else is parsed with parse_timestamp.

    Args:
        value: Raw value.
        day: Working day that clock times belong to.
        boundary_hour: Hour at which a working day starts.
        tz: Reference timezone.

    Returns:
        Aware datetime in the reference zone, or None if unparseable.

    Examples:
        >>> resolve_moment("2024-03-01").hour
        6
        >>> resolve_moment("01:15", day=date(2024, 3, 1)).date()
        datetime.date(2024, 3, 2)

    """
    if is_date_only(value):
        if isinstance(value, date):
            return business_day_bounds(value, boundary_hour, tz)[0]
        s = value.strip().replace("-", "")
        try:
            parsed = datetime.strptime(s, "%Y%m%d").date()
        except ValueError:
            return None
        return business_day_bounds(parsed, boundary_hour, tz)[0]

    if is_time_only(value):
        if day is None:
            return None
        moment = parse_timestamp(value, fallback_date=day, tz=tz)
        if moment is not None and moment.hour < boundary_hour:
            moment = parse_timestamp(value, fallback_date=day + timedelta(days=1), tz=tz)
        return moment

    return parse_timestamp(value, tz=tz)
