"""Day-granularity date helpers.

All comparisons are on naive calendar dates. The only function that reads
the wall clock is `local_today`; everything else takes `today` explicitly.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Optional, Union
from zoneinfo import ZoneInfo

DateLike = Union[date, datetime, str]

DATE_FORMAT = "%Y-%m-%d"


def parse_date(value: DateLike, tz: Optional[tzinfo] = None) -> date:
    """Normalize a date, datetime or YYYY-MM-DD string to a calendar date.

    Longer strings must be complete ISO datetimes. Aware datetimes are converted to `tz` (UTC when not given) before the
    date is taken; naive datetimes are read as already-local.
    """
    if isinstance(value, str):
        try:
            if len(value) == 10:
                return datetime.strptime(value, DATE_FORMAT).date()
            value = datetime.fromisoformat(value)
        except ValueError:
            raise ValueError(f"Invalid date '{value}', expected YYYY-MM-DD")
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(tz or timezone.utc).date()
        return value.date()
    if isinstance(value, date):
        return value
    raise TypeError(f"Unsupported date value: {value!r}")


def to_date_string(value: DateLike, tz: Optional[tzinfo] = None) -> str:
    return parse_date(value, tz).strftime(DATE_FORMAT)


def resolve_timezone(name: Optional[str], default: str = "UTC") -> tzinfo:
    """Look up an IANA zone, falling back to `default` for unknown names."""
    try:
        return ZoneInfo(name or default)
    except (KeyError, ValueError):
        return ZoneInfo(default)


def local_today(tz_name: Optional[str] = None, now: Optional[datetime] = None) -> date:
    """Today's calendar date in the caller's timezone."""
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(resolve_timezone(tz_name)).date()


def previous_day(value: DateLike) -> date:
    return parse_date(value) - timedelta(days=1)


def duration(start_date: DateLike, end_date: DateLike) -> int:
    """Inclusive day count: a one-day period has duration 1."""
    return (parse_date(end_date) - parse_date(start_date)).days + 1


def days_remaining(end_date: DateLike, today: DateLike) -> int:
    """Whole days from today until end_date; 0 when end_date is today or past."""
    return max(0, (parse_date(end_date) - parse_date(today)).days)


def is_in_range(value: DateLike, start_date: DateLike, end_date: DateLike) -> bool:
    """Inclusive range check on YYYY-MM-DD strings (lexicographic == chronological)."""
    day = to_date_string(value)
    return to_date_string(start_date) <= day <= to_date_string(end_date)


def iter_days(start_date: DateLike, end_date: DateLike):
    """Yield each calendar date in [start_date, end_date]."""
    current = parse_date(start_date)
    last = parse_date(end_date)
    while current <= last:
        yield current
        current += timedelta(days=1)
