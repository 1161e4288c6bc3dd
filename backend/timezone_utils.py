"""
Timezone utilities for local date/time handling.

Reporting windows ("today", "this week", "this year") start at local
midnight, so they are computed in the platform's configured timezone rather
than the server's UTC clock.
"""
from datetime import date, datetime, timedelta
from typing import Optional
import pytz


def get_timezone(tz_name: str = "Africa/Kigali"):
    """
    Get pytz timezone object.

    Args:
        tz_name: Timezone string (e.g., "Africa/Kigali")

    Returns:
        pytz timezone object, UTC when the name is unknown
    """
    try:
        return pytz.timezone(tz_name)
    except pytz.exceptions.UnknownTimeZoneError:
        return pytz.UTC


def to_local(dt: datetime, tz_name: str = "Africa/Kigali") -> datetime:
    """
    Express a datetime in the local timezone.

    Naive datetimes are read as local wall-clock time (the way a browser
    parses an ISO string without an offset).
    """
    tz = get_timezone(tz_name)
    if dt.tzinfo is None:
        return tz.localize(dt)
    return dt.astimezone(tz)


def local_now(tz_name: str = "Africa/Kigali", now: Optional[datetime] = None) -> datetime:
    """Current time in the local timezone. `now` overrides the clock."""
    if now is None:
        now = datetime.utcnow().replace(tzinfo=pytz.UTC)
    return to_local(now, tz_name)


def _midnight(day: date, tz) -> datetime:
    naive_midnight = datetime.combine(day, datetime.min.time())
    if hasattr(tz, "localize"):
        return tz.localize(naive_midnight)
    return naive_midnight.replace(tzinfo=tz)


def start_of_day(moment: datetime) -> datetime:
    """Local midnight of the day containing `moment` (must be tz-aware)"""
    return _midnight(moment.date(), moment.tzinfo)


def start_of_week(moment: datetime) -> datetime:
    """
    Monday 00:00 of the week containing `moment`.
    Sunday is the last day of the week that started the previous Monday.
    """
    monday = moment.date() - timedelta(days=moment.weekday())
    return _midnight(monday, moment.tzinfo)


def start_of_year(moment: datetime) -> datetime:
    """January 1st, 00:00 of the year containing `moment`"""
    return _midnight(date(moment.year, 1, 1), moment.tzinfo)
