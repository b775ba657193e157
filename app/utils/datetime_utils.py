from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta


def naive_utc_now() -> datetime:
    """
    Get current UTC datetime as a naive datetime (no timezone info).
    This is what every DateTime column in the store holds.

    Returns:
        datetime: Current UTC datetime without timezone info
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    """
    Convert a datetime object to naive UTC (no timezone info).

    Args:
        dt: Datetime object to convert

    Returns:
        datetime: Naive UTC datetime
    """
    if dt.tzinfo is None:
        # Already naive, assume it's UTC
        return dt
    utc_dt = dt.astimezone(timezone.utc)
    return utc_dt.replace(tzinfo=None)


def coerce_naive_utc(value: Union[datetime, date, str, None]) -> Optional[datetime]:
    """
    Best-effort conversion of a stored timestamp into naive UTC.

    Strings are parsed with dateutil; anything unparsable returns None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            return to_naive_utc(date_parser.parse(value))
        except (ValueError, OverflowError):
            return None
    return None


def add_months(dt: datetime, months: int) -> datetime:
    """Calendar-aware month arithmetic (Aug 31 + 6 months -> Feb 28/29)."""
    return dt + relativedelta(months=months)


def add_calendar_days(day: date, days: int) -> date:
    return day + timedelta(days=days)


def add_business_days(day: date, days: int) -> date:
    """
    Move forward `days` working days, skipping Saturdays and Sundays.

    A start date falling on a weekend is counted from the following Monday.
    """
    current = day
    remaining = max(days, 0)
    while remaining > 0:
        current += timedelta(days=1)
        if current.weekday() < 5:
            remaining -= 1
    while current.weekday() >= 5:
        current += timedelta(days=1)
    return current
