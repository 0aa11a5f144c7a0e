"""Utility functions for date manipulation."""

import calendar
from datetime import date, datetime, time, timedelta

import pytz

from src.common.config.settings import settings


def utc_now() -> datetime:
    """Current UTC time as a naive datetime, the form stored in MySQL DATETIME columns."""
    return datetime.now(pytz.utc).replace(tzinfo=None)


def local_today() -> date:
    """Today's date in the configured business timezone."""
    return datetime.now(pytz.timezone(settings.TIMEZONE)).date()


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)


def to_datetime(value: date | datetime) -> datetime:
    """Promotes a plain date to midnight and converts aware datetimes to naive UTC."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(pytz.utc).replace(tzinfo=None)
        return value
    return start_of_day(value)


def day_range_bounds(start_date: date | None, end_date: date | None) -> tuple[datetime | None, datetime | None]:
    """
    Converts an inclusive calendar range into [start, end) datetime bounds.

    The end bound is the start of the day after end_date so every movement on
    the last day is included.
    """
    start = start_of_day(_as_date(start_date)) if start_date is not None else None
    end = start_of_day(_as_date(end_date) + timedelta(days=1)) if end_date is not None else None
    return start, end


def subtract_months(day: date, months: int = 1) -> date:
    """Shifts a date back by whole months, clamping to the last day of the target month."""
    month_index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value
