"""Calendar helpers used by period segmentation.

All helpers work on ``datetime.date``; a day is the smallest unit, so
"midnight" is simply the date itself.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Union

from dateutil.relativedelta import relativedelta

DATE_FMT = "%Y-%m-%d"

DateLike = Union[str, date, datetime]


def normalize_to_midnight(date_like: DateLike) -> date:
    """
    Convert a date, datetime or ISO string to a calendar date.
    Timezone-aware datetimes are converted to UTC first so the same instant
    always lands on the same day.
    """
    if isinstance(date_like, datetime):
        if date_like.tzinfo is not None:
            date_like = date_like.astimezone(timezone.utc)
        return date_like.date()
    if isinstance(date_like, date):
        return date_like
    if isinstance(date_like, str):
        text = date_like.strip()
        if "T" in text or " " in text:
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            return normalize_to_midnight(datetime.fromisoformat(text))
        return datetime.strptime(text, DATE_FMT).date()
    raise TypeError(f"Unsupported type for date: {type(date_like)}")


def format_date(value: date) -> str:
    return value.strftime(DATE_FMT)


def add_days(value: date, days: int) -> date:
    return value + timedelta(days=days)


def difference_in_days(later: date, earlier: date) -> int:
    return (later - earlier).days


def get_year(value: date) -> int:
    return value.year


def get_quarter(value: date) -> int:
    return (value.month - 1) // 3 + 1


def start_of_month(value: date) -> date:
    return value.replace(day=1)


def end_of_month(value: date) -> date:
    # An absolute day clamps to the month length and never leaves the month.
    return value + relativedelta(day=31)


def start_of_quarter(value: date) -> date:
    return date(value.year, 3 * (get_quarter(value) - 1) + 1, 1)


def end_of_quarter(value: date) -> date:
    return end_of_month(start_of_quarter(value) + relativedelta(months=2))


def start_of_year(value: date) -> date:
    return date(value.year, 1, 1)


def end_of_year(value: date) -> date:
    return date(value.year, 12, 31)
