"""Partition a day range into calendar year, quarter or month segments."""

from __future__ import annotations

from datetime import date
from typing import Dict, List, Tuple

from invoice_split.core.dates import (
    add_days,
    difference_in_days,
    end_of_month,
    end_of_quarter,
    end_of_year,
    get_quarter,
    get_year,
)
from invoice_split.schemas.split import PeriodSegment, SplitPeriod


def period_identifier(day: date, split_period: SplitPeriod) -> str:
    """Sortable key of the period containing ``day``: ``YYYY``, ``YYYY-Qn`` or ``YYYY-MM``."""
    year = get_year(day)
    if split_period == "monthly":
        return f"{year:04d}-{day.month:02d}"
    if split_period == "quarterly":
        return f"{year:04d}-Q{get_quarter(day)}"
    return f"{year:04d}"


def end_of_period(day: date, split_period: SplitPeriod) -> date:
    """Last day of the period containing ``day``."""
    if split_period == "monthly":
        return end_of_month(day)
    if split_period == "quarterly":
        return end_of_quarter(day)
    return end_of_year(day)


def segment_periods(
    start: date,
    effective_end: date,
    split_period: SplitPeriod,
) -> Tuple[List[PeriodSegment], int]:
    """
    Walk [start, effective_end) period by period.

    Returns the segments ordered by identifier and the total number of days.
    Each segment's proportion is its share of the total; an empty range yields
    no segments.
    """
    total_days = difference_in_days(effective_end, start)
    if total_days <= 0:
        return [], 0

    # Walk inclusive period ends so ranges ending on date.max stay representable.
    last_day = add_days(effective_end, -1)
    days_by_period: Dict[str, int] = {}
    cursor = start
    while True:
        identifier = period_identifier(cursor, split_period)
        segment_last = min(last_day, end_of_period(cursor, split_period))
        days = difference_in_days(segment_last, cursor) + 1
        days_by_period[identifier] = days_by_period.get(identifier, 0) + days
        if segment_last >= last_day:
            break
        cursor = add_days(segment_last, 1)

    segments = [
        PeriodSegment(
            periodIdentifier=identifier,
            days=days,
            proportion=days / total_days,
        )
        for identifier, days in sorted(days_by_period.items())
    ]
    return segments, total_days
