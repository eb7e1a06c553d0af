"""
Date-range helpers for rental periods.

Reservations use inclusive calendar ranges ("2025-03-01" to "2025-03-03"
is three days). All arithmetic happens on ``datetime.date`` values, which
carry no time zone, so every day is exactly one UTC day long.
"""

import re
from datetime import date, timedelta
from typing import List, Union

from .exceptions import InvalidDateError

ONE_DAY = timedelta(days=1)

_ISO_DATE = re.compile(r'^\d{4}-\d{2}-\d{2}$')

DateLike = Union[str, date]


def parse_iso_date(value: DateLike) -> date:
    """Return ``value`` as a date; strings must be ``YYYY-MM-DD``."""
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not _ISO_DATE.match(value):
        raise InvalidDateError(f'Expected a YYYY-MM-DD date, got {value!r}')
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise InvalidDateError(f'Not a calendar date: {value!r}')


def to_iso(value: DateLike) -> str:
    return parse_iso_date(value).isoformat()


def next_day(value: DateLike) -> str:
    return (parse_iso_date(value) + ONE_DAY).isoformat()


def previous_day(value: DateLike) -> str:
    return (parse_iso_date(value) - ONE_DAY).isoformat()


def diff_days_exclusive(start: DateLike, end_exclusive: DateLike) -> int:
    """Whole days from ``start`` up to (not including) ``end_exclusive``; never negative."""
    delta = parse_iso_date(end_exclusive) - parse_iso_date(start)
    return max(0, delta.days)


def enumerate_inclusive(first: DateLike, last: DateLike) -> List[str]:
    """Every ISO date from ``first`` to ``last`` inclusive; empty when ``last < first``."""
    current = parse_iso_date(first)
    end = parse_iso_date(last)
    days = []
    while current <= end:
        days.append(current.isoformat())
        current += ONE_DAY
    return days


def rental_days(start: DateLike, end_inclusive: DateLike) -> int:
    """Billable days for an inclusive rental range."""
    return diff_days_exclusive(start, next_day(end_inclusive))
