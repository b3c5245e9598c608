"""
Working-day calendar math.

A working day is any Monday through Friday. Holidays are not modelled.
"""

from datetime import date, datetime, timedelta
from typing import Union

DateLike = Union[date, datetime]

ONE_DAY = timedelta(days=1)


def _as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def is_working_day(day: DateLike) -> bool:
    """Monday (0) through Friday (4)."""
    return _as_date(day).weekday() < 5


def count_working_days(start: DateLike, end: DateLike) -> int:
    """
    Count working days in the inclusive range ``start``..``end``.

    Datetimes are truncated to their calendar date. A range whose end lies
    before its start is empty and yields 0, never a negative count.
    """
    current = _as_date(start)
    last = _as_date(end)

    working_days = 0
    while current <= last:
        if is_working_day(current):
            working_days += 1
        current += ONE_DAY

    return working_days
