from __future__ import annotations

from datetime import date, timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

_ONE_DAY = timedelta(days=1)
_SATURDAY = 5


def is_business_day(day: date) -> bool:
    """Return True for Monday through Friday."""
    return day.weekday() < _SATURDAY


def iter_business_days(start: date, end: date) -> Iterator[date]:
    """Yield each weekday in the inclusive range [start, end]."""
    current = start
    while current <= end:
        if is_business_day(current):
            yield current
        current += _ONE_DAY


def count_business_days(start: date, end: date) -> int:
    """Count weekdays in the inclusive range [start, end].

    Weekend-only ranges and reversed ranges count as 0. The same function sizes
    the debit at submission and the credit on rejection, so both amounts match.
    """
    return sum(1 for _ in iter_business_days(start, end))
