"""
Date Arithmetic Module

Period arithmetic used by schedule generation and fee calculation, plus the
injectable clock every "as of today" computation reads from.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone
from typing import Optional
import calendar

from .exceptions import UnsupportedUnitError


def add_months(start_date: date, months: int) -> date:
    """Add calendar months, clamping to the last day of the target month"""
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def add_periods(start_date: date, frequency: str, periods: int) -> date:
    """
    Advance a date by a number of repayment periods

    Args:
        start_date: Date to advance from
        frequency: "daily", "weekly" or "monthly" (enum values accepted)
        periods: Number of periods

    Returns:
        The advanced date. Monthly periods are calendar months.
    """
    frequency = getattr(frequency, 'value', frequency)

    if frequency == "daily":
        return start_date + timedelta(days=periods)
    elif frequency == "weekly":
        return start_date + timedelta(weeks=periods)
    elif frequency == "monthly":
        return add_months(start_date, periods)
    else:
        raise UnsupportedUnitError(f"Unsupported repayment frequency: {frequency}")


def add_term(start_date: date, term_length: int, term_unit: str) -> date:
    """End date of a term of ``term_length`` days, weeks or calendar months"""
    term_unit = getattr(term_unit, 'value', term_unit)

    if term_unit == "days":
        return start_date + timedelta(days=term_length)
    elif term_unit == "weeks":
        return start_date + timedelta(weeks=term_length)
    elif term_unit == "months":
        return add_months(start_date, term_length)
    else:
        raise UnsupportedUnitError(f"Unsupported term unit: {term_unit}")


def days_between(start: date, end: date) -> int:
    """Whole days from ``start`` to ``end`` (negative if ``end`` is earlier)"""
    return (end - start).days


def to_date(value) -> date:
    """Coerce a date, datetime or ISO string to a date"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    raise TypeError(f"Cannot convert {type(value).__name__} to date")


class Clock(ABC):
    """Source of the current business date"""

    @abstractmethod
    def today(self) -> date:
        """Current date"""
        pass

    def now(self) -> datetime:
        """Current timestamp in UTC"""
        return datetime.now(timezone.utc)


class SystemClock(Clock):
    """Wall clock, UTC calendar date"""

    def today(self) -> date:
        return datetime.now(timezone.utc).date()


class FixedClock(Clock):
    """Clock pinned to a given date, for tests and back-dated batch runs"""

    def __init__(self, fixed_date: date, fixed_time: Optional[datetime] = None):
        self._date = fixed_date
        self._time = fixed_time

    def today(self) -> date:
        return self._date

    def now(self) -> datetime:
        if self._time is not None:
            return self._time
        return super().now()

    def set(self, new_date: date) -> None:
        """Move the clock"""
        self._date = new_date

    def advance(self, days: int = 1) -> date:
        """Move the clock forward and return the new date"""
        self._date = self._date + timedelta(days=days)
        return self._date
