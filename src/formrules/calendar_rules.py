"""Weekend and holiday checks for date business rules.

The holiday table covers US federal holidays for 2025 only. Dates in any
other year are never holidays; that is a known coverage gap, not an
inferred rule, and the table is not extended automatically.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

US_FEDERAL_HOLIDAYS_2025: frozenset[date] = frozenset(
    date.fromisoformat(d)
    for d in (
        "2025-01-01",  # New Year's Day
        "2025-01-20",  # Martin Luther King, Jr. Day
        "2025-02-17",  # Washington's Birthday
        "2025-05-26",  # Memorial Day
        "2025-06-19",  # Juneteenth
        "2025-07-04",  # Independence Day
        "2025-09-01",  # Labor Day
        "2025-10-13",  # Columbus Day
        "2025-11-11",  # Veterans Day
        "2025-11-27",  # Thanksgiving Day
        "2025-12-25",  # Christmas Day
    )
)

# date.weekday(): Monday == 0
_SATURDAY = 5
_SUNDAY = 6


def to_calendar_date(value: Any) -> date | None:
    """Normalize a date-like value to its calendar date, or None if unparsable.

    Accepts date, datetime (time-of-day is dropped) and ISO date or
    datetime strings. The whole string must parse.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip()).date()
        except ValueError:
            return None
    return None


@dataclass(frozen=True)
class HolidayCalendar:
    """Read-only weekend/holiday table for one jurisdiction and year."""

    name: str
    holidays: frozenset[date]

    def is_weekend(self, value: Any) -> bool:
        day = to_calendar_date(value)
        if day is None:
            return False
        return day.weekday() in (_SATURDAY, _SUNDAY)

    def is_holiday(self, value: Any) -> bool:
        day = to_calendar_date(value)
        if day is None:
            return False
        return day in self.holidays

    def is_business_day(self, value: Any) -> bool:
        """True when the date is neither a weekend nor a holiday."""
        day = to_calendar_date(value)
        if day is None:
            return False
        return not (self.is_weekend(day) or self.is_holiday(day))


US_FEDERAL_2025 = HolidayCalendar(name="US-federal-2025", holidays=US_FEDERAL_HOLIDAYS_2025)


def is_weekend(value: Any) -> bool:
    """True if the date falls on a Saturday or Sunday."""
    return US_FEDERAL_2025.is_weekend(value)


def is_holiday(value: Any) -> bool:
    """True if the date is a 2025 US federal holiday."""
    return US_FEDERAL_2025.is_holiday(value)


def is_business_day(value: Any) -> bool:
    return US_FEDERAL_2025.is_business_day(value)
