"""
Common Value Objects

Value objects used across the booking and auction domains:
- DateRange: An inclusive range of calendar dates (first day to last day)
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterator

from shared.domain.base import ValueObject


@dataclass(frozen=True)
class DateRange(ValueObject):
    """
    Date range value object

    Represents a range from start_date to end_date, both inclusive.
    A booking from 2024-03-01 to 2024-03-01 occupies exactly one day.
    """
    start_date: date
    end_date: date

    def __post_init__(self):
        if self.end_date < self.start_date:
            raise ValueError(f"End date ({self.end_date}) must not be before start date ({self.start_date})")

    @property
    def days(self) -> int:
        """Inclusive number of calendar days covered by the range."""
        return (self.end_date - self.start_date).days + 1

    def overlaps_with(self, other: 'DateRange') -> bool:
        """
        Check if this range overlaps with another

        Both endpoints are inclusive, so ranges sharing a single day overlap,
        while ranges that merely touch (one ends the day before the other
        starts) do not.

        Examples:
            - DateRange(1, 5) overlaps with DateRange(5, 9) -> True
            - DateRange(1, 5) overlaps with DateRange(6, 9) -> False (adjacent)
        """
        if not isinstance(other, DateRange):
            raise TypeError("Can only check overlap with another DateRange")

        return not (self.end_date < other.start_date or self.start_date > other.end_date)

    def is_adjacent_to(self, other: 'DateRange') -> bool:
        """True when ``other`` ends the day before this range starts or starts the day after it ends."""
        one_day = timedelta(days=1)
        return (other.end_date == self.start_date - one_day
                or other.start_date == self.end_date + one_day)

    def contains(self, check_date: date) -> bool:
        """Check if a date is within this range (inclusive on both ends)"""
        return self.start_date <= check_date <= self.end_date

    def iter_days(self) -> Iterator[date]:
        """Yield every calendar day of the range in order."""
        current = self.start_date
        while current <= self.end_date:
            yield current
            current += timedelta(days=1)

    def widened_back(self, days: int) -> 'DateRange':
        """The same range with its start moved ``days`` earlier (trailing window)."""
        return DateRange(self.start_date - timedelta(days=days), self.end_date)

    @classmethod
    def quarter_of(cls, day: date) -> 'DateRange':
        """The calendar quarter containing ``day``."""
        first_month = 3 * ((day.month - 1) // 3) + 1
        start = date(day.year, first_month, 1)
        if first_month == 10:
            next_quarter = date(day.year + 1, 1, 1)
        else:
            next_quarter = date(day.year, first_month + 3, 1)
        return cls(start, next_quarter - timedelta(days=1))

    def __len__(self) -> int:
        return self.days

    def __str__(self):
        return f"{self.start_date.isoformat()} - {self.end_date.isoformat()}"

    def __repr__(self):
        return f"DateRange({self.start_date}, {self.end_date})"
