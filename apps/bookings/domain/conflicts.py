"""
Booking Conflict Index

The first line of defense against double bookings: given an asset and a
date range, which pending/approved bookings already hold any of those days?

Strategy (Defense in Depth):
1. Domain check: BookingConflictIndex.find_conflicts() over loaded bookings
2. Storage check: the same predicate as an ORM query (repository)
3. Pessimistic locking: the asset row is locked while a booking is admitted
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Optional

from shared.domain.value_objects import DateRange

from .entities import Booking


def ranges_conflict(existing: DateRange, start: date, end: date) -> bool:
    """``NOT (existing.end < start OR existing.start > end)``: inclusive overlap."""
    return not (existing.end_date < start or existing.start_date > end)


@dataclass
class BookingConflictIndex:
    """
    In-memory conflict index over the bookings of any number of assets.

    Usage:
        index = BookingConflictIndex(repo.bookings_for_asset(asset_id))
        conflicts = index.find_conflicts(asset_id, start, end)
        if conflicts:
            raise ConflictError("Slot already booked for the given dates", conflicts)

    Reads only; rejected bookings are ignored and existing conflicting
    records are never resolved here.
    """

    bookings: List[Booking] = field(default_factory=list)

    @classmethod
    def of(cls, bookings: Iterable[Booking]) -> 'BookingConflictIndex':
        return cls(list(bookings))

    def find_conflicts(
        self,
        asset_id: int,
        start: date,
        end: date,
        exclude_booking_id: Optional[int] = None,
    ) -> List[Booking]:
        """
        All blocking bookings on ``asset_id`` whose range overlaps ``[start, end]``.

        ``exclude_booking_id`` lets a reschedule ignore its own current dates.
        """
        return [
            booking for booking in self.bookings
            if booking.asset_id == asset_id
            and booking.is_blocking
            and (exclude_booking_id is None or booking.id != exclude_booking_id)
            and ranges_conflict(booking.dates, start, end)
        ]

    def can_allocate(self, asset_id: int, dates: DateRange, exclude_booking_id: Optional[int] = None) -> bool:
        return not self.find_conflicts(asset_id, dates.start_date, dates.end_date, exclude_booking_id)

    def add(self, booking: Booking):
        self.bookings.append(booking)

    def __len__(self) -> int:
        return len(self.bookings)
