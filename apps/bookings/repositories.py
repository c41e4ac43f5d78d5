"""
Booking Repository

Storage queries behind the conflict index and the temporal rule validator,
plus optimistic-concurrency saves of the Booking aggregate.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta
from typing import List, Optional
import logging

from django.db.models import F, Max, Q  # type: ignore

from shared.domain.exceptions import ConcurrencyError, NotFoundError
from shared.domain.value_objects import DateRange
from shared.infrastructure.locking import lock_queryset_if_possible

from .domain.entities import AuctionStatus, Booking
from .models import Booking as BookingModel

logger = logging.getLogger(__name__)


class BookingRepository(ABC):
    """Queries the admission and auction handlers run against stored bookings."""

    @abstractmethod
    def get_by_id(self, booking_id: int, lock: bool = False) -> Booking:
        """Return the booking or raise NotFoundError; ``lock`` holds the row until commit."""

    @abstractmethod
    def save(self, booking: Booking) -> Booking:
        """Insert or update; updates raise ConcurrencyError when ``version`` is stale."""

    @abstractmethod
    def find_conflicts(self, asset_id: int, start: date, end: date,
                       exclude_booking_id: Optional[int] = None) -> List[Booking]:
        ...

    @abstractmethod
    def find_adjacent_by_asset_and_lob(self, asset_id: int, lob: str, start: date, end: date,
                                       exclude_booking_id: Optional[int] = None) -> List[Booking]:
        ...

    @abstractmethod
    def find_by_asset_lob_within_window(self, asset_id: int, lob: Optional[str], window: DateRange,
                                        exclude_booking_id: Optional[int] = None) -> List[Booking]:
        """``lob=None`` returns the bookings of every LOB."""

    @abstractmethod
    def find_by_asset_purpose_within_window(self, asset_id: int, purpose: str, window: DateRange,
                                            exclude_booking_id: Optional[int] = None) -> List[Booking]:
        ...

    @abstractmethod
    def find_active_by_lob(self, lob: str, on_date: date,
                           exclude_booking_id: Optional[int] = None) -> List[Booking]:
        ...

    @abstractmethod
    def find_last_booking_by_asset_lob(self, asset_id: int, lob: str,
                                       exclude_booking_id: Optional[int] = None) -> Optional[Booking]:
        ...

    @abstractmethod
    def find_last_win(self, lob: str, asset_id: int) -> Optional[datetime]:
        """When ``lob`` last won an auction on the asset, or None."""

    @abstractmethod
    def find_due_auction_ids(self, starting_before: date) -> List[int]:
        ...


class DjangoBookingRepository(BookingRepository):

    def _blocking(self, exclude_booking_id: Optional[int] = None):
        queryset = BookingModel.objects.filter(status__in=BookingModel.BLOCKING_STATUSES)
        if exclude_booking_id is not None:
            queryset = queryset.exclude(pk=exclude_booking_id)
        return queryset

    @staticmethod
    def _records(queryset) -> List[Booking]:
        return [model.to_record() for model in queryset]

    def get_by_id(self, booking_id: int, lock: bool = False) -> Booking:
        queryset = BookingModel.objects.filter(pk=booking_id)
        if lock:
            queryset = lock_queryset_if_possible(queryset)
        model = queryset.first()
        if model is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        return model.to_record()

    def save(self, booking: Booking) -> Booking:
        fields = {
            'asset_id': booking.asset_id,
            'user_id': booking.user_id,
            'title': booking.title,
            'lob': booking.lob,
            'purpose': booking.purpose,
            'start_date': booking.start_date,
            'end_date': booking.end_date,
            'status': booking.status.value,
            'auction_status': booking.auction_status.value,
            'winning_bid_id': booking.winning_bid_id,
            'auction_closed_at': booking.auction_closed_at,
        }

        if booking.id is None:
            model = BookingModel(version=booking.version, **fields)
            model.full_clean(exclude=['asset', 'user', 'winning_bid'])
            model.save()
            booking.id = model.pk
            booking.created_at = model.created_at
            booking.updated_at = model.updated_at
            logger.debug(f"Inserted booking {booking.id}")
            return booking

        updated = BookingModel.objects.filter(pk=booking.id, version=booking.version).update(
            version=F('version') + 1,
            updated_at=booking.updated_at,
            **fields,
        )
        if updated == 0:
            logger.warning(f"Stale write on booking {booking.id} (version {booking.version})")
            raise ConcurrencyError(
                f"Booking {booking.id} was modified concurrently; reload and retry"
            )
        booking.version += 1
        return booking

    def find_conflicts(self, asset_id, start, end, exclude_booking_id=None):
        queryset = self._blocking(exclude_booking_id).filter(
            asset_id=asset_id,
        ).exclude(
            Q(end_date__lt=start) | Q(start_date__gt=end)
        )
        return self._records(queryset.order_by('start_date', 'id'))

    def find_adjacent_by_asset_and_lob(self, asset_id, lob, start, end, exclude_booking_id=None):
        queryset = self._blocking(exclude_booking_id).filter(
            asset_id=asset_id,
            lob=lob,
        ).filter(
            Q(start_date=end + timedelta(days=1)) | Q(end_date=start - timedelta(days=1))
        )
        return self._records(queryset)

    def find_by_asset_lob_within_window(self, asset_id, lob, window, exclude_booking_id=None):
        queryset = self._blocking(exclude_booking_id).filter(
            asset_id=asset_id,
            start_date__lte=window.end_date,
            end_date__gte=window.start_date,
        )
        if lob is not None:
            queryset = queryset.filter(lob=lob)
        return self._records(queryset.order_by('start_date', 'id'))

    def find_by_asset_purpose_within_window(self, asset_id, purpose, window, exclude_booking_id=None):
        if not purpose:
            return []
        queryset = self._blocking(exclude_booking_id).filter(
            asset_id=asset_id,
            purpose=purpose,
            start_date__lte=window.end_date,
            end_date__gte=window.start_date,
        )
        return self._records(queryset)

    def find_active_by_lob(self, lob, on_date, exclude_booking_id=None):
        queryset = self._blocking(exclude_booking_id).filter(
            lob=lob,
            start_date__lte=on_date,
            end_date__gte=on_date,
        )
        return self._records(queryset)

    def find_last_booking_by_asset_lob(self, asset_id, lob, exclude_booking_id=None):
        model = self._blocking(exclude_booking_id).filter(
            asset_id=asset_id,
            lob=lob,
        ).order_by('-end_date', '-id').first()
        return model.to_record() if model else None

    def find_last_win(self, lob, asset_id):
        return BookingModel.objects.filter(
            asset_id=asset_id,
            lob=lob,
            auction_status=AuctionStatus.COMPLETED.value,
        ).aggregate(last_win=Max('auction_closed_at'))['last_win']

    def find_due_auction_ids(self, starting_before):
        return list(
            BookingModel.objects.filter(
                auction_status=AuctionStatus.ACTIVE.value,
                start_date__lte=starting_before,
            ).order_by('start_date', 'id').values_list('id', flat=True)
        )
