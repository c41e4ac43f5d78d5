"""
Bid and Slot Allocation Repositories

Bid status changes are conditional on the bid still being active in the
database, so two requests racing on the same bid cannot both succeed.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional
import logging

from django.db.models import F, Value  # type: ignore
from django.db.models.functions import Greatest  # type: ignore

from apps.assets.domain import Asset, DemandClass
from shared.domain.exceptions import ConcurrencyError, NotFoundError
from shared.domain.value_objects import DateRange
from shared.infrastructure.locking import lock_queryset_if_possible

from .domain.entities import Bid, BidStatus, SlotUsage
from .models import Bid as BidModel
from .models import SlotAllocation

logger = logging.getLogger(__name__)


class BidRepository(ABC):

    @abstractmethod
    def get_by_id(self, bid_id: int) -> Bid:
        ...

    @abstractmethod
    def find_active_by_booking(self, booking_id: int) -> List[Bid]:
        ...

    @abstractmethod
    def find_active_by_booking_and_user(self, booking_id: int, user_id: Optional[int]) -> Optional[Bid]:
        ...

    @abstractmethod
    def save(self, bid: Bid) -> Bid:
        """Insert a new bid, or update one that is still active; otherwise raise ConcurrencyError."""

    @abstractmethod
    def mark_lost(self, bid_ids: Iterable[int]) -> int:
        ...


class DjangoBidRepository(BidRepository):

    def get_by_id(self, bid_id: int) -> Bid:
        model = BidModel.objects.filter(pk=bid_id).first()
        if model is None:
            raise NotFoundError(f"Bid {bid_id} not found")
        return model.to_record()

    def find_active_by_booking(self, booking_id: int) -> List[Bid]:
        queryset = BidModel.objects.filter(booking_id=booking_id, status=BidStatus.ACTIVE.value)
        return [model.to_record() for model in queryset.order_by('created_at', 'id')]

    def find_active_by_booking_and_user(self, booking_id, user_id):
        model = BidModel.objects.filter(
            booking_id=booking_id,
            user_id=user_id,
            status=BidStatus.ACTIVE.value,
        ).first()
        return model.to_record() if model else None

    def save(self, bid: Bid) -> Bid:
        fields = {
            'lob': bid.lob,
            'user_id': bid.user_id,
            'bid_amount': bid.bid_amount,
            'max_bid': bid.max_bid,
            'bid_reason': bid.bid_reason,
            'status': bid.status.value,
            'is_auto': bid.is_auto,
        }
        if bid.id is None:
            model = BidModel.objects.create(booking_id=bid.booking_id, created_at=bid.created_at, **fields)
            bid.id = model.pk
            return bid

        updated = BidModel.objects.filter(pk=bid.id, status=BidStatus.ACTIVE.value).update(
            updated_at=bid.updated_at,
            **fields,
        )
        if updated == 0:
            logger.warning(f"Bid {bid.id} is no longer active; update rejected")
            raise ConcurrencyError(f"Bid {bid.id} was modified concurrently; reload and retry")
        return bid

    def mark_lost(self, bid_ids: Iterable[int]) -> int:
        bid_ids = list(bid_ids)
        if not bid_ids:
            return 0
        updated = BidModel.objects.filter(pk__in=bid_ids, status=BidStatus.ACTIVE.value).update(
            status=BidStatus.LOST.value,
        )
        if updated != len(bid_ids):
            raise ConcurrencyError(
                f"Only {updated} of {len(bid_ids)} losing bids were still active; reload and retry"
            )
        return updated


COUNTER_FIELDS = {
    DemandClass.INTERNAL: 'internal_allocated',
    DemandClass.EXTERNAL: 'external_allocated',
    DemandClass.MONETIZATION: 'monetization_allocated',
}


class SlotAllocationRepository:
    """Per-day slot counters; callers run inside the transaction that changes the bookings."""

    def get_usages(self, asset: Asset, dates: DateRange, lock: bool = False) -> List[SlotUsage]:
        """One usage per day of ``dates``; days without a row count as empty."""
        queryset = SlotAllocation.objects.filter(
            asset_id=asset.id,
            date__gte=dates.start_date,
            date__lte=dates.end_date,
        )
        if lock:
            queryset = lock_queryset_if_possible(queryset)
        rows = {row.date: row.to_record() for row in queryset}
        return [
            rows.get(day) or SlotUsage(asset_id=asset.id, day=day, total_slots=asset.max_slots)
            for day in dates.iter_days()
        ]

    def adjust(self, asset: Asset, dates: DateRange, demand_class: DemandClass, delta: int):
        """Add ``delta`` slots to ``demand_class`` on every day of ``dates``; counters never go below zero."""
        counter = COUNTER_FIELDS[demand_class]
        for day in dates.iter_days():
            SlotAllocation.objects.get_or_create(
                asset_id=asset.id,
                date=day,
                defaults={'total_slots': asset.max_slots},
            )
        SlotAllocation.objects.filter(
            asset_id=asset.id,
            date__gte=dates.start_date,
            date__lte=dates.end_date,
        ).update(**{counter: Greatest(F(counter) + delta, Value(0))})
        logger.debug(f"Asset {asset.id} {demand_class.value} slots {delta:+d} on {dates}")

    def reserve(self, asset: Asset, dates: DateRange, demand_class: DemandClass):
        self.adjust(asset, dates, demand_class, 1)

    def release(self, asset: Asset, dates: DateRange, demand_class: DemandClass):
        self.adjust(asset, dates, demand_class, -1)

    def transfer(self, asset: Asset, dates: DateRange, from_class: DemandClass, to_class: DemandClass):
        """Move one slot per day from one demand class to another."""
        if from_class == to_class:
            return
        self.release(asset, dates, from_class)
        self.reserve(asset, dates, to_class)

    def snapshot(self, asset_id: int, dates: Optional[DateRange] = None):
        queryset = SlotAllocation.objects.filter(asset_id=asset_id)
        if dates is not None:
            queryset = queryset.filter(date__gte=dates.start_date, date__lte=dates.end_date)
        return list(queryset.order_by('date'))
