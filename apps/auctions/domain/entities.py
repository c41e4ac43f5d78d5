"""
Auction Domain Entities

- Bid: one user's offer on a booking (upserted, at most one active per user)
- SlotUsage: per-day slot counters of an asset, per demand class
- ScoredBid / AuctionResult: outcome of closing an auction
"""

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple

from apps.assets.domain import DemandClass
from shared.domain.base import Entity, ValueObject, utcnow
from shared.domain.exceptions import InvalidBidError, StateError


class BidStatus(str, Enum):
    ACTIVE = 'active'
    CANCELLED = 'cancelled'
    LOST = 'lost'


@dataclass(eq=False, kw_only=True)
class Bid(Entity):
    """
    Bid Entity

    ``max_bid`` enables auto-bidding: the bid is raised on the bidder's
    behalf, never beyond this amount, when someone else outbids it.
    """

    booking_id: int
    lob: str
    bid_amount: Decimal
    user_id: Optional[int] = None
    max_bid: Optional[Decimal] = None
    bid_reason: str = ''
    status: BidStatus = BidStatus.ACTIVE
    is_auto: bool = False

    def __post_init__(self):
        self.bid_amount = Decimal(self.bid_amount)
        if self.max_bid is not None:
            self.max_bid = Decimal(self.max_bid)
        validate_amounts(self.bid_amount, self.max_bid)

    @property
    def is_active(self) -> bool:
        return self.status == BidStatus.ACTIVE

    def revise(self, bid_amount: Decimal, max_bid: Optional[Decimal], bid_reason: str = ''):
        """Replace the offer of an existing active bid (upsert by the same user)."""
        self._ensure_active()
        validate_amounts(bid_amount, max_bid)
        self.bid_amount = Decimal(bid_amount)
        self.max_bid = Decimal(max_bid) if max_bid is not None else None
        if bid_reason:
            self.bid_reason = bid_reason
        self.is_auto = False
        self.updated_at = utcnow()

    def raise_to(self, amount: Decimal):
        """Auto-bid raise; stays within ``max_bid``."""
        self._ensure_active()
        if self.max_bid is None or amount > self.max_bid:
            raise InvalidBidError(f"Auto-bid {amount} exceeds max bid {self.max_bid} of bid {self.id}")
        self.bid_amount = amount
        self.is_auto = True
        self.updated_at = utcnow()

    def cancel(self):
        self._ensure_active()
        self.status = BidStatus.CANCELLED
        self.updated_at = utcnow()

    def mark_lost(self):
        self._ensure_active()
        self.status = BidStatus.LOST
        self.updated_at = utcnow()

    def _ensure_active(self):
        if not self.is_active:
            raise StateError(f"Bid {self.id} is {self.status.value}")


def validate_amounts(bid_amount, max_bid=None):
    """Bid amounts must be positive and ``max_bid`` must not be below the bid."""
    if bid_amount is None or Decimal(bid_amount) <= 0:
        raise InvalidBidError(f"Bid amount must be positive, got {bid_amount}")
    if max_bid is not None and Decimal(max_bid) < Decimal(bid_amount):
        raise InvalidBidError(f"Max bid ({max_bid}) must not be below bid amount ({bid_amount})")


@dataclass(frozen=True)
class SlotUsage(ValueObject):
    """Slot counters of one asset on one day."""
    asset_id: int
    day: date
    total_slots: int
    internal: int = 0
    external: int = 0
    monetization: int = 0

    def allocated(self, demand_class: DemandClass) -> int:
        return getattr(self, demand_class.value)

    def share(self, demand_class: DemandClass) -> float:
        if self.total_slots <= 0:
            return 0.0
        return self.allocated(demand_class) / self.total_slots

    def adjusted(self, demand_class: DemandClass, delta: int) -> 'SlotUsage':
        """Counters with ``delta`` slots added to (or removed from) ``demand_class``, never below zero."""
        value = max(0, self.allocated(demand_class) + delta)
        return replace(self, **{demand_class.value: value})


@dataclass(frozen=True)
class ScoredBid(ValueObject):
    bid: Bid
    demand_class: DemandClass
    score: float


@dataclass
class AuctionResult:
    """Outcome of ``end_auction``; ``winner`` is None when the auction was cancelled."""
    booking_id: int
    auction_status: str
    winner: Optional[ScoredBid] = None
    total_bids: int = 0
    excluded_count: int = 0
    excluded: List[Tuple[int, str]] = field(default_factory=list)
