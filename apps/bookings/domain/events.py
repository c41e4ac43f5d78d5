"""
Booking Domain Events

Events that represent things that have happened to bookings and their
auctions. These are published after successful transaction commits.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from shared.domain.base import DomainEvent
from shared.domain.value_objects import DateRange


# ===== Booking Events =====

@dataclass(kw_only=True)
class BookingAdmitted(DomainEvent):
    """
    Event: A booking passed conflict and rule checks and was stored

    Its dates now block the asset and its slots are counted in the
    per-day allocation of its demand class.
    """
    booking_id: int
    asset_id: int
    lob: str
    dates: DateRange


@dataclass(kw_only=True)
class BookingReviewed(DomainEvent):
    """Event: The approval workflow approved or rejected a booking"""
    booking_id: int
    status: str


# ===== Auction Events =====

@dataclass(kw_only=True)
class AuctionStarted(DomainEvent):
    """Event: Bidding opened on a booking (-> ACTIVE)"""
    booking_id: int
    asset_id: int


@dataclass(kw_only=True)
class AuctionCompleted(DomainEvent):
    """
    Event: Auction closed with a winner (ACTIVE -> COMPLETED)

    The booking now belongs to ``winner_lob``; losing bids were marked lost.
    """
    booking_id: int
    asset_id: int
    winning_bid_id: int
    winner_lob: str
    previous_lob: str
    winning_amount: Decimal
    total_bids: int


@dataclass(kw_only=True)
class AuctionCancelled(DomainEvent):
    """Event: Auction closed without any active bid (ACTIVE -> CANCELLED)"""
    booking_id: int
    asset_id: int
    reason: Optional[str] = 'no active bids'
