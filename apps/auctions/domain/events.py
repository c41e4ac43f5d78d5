"""
Bid Domain Events

Recorded on the Booking aggregate the bid belongs to, so they are
published together with the booking's own events after commit.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from shared.domain.base import DomainEvent


@dataclass(kw_only=True)
class BidPlaced(DomainEvent):
    """Event: A bid was created, or an existing active bid was revised"""
    bid_id: int
    booking_id: int
    lob: str
    user_id: Optional[int]
    bid_amount: Decimal
    revised: bool = False


@dataclass(kw_only=True)
class BidCancelled(DomainEvent):
    """Event: A bidder withdrew their active bid"""
    bid_id: int
    booking_id: int
    user_id: Optional[int]


@dataclass(kw_only=True)
class BidAutoRaised(DomainEvent):
    """Event: An outbid bid was raised on the bidder's behalf (within max_bid)"""
    bid_id: int
    booking_id: int
    previous_amount: Decimal
    new_amount: Decimal
