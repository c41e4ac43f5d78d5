"""
Booking Domain Entities

Core business entities for the booking domain:
- Booking: Aggregate representing a reservation of one asset by one LOB
- BookingStatus: Approval state (driven by the external approval workflow)
- AuctionStatus: FSM states of the auction attached to a booking
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional

from shared.domain.base import Aggregate, utcnow
from shared.domain.exceptions import StateError
from shared.domain.value_objects import DateRange


class BookingStatus(str, Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'


BLOCKING_STATUSES = (BookingStatus.PENDING, BookingStatus.APPROVED)


class AuctionStatus(str, Enum):
    """
    Auction Status Finite State Machine

    State transitions:
    - NONE -> PENDING (booking admitted)
    - NONE | PENDING -> ACTIVE (explicit start, booking must be approved)
    - ACTIVE -> COMPLETED (explicit end, a winner was selected)
    - ACTIVE -> CANCELLED (explicit end, nothing to select)

    COMPLETED and CANCELLED are terminal.
    """
    NONE = 'none'
    PENDING = 'pending'
    ACTIVE = 'active'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


@dataclass(eq=False, kw_only=True)
class Booking(Aggregate):
    """
    Booking Aggregate Root

    A candidate booking (not yet persisted) has ``id=None``; a reschedule of
    an existing booking keeps its id, which is how the lead-time rule tells
    the two apart.

    Key invariants:
    - end_date is not before start_date (both inclusive)
    - auction_status only moves along the FSM above
    - ``version`` increases on every persisted change
    """

    asset_id: int
    lob: str
    start_date: date
    end_date: date
    purpose: str = ''
    title: str = ''
    user_id: Optional[int] = None
    status: BookingStatus = BookingStatus.PENDING
    auction_status: AuctionStatus = AuctionStatus.NONE
    winning_bid_id: Optional[int] = None
    auction_closed_at: Optional[datetime] = None
    version: int = 0

    def __post_init__(self):
        if self.end_date < self.start_date:
            raise ValueError(
                f"Booking end date ({self.end_date}) must not be before start date ({self.start_date})"
            )

    @property
    def dates(self) -> DateRange:
        return DateRange(self.start_date, self.end_date)

    @property
    def span_days(self) -> int:
        return self.dates.days

    @property
    def is_blocking(self) -> bool:
        """Pending and approved bookings hold their dates; rejected ones do not."""
        return self.status in BLOCKING_STATUSES

    @property
    def is_reschedule(self) -> bool:
        return self.id is not None

    # ===== Approval (driven by the external workflow) =====

    def approve(self):
        if self.status != BookingStatus.PENDING:
            raise StateError(f"Cannot approve booking in status {self.status.value}")
        self.status = BookingStatus.APPROVED
        self.updated_at = utcnow()

    def reject(self):
        if self.status != BookingStatus.PENDING:
            raise StateError(f"Cannot reject booking in status {self.status.value}")
        self.status = BookingStatus.REJECTED
        self.updated_at = utcnow()

    # ===== Auction FSM =====

    def mark_admitted(self):
        """NONE -> PENDING once the booking passed admission."""
        if self.auction_status == AuctionStatus.NONE:
            self.auction_status = AuctionStatus.PENDING

    def start_auction(self):
        """
        Open bidding on this booking (NONE | PENDING -> ACTIVE)

        Events: AuctionStarted
        """
        if self.auction_status not in (AuctionStatus.NONE, AuctionStatus.PENDING):
            raise StateError(
                f"Cannot start auction for booking {self.id}: "
                f"auction is {self.auction_status.value}"
            )
        if self.status != BookingStatus.APPROVED:
            raise StateError(
                f"Cannot start auction for booking {self.id}: "
                f"booking is {self.status.value}, must be approved"
            )

        from apps.bookings.domain.events import AuctionStarted

        self.auction_status = AuctionStatus.ACTIVE
        self.updated_at = utcnow()
        self.add_event(AuctionStarted(aggregate_id=self.id, booking_id=self.id, asset_id=self.asset_id))

    def ensure_accepting_bids(self):
        if self.auction_status != AuctionStatus.ACTIVE:
            raise StateError(
                f"Booking {self.id} is not available for bidding "
                f"(auction is {self.auction_status.value})"
            )

    def complete_auction(self, winning_bid_id: int, winner_lob: str, winner_user_id: Optional[int],
                         winning_amount, total_bids: int):
        """
        Close the auction with a winner (ACTIVE -> COMPLETED)

        The booking is handed over to the winning bidder: it takes the
        winner's LOB and user.

        Events: AuctionCompleted
        """
        self.ensure_closable()

        from apps.bookings.domain.events import AuctionCompleted

        previous_lob = self.lob
        self.auction_status = AuctionStatus.COMPLETED
        self.winning_bid_id = winning_bid_id
        self.lob = winner_lob
        self.user_id = winner_user_id
        self.auction_closed_at = utcnow()
        self.updated_at = self.auction_closed_at
        self.add_event(AuctionCompleted(
            aggregate_id=self.id,
            booking_id=self.id,
            asset_id=self.asset_id,
            winning_bid_id=winning_bid_id,
            winner_lob=winner_lob,
            previous_lob=previous_lob,
            winning_amount=winning_amount,
            total_bids=total_bids,
        ))

    def cancel_auction(self, reason: str = 'no active bids'):
        """
        Close the auction without a winner (ACTIVE -> CANCELLED)

        Events: AuctionCancelled
        """
        self.ensure_closable()

        from apps.bookings.domain.events import AuctionCancelled

        self.auction_status = AuctionStatus.CANCELLED
        self.winning_bid_id = None
        self.auction_closed_at = utcnow()
        self.updated_at = self.auction_closed_at
        self.add_event(AuctionCancelled(
            aggregate_id=self.id, booking_id=self.id, asset_id=self.asset_id, reason=reason,
        ))

    def ensure_closable(self):
        if self.auction_status != AuctionStatus.ACTIVE:
            raise StateError(
                f"Cannot end auction for booking {self.id}: "
                f"auction is {self.auction_status.value}"
            )

    def __str__(self):
        return f"Booking #{self.id} ({self.lob} on asset {self.asset_id}, {self.dates})"
