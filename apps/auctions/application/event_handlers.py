"""
Auction Event Handlers

Post-commit subscribers. They only log today; notification delivery is
owned by the callers of the core.
"""

import logging

from apps.auctions.domain.events import BidAutoRaised
from apps.bookings.domain.events import AuctionCancelled, AuctionCompleted, BookingAdmitted

logger = logging.getLogger(__name__)


def log_auction_completed(event: AuctionCompleted):
    logger.info(
        f"Booking {event.booking_id} on asset {event.asset_id} moved from {event.previous_lob} "
        f"to {event.winner_lob} (bid {event.winning_bid_id}, {event.winning_amount}, "
        f"{event.total_bids} bids)"
    )


def log_auction_cancelled(event: AuctionCancelled):
    logger.info(f"Auction for booking {event.booking_id} cancelled: {event.reason}")


def log_bid_auto_raised(event: BidAutoRaised):
    logger.info(f"Bid {event.bid_id} auto-raised {event.previous_amount} -> {event.new_amount}")


def log_booking_admitted(event: BookingAdmitted):
    logger.info(f"Booking {event.booking_id} holds asset {event.asset_id} for {event.lob} on {event.dates}")


def register_event_handlers(bus):
    bus.register_event_handler(AuctionCompleted, log_auction_completed)
    bus.register_event_handler(AuctionCancelled, log_auction_cancelled)
    bus.register_event_handler(BidAutoRaised, log_bid_auto_raised)
    bus.register_event_handler(BookingAdmitted, log_booking_admitted)
