"""Celery tasks for the auction domain.

The core never closes auctions by itself; these tasks are the external
trigger (Celery beat, see ``config/celery.py``).
"""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task  # type: ignore
from django.conf import settings  # type: ignore
from django.utils import timezone  # type: ignore

from apps.bookings.repositories import DjangoBookingRepository
from shared.domain.exceptions import DomainError

from .application.command_handlers import EndAuctionCommand, build_end_auction_handler
from .serializers import AuctionResultSerializer

logger = logging.getLogger(__name__)


@shared_task(name="auctions.end_auction")
def end_auction(booking_id: int) -> dict:
    """Close one auction and return the serialized AuctionResult."""

    result = build_end_auction_handler().handle(EndAuctionCommand(booking_id=booking_id))
    return AuctionResultSerializer(result).data


# ============================================================================
# PERIODIC TASKS (run by Celery Beat)
# ============================================================================

@shared_task(name="auctions.close_due_auctions")
def close_due_auctions() -> dict[str, int]:
    """
    Close every active auction whose booked slot starts within
    ``AUCTION_CLOSE_LEAD_DAYS`` days.

    Returns:
        dict: {"closed": auctions closed, "failed": auctions left active}
    """
    due_by = timezone.localdate() + timedelta(days=settings.AUCTION_CLOSE_LEAD_DAYS)
    handler = build_end_auction_handler()
    closed = failed = 0

    for booking_id in DjangoBookingRepository().find_due_auction_ids(due_by):
        try:
            handler.handle(EndAuctionCommand(booking_id=booking_id))
            closed += 1
        except DomainError as e:
            failed += 1
            logger.warning(f"Could not close auction for booking {booking_id}: {e}")

    if closed or failed:
        logger.info(f"Closed {closed} due auctions, {failed} failed")

    return {"closed": closed, "failed": failed}
