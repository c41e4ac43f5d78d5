"""
Auction Command Handlers

Commands:
- StartAuctionCommand: Open bidding on an approved booking
- SubmitBidCommand: Place or revise a bid (one active bid per user), then auto-bid
- CancelBidCommand: Withdraw an own active bid
- EndAuctionCommand: Filter by quota, score, pick the winner, hand the booking over
- GetSlotAllocationQuery: Per-day slot counters of an asset

Every mutating handler locks the Booking row first, so all bid changes on
one booking are serialized.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Callable, Optional
import logging

from django.conf import settings
from django.utils import timezone

from apps.assets.domain import FairnessOverrides
from apps.assets.repositories import AssetConfigRepository, DjangoAssetConfigRepository
from apps.auctions.domain.entities import AuctionResult, Bid, ScoredBid, SlotUsage, validate_amounts
from apps.auctions.domain.events import BidAutoRaised, BidCancelled, BidPlaced
from apps.auctions.domain.fairness import BidFairnessScorer, FairnessSettings
from apps.auctions.domain.quota import QuotaSettings, SlotQuotaManager
from apps.auctions.domain.resolver import compute_auto_bids, highest_amount, select_winner
from apps.auctions.repositories import BidRepository, DjangoBidRepository, SlotAllocationRepository
from apps.bookings.domain.entities import Booking
from apps.bookings.repositories import BookingRepository, DjangoBookingRepository
from shared.application.uow import DjangoUnitOfWork
from shared.domain.base import utcnow
from shared.domain.exceptions import InvalidBidError, NotFoundError
from shared.domain.value_objects import DateRange

logger = logging.getLogger(__name__)


# ===== Commands =====

@dataclass
class StartAuctionCommand:
    booking_id: int


@dataclass
class SubmitBidCommand:
    """
    Command to place a bid

    A second submission by the same user on the same booking revises the
    user's active bid instead of creating another one.
    """
    booking_id: int
    user_id: int
    lob: str
    bid_amount: Decimal
    max_bid: Optional[Decimal] = None
    bid_reason: str = ''


@dataclass
class CancelBidCommand:
    bid_id: int
    user_id: Optional[int]


@dataclass
class EndAuctionCommand:
    booking_id: int


@dataclass
class GetSlotAllocationQuery:
    asset_id: int
    day: date


ScorerFactory = Callable[[Optional[FairnessOverrides]], BidFairnessScorer]


# ===== Command Handlers =====

class StartAuctionHandler:
    """Handler for opening bidding (NONE | PENDING -> ACTIVE)"""

    def __init__(self, booking_repo: BookingRepository):
        self.booking_repo = booking_repo

    def handle(self, command: StartAuctionCommand) -> Booking:
        with DjangoUnitOfWork() as uow:
            booking = self.booking_repo.get_by_id(command.booking_id, lock=True)
            booking.start_auction()
            uow.collect_events(booking)
            self.booking_repo.save(booking)

        logger.info(f"Auction started for booking {booking.id}")
        return booking


class SubmitBidHandler:
    """
    Handler for SubmitBid command

    Raises:
        InvalidBidError: No user, non-positive amount or max_bid below amount
        NotFoundError: Booking does not exist
        StateError: Auction is not active
    """

    def __init__(self, booking_repo: BookingRepository, bid_repo: BidRepository):
        self.booking_repo = booking_repo
        self.bid_repo = bid_repo

    def handle(self, command: SubmitBidCommand) -> Bid:
        if command.user_id is None:
            raise InvalidBidError("A bid must be placed by a user")
        validate_amounts(command.bid_amount, command.max_bid)
        logger.info(
            f"Bid {command.bid_amount} (max {command.max_bid}) by {command.lob} "
            f"on booking {command.booking_id}"
        )

        with DjangoUnitOfWork() as uow:
            booking = self.booking_repo.get_by_id(command.booking_id, lock=True)
            booking.ensure_accepting_bids()

            previous_highest = highest_amount(self.bid_repo.find_active_by_booking(booking.id))
            bid = self.bid_repo.find_active_by_booking_and_user(booking.id, command.user_id)
            revised = bid is not None
            if revised:
                bid.lob = command.lob
                bid.revise(command.bid_amount, command.max_bid, command.bid_reason)
            else:
                bid = Bid(
                    booking_id=booking.id,
                    user_id=command.user_id,
                    lob=command.lob,
                    bid_amount=command.bid_amount,
                    max_bid=command.max_bid,
                    bid_reason=command.bid_reason,
                )
            self.bid_repo.save(bid)
            booking.add_event(BidPlaced(
                aggregate_id=booking.id,
                bid_id=bid.id,
                booking_id=booking.id,
                lob=bid.lob,
                user_id=bid.user_id,
                bid_amount=bid.bid_amount,
                revised=revised,
            ))

            # Auto-bid only answers a bid that raised the highest amount.
            raises_highest = previous_highest is None or bid.bid_amount > previous_highest
            auto_bids = (
                compute_auto_bids(self.bid_repo.find_active_by_booking(booking.id), exclude_bid_id=bid.id)
                if raises_highest else []
            )
            for outbid, amount in auto_bids:
                previous = outbid.bid_amount
                outbid.raise_to(amount)
                self.bid_repo.save(outbid)
                booking.add_event(BidAutoRaised(
                    aggregate_id=booking.id,
                    bid_id=outbid.id,
                    booking_id=booking.id,
                    previous_amount=previous,
                    new_amount=amount,
                ))
                logger.info(f"Auto-bid raised bid {outbid.id} from {previous} to {amount}")

            uow.collect_events(booking)

        return bid


class CancelBidHandler:
    """Handler for withdrawing a bid; other users' bids are reported as not found"""

    def __init__(self, booking_repo: BookingRepository, bid_repo: BidRepository):
        self.booking_repo = booking_repo
        self.bid_repo = bid_repo

    def handle(self, command: CancelBidCommand) -> Bid:
        with DjangoUnitOfWork() as uow:
            bid = self.bid_repo.get_by_id(command.bid_id)
            if bid.user_id != command.user_id:
                logger.warning(f"User {command.user_id} tried to cancel bid {bid.id} of another user")
                raise NotFoundError(f"Bid {command.bid_id} not found")

            booking = self.booking_repo.get_by_id(bid.booking_id, lock=True)
            bid = self.bid_repo.get_by_id(command.bid_id)
            bid.cancel()
            self.bid_repo.save(bid)
            booking.add_event(BidCancelled(
                aggregate_id=booking.id,
                bid_id=bid.id,
                booking_id=booking.id,
                user_id=bid.user_id,
            ))
            uow.collect_events(booking)

        logger.info(f"Bid {bid.id} cancelled by user {command.user_id}")
        return bid


class EndAuctionHandler:
    """
    Handler for EndAuction command (ACTIVE -> COMPLETED | CANCELLED)

    1. No active bids: cancel the auction, touch no bids
    2. Drop bids the Slot Quota Manager does not admit (they stay active)
    3. Score the rest and pick the winner (score, amount, earliest, lowest id)
    4. Losers -> LOST, booking handed to the winner, slot counters moved
    """

    def __init__(
        self,
        booking_repo: BookingRepository,
        bid_repo: BidRepository,
        asset_repo: AssetConfigRepository,
        slot_repo: SlotAllocationRepository,
        quotas: SlotQuotaManager,
        scorer_factory: ScorerFactory,
    ):
        self.booking_repo = booking_repo
        self.bid_repo = bid_repo
        self.asset_repo = asset_repo
        self.slot_repo = slot_repo
        self.quotas = quotas
        self.scorer_factory = scorer_factory

    def handle(self, command: EndAuctionCommand) -> AuctionResult:
        logger.info(f"Ending auction for booking {command.booking_id}")

        with DjangoUnitOfWork() as uow:
            booking = self.booking_repo.get_by_id(command.booking_id, lock=True)
            booking.ensure_closable()

            bids = self.bid_repo.find_active_by_booking(booking.id)
            if not bids:
                booking.cancel_auction()
                uow.collect_events(booking)
                self.booking_repo.save(booking)
                logger.info(f"Auction for booking {booking.id} cancelled: no active bids")
                return AuctionResult(booking_id=booking.id, auction_status=booking.auction_status.value)

            asset = self.asset_repo.get_asset(booking.asset_id)
            limits = self.quotas.resolve_limits(asset, self.asset_repo.get_asset_quota_config(asset.id))
            bid_caps = self.asset_repo.get_bid_caps()
            scorer = self.scorer_factory(self.asset_repo.get_fairness_config(asset.id))

            # The booking's own slot is up for grabs, so it does not count against the bidders.
            holder_class = self.quotas.classify(booking.lob)
            usages = [
                usage.adjusted(holder_class, -1)
                for usage in self.slot_repo.get_usages(asset, booking.dates, lock=True)
            ]

            now = utcnow()
            scored, excluded = [], []
            for bid in bids:
                bid_cap = self.quotas.find_bid_cap(bid.lob, asset.level, bid_caps)
                decision = self.quotas.is_admissible(bid, asset, usages, limits, bid_cap)
                if not decision:
                    excluded.append((bid.id, decision.reason))
                    continue
                demand_class = self.quotas.classify(bid.lob)
                score = scorer.score(
                    bid.lob,
                    demand_class,
                    self.asset_repo.get_roi_metrics(bid.lob, asset.id),
                    self.booking_repo.find_last_win(bid.lob, asset.id),
                    now,
                    revenue_floor=bid_cap.revenue_floor if bid_cap is not None else None,
                )
                scored.append(ScoredBid(bid=bid, demand_class=demand_class, score=score))

            winner = select_winner(scored)
            if winner is None:
                booking.cancel_auction(reason=f"all {len(bids)} bids excluded by slot quota")
                uow.collect_events(booking)
                self.booking_repo.save(booking)
                logger.warning(
                    f"Auction for booking {booking.id} cancelled: all {len(bids)} bids excluded by quota"
                )
                return AuctionResult(
                    booking_id=booking.id,
                    auction_status=booking.auction_status.value,
                    total_bids=len(bids),
                    excluded_count=len(excluded),
                    excluded=excluded,
                )

            self.bid_repo.mark_lost(s.bid.id for s in scored if s is not winner)
            booking.complete_auction(
                winning_bid_id=winner.bid.id,
                winner_lob=winner.bid.lob,
                winner_user_id=winner.bid.user_id,
                winning_amount=winner.bid.bid_amount,
                total_bids=len(bids),
            )
            self.slot_repo.transfer(asset, booking.dates, holder_class, winner.demand_class)
            uow.collect_events(booking)
            self.booking_repo.save(booking)

        logger.info(
            f"Auction for booking {booking.id} won by bid {winner.bid.id} "
            f"({winner.bid.lob}, score {winner.score:.3f}); {len(excluded)} excluded"
        )
        return AuctionResult(
            booking_id=booking.id,
            auction_status=booking.auction_status.value,
            winner=winner,
            total_bids=len(bids),
            excluded_count=len(excluded),
            excluded=excluded,
        )


class GetSlotAllocationHandler:
    """Read-only snapshot of one asset's slot counters on one day"""

    def __init__(self, asset_repo: AssetConfigRepository, slot_repo: SlotAllocationRepository):
        self.asset_repo = asset_repo
        self.slot_repo = slot_repo

    def handle(self, query: GetSlotAllocationQuery) -> SlotUsage:
        asset = self.asset_repo.get_asset(query.asset_id)
        return self.slot_repo.get_usages(asset, DateRange(query.day, query.day))[0]


def default_scorer_factory(fairness: Optional[FairnessSettings] = None) -> ScorerFactory:
    base = fairness or FairnessSettings.from_dict(settings.FAIRNESS)

    def build(overrides: Optional[FairnessOverrides]) -> BidFairnessScorer:
        return BidFairnessScorer(base.with_overrides(overrides))

    return build


def build_end_auction_handler(**overrides) -> EndAuctionHandler:
    """EndAuctionHandler wired to the Django repositories and settings; keyword arguments replace parts."""
    dependencies = {
        'booking_repo': DjangoBookingRepository(),
        'bid_repo': DjangoBidRepository(),
        'asset_repo': DjangoAssetConfigRepository(),
        'slot_repo': SlotAllocationRepository(),
        'quotas': SlotQuotaManager(QuotaSettings.from_dict(settings.SLOT_QUOTAS), timezone.get_default_timezone()),
        'scorer_factory': default_scorer_factory(),
    }
    dependencies.update(overrides)
    return EndAuctionHandler(**dependencies)


def register_handlers(bus):
    booking_repo = DjangoBookingRepository()
    bid_repo = DjangoBidRepository()
    end_auction = build_end_auction_handler(booking_repo=booking_repo, bid_repo=bid_repo)
    slot_allocation = GetSlotAllocationHandler(end_auction.asset_repo, end_auction.slot_repo)

    bus.register_command_handler(StartAuctionCommand, StartAuctionHandler(booking_repo).handle, replace=True)
    bus.register_command_handler(SubmitBidCommand, SubmitBidHandler(booking_repo, bid_repo).handle, replace=True)
    bus.register_command_handler(CancelBidCommand, CancelBidHandler(booking_repo, bid_repo).handle, replace=True)
    bus.register_command_handler(EndAuctionCommand, end_auction.handle, replace=True)
    bus.register_command_handler(GetSlotAllocationQuery, slot_allocation.handle, replace=True)
