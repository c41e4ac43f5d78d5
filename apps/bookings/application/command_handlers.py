"""
Booking Command Handlers

These are the use cases for the booking side of the allocation core.
They orchestrate domain operations within transactions.

Commands:
- ValidateBookingCommand: Run the temporal rules without storing anything
- AdmitBookingCommand: Store a new booking after conflict and rule checks
- RescheduleBookingCommand: Move an existing booking to new dates
- ReviewBookingCommand: Approve or reject a pending booking
"""

from dataclasses import dataclass
from datetime import date
from typing import List, Optional
import logging

from django.conf import settings
from django.utils import timezone

from apps.assets.repositories import AssetConfigRepository, DjangoAssetConfigRepository
from apps.auctions.domain.quota import QuotaSettings, SlotQuotaManager
from apps.auctions.repositories import SlotAllocationRepository
from apps.bookings.application.context import BookingContextLoader
from apps.bookings.domain.conflicts import BookingConflictIndex
from apps.bookings.domain.entities import Booking
from apps.bookings.domain.events import BookingAdmitted, BookingReviewed
from apps.bookings.domain.rules import RuleConfig, TemporalRuleValidator
from apps.bookings.repositories import BookingRepository, DjangoBookingRepository
from shared.application.uow import DjangoUnitOfWork
from shared.domain.exceptions import BookingRulesViolated, ConflictError, StateError

logger = logging.getLogger(__name__)


# ===== Commands =====

@dataclass
class ValidateBookingCommand:
    """
    Command to dry-run the temporal rules for a candidate booking

    ``booking_id`` marks the candidate as a reschedule of that booking.
    """
    asset_id: int
    lob: str
    start_date: date
    end_date: date
    purpose: str = ''
    booking_id: Optional[int] = None


@dataclass
class AdmitBookingCommand:
    """
    Command to admit a new booking

    This is the primary entry point for creating bookings.
    """
    asset_id: int
    lob: str
    start_date: date
    end_date: date
    user_id: Optional[int] = None
    title: str = ''
    purpose: str = ''


@dataclass
class RescheduleBookingCommand:
    """Command to move a pending/approved booking to new dates"""
    booking_id: int
    start_date: date
    end_date: date


@dataclass
class ReviewBookingCommand:
    """Command carrying the approval workflow's decision"""
    booking_id: int
    approve: bool


# ===== Command Handlers =====

class BookingAdmission:
    """
    Shared admission pipeline for new bookings and reschedules.

    Strategy (Defense in Depth):
    1. Start database transaction (atomic)
    2. Lock the Asset row (SELECT FOR UPDATE) so admissions per asset are serialized
    3. Conflict check against pending/approved bookings
    4. Temporal rules against a pre-fetched context
    5. Save booking and slot counters in the same transaction
    6. Publish events (after commit)
    """

    def __init__(
        self,
        booking_repo: BookingRepository,
        asset_repo: AssetConfigRepository,
        slot_repo: SlotAllocationRepository,
        validator: TemporalRuleValidator,
        quotas: SlotQuotaManager,
        context_loader: Optional[BookingContextLoader] = None,
    ):
        self.booking_repo = booking_repo
        self.asset_repo = asset_repo
        self.slot_repo = slot_repo
        self.validator = validator
        self.quotas = quotas
        self.context_loader = context_loader or BookingContextLoader(booking_repo, validator.config)

    def ensure_no_conflicts(self, candidate: Booking):
        conflicts = self.booking_repo.find_conflicts(
            candidate.asset_id,
            candidate.start_date,
            candidate.end_date,
            exclude_booking_id=candidate.id,
        )
        # Same overlap predicate, applied in memory.
        conflicts = BookingConflictIndex.of(conflicts).find_conflicts(
            candidate.asset_id, candidate.start_date, candidate.end_date, candidate.id,
        )
        if conflicts:
            ids = ', '.join(str(b.id) for b in conflicts)
            logger.warning(f"Asset {candidate.asset_id} busy for {candidate.dates}: bookings {ids}")
            raise ConflictError(f"Asset {candidate.asset_id} is already booked for {candidate.dates}", conflicts)

    def validate(self, candidate: Booking, asset) -> List[str]:
        context = self.context_loader.load(candidate, asset)
        return self.validator.validate(candidate, context)

    def ensure_valid(self, candidate: Booking, asset):
        violations = self.validate(candidate, asset)
        if violations:
            logger.warning(
                f"Booking for asset {candidate.asset_id} by {candidate.lob} rejected: {violations}"
            )
            raise BookingRulesViolated(violations)


class ValidateBookingHandler:
    """Handler returning the violation list; an empty list means admissible"""

    def __init__(self, admission: BookingAdmission):
        self.admission = admission

    def handle(self, command: ValidateBookingCommand) -> List[str]:
        asset = self.admission.asset_repo.get_asset(command.asset_id)
        candidate = Booking(
            id=command.booking_id,
            asset_id=command.asset_id,
            lob=command.lob,
            start_date=command.start_date,
            end_date=command.end_date,
            purpose=command.purpose,
        )
        return self.admission.validate(candidate, asset)


class AdmitBookingHandler:
    """
    Handler for AdmitBooking command

    Returns the stored Booking with auction_status PENDING.

    Raises:
        NotFoundError: Asset does not exist or is inactive
        ConflictError: Dates overlap a pending/approved booking (carries them)
        BookingRulesViolated: One or more temporal rules failed (carries all messages)
    """

    def __init__(self, admission: BookingAdmission):
        self.admission = admission

    def handle(self, command: AdmitBookingCommand) -> Booking:
        logger.info(
            f"Admitting booking for asset {command.asset_id}, "
            f"LOB {command.lob}, dates {command.start_date} - {command.end_date}"
        )
        admission = self.admission

        with DjangoUnitOfWork() as uow:
            asset = admission.asset_repo.get_asset(command.asset_id, lock=True)

            booking = Booking(
                asset_id=command.asset_id,
                lob=command.lob,
                start_date=command.start_date,
                end_date=command.end_date,
                user_id=command.user_id,
                title=command.title,
                purpose=command.purpose,
            )

            admission.ensure_no_conflicts(booking)
            admission.ensure_valid(booking, asset)

            booking.mark_admitted()
            admission.booking_repo.save(booking)
            admission.slot_repo.reserve(asset, booking.dates, admission.quotas.classify(booking.lob))

            booking.add_event(BookingAdmitted(
                aggregate_id=booking.id,
                booking_id=booking.id,
                asset_id=booking.asset_id,
                lob=booking.lob,
                dates=booking.dates,
            ))
            uow.collect_events(booking)

        logger.info(f"Booking {booking.id} admitted for {booking.lob} on asset {booking.asset_id}")
        return booking


class RescheduleBookingHandler:
    """
    Handler for moving a booking to new dates

    The booking keeps its id, so it does not conflict with itself and the
    lead-time rule may be waived for it.
    """

    def __init__(self, admission: BookingAdmission):
        self.admission = admission

    def handle(self, command: RescheduleBookingCommand) -> Booking:
        logger.info(
            f"Rescheduling booking {command.booking_id} to {command.start_date} - {command.end_date}"
        )
        admission = self.admission

        with DjangoUnitOfWork() as uow:
            current = admission.booking_repo.get_by_id(command.booking_id)
            asset = admission.asset_repo.get_asset(current.asset_id, lock=True)
            booking = admission.booking_repo.get_by_id(command.booking_id, lock=True)
            if not booking.is_blocking:
                raise StateError(f"Cannot reschedule booking {booking.id} in status {booking.status.value}")

            previous_dates = booking.dates
            candidate = Booking(
                id=booking.id,
                asset_id=booking.asset_id,
                lob=booking.lob,
                start_date=command.start_date,
                end_date=command.end_date,
                purpose=booking.purpose,
            )
            admission.ensure_no_conflicts(candidate)
            admission.ensure_valid(candidate, asset)

            booking.start_date = command.start_date
            booking.end_date = command.end_date
            admission.booking_repo.save(booking)

            demand_class = admission.quotas.classify(booking.lob)
            admission.slot_repo.release(asset, previous_dates, demand_class)
            admission.slot_repo.reserve(asset, booking.dates, demand_class)
            uow.collect_events(booking)

        logger.info(f"Booking {booking.id} moved from {previous_dates} to {booking.dates}")
        return booking


class ReviewBookingHandler:
    """Handler applying the approval decision (PENDING -> APPROVED | REJECTED)"""

    def __init__(self, booking_repo: BookingRepository, asset_repo: AssetConfigRepository,
                 slot_repo: SlotAllocationRepository, quotas: SlotQuotaManager):
        self.booking_repo = booking_repo
        self.asset_repo = asset_repo
        self.slot_repo = slot_repo
        self.quotas = quotas

    def handle(self, command: ReviewBookingCommand) -> Booking:
        with DjangoUnitOfWork() as uow:
            booking = self.booking_repo.get_by_id(command.booking_id, lock=True)
            if command.approve:
                booking.approve()
            else:
                booking.reject()
                # Rejected bookings no longer hold their slots.
                asset = self.asset_repo.get_asset(booking.asset_id)
                self.slot_repo.release(asset, booking.dates, self.quotas.classify(booking.lob))

            booking.add_event(BookingReviewed(
                aggregate_id=booking.id,
                booking_id=booking.id,
                status=booking.status.value,
            ))
            uow.collect_events(booking)
            self.booking_repo.save(booking)

        logger.info(f"Booking {booking.id} {booking.status.value}")
        return booking


def build_admission(booking_repo: Optional[BookingRepository] = None,
                    asset_repo: Optional[AssetConfigRepository] = None,
                    slot_repo: Optional[SlotAllocationRepository] = None) -> BookingAdmission:
    """Admission pipeline configured from ``BOOKING_RULES`` and ``SLOT_QUOTAS``."""
    return BookingAdmission(
        booking_repo=booking_repo or DjangoBookingRepository(),
        asset_repo=asset_repo or DjangoAssetConfigRepository(),
        slot_repo=slot_repo or SlotAllocationRepository(),
        validator=TemporalRuleValidator(RuleConfig.from_dict(settings.BOOKING_RULES)),
        quotas=SlotQuotaManager(QuotaSettings.from_dict(settings.SLOT_QUOTAS), timezone.get_default_timezone()),
    )


def register_handlers(bus, admission: Optional[BookingAdmission] = None):
    admission = admission or build_admission()
    review = ReviewBookingHandler(
        admission.booking_repo, admission.asset_repo, admission.slot_repo, admission.quotas,
    )
    bus.register_command_handler(ValidateBookingCommand, ValidateBookingHandler(admission).handle, replace=True)
    bus.register_command_handler(AdmitBookingCommand, AdmitBookingHandler(admission).handle, replace=True)
    bus.register_command_handler(RescheduleBookingCommand, RescheduleBookingHandler(admission).handle, replace=True)
    bus.register_command_handler(ReviewBookingCommand, review.handle, replace=True)
