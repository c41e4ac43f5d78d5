"""Builds the pre-fetched ValidationContext the temporal rules run against."""

from datetime import date
from typing import Callable, Optional

from django.utils import timezone  # type: ignore

from apps.assets.domain import Asset
from apps.bookings.domain.entities import Booking
from apps.bookings.domain.rules import RuleConfig, ValidationContext
from apps.bookings.repositories import BookingRepository
from shared.domain.value_objects import DateRange


class BookingContextLoader:
    """
    Runs every query the rules need, once, for one candidate.

    Call it inside the admission transaction (after the asset row is
    locked) so the snapshot cannot change before the booking is stored.
    """

    def __init__(self, booking_repo: BookingRepository, config: RuleConfig,
                 today: Optional[Callable[[], date]] = None):
        self.booking_repo = booking_repo
        self.config = config
        self._today = today or timezone.localdate

    def load(self, candidate: Booking, asset: Asset) -> ValidationContext:
        repo = self.booking_repo
        exclude = candidate.id

        rolling_window = candidate.dates.widened_back(self.config.rolling_window_quota.window_days)
        purpose_window = candidate.dates.widened_back(self.config.purpose_duplication.window_days)
        quarter = DateRange.quarter_of(candidate.start_date)

        return ValidationContext(
            asset=asset,
            today=self._today(),
            adjacent_bookings=repo.find_adjacent_by_asset_and_lob(
                candidate.asset_id, candidate.lob, candidate.start_date, candidate.end_date, exclude,
            ),
            window_bookings=repo.find_by_asset_lob_within_window(
                candidate.asset_id, candidate.lob, rolling_window, exclude,
            ),
            last_booking=repo.find_last_booking_by_asset_lob(candidate.asset_id, candidate.lob, exclude),
            active_lob_bookings=repo.find_active_by_lob(candidate.lob, candidate.start_date, exclude),
            quarter_bookings=repo.find_by_asset_lob_within_window(
                candidate.asset_id, None, quarter, exclude,
            ),
            purpose_bookings=repo.find_by_asset_purpose_within_window(
                candidate.asset_id, candidate.purpose, purpose_window, exclude,
            ),
        )
