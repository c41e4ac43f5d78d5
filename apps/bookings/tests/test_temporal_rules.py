"""Tests for the temporal rule validator and its ten rules."""

from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta
from decimal import Decimal

from django.conf import settings
from django.test import SimpleTestCase

from apps.assets.domain import Asset, AssetLevel
from apps.bookings.domain.entities import Booking, BookingStatus
from apps.bookings.domain.rules import (
    AssetTypeExclusivity,
    BlackoutDates,
    ConcurrentBookingCap,
    CooldownPeriod,
    MaxBookingLength,
    MinLeadTime,
    NoConsecutiveSameAssetLOB,
    PercentageShareCap,
    PurposeDuplication,
    RollingWindowQuota,
    RuleConfig,
    TemporalRuleValidator,
    ValidationContext,
)

TODAY = date(2025, 1, 6)
ASSET = Asset(id=1, level=AssetLevel.SECONDARY, value_per_day=Decimal("1000.00"), max_slots=10, asset_type="banner")


def booking(start: date, days: int, *, id=None, asset_id=1, lob="AI Bot", purpose="",
            status=BookingStatus.APPROVED) -> Booking:
    return Booking(
        id=id,
        asset_id=asset_id,
        lob=lob,
        start_date=start,
        end_date=start + timedelta(days=days - 1),
        purpose=purpose,
        status=status,
    )


def context(**collections) -> ValidationContext:
    collections.setdefault("asset", ASSET)
    collections.setdefault("today", TODAY)
    return ValidationContext(**collections)


class MaxBookingLengthTests(SimpleTestCase):
    def test_seven_days_pass_and_eight_fail(self) -> None:
        rule = MaxBookingLength()
        self.assertIsNone(rule.check(booking(date(2025, 3, 1), 7), context()))
        self.assertEqual(
            rule.check(booking(date(2025, 3, 1), 8), context()),
            "Exceeds maximum allowed booking length of 7 days",
        )


class NoConsecutiveTests(SimpleTestCase):
    def test_booking_ending_the_day_before_is_rejected(self) -> None:
        rule = NoConsecutiveSameAssetLOB()
        candidate = booking(date(2025, 3, 10), 3)
        ctx = context(adjacent_bookings=[booking(date(2025, 3, 7), 3, id=5)])

        self.assertEqual(
            rule.check(candidate, ctx),
            "Cannot book consecutively for the same asset and LOB. There must be at least 1 day gap.",
        )

    def test_one_free_day_or_other_lob_passes(self) -> None:
        rule = NoConsecutiveSameAssetLOB()
        candidate = booking(date(2025, 3, 10), 3)
        ctx = context(adjacent_bookings=[
            booking(date(2025, 3, 6), 3, id=5),
            booking(date(2025, 3, 13), 2, id=6, lob="Pharmacy"),
            booking(date(2025, 3, 13), 2, id=7, status=BookingStatus.REJECTED),
        ])

        self.assertIsNone(rule.check(candidate, ctx))

    def test_primary_monetization_backfill_is_exempt(self) -> None:
        rule = NoConsecutiveSameAssetLOB()
        primary = replace(ASSET, level=AssetLevel.PRIMARY)
        candidate = booking(date(2025, 3, 10), 3, lob="Monetization")
        ctx = context(
            asset=primary,
            adjacent_bookings=[booking(date(2025, 3, 13), 2, id=5, lob="Monetization")],
        )

        self.assertIsNone(rule.check(candidate, ctx))


class RollingWindowQuotaTests(SimpleTestCase):
    def setUp(self) -> None:
        self.rule = RollingWindowQuota()
        self.ctx = context(window_bookings=[booking(date(2025, 2, 5), 10, id=1)])

    def test_ten_booked_plus_five_requested_fails(self) -> None:
        self.assertEqual(
            self.rule.check(booking(date(2025, 3, 1), 5), self.ctx),
            "Rolling window quota exceeded: max 14 days in 30-day window",
        )

    def test_ten_booked_plus_four_requested_passes(self) -> None:
        self.assertIsNone(self.rule.check(booking(date(2025, 3, 1), 4), self.ctx))

    def test_bookings_outside_the_window_do_not_count(self) -> None:
        ctx = context(window_bookings=[booking(date(2025, 1, 10), 10, id=1)])
        self.assertIsNone(self.rule.check(booking(date(2025, 3, 1), 5), ctx))

    def test_reschedule_does_not_count_its_own_days(self) -> None:
        stored = booking(date(2025, 2, 25), 5, id=3)
        ctx = context(window_bookings=[booking(date(2025, 2, 5), 10, id=1), stored])
        self.assertIsNone(self.rule.check(booking(date(2025, 3, 1), 4, id=3), ctx))


class MinLeadTimeTests(SimpleTestCase):
    def test_start_must_be_three_days_ahead(self) -> None:
        rule = MinLeadTime()
        self.assertEqual(
            rule.check(booking(TODAY + timedelta(days=2), 2), context()),
            "Bookings must be created at least 3 days in advance",
        )
        self.assertIsNone(rule.check(booking(TODAY + timedelta(days=3), 2), context()))

    def test_reschedule_may_start_immediately(self) -> None:
        candidate = booking(TODAY + timedelta(days=1), 2, id=9)
        self.assertIsNone(MinLeadTime().check(candidate, context()))
        self.assertIsNotNone(
            MinLeadTime(allow_immediate_for_reschedule=False).check(candidate, context())
        )


class CooldownPeriodTests(SimpleTestCase):
    def test_three_day_gap_after_last_booking(self) -> None:
        rule = CooldownPeriod()
        last = booking(date(2025, 2, 20), 8, id=4)  # ends 2025-02-27

        self.assertEqual(
            rule.check(booking(date(2025, 3, 1), 2), context(last_booking=last)),
            "Need a 3-day gap after previous booking for same asset & LOB",
        )
        self.assertIsNone(rule.check(booking(date(2025, 3, 2), 2), context(last_booking=last)))

    def test_last_booking_of_other_lob_is_ignored(self) -> None:
        last = booking(date(2025, 2, 20), 8, id=4, lob="Pharmacy")
        self.assertIsNone(CooldownPeriod().check(booking(date(2025, 3, 1), 2), context(last_booking=last)))


class ConcurrentBookingCapTests(SimpleTestCase):
    def test_two_active_bookings_block_a_third(self) -> None:
        candidate = booking(date(2025, 3, 5), 2)
        ctx = context(active_lob_bookings=[
            booking(date(2025, 3, 1), 7, id=1, asset_id=2),
            booking(date(2025, 3, 4), 3, id=2, asset_id=3),
        ])

        self.assertEqual(
            ConcurrentBookingCap().check(candidate, ctx),
            "LOB already has 2 active bookings – limit is 2",
        )

    def test_rejected_and_finished_bookings_do_not_count(self) -> None:
        candidate = booking(date(2025, 3, 5), 2)
        ctx = context(active_lob_bookings=[
            booking(date(2025, 3, 1), 7, id=1, asset_id=2),
            booking(date(2025, 3, 4), 3, id=2, asset_id=3, status=BookingStatus.REJECTED),
            booking(date(2025, 2, 1), 3, id=3, asset_id=3),
        ])

        self.assertIsNone(ConcurrentBookingCap().check(candidate, ctx))


class BlackoutDatesTests(SimpleTestCase):
    def test_range_covering_a_blackout_date_is_rejected(self) -> None:
        rule = BlackoutDates(dates=(date(2024, 12, 25),))
        self.assertEqual(
            rule.check(booking(date(2024, 12, 23), 5), context()),
            "Bookings are not allowed on blackout date 2024-12-25",
        )
        self.assertIsNone(rule.check(booking(date(2024, 12, 26), 3), context()))


class PercentageShareCapTests(SimpleTestCase):
    def test_lob_share_of_quarter_days(self) -> None:
        rule = PercentageShareCap()
        candidate = booking(date(2025, 3, 20), 7)

        over = context(quarter_bookings=[booking(date(2025, 1, 1), 30, id=1)])
        self.assertEqual(
            rule.check(candidate, over),
            "LOB exceeds 40% share of asset days in this quarter",
        )

        at_cap = context(quarter_bookings=[
            booking(date(2025, 1, 1), 29, id=1),
            booking(date(2025, 2, 1), 20, id=2, lob="Pharmacy"),
        ])
        self.assertIsNone(rule.check(candidate, at_cap))

    def test_monetization_share_of_booked_days_on_secondary_asset(self) -> None:
        rule = PercentageShareCap()
        candidate = booking(date(2025, 3, 20), 7, lob="Monetization")

        within = context(quarter_bookings=[booking(date(2025, 1, 1), 40, id=1)])
        self.assertIsNone(rule.check(candidate, within))

        over = context(quarter_bookings=[booking(date(2025, 1, 1), 30, id=1)])
        self.assertEqual(
            rule.check(candidate, over),
            "Monetization quota exceeded: 18.9% booked (max 15%)",
        )

    def test_monetization_level_cap_follows_asset_level(self) -> None:
        rule = PercentageShareCap()
        primary = replace(ASSET, level=AssetLevel.PRIMARY)
        candidate = booking(date(2025, 3, 20), 7, lob="Monetization")

        ctx = context(asset=primary, quarter_bookings=[booking(date(2025, 1, 1), 30, id=1)])
        self.assertIsNone(rule.check(candidate, ctx))


class PurposeDuplicationTests(SimpleTestCase):
    def test_same_purpose_on_same_asset_within_window(self) -> None:
        rule = PurposeDuplication()
        candidate = booking(date(2025, 3, 10), 3, lob="Pharmacy", purpose="Spring sale")
        ctx = context(purpose_bookings=[booking(date(2025, 2, 20), 3, id=1, purpose="Spring sale")])

        self.assertEqual(
            rule.check(candidate, ctx),
            "Identical purpose used recently for this asset – please vary campaign or wait for window to pass",
        )

    def test_other_asset_old_booking_or_blank_purpose_pass(self) -> None:
        rule = PurposeDuplication()
        ctx = context(purpose_bookings=[
            booking(date(2025, 2, 20), 3, id=1, asset_id=2, purpose="Spring sale"),
            booking(date(2025, 1, 1), 3, id=2, purpose="Spring sale"),
        ])

        self.assertIsNone(rule.check(booking(date(2025, 3, 10), 3, purpose="Spring sale"), ctx))
        self.assertIsNone(rule.check(booking(date(2025, 3, 10), 3), ctx))


class AssetTypeExclusivityTests(SimpleTestCase):
    def test_allow_list_per_asset_type(self) -> None:
        rule = AssetTypeExclusivity(allowed={"billboard": frozenset({"Monetization"})})
        billboard = replace(ASSET, asset_type="billboard")

        self.assertEqual(
            rule.check(booking(date(2025, 3, 10), 3), context(asset=billboard)),
            "LOB AI Bot is not allowed to book asset type billboard",
        )
        self.assertIsNone(rule.check(booking(date(2025, 3, 10), 3, lob="Monetization"), context(asset=billboard)))
        self.assertIsNone(rule.check(booking(date(2025, 3, 10), 3), context()))


class TemporalRuleValidatorTests(SimpleTestCase):
    def setUp(self) -> None:
        self.config = RuleConfig.from_dict(settings.BOOKING_RULES)
        self.validator = TemporalRuleValidator(self.config)

    def test_config_is_built_from_settings(self) -> None:
        self.assertEqual(self.config.blackout_dates.dates, (date(2024, 12, 25),))
        self.assertIn((AssetLevel.PRIMARY, "Monetization"), self.config.no_consecutive_same_asset_lob.exempt)
        self.assertEqual(len(self.validator.rules), 10)

        with self.assertRaises(ValueError):
            RuleConfig.from_dict({"max_days": {"max_days": 3}})

    def test_blackout_is_rejected_even_when_every_other_rule_passes(self) -> None:
        candidate = booking(date(2024, 12, 23), 5)
        ctx = context(today=date(2024, 12, 1))

        self.assertEqual(
            self.validator.validate(candidate, ctx),
            ["Bookings are not allowed on blackout date 2024-12-25"],
        )

    def test_violations_accumulate_in_rule_order(self) -> None:
        candidate = booking(date(2024, 12, 20), 8)
        ctx = context(today=date(2024, 12, 1))

        self.assertEqual(
            self.validator.validate(candidate, ctx),
            [
                "Exceeds maximum allowed booking length of 7 days",
                "Bookings are not allowed on blackout date 2024-12-25",
            ],
        )

    def test_validate_is_idempotent(self) -> None:
        candidate = booking(date(2025, 2, 1), 9, purpose="Launch")
        ctx = context(
            window_bookings=[booking(date(2025, 1, 12), 10, id=1)],
            last_booking=booking(date(2025, 1, 12), 10, id=1),
            purpose_bookings=[booking(date(2025, 1, 20), 2, id=2, purpose="Launch")],
        )

        first = self.validator.validate(candidate, ctx)
        second = self.validator.validate(candidate, ctx)

        self.assertEqual(first, second)
        self.assertEqual(len(first), 3)
        self.assertEqual(len(ctx.window_bookings), 1)

    def test_disabled_rules_are_skipped(self) -> None:
        config = replace(self.config, blackout_dates=replace(self.config.blackout_dates, enabled=False))
        validator = TemporalRuleValidator(config)

        self.assertEqual(validator.validate(booking(date(2024, 12, 23), 5), context(today=date(2024, 12, 1))), [])
        self.assertEqual(len(validator.rules), 9)
