"""Tests for demand classification, quota shares and bid caps."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from django.conf import settings
from django.test import SimpleTestCase

from apps.assets.domain import Asset, AssetLevel, BidCapRecord, DemandClass, QuotaLimits, TimeRestriction
from apps.auctions.domain.entities import Bid, SlotUsage
from apps.auctions.domain.quota import QuotaSettings, SlotQuotaManager

DAY = date(2025, 3, 10)
BUSINESS_HOURS = datetime(2025, 3, 1, 11, 0, tzinfo=timezone.utc)


def asset(level: AssetLevel = AssetLevel.SECONDARY, slots: int = 10) -> Asset:
    return Asset(id=1, level=level, value_per_day=Decimal("1000.00"), max_slots=slots)


def bid(lob: str, amount: str = "1000", created_at: datetime = BUSINESS_HOURS) -> Bid:
    return Bid(booking_id=1, lob=lob, bid_amount=Decimal(amount), created_at=created_at)


def usage(total: int = 10, **counters) -> SlotUsage:
    return SlotUsage(asset_id=1, day=DAY, total_slots=total, **counters)


class ClassificationTests(SimpleTestCase):
    def setUp(self) -> None:
        self.quotas = SlotQuotaManager(QuotaSettings.from_dict(settings.SLOT_QUOTAS))

    def test_lobs_are_internal_unless_tagged(self) -> None:
        self.assertEqual(self.quotas.classify("Monetization"), DemandClass.MONETIZATION)
        self.assertEqual(self.quotas.classify("Partner Ads"), DemandClass.EXTERNAL)
        self.assertEqual(self.quotas.classify("AI Bot"), DemandClass.INTERNAL)

    def test_limits_come_from_level_defaults_or_override(self) -> None:
        self.assertEqual(
            self.quotas.resolve_limits(asset(AssetLevel.TERTIARY)),
            QuotaLimits(internal=0.80, external=0.20, monetization=0.10),
        )
        override = QuotaLimits(internal=0.5, external=0.5, monetization=0.3)
        self.assertIs(self.quotas.resolve_limits(asset(), override), override)

    def test_internal_guarantee_and_external_limit_cannot_exceed_all_slots(self) -> None:
        with self.assertRaises(ValueError):
            QuotaLimits(internal=0.7, external=0.4, monetization=0.1)
        with self.assertRaises(ValueError):
            QuotaLimits(internal=0.5, external=0.5, monetization=1.5)


class AdmissibilityTests(SimpleTestCase):
    def setUp(self) -> None:
        self.quotas = SlotQuotaManager(QuotaSettings.from_dict(settings.SLOT_QUOTAS))

    def test_monetization_asking_for_a_fifth_of_a_secondary_asset_is_excluded(self) -> None:
        secondary = asset(AssetLevel.SECONDARY, slots=5)
        limits = self.quotas.resolve_limits(secondary)

        decision = self.quotas.is_admissible(bid("Monetization"), secondary, [usage(total=5)], limits)

        self.assertFalse(decision)
        self.assertIn("limit 15%", decision.reason)

    def test_monetization_counts_against_the_external_umbrella(self) -> None:
        primary = asset(AssetLevel.PRIMARY)
        limits = self.quotas.resolve_limits(primary)

        self.assertTrue(self.quotas.is_admissible(
            bid("Monetization"), primary, [usage(external=2, monetization=1)], limits,
        ))
        decision = self.quotas.is_admissible(
            bid("Monetization"), primary, [usage(external=3, monetization=1)], limits,
        )
        self.assertFalse(decision)
        self.assertTrue(decision.reason.startswith("External share"))

    def test_every_day_of_the_booking_is_checked(self) -> None:
        limits = self.quotas.resolve_limits(asset())
        days = [usage(), usage(internal=7)]

        self.assertFalse(self.quotas.is_admissible(bid("AI Bot"), asset(), days, limits))

    def test_bid_multiplier_per_class(self) -> None:
        limits = self.quotas.resolve_limits(asset())

        self.assertTrue(self.quotas.is_admissible(bid("AI Bot", "2000"), asset(), [usage()], limits))
        self.assertFalse(self.quotas.is_admissible(bid("AI Bot", "2000.01"), asset(), [usage()], limits))
        self.assertTrue(self.quotas.is_admissible(bid("Partner Ads", "1500"), asset(), [usage()], limits))
        self.assertFalse(self.quotas.is_admissible(bid("Partner Ads", "1600"), asset(), [usage()], limits))

    def test_bid_cap_overrides_the_class_multiplier(self) -> None:
        limits = self.quotas.resolve_limits(asset(AssetLevel.PRIMARY))
        cap = BidCapRecord(lob="Monetization", asset_level=AssetLevel.PRIMARY, max_bid_multiplier=3.0)
        primary = asset(AssetLevel.PRIMARY)

        self.assertFalse(self.quotas.is_admissible(bid("Monetization", "2500"), primary, [usage()], limits))
        self.assertTrue(self.quotas.is_admissible(bid("Monetization", "2500"), primary, [usage()], limits, cap))

    def test_monetization_outside_business_hours_is_excluded(self) -> None:
        primary = asset(AssetLevel.PRIMARY)
        limits = self.quotas.resolve_limits(primary)
        evening = datetime(2025, 3, 1, 19, 30, tzinfo=timezone.utc)

        decision = self.quotas.is_admissible(bid("Monetization", created_at=evening), primary, [usage()], limits)
        self.assertFalse(decision)
        self.assertIn("between 09:00 and 18:00", decision.reason)

        anytime = BidCapRecord(
            lob="Monetization", asset_level=AssetLevel.PRIMARY,
            max_bid_multiplier=1.2, time_restriction=TimeRestriction.NONE,
        )
        self.assertTrue(self.quotas.is_admissible(
            bid("Monetization", created_at=evening), primary, [usage()], limits, anytime,
        ))

    def test_business_hours_use_the_configured_time_zone(self) -> None:
        quotas = SlotQuotaManager(QuotaSettings.from_dict(settings.SLOT_QUOTAS), ZoneInfo("Asia/Kolkata"))
        primary = asset(AssetLevel.PRIMARY)
        early_utc = datetime(2025, 3, 1, 5, 0, tzinfo=timezone.utc)  # 10:30 in Kolkata

        self.assertTrue(quotas.is_admissible(
            bid("Monetization", created_at=early_utc), primary, [usage()], quotas.resolve_limits(primary),
        ))

    def test_bid_cap_slot_limit_tightens_the_class_share(self) -> None:
        limits = self.quotas.resolve_limits(asset())
        cap = BidCapRecord(lob="AI Bot", asset_level=AssetLevel.SECONDARY,
                           max_bid_multiplier=2.0, slot_limit_percentage=0.1)

        self.assertTrue(self.quotas.is_admissible(bid("AI Bot"), asset(), [usage(internal=1)], limits))
        decision = self.quotas.is_admissible(bid("AI Bot"), asset(), [usage(internal=1)], limits, cap)
        self.assertFalse(decision)
        self.assertIn("limit 10%", decision.reason)
