from __future__ import annotations

from datetime import datetime, timedelta, timezone

from django.conf import settings
from django.test import SimpleTestCase

from apps.assets.domain import DemandClass, FairnessOverrides
from apps.auctions.domain.fairness import BidFairnessScorer, FairnessSettings

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class BidFairnessScorerTests(SimpleTestCase):
    def setUp(self) -> None:
        self.scorer = BidFairnessScorer(FairnessSettings.from_dict(settings.FAIRNESS))

    def test_roi_is_normalized_against_the_lob_target_and_capped(self) -> None:
        self.assertAlmostEqual(self.scorer.normalized_roi("Monetization", {"revenue_per_day": 1500}), 1.5)
        self.assertAlmostEqual(self.scorer.normalized_roi("Lab Test", {"bookings": 25}), 0.5)
        self.assertEqual(self.scorer.normalized_roi("Monetization", {"revenue_per_day": 5000}), 2.0)

    def test_unknown_lob_or_missing_metric_is_neutral(self) -> None:
        self.assertEqual(self.scorer.normalized_roi("Partner Ads", {"revenue_per_day": 10}), 1.0)
        self.assertEqual(self.scorer.normalized_roi("AI Bot", {"revenue_per_day": 10}), 1.0)

    def test_strategic_weight_per_class(self) -> None:
        self.assertEqual(self.scorer.strategic_weight(DemandClass.INTERNAL), 1.4)
        self.assertEqual(self.scorer.strategic_weight(DemandClass.EXTERNAL), 1.0)
        self.assertEqual(self.scorer.strategic_weight(DemandClass.MONETIZATION), 1.5)

    def test_time_fairness_grows_with_days_since_last_win(self) -> None:
        self.assertEqual(self.scorer.time_fairness(None, NOW), 2.0)
        self.assertAlmostEqual(self.scorer.time_fairness(NOW - timedelta(days=30), NOW), 1.1)
        self.assertEqual(self.scorer.time_fairness(NOW, NOW), 1.0)
        self.assertEqual(self.scorer.time_fairness(NOW - timedelta(days=3000), NOW), 2.0)

    def test_internal_score_includes_the_fairness_bonus(self) -> None:
        score = self.scorer.score(
            "AI Bot", DemandClass.INTERNAL, {"user_interactions": 500}, None, NOW,
        )
        self.assertAlmostEqual(score, 0.5 * 1.4 * 2.0 + 0.3)

    def test_monetization_score_uses_the_revenue_floor(self) -> None:
        score = self.scorer.score(
            "Monetization", DemandClass.MONETIZATION, {"revenue_per_day": 1000},
            NOW - timedelta(days=30), NOW,
        )
        self.assertAlmostEqual(score, 1.0 * 1.5 * 1.1)

    def test_per_asset_overrides(self) -> None:
        tuned = BidFairnessScorer(self.scorer.settings.with_overrides(
            FairnessOverrides(strategic_weight_override=0.5, fairness_bonus=0.0),
        ))

        breakdown = tuned.breakdown("AI Bot", DemandClass.INTERNAL, {"user_interactions": 1000}, None, NOW)

        self.assertEqual(breakdown.strategic_weight, 0.5)
        self.assertEqual(breakdown.bonus, 0.0)
        self.assertAlmostEqual(breakdown.value, 1.0)
        self.assertIs(self.scorer.settings.with_overrides(None), self.scorer.settings)

    def test_bid_cap_revenue_floor_replaces_the_monetization_weight(self) -> None:
        self.assertEqual(self.scorer.strategic_weight(DemandClass.MONETIZATION, revenue_floor=1.8), 1.8)
        self.assertEqual(self.scorer.strategic_weight(DemandClass.INTERNAL, revenue_floor=1.8), 1.4)

        score = self.scorer.score(
            "Monetization", DemandClass.MONETIZATION, {"revenue_per_day": 1000}, None, NOW, revenue_floor=1.8,
        )
        self.assertAlmostEqual(score, 1.0 * 1.8 * 2.0)
