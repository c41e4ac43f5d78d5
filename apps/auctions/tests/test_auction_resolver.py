from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from django.test import SimpleTestCase

from apps.assets.domain import DemandClass
from apps.auctions.domain.entities import Bid, BidStatus, ScoredBid
from apps.auctions.domain.resolver import auto_bid_amount, compute_auto_bids, select_winner
from shared.domain.exceptions import InvalidBidError

T0 = datetime(2025, 3, 1, 10, 0, tzinfo=timezone.utc)


def bid(id: int, amount: str, max_bid: str | None = None, created_at: datetime = T0, **extra) -> Bid:
    return Bid(
        id=id, booking_id=1, lob="AI Bot", bid_amount=Decimal(amount),
        max_bid=Decimal(max_bid) if max_bid else None, created_at=created_at, **extra,
    )


def scored(b: Bid, score: float) -> ScoredBid:
    return ScoredBid(bid=b, demand_class=DemandClass.INTERNAL, score=score)


class SelectWinnerTests(SimpleTestCase):
    def test_highest_score_wins_over_highest_amount(self) -> None:
        a, b = bid(1, "1000"), bid(2, "900")
        self.assertIs(select_winner([scored(a, 1.2), scored(b, 1.8)]).bid, b)

    def test_ties_break_on_amount_then_time_then_id(self) -> None:
        cheap, rich = bid(1, "900"), bid(2, "1000")
        self.assertIs(select_winner([scored(cheap, 1.5), scored(rich, 1.5)]).bid, rich)

        late, early = bid(3, "1000", created_at=T0 + timedelta(minutes=5)), bid(4, "1000")
        self.assertIs(select_winner([scored(late, 1.5), scored(early, 1.5)]).bid, early)

        second, first = bid(6, "1000"), bid(5, "1000")
        self.assertIs(select_winner([scored(second, 1.5), scored(first, 1.5)]).bid, first)

    def test_no_bids_no_winner(self) -> None:
        self.assertIsNone(select_winner([]))


class AutoBidTests(SimpleTestCase):
    def test_amount_is_ten_percent_above_rounded_up_and_capped(self) -> None:
        self.assertEqual(auto_bid_amount(Decimal("1000"), Decimal("2000")), Decimal("1100"))
        self.assertEqual(auto_bid_amount(Decimal("999.50"), Decimal("2000")), Decimal("1100"))
        self.assertEqual(auto_bid_amount(Decimal("1000"), Decimal("1050")), Decimal("1050"))

    def test_outbid_bids_with_a_max_are_raised_once(self) -> None:
        leader = bid(1, "1000")
        capped = bid(2, "900", max_bid="1050")
        roomy = bid(3, "800", max_bid="5000")
        manual = bid(4, "950")

        raises = compute_auto_bids([leader, capped, roomy, manual])

        self.assertEqual(
            [(b.id, amount) for b, amount in raises],
            [(2, Decimal("1050")), (3, Decimal("1100"))],
        )

    def test_the_submitted_bid_is_never_raised(self) -> None:
        leader = bid(1, "1300")
        submitted = bid(2, "1100", max_bid="1500")
        other = bid(3, "1000", max_bid="2000")

        raises = compute_auto_bids([leader, submitted, other], exclude_bid_id=2)

        self.assertEqual([(b.id, amount) for b, amount in raises], [(3, Decimal("1430"))])

    def test_bids_already_at_their_max_or_inactive_are_left_alone(self) -> None:
        leader = bid(1, "1000")
        maxed = bid(2, "900", max_bid="900")
        withdrawn = bid(3, "800", max_bid="5000", status=BidStatus.CANCELLED)

        self.assertEqual(compute_auto_bids([leader, maxed, withdrawn]), [])

    def test_raise_marks_the_bid_automatic_and_respects_max(self) -> None:
        capped = bid(2, "900", max_bid="1050")
        capped.raise_to(Decimal("1050"))
        self.assertTrue(capped.is_auto)

        with self.assertRaises(InvalidBidError):
            capped.raise_to(Decimal("1100"))

    def test_invalid_amounts_are_rejected(self) -> None:
        with self.assertRaises(InvalidBidError):
            bid(1, "0")
        with self.assertRaises(InvalidBidError):
            bid(1, "1000", max_bid="900")
