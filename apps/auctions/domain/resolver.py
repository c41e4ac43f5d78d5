"""
Auction Resolver

Pure selection logic used by the auction handlers: who wins among the
scored bids, and which outbid bids get auto-raised.
"""

from decimal import ROUND_CEILING, Decimal
from typing import Iterable, List, Optional, Sequence, Tuple

from .entities import Bid, ScoredBid

AUTO_BID_STEP = Decimal('1.10')


def ranking_key(scored: ScoredBid):
    """Highest score, then highest amount, then earliest bid, then lowest id."""
    bid = scored.bid
    return (-scored.score, -bid.bid_amount, bid.created_at, bid.id if bid.id is not None else 0)


def select_winner(scored_bids: Iterable[ScoredBid]) -> Optional[ScoredBid]:
    ranked = sorted(scored_bids, key=ranking_key)
    return ranked[0] if ranked else None


def highest_amount(bids: Iterable[Bid]) -> Optional[Decimal]:
    amounts = [bid.bid_amount for bid in bids if bid.is_active]
    return max(amounts) if amounts else None


def auto_bid_amount(highest: Decimal, max_bid: Decimal) -> Decimal:
    """10% above the running highest, rounded up to a whole unit, never beyond ``max_bid``."""
    step = (highest * AUTO_BID_STEP).to_integral_value(rounding=ROUND_CEILING)
    return min(step, max_bid)


def compute_auto_bids(bids: Sequence[Bid], exclude_bid_id: Optional[int] = None) -> List[Tuple[Bid, Decimal]]:
    """
    One pass of auto-bidding against the current highest active amount.

    Every other active bid below the highest that carries a ``max_bid`` is
    raised to ``auto_bid_amount``, when that is actually an increase. The bid
    that set the new highest (``exclude_bid_id``) is never raised. Raises do
    not trigger further raises.
    """
    highest = highest_amount(bids)
    if highest is None:
        return []
    raises = []
    for bid in bids:
        if bid.id is not None and bid.id == exclude_bid_id:
            continue
        if not bid.is_active or bid.max_bid is None or bid.bid_amount >= highest:
            continue
        amount = auto_bid_amount(highest, bid.max_bid)
        if amount > bid.bid_amount:
            raises.append((bid, amount))
    return raises
