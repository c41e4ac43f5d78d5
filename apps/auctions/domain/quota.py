"""
Slot Quota Manager

Keeps any one demand class from taking more than its share of an asset's
slots, and keeps bids within the class's bid cap.

Classes:
- internal: every LOB not listed as external (the default)
- external: LOBs listed in ``SLOT_QUOTAS["external_lobs"]``
- monetization: the monetization LOB; also counted against the external
  umbrella limit
"""

from dataclasses import dataclass, field
from datetime import tzinfo, timezone
from decimal import Decimal
from typing import Any, FrozenSet, Iterable, Mapping, Optional, Sequence, Tuple
import logging

from apps.assets.domain import (
    Asset,
    AssetLevel,
    BidCapRecord,
    DemandClass,
    QuotaLimits,
    TimeRestriction,
)

from .entities import Bid, SlotUsage

logger = logging.getLogger(__name__)


DEFAULT_LEVEL_LIMITS = {
    AssetLevel.PRIMARY: QuotaLimits(internal=0.60, external=0.40, monetization=0.20),
    AssetLevel.SECONDARY: QuotaLimits(internal=0.70, external=0.30, monetization=0.15),
    AssetLevel.TERTIARY: QuotaLimits(internal=0.80, external=0.20, monetization=0.10),
}

DEFAULT_MULTIPLIERS = {
    DemandClass.INTERNAL: 2.0,
    DemandClass.EXTERNAL: 1.5,
    DemandClass.MONETIZATION: 1.2,
}


@dataclass(frozen=True)
class QuotaSettings:
    monetization_lob: str = 'Monetization'
    external_lobs: FrozenSet[str] = frozenset()
    level_defaults: Mapping[AssetLevel, QuotaLimits] = field(default_factory=lambda: dict(DEFAULT_LEVEL_LIMITS))
    max_bid_multipliers: Mapping[DemandClass, float] = field(default_factory=lambda: dict(DEFAULT_MULTIPLIERS))
    time_restrictions: Mapping[DemandClass, TimeRestriction] = field(default_factory=lambda: {
        DemandClass.MONETIZATION: TimeRestriction.BUSINESS_HOURS,
    })
    business_hours: Tuple[int, int] = (9, 18)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> 'QuotaSettings':
        raw = raw or {}
        defaults = cls()
        hours = raw.get('business_hours') or {}
        return cls(
            monetization_lob=raw.get('monetization_lob', defaults.monetization_lob),
            external_lobs=frozenset(raw.get('external_lobs', ())),
            level_defaults={
                **defaults.level_defaults,
                **{AssetLevel(level): QuotaLimits(**limits)
                   for level, limits in (raw.get('level_defaults') or {}).items()},
            },
            max_bid_multipliers={
                **defaults.max_bid_multipliers,
                **{DemandClass(dc): float(value)
                   for dc, value in (raw.get('max_bid_multipliers') or {}).items()},
            },
            time_restrictions={
                **defaults.time_restrictions,
                **{DemandClass(dc): TimeRestriction(value)
                   for dc, value in (raw.get('time_restrictions') or {}).items()},
            },
            business_hours=(
                int(hours.get('start', defaults.business_hours[0])),
                int(hours.get('end', defaults.business_hours[1])),
            ),
        )


@dataclass(frozen=True)
class QuotaDecision:
    """Truthy when admissible; otherwise ``reason`` says which limit was hit."""
    admissible: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.admissible


ADMISSIBLE = QuotaDecision(True)


class SlotQuotaManager:
    """
    Usage:
        quotas = SlotQuotaManager(QuotaSettings.from_dict(settings.SLOT_QUOTAS))
        limits = quotas.resolve_limits(asset, repo.get_asset_quota_config(asset.id))
        decision = quotas.is_admissible(bid, asset, usages, limits, bid_cap)
        if not decision:
            logger.info(decision.reason)
    """

    def __init__(self, settings: Optional[QuotaSettings] = None, tz: Optional[tzinfo] = None):
        self.settings = settings or QuotaSettings()
        self.tz = tz or timezone.utc

    def classify(self, lob: str) -> DemandClass:
        if lob == self.settings.monetization_lob:
            return DemandClass.MONETIZATION
        if lob in self.settings.external_lobs:
            return DemandClass.EXTERNAL
        return DemandClass.INTERNAL

    def resolve_limits(self, asset: Asset, override: Optional[QuotaLimits] = None) -> QuotaLimits:
        """Per-asset override when configured, else the level default."""
        if override is not None:
            return override
        return self.settings.level_defaults[asset.level]

    def find_bid_cap(self, lob: str, level: AssetLevel,
                     bid_caps: Iterable[BidCapRecord]) -> Optional[BidCapRecord]:
        for cap in bid_caps:
            if cap.lob == lob and cap.asset_level == level:
                return cap
        return None

    # ===== Checks =====

    def check_share(self, demand_class: DemandClass, usages: Sequence[SlotUsage],
                    limits: QuotaLimits, bid_cap: Optional[BidCapRecord] = None) -> QuotaDecision:
        """
        Admitting one more slot of ``demand_class`` on every day keeps each class within its limit.

        A bid cap with ``slot_limit_percentage`` tightens the class limit for its LOB.
        """
        limit = limits.for_class(demand_class)
        if bid_cap is not None and bid_cap.slot_limit_percentage is not None:
            limit = min(limit, bid_cap.slot_limit_percentage)
        for usage in usages:
            if usage.total_slots <= 0:
                return QuotaDecision(False, f"Asset has no slots on {usage.day.isoformat()}")

            share = (usage.allocated(demand_class) + 1) / usage.total_slots
            if share > limit:
                return QuotaDecision(
                    False,
                    f"{demand_class.value.capitalize()} share would reach {share * 100:.1f}% "
                    f"on {usage.day.isoformat()} (limit {limit * 100:g}%)",
                )

            if demand_class == DemandClass.MONETIZATION:
                umbrella = (usage.external + usage.monetization + 1) / usage.total_slots
                if umbrella > limits.external:
                    return QuotaDecision(
                        False,
                        f"External share would reach {umbrella * 100:.1f}% "
                        f"on {usage.day.isoformat()} (limit {limits.external * 100:g}%)",
                    )
        return ADMISSIBLE

    def check_bid_cap(self, bid: Bid, asset: Asset, demand_class: DemandClass,
                      bid_cap: Optional[BidCapRecord] = None) -> QuotaDecision:
        multiplier = (
            bid_cap.max_bid_multiplier if bid_cap is not None
            else self.settings.max_bid_multipliers.get(demand_class)
        )
        if multiplier is not None and asset.value_per_day and asset.value_per_day > 0:
            ratio = Decimal(bid.bid_amount) / Decimal(asset.value_per_day)
            if ratio > Decimal(str(multiplier)):
                return QuotaDecision(
                    False,
                    f"Bid {bid.bid_amount} is {ratio:.2f}x the asset's daily value "
                    f"(max {multiplier:g}x for {demand_class.value})",
                )

        restriction = (
            bid_cap.time_restriction if bid_cap is not None
            else self.settings.time_restrictions.get(demand_class, TimeRestriction.NONE)
        )
        if restriction == TimeRestriction.BUSINESS_HOURS:
            start, end = self.settings.business_hours
            local = bid.created_at.astimezone(self.tz)
            if not start <= local.hour < end:
                return QuotaDecision(
                    False,
                    f"{demand_class.value.capitalize()} bids are only accepted between "
                    f"{start:02d}:00 and {end:02d}:00 (bid placed at {local:%H:%M})",
                )
        return ADMISSIBLE

    def is_admissible(self, bid: Bid, asset: Asset, usages: Sequence[SlotUsage],
                      limits: QuotaLimits, bid_cap: Optional[BidCapRecord] = None) -> QuotaDecision:
        demand_class = self.classify(bid.lob)
        decision = self.check_share(demand_class, usages, limits, bid_cap)
        if decision:
            decision = self.check_bid_cap(bid, asset, demand_class, bid_cap)
        if not decision:
            logger.debug(f"Bid {bid.id} ({bid.lob}) excluded: {decision.reason}")
        return decision
