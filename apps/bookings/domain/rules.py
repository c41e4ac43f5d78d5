"""
Temporal Rule Validator

Admits or rejects a candidate booking against ten date/quota rules.

Each rule is an independent object with ``check(candidate, context)``
returning a violation message or ``None``. The validator runs the enabled
rules in a fixed order and accumulates every violation instead of failing
fast, so a caller can show the user the full list at once.

The validator never queries storage. Everything it needs is fetched up front
into a ``ValidationContext`` (see ``BookingContextLoader``), which keeps the
rules pure: the same candidate and context always yield the same list.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields
from datetime import date, timedelta
from typing import Any, ClassVar, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple
import logging

from apps.assets.domain import Asset, AssetLevel
from shared.domain.value_objects import DateRange

from .conflicts import ranges_conflict
from .entities import Booking

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationContext:
    """
    Pre-fetched data the rules evaluate against.

    Collections may be supersets of what a rule needs: every rule filters by
    asset, LOB, status and date itself, and ignores the candidate's own
    stored copy when the candidate is a reschedule. ``quarter_bookings``
    holds the bookings of every LOB on the asset.
    """
    asset: Asset
    today: date
    adjacent_bookings: Sequence[Booking] = ()
    window_bookings: Sequence[Booking] = ()
    last_booking: Optional[Booking] = None
    active_lob_bookings: Sequence[Booking] = ()
    quarter_bookings: Sequence[Booking] = ()
    purpose_bookings: Sequence[Booking] = ()


def _others(bookings: Iterable[Booking], candidate: Booking) -> List[Booking]:
    """Blocking bookings other than the candidate's own stored version."""
    return [
        b for b in bookings
        if b.is_blocking and (candidate.id is None or b.id != candidate.id)
    ]


def _same_asset_lob(bookings: Iterable[Booking], candidate: Booking) -> List[Booking]:
    return [
        b for b in _others(bookings, candidate)
        if b.asset_id == candidate.asset_id and b.lob == candidate.lob
    ]


def _intersecting(bookings: Iterable[Booking], window: DateRange) -> List[Booking]:
    return [b for b in bookings if ranges_conflict(b.dates, window.start_date, window.end_date)]


def _format_percent(fraction: float) -> str:
    return f"{fraction * 100:g}"


class BookingRule(ABC):
    """One independently switchable admission rule."""

    name: ClassVar[str]
    enabled: bool

    @abstractmethod
    def check(self, candidate: Booking, context: ValidationContext) -> Optional[str]:
        """Return a violation message, or None when the candidate passes."""


# ===== Rules (in evaluation order) =====

@dataclass(frozen=True)
class MaxBookingLength(BookingRule):
    """1. A booking spans at most ``max_days`` calendar days, both ends included."""
    name: ClassVar[str] = 'max_days_per_booking'
    enabled: bool = True
    max_days: int = 7

    def check(self, candidate, context):
        if candidate.span_days > self.max_days:
            return f"Exceeds maximum allowed booking length of {self.max_days} days"
        return None


@dataclass(frozen=True)
class NoConsecutiveSameAssetLOB(BookingRule):
    """2. Same asset and LOB need at least one free day between bookings."""
    name: ClassVar[str] = 'no_consecutive_same_asset_lob'
    enabled: bool = True
    exempt: FrozenSet[Tuple[AssetLevel, str]] = frozenset({(AssetLevel.PRIMARY, 'Monetization')})

    def check(self, candidate, context):
        if (context.asset.level, candidate.lob) in self.exempt:
            logger.debug(f"Consecutive booking allowed for {candidate.lob} on {context.asset.level.value} asset")
            return None
        adjacent = [
            b for b in _same_asset_lob(context.adjacent_bookings, candidate)
            if candidate.dates.is_adjacent_to(b.dates)
        ]
        if adjacent:
            return "Cannot book consecutively for the same asset and LOB. There must be at least 1 day gap."
        return None


@dataclass(frozen=True)
class RollingWindowQuota(BookingRule):
    """3. Booked days of one asset+LOB within a trailing window stay under ``max_days``."""
    name: ClassVar[str] = 'rolling_window_quota'
    enabled: bool = True
    window_days: int = 30
    max_days: int = 14

    def check(self, candidate, context):
        window = candidate.dates.widened_back(self.window_days)
        previous = _intersecting(_same_asset_lob(context.window_bookings, candidate), window)
        booked_days = sum(b.span_days for b in previous)
        total = booked_days + candidate.span_days
        logger.debug(f"Rolling window for {candidate.lob}: {booked_days} booked + {candidate.span_days} requested")
        if total > self.max_days:
            return f"Rolling window quota exceeded: max {self.max_days} days in {self.window_days}-day window"
        return None


@dataclass(frozen=True)
class MinLeadTime(BookingRule):
    """4. New bookings start at least ``days`` after today; reschedules may skip this."""
    name: ClassVar[str] = 'min_lead_time'
    enabled: bool = True
    days: int = 3
    allow_immediate_for_reschedule: bool = True

    def check(self, candidate, context):
        earliest = context.today + timedelta(days=self.days)
        if candidate.start_date >= earliest:
            return None
        if candidate.is_reschedule and self.allow_immediate_for_reschedule:
            logger.debug(f"Lead time waived for reschedule of booking {candidate.id}")
            return None
        return f"Bookings must be created at least {self.days} days in advance"


@dataclass(frozen=True)
class CooldownPeriod(BookingRule):
    """5. After the latest booking of the same asset+LOB ends, wait ``days`` before the next start."""
    name: ClassVar[str] = 'cooldown_period'
    enabled: bool = True
    days: int = 3

    def check(self, candidate, context):
        last = context.last_booking
        if last is None or not _same_asset_lob([last], candidate):
            return None
        gap_start = last.end_date + timedelta(days=self.days)
        if candidate.start_date < gap_start:
            return f"Need a {self.days}-day gap after previous booking for same asset & LOB"
        return None


@dataclass(frozen=True)
class ConcurrentBookingCap(BookingRule):
    """6. A LOB holds fewer than ``max_active`` bookings (any asset) on the candidate's start day."""
    name: ClassVar[str] = 'concurrent_booking_cap'
    enabled: bool = True
    max_active: int = 2

    def check(self, candidate, context):
        active = [
            b for b in _others(context.active_lob_bookings, candidate)
            if b.lob == candidate.lob and b.dates.contains(candidate.start_date)
        ]
        if len(active) >= self.max_active:
            return f"LOB already has {len(active)} active bookings – limit is {self.max_active}"
        return None


@dataclass(frozen=True)
class BlackoutDates(BookingRule):
    """7. No booking may cover a configured blackout date."""
    name: ClassVar[str] = 'blackout_dates'
    enabled: bool = True
    dates: Tuple[date, ...] = ()

    def check(self, candidate, context):
        hits = sorted(day for day in self.dates if candidate.dates.contains(day))
        if hits:
            return f"Bookings are not allowed on blackout date {hits[0].isoformat()}"
        return None


@dataclass(frozen=True)
class PercentageShareCap(BookingRule):
    """
    8. One LOB books at most ``percent`` of an asset's days per calendar quarter.

    Monetization is additionally held to the cap of the asset's level,
    measured against every day booked on the asset in the quarter by any
    LOB.
    """
    name: ClassVar[str] = 'percentage_share_cap'
    enabled: bool = True
    percent: float = 0.40
    monetization_lob: str = 'Monetization'
    monetization_level_caps: Mapping[AssetLevel, float] = field(default_factory=lambda: {
        AssetLevel.PRIMARY: 0.20,
        AssetLevel.SECONDARY: 0.15,
        AssetLevel.TERTIARY: 0.10,
    })

    def check(self, candidate, context):
        quarter = DateRange.quarter_of(candidate.start_date)
        on_asset = [
            b for b in _intersecting(_others(context.quarter_bookings, candidate), quarter)
            if b.asset_id == candidate.asset_id
        ]
        lob_days = sum(b.span_days for b in on_asset if b.lob == candidate.lob) + candidate.span_days
        share = lob_days / quarter.days
        logger.debug(f"Quarter share for {candidate.lob}: {lob_days}/{quarter.days} days")

        if share > self.percent:
            return f"LOB exceeds {_format_percent(self.percent)}% share of asset days in this quarter"

        if candidate.lob == self.monetization_lob:
            return self._check_monetization(candidate, context, on_asset)
        return None

    def _check_monetization(self, candidate, context, on_asset):
        """Monetization's share of all days booked on the asset this quarter stays under the level cap."""
        level_cap = self.monetization_level_caps.get(context.asset.level)
        if level_cap is None:
            return None
        total_days = sum(b.span_days for b in on_asset) + candidate.span_days
        monetization_days = sum(
            b.span_days for b in on_asset if b.lob == self.monetization_lob
        ) + candidate.span_days
        monetization_share = monetization_days / total_days
        logger.debug(
            f"Monetization share on asset {candidate.asset_id}: "
            f"{monetization_days}/{total_days} booked days (cap {level_cap})"
        )
        if monetization_share > level_cap:
            return (
                f"Monetization quota exceeded: {monetization_share * 100:.1f}% booked "
                f"(max {_format_percent(level_cap)}%)"
            )
        return None


@dataclass(frozen=True)
class PurposeDuplication(BookingRule):
    """9. The same purpose may not run on the same asset twice within ``window_days``."""
    name: ClassVar[str] = 'purpose_duplication'
    enabled: bool = True
    window_days: int = 30

    def check(self, candidate, context):
        if not candidate.purpose:
            return None
        window = candidate.dates.widened_back(self.window_days)
        duplicates = [
            b for b in _intersecting(_others(context.purpose_bookings, candidate), window)
            if b.asset_id == candidate.asset_id and b.purpose == candidate.purpose
        ]
        if duplicates:
            return (
                "Identical purpose used recently for this asset – "
                "please vary campaign or wait for window to pass"
            )
        return None


@dataclass(frozen=True)
class AssetTypeExclusivity(BookingRule):
    """10. Asset types with an allow-list only accept the listed LOBs."""
    name: ClassVar[str] = 'asset_type_exclusivity'
    enabled: bool = True
    allowed: Mapping[str, FrozenSet[str]] = field(default_factory=dict)

    def check(self, candidate, context):
        asset_type = context.asset.asset_type
        allowed = self.allowed.get(asset_type) if asset_type else None
        if allowed and candidate.lob not in allowed:
            return f"LOB {candidate.lob} is not allowed to book asset type {asset_type}"
        return None


# ===== Configuration =====

@dataclass(frozen=True)
class RuleConfig:
    """
    The full, ordered rule set with its parameters.

    Built once from the ``BOOKING_RULES`` settings dict and injected into the
    validator and the context loader.
    """
    max_days_per_booking: MaxBookingLength = field(default_factory=MaxBookingLength)
    no_consecutive_same_asset_lob: NoConsecutiveSameAssetLOB = field(default_factory=NoConsecutiveSameAssetLOB)
    rolling_window_quota: RollingWindowQuota = field(default_factory=RollingWindowQuota)
    min_lead_time: MinLeadTime = field(default_factory=MinLeadTime)
    cooldown_period: CooldownPeriod = field(default_factory=CooldownPeriod)
    concurrent_booking_cap: ConcurrentBookingCap = field(default_factory=ConcurrentBookingCap)
    blackout_dates: BlackoutDates = field(default_factory=BlackoutDates)
    percentage_share_cap: PercentageShareCap = field(default_factory=PercentageShareCap)
    purpose_duplication: PurposeDuplication = field(default_factory=PurposeDuplication)
    asset_type_exclusivity: AssetTypeExclusivity = field(default_factory=AssetTypeExclusivity)

    @property
    def rules(self) -> Tuple[BookingRule, ...]:
        """All rules in evaluation order, enabled or not."""
        return tuple(getattr(self, f.name) for f in fields(self))

    @classmethod
    def from_dict(cls, raw: Mapping[str, Mapping[str, Any]]) -> 'RuleConfig':
        """
        Build a config from the ``BOOKING_RULES`` settings layout.

        Unknown keys are rejected so that a typo in settings does not
        silently disable a rule parameter.
        """
        raw = dict(raw or {})
        unknown = set(raw) - {f.name for f in fields(cls)}
        if unknown:
            raise ValueError(f"Unknown booking rules in configuration: {sorted(unknown)}")

        kwargs: Dict[str, BookingRule] = {}
        for f in fields(cls):
            options = dict(raw.get(f.name) or {})
            rule_type = f.default_factory
            kwargs[f.name] = rule_type(**_coerce_rule_options(f.name, options))
        return cls(**kwargs)


def _coerce_rule_options(rule_name: str, options: Dict[str, Any]) -> Dict[str, Any]:
    if rule_name == 'no_consecutive_same_asset_lob' and 'exempt' in options:
        options['exempt'] = frozenset(
            (AssetLevel(item['asset_level']), item['lob']) for item in options['exempt']
        )
    elif rule_name == 'blackout_dates' and 'dates' in options:
        options['dates'] = tuple(
            date.fromisoformat(str(day).strip()[:10]) for day in options['dates'] if str(day).strip()
        )
    elif rule_name == 'percentage_share_cap' and 'monetization_level_caps' in options:
        options['monetization_level_caps'] = {
            AssetLevel(level): float(cap) for level, cap in options['monetization_level_caps'].items()
        }
    elif rule_name == 'asset_type_exclusivity' and 'allowed' in options:
        options['allowed'] = {
            asset_type: frozenset(lobs) for asset_type, lobs in options['allowed'].items()
        }
    return options


# ===== Validator =====

class TemporalRuleValidator:
    """
    Runs the enabled rules against a candidate booking.

    Usage:
        validator = TemporalRuleValidator(RuleConfig.from_dict(settings.BOOKING_RULES))
        context = loader.load(candidate)
        violations = validator.validate(candidate, context)
        if violations:
            raise BookingRulesViolated(violations)
    """

    def __init__(self, config: Optional[RuleConfig] = None, rules: Optional[Sequence[BookingRule]] = None):
        self.config = config or RuleConfig()
        self._rules: Tuple[BookingRule, ...] = tuple(rules) if rules is not None else self.config.rules

    @property
    def rules(self) -> Tuple[BookingRule, ...]:
        return tuple(rule for rule in self._rules if rule.enabled)

    def validate(self, candidate: Booking, context: ValidationContext) -> List[str]:
        violations: List[str] = []
        for rule in self.rules:
            violation = rule.check(candidate, context)
            logger.debug(
                f"Rule {rule.name} {'failed' if violation else 'passed'} "
                f"for booking {candidate.id or 'new'} ({candidate.lob} on asset {candidate.asset_id})"
            )
            if violation:
                violations.append(violation)

        if violations:
            logger.info(
                f"Booking {candidate.id or 'new'} for asset {candidate.asset_id} "
                f"failed {len(violations)} rule(s)"
            )
        return violations
