"""
Asset Catalog Records

Plain, immutable views of the catalog data the allocation core reads:
- AssetLevel / DemandClass: the two classification axes of inventory
- Asset: the slice of an asset the rules, quotas and scorer need
- QuotaLimits: per-class share limits for one asset
- FairnessOverrides: per-asset fairness tuning
- BidCapRecord: per (LOB, asset level) bid cap

These records are built from the ORM models by ``to_record()`` and never
touch the database themselves.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from shared.domain.base import ValueObject


class AssetLevel(str, Enum):
    PRIMARY = 'primary'
    SECONDARY = 'secondary'
    TERTIARY = 'tertiary'


class DemandClass(str, Enum):
    """Demand class a LOB belongs to when competing for slots."""
    INTERNAL = 'internal'
    EXTERNAL = 'external'
    MONETIZATION = 'monetization'


class TimeRestriction(str, Enum):
    NONE = 'none'
    BUSINESS_HOURS = 'business_hours'


@dataclass(frozen=True)
class Asset(ValueObject):
    id: int
    level: AssetLevel
    value_per_day: Decimal
    max_slots: int
    asset_type: str = ''
    name: str = ''


@dataclass(frozen=True)
class QuotaLimits(ValueObject):
    """
    Maximum share of an asset's slots per demand class.

    ``internal`` is the internal guarantee, ``external`` the umbrella limit
    for everything that is not internal (monetization included) and
    ``monetization`` the tighter limit for monetization alone.
    """
    internal: float
    external: float
    monetization: float

    def __post_init__(self):
        for name in ('internal', 'external', 'monetization'):
            value = getattr(self, name)
            if not 0 <= value <= 1:
                raise ValueError(f"{name} quota must be within [0, 1], got {value}")
        if self.internal + self.external > 1 + 1e-9:
            raise ValueError(
                f"internal guarantee ({self.internal}) + external limit ({self.external}) must not exceed 1"
            )

    def for_class(self, demand_class: DemandClass) -> float:
        return getattr(self, demand_class.value)


@dataclass(frozen=True)
class FairnessOverrides(ValueObject):
    strategic_weight_override: Optional[float] = None
    time_decay_factor: Optional[float] = None
    revenue_floor: Optional[float] = None
    fairness_bonus: Optional[float] = None


@dataclass(frozen=True)
class BidCapRecord(ValueObject):
    lob: str
    asset_level: AssetLevel
    max_bid_multiplier: float
    slot_limit_percentage: Optional[float] = None
    time_restriction: TimeRestriction = TimeRestriction.NONE
    revenue_floor: Optional[float] = None
