"""
Bid Fairness Scorer

    score = normalized_roi * strategic_weight * time_fairness (+ fairness_bonus if internal)

- normalized_roi: the LOB's latest metric against its target, capped
- strategic_weight: per-asset override, else the class weight (monetization
  uses the revenue floor)
- time_fairness: grows with the days since the LOB last won on the asset;
  a LOB that never won gets the cap
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Mapping, Optional
import logging

from apps.assets.domain import DemandClass, FairnessOverrides

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoiTarget:
    roi_type: str
    metric: str
    target: float


DEFAULT_ROI_TARGETS = {
    'Monetization': RoiTarget('immediate_revenue', 'revenue_per_day', 1000),
    'AI Bot': RoiTarget('engagement', 'user_interactions', 1000),
    'Lab Test': RoiTarget('conversion', 'bookings', 50),
    'Diagnostics': RoiTarget('conversion', 'test_bookings', 50),
    'Pharmacy': RoiTarget('revenue', 'revenue_per_day', 800),
}


@dataclass(frozen=True)
class FairnessSettings:
    roi_cap: float = 2.0
    window_days: int = 30
    time_fairness_cap: float = 2.0
    time_decay_factor: float = 0.1
    fairness_bonus: float = 0.3
    revenue_floor: float = 1.5
    strategic_weight_override: Optional[float] = None
    class_weights: Mapping[DemandClass, float] = field(default_factory=lambda: {
        DemandClass.INTERNAL: 1.4,
        DemandClass.EXTERNAL: 1.0,
    })
    roi_targets: Mapping[str, RoiTarget] = field(default_factory=lambda: dict(DEFAULT_ROI_TARGETS))

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> 'FairnessSettings':
        raw = dict(raw or {})
        defaults = cls()
        kwargs = {
            name: type(getattr(defaults, name))(raw[name])
            for name in ('roi_cap', 'window_days', 'time_fairness_cap', 'time_decay_factor',
                         'fairness_bonus', 'revenue_floor')
            if name in raw
        }
        if 'class_weights' in raw:
            kwargs['class_weights'] = {
                **defaults.class_weights,
                **{DemandClass(dc): float(w) for dc, w in raw['class_weights'].items()},
            }
        if 'roi_metrics' in raw:
            kwargs['roi_targets'] = {
                lob: RoiTarget(item['type'], item['metric'], float(item['target']))
                for lob, item in raw['roi_metrics'].items()
            }
        return cls(**kwargs)

    def with_overrides(self, overrides: Optional[FairnessOverrides]) -> 'FairnessSettings':
        """Settings with the non-empty fields of a per-asset FairnessConfig applied."""
        if overrides is None:
            return self
        changes = {
            name: value for name, value in (
                ('strategic_weight_override', overrides.strategic_weight_override),
                ('time_decay_factor', overrides.time_decay_factor),
                ('revenue_floor', overrides.revenue_floor),
                ('fairness_bonus', overrides.fairness_bonus),
            ) if value is not None
        }
        return replace(self, **changes) if changes else self


@dataclass(frozen=True)
class FairnessScore:
    normalized_roi: float
    strategic_weight: float
    time_fairness: float
    bonus: float

    @property
    def value(self) -> float:
        return self.normalized_roi * self.strategic_weight * self.time_fairness + self.bonus


class BidFairnessScorer:

    def __init__(self, settings: Optional[FairnessSettings] = None):
        self.settings = settings or FairnessSettings()

    def normalized_roi(self, lob: str, metrics: Mapping[str, float]) -> float:
        """Metric over target, capped; neutral 1.0 when the LOB or its metric is unknown."""
        target = self.settings.roi_targets.get(lob)
        if target is None or not target.target:
            return 1.0
        actual = metrics.get(target.metric)
        if actual is None:
            return 1.0
        return max(0.0, min(actual / target.target, self.settings.roi_cap))

    def strategic_weight(self, demand_class: DemandClass, revenue_floor: Optional[float] = None) -> float:
        """``revenue_floor`` comes from the LOB's bid cap and replaces the configured floor."""
        if self.settings.strategic_weight_override is not None:
            return self.settings.strategic_weight_override
        if demand_class == DemandClass.MONETIZATION:
            return revenue_floor if revenue_floor is not None else self.settings.revenue_floor
        return self.settings.class_weights.get(demand_class, 1.0)

    def time_fairness(self, last_win_at: Optional[datetime], now: datetime) -> float:
        cap = self.settings.time_fairness_cap
        if last_win_at is None:
            return cap
        days_since = max(0, (now - last_win_at).days)
        value = 1 + self.settings.time_decay_factor * days_since / self.settings.window_days
        return min(value, cap)

    def breakdown(self, lob: str, demand_class: DemandClass, metrics: Mapping[str, float],
                  last_win_at: Optional[datetime], now: datetime,
                  revenue_floor: Optional[float] = None) -> FairnessScore:
        return FairnessScore(
            normalized_roi=self.normalized_roi(lob, metrics),
            strategic_weight=self.strategic_weight(demand_class, revenue_floor),
            time_fairness=self.time_fairness(last_win_at, now),
            bonus=self.settings.fairness_bonus if demand_class == DemandClass.INTERNAL else 0.0,
        )

    def score(self, lob: str, demand_class: DemandClass, metrics: Mapping[str, float],
              last_win_at: Optional[datetime], now: datetime,
              revenue_floor: Optional[float] = None) -> float:
        result = self.breakdown(lob, demand_class, metrics, last_win_at, now, revenue_floor)
        logger.debug(
            f"Fairness for {lob}: roi={result.normalized_roi:.3f} weight={result.strategic_weight} "
            f"time={result.time_fairness:.3f} bonus={result.bonus} -> {result.value:.3f}"
        )
        return result.value
