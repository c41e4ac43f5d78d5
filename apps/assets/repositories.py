"""Read access to the asset catalog and its per-asset configuration."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from shared.domain.exceptions import NotFoundError
from shared.infrastructure.locking import lock_queryset_if_possible

from .domain import Asset, BidCapRecord, FairnessOverrides, QuotaLimits
from .models import (
    Asset as AssetModel,
    AssetQuotaConfig,
    BidCap,
    FairnessConfig,
    RoiMetric,
)


class AssetConfigRepository(ABC):
    """Catalog queries consumed by the admission and auction handlers."""

    @abstractmethod
    def get_asset(self, asset_id: int, lock: bool = False) -> Asset:
        """Return the asset or raise NotFoundError; ``lock`` serializes admissions per asset."""

    @abstractmethod
    def get_asset_quota_config(self, asset_id: int) -> Optional[QuotaLimits]:
        ...

    @abstractmethod
    def get_fairness_config(self, asset_id: int) -> Optional[FairnessOverrides]:
        ...

    @abstractmethod
    def get_bid_caps(self) -> List[BidCapRecord]:
        ...

    @abstractmethod
    def get_roi_metrics(self, lob: str, asset_id: Optional[int] = None) -> Dict[str, float]:
        ...


class DjangoAssetConfigRepository(AssetConfigRepository):

    def get_asset(self, asset_id: int, lock: bool = False) -> Asset:
        queryset = AssetModel.objects.filter(pk=asset_id, is_active=True)
        if lock:
            queryset = lock_queryset_if_possible(queryset)
        model = queryset.first()
        if model is None:
            raise NotFoundError(f"Asset {asset_id} not found")
        return model.to_record()

    def get_asset_quota_config(self, asset_id: int) -> Optional[QuotaLimits]:
        config = AssetQuotaConfig.objects.filter(asset_id=asset_id, is_active=True).first()
        return config.to_record() if config else None

    def get_fairness_config(self, asset_id: int) -> Optional[FairnessOverrides]:
        config = FairnessConfig.objects.filter(asset_id=asset_id, is_active=True).first()
        return config.to_record() if config else None

    def get_bid_caps(self) -> List[BidCapRecord]:
        return [cap.to_record() for cap in BidCap.objects.filter(is_active=True)]

    def get_roi_metrics(self, lob: str, asset_id: Optional[int] = None) -> Dict[str, float]:
        """
        Latest value per metric name for ``lob``.

        Asset-scoped readings win over global ones for the same metric.
        """
        metrics: Dict[str, float] = {}
        for reading in RoiMetric.objects.filter(lob=lob, asset__isnull=True):
            metrics.setdefault(reading.metric, reading.value)
        if asset_id is not None:
            scoped: Dict[str, float] = {}
            for reading in RoiMetric.objects.filter(lob=lob, asset_id=asset_id):
                scoped.setdefault(reading.metric, reading.value)
            metrics.update(scoped)
        return metrics
