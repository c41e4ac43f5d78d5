"""Asset catalog models.

The catalog itself is administered outside the allocation core; the core
only reads assets and their optional per-asset overrides.
"""

from __future__ import annotations

from decimal import Decimal

from django.core.exceptions import ValidationError  # type: ignore
from django.core.validators import MaxValueValidator, MinValueValidator  # type: ignore
from django.db import models  # type: ignore

from .domain import (
    Asset as AssetRecord,
    AssetLevel,
    BidCapRecord,
    FairnessOverrides,
    QuotaLimits,
    TimeRestriction,
)

FRACTION_VALIDATORS = [MinValueValidator(0.0), MaxValueValidator(1.0)]


class Asset(models.Model):
    """Bookable advertising inventory (billboard, banner, on-site slot)."""

    class Level(models.TextChoices):
        PRIMARY = AssetLevel.PRIMARY.value, "Primary"
        SECONDARY = AssetLevel.SECONDARY.value, "Secondary"
        TERTIARY = AssetLevel.TERTIARY.value, "Tertiary"

    name = models.CharField(max_length=255)
    asset_type = models.CharField(max_length=64, blank=True, help_text="banner, billboard, ...")
    location = models.CharField(max_length=255, blank=True)
    level = models.CharField(max_length=16, choices=Level.choices, default=Level.SECONDARY)
    value_per_day = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    max_slots = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        indexes = [models.Index(fields=["level"])]

    def __str__(self) -> str:
        return f"{self.name} ({self.level})"

    def to_record(self) -> AssetRecord:
        return AssetRecord(
            id=self.pk,
            level=AssetLevel(self.level),
            value_per_day=self.value_per_day,
            max_slots=self.max_slots,
            asset_type=self.asset_type,
            name=self.name,
        )


class AssetQuotaConfig(models.Model):
    """Per-asset override of the level default slot quotas."""

    asset = models.OneToOneField(Asset, on_delete=models.CASCADE, related_name="quota_config")
    internal_guarantee = models.FloatField(validators=FRACTION_VALIDATORS)
    external_limit = models.FloatField(validators=FRACTION_VALIDATORS)
    monetization_limit = models.FloatField(validators=FRACTION_VALIDATORS)
    is_active = models.BooleanField(default=True)
    updated_at = models.DateTimeField(auto_now=True)

    def clean(self) -> None:
        if self.internal_guarantee + self.external_limit > 1:
            raise ValidationError(
                "Internal guarantee and external limit together must not exceed 100% of slots."
            )

    def save(self, *args, **kwargs):  # type: ignore
        self.full_clean()
        super().save(*args, **kwargs)

    def to_record(self) -> QuotaLimits:
        return QuotaLimits(
            internal=self.internal_guarantee,
            external=self.external_limit,
            monetization=self.monetization_limit,
        )


class FairnessConfig(models.Model):
    """Per-asset tuning of the fairness scorer."""

    asset = models.OneToOneField(Asset, on_delete=models.CASCADE, related_name="fairness_config")
    strategic_weight_override = models.FloatField(null=True, blank=True, validators=[MinValueValidator(0.0)])
    time_decay_factor = models.FloatField(null=True, blank=True, validators=[MinValueValidator(0.0)])
    revenue_floor = models.FloatField(null=True, blank=True, validators=[MinValueValidator(0.0)])
    fairness_bonus = models.FloatField(null=True, blank=True, validators=[MinValueValidator(0.0)])
    is_active = models.BooleanField(default=True)
    updated_at = models.DateTimeField(auto_now=True)

    def to_record(self) -> FairnessOverrides:
        return FairnessOverrides(
            strategic_weight_override=self.strategic_weight_override,
            time_decay_factor=self.time_decay_factor,
            revenue_floor=self.revenue_floor,
            fairness_bonus=self.fairness_bonus,
        )


class BidCap(models.Model):
    """Bid cap for one LOB on one asset level."""

    class Restriction(models.TextChoices):
        NONE = TimeRestriction.NONE.value, "Any time"
        BUSINESS_HOURS = TimeRestriction.BUSINESS_HOURS.value, "Business hours only"

    lob = models.CharField(max_length=64)
    asset_level = models.CharField(max_length=16, choices=Asset.Level.choices)
    max_bid_multiplier = models.FloatField(validators=[MinValueValidator(0.0)])
    slot_limit_percentage = models.FloatField(null=True, blank=True, validators=FRACTION_VALIDATORS)
    time_restriction = models.CharField(max_length=20, choices=Restriction.choices, default=Restriction.NONE)
    revenue_floor = models.FloatField(null=True, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["lob", "asset_level"], name="bid_cap_unique_lob_level"),
        ]

    def __str__(self) -> str:
        return f"BidCap({self.lob}, {self.asset_level})"

    def to_record(self) -> BidCapRecord:
        return BidCapRecord(
            lob=self.lob,
            asset_level=AssetLevel(self.asset_level),
            max_bid_multiplier=self.max_bid_multiplier,
            slot_limit_percentage=self.slot_limit_percentage,
            time_restriction=TimeRestriction(self.time_restriction),
            revenue_floor=self.revenue_floor,
        )


class RoiMetric(models.Model):
    """
    Latest performance reading for a LOB, optionally scoped to one asset.

    Readings are pushed by the analytics pipeline; the fairness scorer uses
    the most recent reading per metric name.
    """

    lob = models.CharField(max_length=64)
    asset = models.ForeignKey(Asset, null=True, blank=True, on_delete=models.CASCADE, related_name="roi_metrics")
    metric = models.CharField(max_length=64)
    value = models.FloatField()
    recorded_on = models.DateField()

    class Meta:
        ordering = ["-recorded_on", "-id"]
        indexes = [models.Index(fields=["lob", "metric", "recorded_on"])]

    def __str__(self) -> str:
        return f"{self.lob}:{self.metric}={self.value} ({self.recorded_on})"
