"""Bid and slot allocation models."""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings  # type: ignore
from django.core.validators import MinValueValidator  # type: ignore
from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore

from .domain.entities import Bid as BidRecord
from .domain.entities import BidStatus, SlotUsage


class Bid(models.Model):
    """An offer by one user (on behalf of a LOB) to take over a booking."""

    class Status(models.TextChoices):
        ACTIVE = BidStatus.ACTIVE.value, "Active"
        CANCELLED = BidStatus.CANCELLED.value, "Cancelled"
        LOST = BidStatus.LOST.value, "Lost"

    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.CASCADE,
        related_name="bids",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="asset_bids",
    )
    lob = models.CharField(max_length=64)
    bid_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    max_bid = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    bid_reason = models.TextField(blank=True)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.ACTIVE)
    is_auto = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-bid_amount", "created_at", "id"]
        constraints = [
            models.CheckConstraint(condition=models.Q(bid_amount__gt=0), name="bid_amount_positive"),
            models.CheckConstraint(
                condition=models.Q(max_bid__isnull=True) | models.Q(max_bid__gte=models.F("bid_amount")),
                name="bid_max_not_below_amount",
            ),
            models.UniqueConstraint(
                fields=["booking", "user"],
                condition=models.Q(status="active"),
                name="bid_one_active_per_user",
            ),
        ]
        indexes = [models.Index(fields=["booking", "status"])]

    def __str__(self) -> str:
        return f"Bid #{self.pk} {self.bid_amount} by {self.lob} on booking {self.booking_id}"

    def to_record(self) -> BidRecord:
        return BidRecord(
            id=self.pk,
            booking_id=self.booking_id,
            user_id=self.user_id,
            lob=self.lob,
            bid_amount=self.bid_amount,
            max_bid=self.max_bid,
            bid_reason=self.bid_reason,
            status=BidStatus(self.status),
            is_auto=self.is_auto,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class SlotAllocation(models.Model):
    """Slots of one asset on one day, and how many each demand class holds."""

    asset = models.ForeignKey("assets.Asset", on_delete=models.CASCADE, related_name="slot_allocations")
    date = models.DateField()
    total_slots = models.PositiveIntegerField()
    internal_allocated = models.PositiveIntegerField(default=0)
    external_allocated = models.PositiveIntegerField(default=0)
    monetization_allocated = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["asset", "date"]
        constraints = [
            models.UniqueConstraint(fields=["asset", "date"], name="slot_allocation_unique_asset_date"),
        ]

    def __str__(self) -> str:
        return f"Slots of asset {self.asset_id} on {self.date}"

    def _percentage(self, allocated: int) -> float:
        return round(allocated * 100 / self.total_slots, 2) if self.total_slots else 0.0

    @property
    def internal_percentage(self) -> float:
        return self._percentage(self.internal_allocated)

    @property
    def external_percentage(self) -> float:
        return self._percentage(self.external_allocated)

    @property
    def monetization_percentage(self) -> float:
        return self._percentage(self.monetization_allocated)

    def to_record(self) -> SlotUsage:
        return SlotUsage(
            asset_id=self.asset_id,
            day=self.date,
            total_slots=self.total_slots,
            internal=self.internal_allocated,
            external=self.external_allocated,
            monetization=self.monetization_allocated,
        )
