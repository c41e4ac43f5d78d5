"""Booking models for the slot allocation core."""

from __future__ import annotations

from django.conf import settings  # type: ignore
from django.core.exceptions import ValidationError  # type: ignore
from django.db import models  # type: ignore

from .domain.entities import AuctionStatus as AuctionState
from .domain.entities import Booking as BookingRecord
from .domain.entities import BookingStatus


class Booking(models.Model):
    """A reservation of one asset by one line of business for an inclusive date range."""

    class Status(models.TextChoices):
        PENDING = BookingStatus.PENDING.value, "Pending"
        APPROVED = BookingStatus.APPROVED.value, "Approved"
        REJECTED = BookingStatus.REJECTED.value, "Rejected"

    class AuctionStatus(models.TextChoices):
        NONE = AuctionState.NONE.value, "No auction"
        PENDING = AuctionState.PENDING.value, "Auction pending"
        ACTIVE = AuctionState.ACTIVE.value, "Auction active"
        COMPLETED = AuctionState.COMPLETED.value, "Auction completed"
        CANCELLED = AuctionState.CANCELLED.value, "Auction cancelled"

    BLOCKING_STATUSES = (Status.PENDING, Status.APPROVED)

    asset = models.ForeignKey(
        "assets.Asset",
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="asset_bookings",
    )
    title = models.CharField(max_length=255, blank=True)
    lob = models.CharField(max_length=64, help_text="Line of business holding the booking.")
    purpose = models.CharField(max_length=255, blank=True)
    start_date = models.DateField()
    end_date = models.DateField()
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING)
    auction_status = models.CharField(
        max_length=16,
        choices=AuctionStatus.choices,
        default=AuctionStatus.NONE,
    )
    winning_bid = models.ForeignKey(
        "auctions.Bid",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="won_bookings",
    )
    auction_closed_at = models.DateTimeField(null=True, blank=True)
    version = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(end_date__gte=models.F("start_date")),
                name="asset_booking_valid_dates",
            ),
        ]
        indexes = [
            models.Index(fields=["asset", "start_date", "end_date"]),
            models.Index(fields=["asset", "lob", "end_date"]),
            models.Index(fields=["lob", "status"]),
            models.Index(fields=["auction_status", "start_date"]),
        ]

    def __str__(self) -> str:
        return f"Booking #{self.pk} ({self.lob} on asset {self.asset_id})"

    def clean(self) -> None:
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValidationError("End date must not be before start date.")

    def to_record(self) -> BookingRecord:
        return BookingRecord(
            id=self.pk,
            asset_id=self.asset_id,
            lob=self.lob,
            start_date=self.start_date,
            end_date=self.end_date,
            purpose=self.purpose,
            title=self.title,
            user_id=self.user_id,
            status=BookingStatus(self.status),
            auction_status=AuctionState(self.auction_status),
            winning_bid_id=self.winning_bid_id,
            auction_closed_at=self.auction_closed_at,
            version=self.version,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
