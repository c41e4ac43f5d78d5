"""Serializers rendering auction records into primitives for any transport."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore


class BidSerializer(serializers.Serializer):
    """Read-only view of a Bid record."""

    id = serializers.IntegerField()
    booking_id = serializers.IntegerField()
    user_id = serializers.IntegerField(allow_null=True)
    lob = serializers.CharField()
    bid_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    max_bid = serializers.DecimalField(max_digits=12, decimal_places=2, allow_null=True)
    bid_reason = serializers.CharField(allow_blank=True)
    status = serializers.CharField(source="status.value")
    is_auto = serializers.BooleanField()
    created_at = serializers.DateTimeField()


class ScoredBidSerializer(serializers.Serializer):
    bid = BidSerializer()
    demand_class = serializers.CharField(source="demand_class.value")
    score = serializers.FloatField()


class AuctionResultSerializer(serializers.Serializer):
    """``winner`` is null when the auction was cancelled."""

    booking_id = serializers.IntegerField()
    auction_status = serializers.CharField()
    winner = ScoredBidSerializer(allow_null=True)
    total_bids = serializers.IntegerField()
    excluded_count = serializers.IntegerField()
    excluded = serializers.SerializerMethodField()

    def get_excluded(self, obj) -> list[dict]:
        return [{"bid_id": bid_id, "reason": reason} for bid_id, reason in obj.excluded]


class SlotAllocationSerializer(serializers.Serializer):
    """Snapshot of one asset's slot counters on one day (a SlotUsage record)."""

    asset_id = serializers.IntegerField()
    date = serializers.DateField(source="day")
    total_slots = serializers.IntegerField()
    internal_allocated = serializers.IntegerField(source="internal")
    external_allocated = serializers.IntegerField(source="external")
    monetization_allocated = serializers.IntegerField(source="monetization")
    internal_percentage = serializers.SerializerMethodField()
    external_percentage = serializers.SerializerMethodField()
    monetization_percentage = serializers.SerializerMethodField()

    @staticmethod
    def _percentage(obj, allocated: int) -> float:
        return round(allocated * 100 / obj.total_slots, 2) if obj.total_slots else 0.0

    def get_internal_percentage(self, obj) -> float:
        return self._percentage(obj, obj.internal)

    def get_external_percentage(self, obj) -> float:
        return self._percentage(obj, obj.external)

    def get_monetization_percentage(self, obj) -> float:
        return self._percentage(obj, obj.monetization)
