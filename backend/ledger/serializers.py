from __future__ import annotations

from rest_framework import serializers

from .dataclasses import CATEGORIES
from .models import DailyTrip, TripLine


# ---------- INPUT SERIALIZERS ----------
class TripLineInputSerializer(serializers.Serializer):
    product_id = serializers.CharField(max_length=32)
    product_name = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    category = serializers.ChoiceField(choices=CATEGORIES)
    quantity = serializers.DecimalField(max_digits=12, decimal_places=3, min_value=0)
    unit_price = serializers.DecimalField(max_digits=18, decimal_places=4, min_value=0)


class TransferLineInputSerializer(TripLineInputSerializer):
    receiving_driver_id = serializers.CharField(max_length=32)
    receiving_driver_name = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


def _amount():
    # DecimalField already rejects NaN and +/-Infinity
    return serializers.DecimalField(max_digits=18, decimal_places=4, required=False, default=0)


class DailyTripWriteSerializer(serializers.Serializer):
    """
    Payload for creating a trip, and (with partial=True) for updating one.

    purchase_amount is accepted and dropped: it is always derived.
    """
    driver_id = serializers.CharField(max_length=32)
    date = serializers.DateField()
    sold_lines = TripLineInputSerializer(many=True, required=False, default=list)
    outgoing_transfers = TransferLineInputSerializer(many=True, required=False, default=list)
    collection_amount = _amount()
    expiry_amount = _amount()
    discount_amount = _amount()
    petrol_amount = _amount()
    purchase_amount = serializers.DecimalField(max_digits=18, decimal_places=4, required=False, write_only=True)

    def validate(self, attrs):
        attrs.pop("purchase_amount", None)
        return attrs


# ---------- OUTPUT SERIALIZERS ----------
class TripLineSerializer(serializers.ModelSerializer):
    class Meta:
        model = TripLine
        fields = [
            "product_id", "product_name", "category", "quantity", "unit_price",
            "receiving_driver_id", "receiving_driver_name",
            "sending_driver_id", "sending_driver_name", "source_trip",
        ]


class DailyTripSerializer(serializers.ModelSerializer):
    sold_lines = serializers.SerializerMethodField()
    accepted_lines = serializers.SerializerMethodField()
    outgoing_transfers = serializers.SerializerMethodField()
    created_by = serializers.SlugRelatedField(slug_field="username", read_only=True)
    updated_by = serializers.SlugRelatedField(slug_field="username", read_only=True)

    class Meta:
        model = DailyTrip
        fields = [
            "id", "reference", "driver", "driver_name", "date",
            "sold_lines", "accepted_lines", "outgoing_transfers",
            "collection_amount", "purchase_amount", "expiry_amount", "discount_amount", "petrol_amount",
            "previous_balance", "total_amount", "net_total", "grand_total",
            "expiry_after_tax", "amount_to_be", "sales_difference", "profit", "balance",
            "totals_snapshot",
            "created_by", "updated_by", "created_at", "updated_at",
        ]
        read_only_fields = fields

    def _lines(self, obj, kind):
        rows = [row for row in obj.lines.all() if row.kind == kind]
        return TripLineSerializer(sorted(rows, key=lambda r: (r.position, r.pk)), many=True).data

    def get_sold_lines(self, obj):
        return self._lines(obj, TripLine.SOLD)

    def get_accepted_lines(self, obj):
        return self._lines(obj, TripLine.ACCEPTED)

    def get_outgoing_transfers(self, obj):
        return self._lines(obj, TripLine.TRANSFERRED)
