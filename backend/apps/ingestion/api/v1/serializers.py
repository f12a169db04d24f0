from decimal import Decimal

from rest_framework import serializers

from apps.core.naming import clean_text
from apps.ingestion.models import ProductAlias
from apps.orders.materializer import DraftItem, DraftOrder


class DraftItemSerializer(serializers.Serializer):
    title = serializers.CharField()
    qty = serializers.DecimalField(max_digits=12, decimal_places=3, min_value=Decimal("0.001"))
    unit = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class DraftOrderSerializer(serializers.Serializer):
    client_name = serializers.CharField()
    event_date = serializers.DateField(required=False, allow_null=True)
    items = DraftItemSerializer(many=True)
    notes = serializers.ListField(child=serializers.CharField(allow_blank=True), required=False, default=list)

    def validate_client_name(self, value):
        name = clean_text(value)
        if not name:
            raise serializers.ValidationError("client_name must not be blank.")
        return name


class DraftBatchSerializer(serializers.Serializer):
    orders = DraftOrderSerializer(many=True, allow_empty=False)

    def to_drafts(self) -> list[DraftOrder]:
        return [
            DraftOrder(
                client_name=entry["client_name"],
                event_date=entry.get("event_date"),
                items=[
                    DraftItem(
                        title=item["title"],
                        qty=item["qty"],
                        unit=clean_text(item.get("unit")) or None,
                        notes=item.get("notes", ""),
                    )
                    for item in entry["items"]
                ],
                notes=entry.get("notes", []),
            )
            for entry in self.validated_data["orders"]
        ]


class ProductAliasSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductAlias
        fields = ("key", "status", "canonical_title", "updated_at")
        read_only_fields = fields


class AliasDecisionSerializer(serializers.Serializer):
    key = serializers.CharField()
    canonical_title = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    ignore = serializers.BooleanField(required=False, default=False)


class AliasRoundSerializer(serializers.Serializer):
    decisions = AliasDecisionSerializer(many=True, allow_empty=False)
