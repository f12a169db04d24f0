from rest_framework import serializers

from apps.orders.models import Order, OrderItem


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = ("title", "qty", "unit", "notes")
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = ("id", "client_name", "event_date", "status", "items", "notes", "source", "batch", "created_at")
        read_only_fields = ("id", "client_name", "items", "source", "batch", "created_at")

    def validate_notes(self, value):
        if not isinstance(value, list) or not all(isinstance(note, str) for note in value):
            raise serializers.ValidationError("notes must be a list of strings.")
        return [note.strip() for note in value if note.strip()]


class IngredientRequirementSerializer(serializers.Serializer):
    ingredient_key = serializers.CharField()
    name_key = serializers.CharField()
    name = serializers.CharField()
    qty = serializers.DecimalField(max_digits=20, decimal_places=3)
    unit = serializers.CharField(allow_blank=True)
    category = serializers.CharField()
    contributing_orders = serializers.IntegerField()
    order_ids = serializers.ListField(child=serializers.CharField())
    sources = serializers.ListField(child=serializers.CharField())
    ambiguous_unit = serializers.BooleanField()


class ShoppingListSerializer(serializers.Serializer):
    requirements = IngredientRequirementSerializer(many=True)
    unmatched_dishes = serializers.ListField(child=serializers.CharField())
    disabled_dishes = serializers.ListField(child=serializers.CharField())
    ambiguous_units = serializers.DictField(child=serializers.ListField(child=serializers.CharField()))
    warnings = serializers.ListField(child=serializers.CharField())


class ShoppingListQuerySerializer(serializers.Serializer):
    start = serializers.DateField(required=False)
    end = serializers.DateField(required=False)
    order = serializers.ListField(child=serializers.UUIDField(), required=False)

    def validate(self, attrs):
        if not attrs.get("order") and not (attrs.get("start") and attrs.get("end")):
            raise serializers.ValidationError("Pass start and end dates or at least one order id.")
        if attrs.get("start") and attrs.get("end") and attrs["start"] > attrs["end"]:
            raise serializers.ValidationError({"end": "end must not be before start."})
        return attrs
