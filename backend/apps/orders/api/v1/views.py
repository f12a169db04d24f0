from django.db.models import Prefetch
from django.utils.dateparse import parse_date
from rest_framework import mixins, viewsets
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.catalog.models import IngredientAlias, IngredientCategory, RecipeSetting, UnitAlias
from apps.catalog.recipes import load_recipe_catalog
from apps.orders.api.v1.serializers import OrderSerializer, ShoppingListQuerySerializer, ShoppingListSerializer
from apps.orders.materializer import from_stored
from apps.orders.models import Order, OrderItem, OrderStatus
from apps.orders.shopping_list import aggregate


def orders_with_items():
    return Order.objects.prefetch_related(Prefetch("items", queryset=OrderItem.objects.order_by("title")))


class OrderViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = OrderSerializer
    http_method_names = ["get", "patch", "delete", "head", "options"]

    def get_queryset(self):
        queryset = orders_with_items().order_by("event_date", "client_name")
        params = self.request.query_params
        start = self._date_param("start")
        end = self._date_param("end")
        if start:
            queryset = queryset.filter(event_date__gte=start)
        if end:
            queryset = queryset.filter(event_date__lte=end)
        if params.get("client"):
            queryset = queryset.filter(client_name__icontains=params["client"].strip())
        return queryset

    def _date_param(self, name):
        raw = (self.request.query_params.get(name) or "").strip()
        if not raw:
            return None
        try:
            value = parse_date(raw)
        except ValueError:
            value = None
        if value is None:
            raise ValidationError({name: "Use YYYY-MM-DD."})
        return value


class ShoppingListView(APIView):
    def get(self, request):
        serializer = ShoppingListQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        params = serializer.validated_data

        if params.get("order"):
            queryset = orders_with_items().filter(id__in=params["order"])
        else:
            queryset = orders_with_items().filter(
                event_date__gte=params["start"],
                event_date__lte=params["end"],
            ).exclude(status=OrderStatus.CANCELLED)

        shopping_list = aggregate(
            [from_stored(order) for order in queryset],
            load_recipe_catalog(),
            dict(IngredientAlias.objects.values_list("source_key", "canonical_name")),
            settings={setting.dish_title: setting for setting in RecipeSetting.objects.all()},
            categories=dict(IngredientCategory.objects.values_list("ingredient_key", "category")),
            unit_aliases=dict(UnitAlias.objects.values_list("source_key", "canonical_unit")),
        )
        return Response(ShoppingListSerializer(shopping_list).data)
