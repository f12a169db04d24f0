from rest_framework import viewsets

from apps.catalog.api.v1.serializers import (
    IngredientAliasSerializer,
    IngredientCategorySerializer,
    MenuItemSerializer,
    RecipeSerializer,
    RecipeSettingSerializer,
    UnitAliasSerializer,
)
from apps.catalog.models import IngredientAlias, IngredientCategory, MenuItem, Recipe, RecipeSetting, UnitAlias


class RecipeViewSet(viewsets.ModelViewSet):
    serializer_class = RecipeSerializer

    def get_queryset(self):
        queryset = Recipe.objects.order_by("title")
        query = (self.request.query_params.get("q") or "").strip()
        if query:
            queryset = queryset.filter(title__icontains=query)
        return queryset


class MenuItemViewSet(viewsets.ModelViewSet):
    serializer_class = MenuItemSerializer

    def get_queryset(self):
        queryset = MenuItem.objects.select_related("recipe").order_by("sort_order", "title")
        active_only = self.request.query_params.get("active")
        if active_only in {"1", "true", "True"}:
            queryset = queryset.filter(is_active=True)
        return queryset


class IngredientAliasViewSet(viewsets.ModelViewSet):
    queryset = IngredientAlias.objects.all()
    serializer_class = IngredientAliasSerializer


class IngredientCategoryViewSet(viewsets.ModelViewSet):
    serializer_class = IngredientCategorySerializer

    def get_queryset(self):
        queryset = IngredientCategory.objects.all()
        category = (self.request.query_params.get("category") or "").strip()
        if category:
            queryset = queryset.filter(category=category)
        return queryset


class UnitAliasViewSet(viewsets.ModelViewSet):
    queryset = UnitAlias.objects.all()
    serializer_class = UnitAliasSerializer


class RecipeSettingViewSet(viewsets.ModelViewSet):
    queryset = RecipeSetting.objects.all()
    serializer_class = RecipeSettingSerializer
