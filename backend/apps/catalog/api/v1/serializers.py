from rest_framework import serializers

from apps.catalog.models import IngredientAlias, IngredientCategory, MenuItem, Recipe, RecipeSetting, UnitAlias
from apps.catalog.quantities import parse_qty
from apps.core.naming import clean_text, normalize_name


class RecipeSerializer(serializers.ModelSerializer):
    class Meta:
        model = Recipe
        fields = ("id", "title", "category", "ingredient_groups", "metadata", "created_at", "updated_at")
        read_only_fields = ("id", "created_at", "updated_at")

    def validate_title(self, value):
        title = clean_text(value)
        if not title:
            raise serializers.ValidationError("title must not be blank.")
        return title

    def validate_ingredient_groups(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError("ingredient_groups must be a list.")
        groups = []
        for index, group in enumerate(value):
            if not isinstance(group, dict) or not isinstance(group.get("items", []), list):
                raise serializers.ValidationError(f"group {index} must be an object with an 'items' list.")
            items = []
            for item in group.get("items", []):
                if not isinstance(item, dict) or not clean_text(item.get("name")):
                    raise serializers.ValidationError(f"group {index}: every ingredient needs a name.")
                qty = item.get("qty", "")
                if qty not in ("", None) and parse_qty(qty) is None:
                    raise serializers.ValidationError(f"'{item['name']}': quantity '{qty}' is not a number.")
                items.append(
                    {
                        "name": clean_text(item["name"]),
                        "qty": qty if isinstance(qty, (int, float)) else str(qty or "").strip(),
                        "unit": clean_text(item.get("unit")),
                    }
                )
            groups.append(
                {
                    "group_name": clean_text(group.get("group_name") or group.get("groupName")),
                    "items": items,
                }
            )
        return groups


class MenuItemSerializer(serializers.ModelSerializer):
    recipe_title = serializers.CharField(source="recipe.title", read_only=True, default=None)

    class Meta:
        model = MenuItem
        fields = ("id", "title", "recipe", "recipe_title", "is_active", "sort_order", "metadata")
        read_only_fields = ("id",)

    def validate_title(self, value):
        title = clean_text(value)
        if not title:
            raise serializers.ValidationError("title must not be blank.")
        key = normalize_name(title)
        queryset = MenuItem.objects.all()
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if any(normalize_name(existing) == key for existing in queryset.values_list("title", flat=True)):
            raise serializers.ValidationError("A menu item with an equivalent title already exists.")
        return title


class IngredientAliasSerializer(serializers.ModelSerializer):
    class Meta:
        model = IngredientAlias
        fields = ("id", "source_key", "canonical_name", "created_at", "updated_at")
        read_only_fields = ("id", "created_at", "updated_at")
        validators = []

    def validate_source_key(self, value):
        key = normalize_name(value)
        if not key:
            raise serializers.ValidationError("source_key must not be blank.")
        queryset = IngredientAlias.objects.filter(source_key=key)
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError("An alias for this ingredient already exists.")
        return key

    def validate_canonical_name(self, value):
        name = clean_text(value)
        if not name:
            raise serializers.ValidationError("canonical_name must not be blank.")
        return name


class IngredientCategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = IngredientCategory
        fields = ("id", "ingredient_key", "category", "created_at", "updated_at")
        read_only_fields = ("id", "created_at", "updated_at")
        validators = []

    def validate_ingredient_key(self, value):
        key = normalize_name(value)
        if not key:
            raise serializers.ValidationError("ingredient_key must not be blank.")
        queryset = IngredientCategory.objects.filter(ingredient_key=key)
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError("This ingredient already has a category.")
        return key

    def validate_category(self, value):
        category = clean_text(value)
        if not category:
            raise serializers.ValidationError("category must not be blank.")
        return category


class UnitAliasSerializer(serializers.ModelSerializer):
    class Meta:
        model = UnitAlias
        fields = ("id", "source_key", "canonical_unit", "created_at", "updated_at")
        read_only_fields = ("id", "created_at", "updated_at")
        validators = []

    def validate_source_key(self, value):
        key = normalize_name(value)
        if not key:
            raise serializers.ValidationError("source_key must not be blank.")
        queryset = UnitAlias.objects.filter(source_key=key)
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError("An alias for this unit already exists.")
        return key

    def validate_canonical_unit(self, value):
        unit = normalize_name(value)
        if not unit:
            raise serializers.ValidationError("canonical_unit must not be blank.")
        return unit


class RecipeSettingSerializer(serializers.ModelSerializer):
    class Meta:
        model = RecipeSetting
        fields = ("id", "dish_title", "enabled", "multiplier", "custom_ingredients", "created_at", "updated_at")
        read_only_fields = ("id", "created_at", "updated_at")
        validators = []

    def validate_dish_title(self, value):
        title = clean_text(value)
        if not title:
            raise serializers.ValidationError("dish_title must not be blank.")
        key = normalize_name(title)
        queryset = RecipeSetting.objects.all()
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if any(normalize_name(existing) == key for existing in queryset.values_list("dish_title", flat=True)):
            raise serializers.ValidationError("This dish already has settings.")
        return title

    def validate_custom_ingredients(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError("custom_ingredients must be a list.")
        ingredients = []
        for index, item in enumerate(value):
            if not isinstance(item, dict) or not clean_text(item.get("name")):
                raise serializers.ValidationError(f"ingredient {index} needs a name.")
            qty = item.get("qty")
            if parse_qty(qty) is None:
                raise serializers.ValidationError(f"'{item['name']}': quantity '{qty}' is not a number.")
            if not isinstance(item.get("enabled", True), bool):
                raise serializers.ValidationError(f"'{item['name']}': enabled must be true or false.")
            ingredients.append(
                {
                    "name": clean_text(item["name"]),
                    "qty": qty if isinstance(qty, (int, float)) else str(qty).strip(),
                    "unit": clean_text(item.get("unit")),
                    "enabled": item.get("enabled", True),
                }
            )
        return ingredients
