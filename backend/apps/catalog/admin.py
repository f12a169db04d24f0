from django.contrib import admin

from apps.catalog.models import IngredientAlias, IngredientCategory, MenuItem, Recipe, RecipeSetting, UnitAlias


@admin.register(Recipe)
class RecipeAdmin(admin.ModelAdmin):
    list_display = ("title", "category", "updated_at")
    search_fields = ("title",)
    list_filter = ("category",)


@admin.register(MenuItem)
class MenuItemAdmin(admin.ModelAdmin):
    list_display = ("title", "recipe", "is_active", "sort_order")
    list_filter = ("is_active",)
    search_fields = ("title",)


@admin.register(IngredientAlias)
class IngredientAliasAdmin(admin.ModelAdmin):
    list_display = ("source_key", "canonical_name", "updated_at")
    search_fields = ("source_key", "canonical_name")


@admin.register(IngredientCategory)
class IngredientCategoryAdmin(admin.ModelAdmin):
    list_display = ("ingredient_key", "category")
    list_filter = ("category",)
    search_fields = ("ingredient_key",)


@admin.register(UnitAlias)
class UnitAliasAdmin(admin.ModelAdmin):
    list_display = ("source_key", "canonical_unit")
    search_fields = ("source_key", "canonical_unit")


@admin.register(RecipeSetting)
class RecipeSettingAdmin(admin.ModelAdmin):
    list_display = ("dish_title", "enabled", "multiplier", "updated_at")
    list_filter = ("enabled",)
    search_fields = ("dish_title",)
