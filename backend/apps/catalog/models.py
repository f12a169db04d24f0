import uuid
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models


class Recipe(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.CharField(max_length=255)
    category = models.CharField(max_length=128, blank=True, null=True)
    ingredient_groups = models.JSONField(default=list, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "catalog_recipe"
        ordering = ["title"]

    def __str__(self) -> str:
        return self.title


class MenuItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.CharField(max_length=255, unique=True)
    recipe = models.ForeignKey(
        Recipe,
        on_delete=models.SET_NULL,
        related_name="menu_items",
        blank=True,
        null=True,
    )
    is_active = models.BooleanField(default=True)
    sort_order = models.PositiveIntegerField(default=0)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "catalog_menu_item"
        ordering = ["sort_order", "title"]

    def __str__(self) -> str:
        return self.title


class IngredientAlias(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    source_key = models.CharField(max_length=255, unique=True)
    canonical_name = models.CharField(max_length=255)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "catalog_ingredient_alias"
        ordering = ["source_key"]

    def __str__(self) -> str:
        return f"{self.source_key} -> {self.canonical_name}"


class IngredientCategory(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    ingredient_key = models.CharField(max_length=255, unique=True)
    category = models.CharField(max_length=128)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "catalog_ingredient_category"
        ordering = ["category", "ingredient_key"]

    def __str__(self) -> str:
        return f"{self.ingredient_key} ({self.category})"


class UnitAlias(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    source_key = models.CharField(max_length=64, unique=True)
    canonical_unit = models.CharField(max_length=32)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "catalog_unit_alias"
        ordering = ["source_key"]

    def __str__(self) -> str:
        return f"{self.source_key} -> {self.canonical_unit}"


class RecipeSetting(models.Model):
    """How one dish feeds the shopping list.

    ``multiplier`` is the number of ordered units one batch of ingredients
    yields. A non-empty ``custom_ingredients`` list replaces the recipe's own
    ingredients for this dish, and also works for dishes that have no recipe.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    dish_title = models.CharField(max_length=255, unique=True)
    enabled = models.BooleanField(default=True)
    multiplier = models.DecimalField(
        max_digits=10,
        decimal_places=3,
        default=Decimal("1"),
        validators=[MinValueValidator(Decimal("0.001"))],
    )
    custom_ingredients = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "catalog_recipe_setting"
        ordering = ["dish_title"]

    def __str__(self) -> str:
        return self.dish_title
