from __future__ import annotations

from typing import Iterable

from apps.catalog.models import MenuItem, Recipe
from apps.core.naming import normalize_name


def menu_catalog(queryset=None) -> list[str]:
    """Canonical titles of every active menu item."""
    queryset = queryset if queryset is not None else MenuItem.objects.filter(is_active=True)
    return list(queryset.values_list("title", flat=True))


def build_recipe_catalog(menu_items: Iterable[MenuItem], recipes: Iterable[Recipe]) -> dict[str, Recipe]:
    """Map canonical dish titles to recipes.

    An explicit ``MenuItem.recipe`` link wins; otherwise the recipe whose
    normalized title equals the dish title is used. Recipes that no menu item
    points at stay reachable under their own title.
    """
    by_key: dict[str, Recipe] = {}
    for recipe in recipes:
        by_key.setdefault(normalize_name(recipe.title), recipe)

    catalog: dict[str, Recipe] = {}
    for recipe in by_key.values():
        catalog[recipe.title] = recipe
    for item in menu_items:
        recipe = item.recipe if item.recipe_id else by_key.get(normalize_name(item.title))
        if recipe is not None:
            catalog[item.title] = recipe
    return catalog


def load_recipe_catalog() -> dict[str, Recipe]:
    return build_recipe_catalog(
        MenuItem.objects.select_related("recipe").filter(is_active=True),
        Recipe.objects.order_by("-updated_at", "title"),
    )
