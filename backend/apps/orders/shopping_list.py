"""Ingredient demand for a set of orders.

Each ordered dish is expanded through its recipe and every ingredient quantity
is multiplied by the ordered quantity and divided by the dish's multiplier
(1 unless a recipe setting says otherwise). Rows are keyed by normalized
ingredient name and normalized unit; the same ingredient under two units stays
as two rows, both flagged ``ambiguous_unit``. Spellings of one unit are folded
together, but nothing is converted between units.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Mapping

from apps.catalog.quantities import split_qty_unit, to_decimal
from apps.core.naming import clean_text, normalize_name, normalize_unit

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "other"


@dataclass
class IngredientRequirement:
    name_key: str
    name: str
    qty: Decimal
    unit: str
    category: str = DEFAULT_CATEGORY
    order_ids: list[str] = field(default_factory=list)
    sources: list[str] = field(default_factory=list)
    ambiguous_unit: bool = False

    @property
    def ingredient_key(self) -> str:
        return f"{self.name_key}|{self.unit}"

    @property
    def contributing_orders(self) -> int:
        return len(self.order_ids)


@dataclass
class ShoppingList:
    requirements: list[IngredientRequirement] = field(default_factory=list)
    unmatched_dishes: list[str] = field(default_factory=list)
    disabled_dishes: list[str] = field(default_factory=list)
    ambiguous_units: dict[str, list[str]] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)


def _value(source, name: str, default=None):
    if isinstance(source, Mapping):
        return source.get(name, default)
    return getattr(source, name, default)


def _recipe_ingredients(recipe) -> list:
    return [
        ingredient
        for group in _value(recipe, "ingredient_groups", None) or []
        for ingredient in group.get("items") or []
    ]


def _custom_ingredients(setting) -> list:
    return [
        ingredient
        for ingredient in _value(setting, "custom_ingredients", None) or []
        if ingredient.get("enabled", True)
    ]


def _multiplier(setting) -> Decimal:
    multiplier = to_decimal(_value(setting, "multiplier", None)) if setting is not None else None
    if multiplier is None or multiplier <= 0:
        return Decimal("1")
    return multiplier


def _by_key(entries: Mapping | None) -> dict:
    index = {}
    for title, entry in (entries or {}).items():
        index.setdefault(normalize_name(title), entry)
    return index


def aggregate(
    orders: Iterable,
    recipes: Mapping,
    ingredient_aliases: Mapping[str, str] | None = None,
    *,
    settings: Mapping | None = None,
    categories: Mapping[str, str] | None = None,
    unit_aliases: Mapping[str, str] | None = None,
) -> ShoppingList:
    """Sum recipe ingredients over ``orders``.

    ``recipes`` maps dish titles to objects (or dicts) carrying
    ``ingredient_groups``; ``settings`` maps dish titles to recipe settings
    (``enabled``, ``multiplier``, ``custom_ingredients``). ``ingredient_aliases``
    maps an ingredient name to the name it should be counted under,
    ``categories`` maps an ingredient name to its shopping category and
    ``unit_aliases`` maps a unit spelling to the unit it stands for.
    """
    aliases = {normalize_name(key): value for key, value in (ingredient_aliases or {}).items()}
    category_index = {normalize_name(key): clean_text(value) for key, value in (categories or {}).items()}
    unit_index = {normalize_name(key): value for key, value in (unit_aliases or {}).items()}
    recipe_index = _by_key(recipes)
    setting_index = _by_key(settings)
    rows: dict[tuple[str, str], IngredientRequirement] = {}
    unmatched: set[str] = set()
    disabled: set[str] = set()
    result = ShoppingList()

    for order in sorted(orders, key=lambda order: str(order.id)):
        order_id = str(order.id)
        for item in order.items:
            dish_key = normalize_name(item.title)
            setting = setting_index.get(dish_key)
            if setting is not None and not _value(setting, "enabled", True):
                disabled.add(item.title)
                continue
            ingredients = _custom_ingredients(setting) if setting is not None else []
            if not ingredients:
                recipe = recipes.get(item.title) or recipe_index.get(dish_key)
                if recipe is None:
                    unmatched.add(item.title)
                    continue
                ingredients = _recipe_ingredients(recipe)
            scale = Decimal(item.qty) / _multiplier(setting)

            for ingredient in ingredients:
                raw_name = clean_text(ingredient.get("name"))
                qty, inline_unit = split_qty_unit(ingredient.get("qty"))
                if not raw_name:
                    continue
                if qty is None:
                    result.warnings.append(
                        f"Skipped '{raw_name}' in '{item.title}': "
                        f"quantity '{ingredient.get('qty')}' is not a number."
                    )
                    continue
                source_key = normalize_name(raw_name)
                name_key = source_key
                display_name = raw_name
                if name_key in aliases:
                    display_name = clean_text(aliases[name_key])
                    name_key = normalize_name(display_name)
                unit = normalize_unit(ingredient.get("unit") or inline_unit, unit_index)
                row = rows.get((name_key, unit))
                if row is None:
                    row = IngredientRequirement(
                        name_key=name_key,
                        name=display_name,
                        qty=Decimal("0"),
                        unit=unit,
                        category=category_index.get(source_key) or category_index.get(name_key) or DEFAULT_CATEGORY,
                    )
                    rows[(name_key, unit)] = row
                row.qty += qty * scale
                if order_id not in row.order_ids:
                    row.order_ids.append(order_id)
                if item.title not in row.sources:
                    row.sources.append(item.title)

    units_by_name: dict[str, list[str]] = {}
    for name_key, unit in rows:
        units_by_name.setdefault(name_key, []).append(unit)
    for row in rows.values():
        row.ambiguous_unit = len(units_by_name[row.name_key]) > 1
        row.sources.sort()

    result.requirements = list(rows.values())
    result.unmatched_dishes = sorted(unmatched)
    result.disabled_dishes = sorted(disabled)
    result.ambiguous_units = {
        name_key: sorted(units) for name_key, units in sorted(units_by_name.items()) if len(units) > 1
    }
    for warning in result.warnings:
        logger.warning(warning)
    if result.unmatched_dishes:
        logger.info("No recipe for %d dishes: %s", len(result.unmatched_dishes), ", ".join(result.unmatched_dishes))
    return result
