import uuid
from decimal import Decimal
from itertools import permutations

from django.test import SimpleTestCase

from apps.orders.materializer import MaterializedItem, MaterializedOrder
from apps.orders.shopping_list import aggregate


def order(*items, order_id=None):
    return MaterializedOrder(
        id=order_id or uuid.uuid4(),
        client_name="Bistro",
        event_date=None,
        items=[MaterializedItem(title=title, qty=Decimal(str(qty))) for title, qty in items],
    )


def recipe(*ingredients):
    return {
        "ingredient_groups": [
            {
                "group_name": "main",
                "items": [{"name": name, "qty": qty, "unit": unit} for name, qty, unit in ingredients],
            }
        ]
    }


RECIPES = {
    "Choco Cake": recipe(("flour", 200, "g"), ("Milk", "100", "ml"), ("eggs", "2", "")),
    "Pancakes": recipe(("milk", "1 1/2", "cup"), ("Flour", "150", "G")),
    "Focaccia": recipe(("flour", "500", "g"), ("salt", "a pinch", "")),
}


class AggregateTests(SimpleTestCase):
    def test_quantities_scale_with_ordered_quantity(self):
        result = aggregate([order(("Choco Cake", 2))], RECIPES)

        rows = {row.ingredient_key: row for row in result.requirements}
        self.assertEqual(rows["flour|g"].qty, Decimal("400"))
        self.assertEqual(rows["eggs|"].qty, Decimal("4"))

    def test_same_ingredient_different_units_stays_split(self):
        result = aggregate([order(("Choco Cake", 1), ("Pancakes", 2))], RECIPES)

        rows = {row.ingredient_key: row for row in result.requirements}
        self.assertEqual(rows["milk|ml"].qty, Decimal("100"))
        self.assertEqual(rows["milk|cup"].qty, Decimal("3"))
        self.assertTrue(rows["milk|ml"].ambiguous_unit)
        self.assertTrue(rows["milk|cup"].ambiguous_unit)
        self.assertFalse(rows["flour|g"].ambiguous_unit)
        self.assertEqual(result.ambiguous_units, {"milk": ["cup", "ml"]})

    def test_units_and_names_are_normalized_before_keying(self):
        result = aggregate([order(("Choco Cake", 1), ("Pancakes", 1))], RECIPES)

        rows = {row.ingredient_key: row for row in result.requirements}
        self.assertEqual(rows["flour|g"].qty, Decimal("350"))
        self.assertEqual(rows["flour|g"].sources, ["Choco Cake", "Pancakes"])

    def test_total_is_conserved(self):
        orders = [order(("Choco Cake", 3)), order(("Focaccia", 2), ("Choco Cake", 1))]

        result = aggregate(orders, RECIPES)

        flour = sum((row.qty for row in result.requirements if row.name_key == "flour"), Decimal("0"))
        self.assertEqual(flour, Decimal("200") * 4 + Decimal("500") * 2)

    def test_result_does_not_depend_on_order_sequence(self):
        orders = [
            order(("Pancakes", 1)),
            order(("Choco Cake", 2)),
            order(("Focaccia", 1), ("Mystery Box", 1)),
        ]
        expected = aggregate(orders, RECIPES)

        for sequence in permutations(orders):
            result = aggregate(list(sequence), RECIPES)
            self.assertEqual(result.requirements, expected.requirements)
            self.assertEqual(result.unmatched_dishes, expected.unmatched_dishes)

    def test_unmatched_dishes_and_unparseable_quantities(self):
        result = aggregate([order(("Focaccia", 1), ("Mystery Box", 2), ("mystery box", 1))], RECIPES)

        self.assertEqual(result.unmatched_dishes, ["Mystery Box", "mystery box"])
        self.assertEqual(len(result.warnings), 1)
        self.assertNotIn("salt|", {row.ingredient_key for row in result.requirements})

    def test_recipe_lookup_falls_back_to_normalized_title(self):
        result = aggregate([order(("choco cake", 1))], RECIPES)

        self.assertEqual(result.unmatched_dishes, [])

    def test_ingredient_aliases_merge_rows(self):
        result = aggregate([order(("Choco Cake", 1))], RECIPES, {"eggs": "Egg"})

        rows = {row.ingredient_key: row for row in result.requirements}
        self.assertIn("egg|", rows)
        self.assertEqual(rows["egg|"].name, "Egg")

    def test_contributing_orders(self):
        first = order(("Choco Cake", 1))
        second = order(("Pancakes", 1))

        result = aggregate([first, second], RECIPES)

        rows = {row.ingredient_key: row for row in result.requirements}
        self.assertEqual(rows["flour|g"].contributing_orders, 2)
        self.assertEqual(rows["flour|g"].order_ids, sorted([str(first.id), str(second.id)]))
        self.assertEqual(rows["eggs|"].contributing_orders, 1)
        self.assertEqual(rows["eggs|"].order_ids, [str(first.id)])

    def test_pipe_in_ingredient_name_does_not_merge_groups(self):
        recipes = {"Focaccia": recipe(("salt", "5", "g"), ("salt|pepper mix", "2", "g"))}

        result = aggregate([order(("Focaccia", 1))], recipes)

        self.assertEqual(result.ambiguous_units, {})
        self.assertEqual(len(result.requirements), 2)
        self.assertFalse(any(row.ambiguous_unit for row in result.requirements))

    def test_unit_spellings_fold_into_one_row(self):
        recipes = {
            "Choco Cake": recipe(("milk", "1", "cup"), ("sugar", "100", "ג")),
            "Tart": recipe(("milk", "2", "cups"), ("sugar", "50", "גרם")),
        }

        result = aggregate([order(("Choco Cake", 1), ("Tart", 1))], recipes)

        rows = {row.ingredient_key: row for row in result.requirements}
        self.assertEqual(set(rows), {"milk|cup", "sugar|גרם"})
        self.assertEqual(rows["milk|cup"].qty, Decimal("3"))
        self.assertEqual(rows["sugar|גרם"].qty, Decimal("150"))
        self.assertFalse(rows["milk|cup"].ambiguous_unit)

    def test_unit_aliases_extend_the_built_in_spellings(self):
        recipes = {"Choco Cake": recipe(("milk", "1", "cup")), "Tart": recipe(("milk", "2", "כוס"))}

        result = aggregate([order(("Choco Cake", 1), ("Tart", 1))], recipes, unit_aliases={"cup": "כוס"})

        [row] = result.requirements
        self.assertEqual((row.unit, row.qty), ("כוס", Decimal("3")))

    def test_multiplier_divides_recipe_quantities(self):
        settings = {"Choco Cake": {"enabled": True, "multiplier": "4", "custom_ingredients": []}}

        result = aggregate([order(("Choco Cake", 2))], RECIPES, settings=settings)

        rows = {row.ingredient_key: row for row in result.requirements}
        self.assertEqual(rows["flour|g"].qty, Decimal("100"))
        self.assertEqual(rows["eggs|"].qty, Decimal("1"))

    def test_custom_ingredients_replace_the_recipe(self):
        settings = {
            "Choco Cake": {
                "multiplier": 2,
                "custom_ingredients": [
                    {"name": "cocoa", "qty": "30", "unit": "g"},
                    {"name": "flour", "qty": "80", "unit": "g", "enabled": False},
                ],
            },
            "Gift Box": {"custom_ingredients": [{"name": "ribbon", "qty": 1, "unit": "pcs"}]},
        }

        result = aggregate([order(("Choco Cake", 3), ("Gift Box", 2))], RECIPES, settings=settings)

        rows = {row.ingredient_key: row for row in result.requirements}
        self.assertEqual(set(rows), {"cocoa|g", "ribbon|pcs"})
        self.assertEqual(rows["cocoa|g"].qty, Decimal("45"))
        self.assertEqual(rows["ribbon|pcs"].qty, Decimal("2"))
        self.assertEqual(result.unmatched_dishes, [])

    def test_disabled_dish_contributes_nothing(self):
        settings = {"choco cake": {"enabled": False}}

        result = aggregate([order(("Choco Cake", 1), ("Focaccia", 1))], RECIPES, settings=settings)

        self.assertEqual(result.disabled_dishes, ["Choco Cake"])
        self.assertEqual(result.unmatched_dishes, [])
        self.assertEqual({row.name_key for row in result.requirements}, {"flour"})

    def test_categories_follow_the_source_or_aliased_name(self):
        categories = {"flour": "dry goods", "egg": "dairy"}

        result = aggregate([order(("Choco Cake", 1))], RECIPES, {"eggs": "Egg"}, categories=categories)

        rows = {row.ingredient_key: row for row in result.requirements}
        self.assertEqual(rows["flour|g"].category, "dry goods")
        self.assertEqual(rows["egg|"].category, "dairy")
        self.assertEqual(rows["milk|ml"].category, "other")
