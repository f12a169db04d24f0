from rest_framework.routers import DefaultRouter

from apps.catalog.api.v1.views import (
    IngredientAliasViewSet,
    IngredientCategoryViewSet,
    MenuItemViewSet,
    RecipeSettingViewSet,
    RecipeViewSet,
    UnitAliasViewSet,
)


router = DefaultRouter()
router.register("menu-items", MenuItemViewSet, basename="menu-item")
router.register("recipes", RecipeViewSet, basename="recipe")
router.register("recipe-settings", RecipeSettingViewSet, basename="recipe-setting")
router.register("ingredient-aliases", IngredientAliasViewSet, basename="ingredient-alias")
router.register("ingredient-categories", IngredientCategoryViewSet, basename="ingredient-category")
router.register("unit-aliases", UnitAliasViewSet, basename="unit-alias")

urlpatterns = router.urls
