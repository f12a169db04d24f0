from django.urls import path
from rest_framework.routers import DefaultRouter

from apps.orders.api.v1.views import OrderViewSet, ShoppingListView


router = DefaultRouter()
router.register("orders", OrderViewSet, basename="order")

urlpatterns = [
    path("shopping-list/", ShoppingListView.as_view(), name="shopping-list"),
    *router.urls,
]
