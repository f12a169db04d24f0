from django.contrib import admin

from apps.orders.models import Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("client_name", "event_date", "status", "source", "created_at")
    list_filter = ("status", "source")
    search_fields = ("client_name",)
    inlines = [OrderItemInline]
