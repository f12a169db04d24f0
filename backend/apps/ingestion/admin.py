from django.contrib import admin

from apps.ingestion.models import IngestionBatch, ProductAlias


@admin.register(ProductAlias)
class ProductAliasAdmin(admin.ModelAdmin):
    list_display = ("key", "status", "canonical_title", "updated_at")
    list_filter = ("status",)
    search_fields = ("key", "canonical_title")


@admin.register(IngestionBatch)
class IngestionBatchAdmin(admin.ModelAdmin):
    list_display = ("source", "status", "idempotency_key", "error_status", "started_at", "finished_at")
    list_filter = ("source", "status")
    readonly_fields = ("request", "order_ids", "missing_dates", "error")
