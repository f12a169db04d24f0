import uuid
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models

from apps.ingestion.models import IngestionBatch


class OrderStatus(models.TextChoices):
    DRAFT = "draft", "draft"
    CONFIRMED = "confirmed", "confirmed"
    DELIVERED = "delivered", "delivered"
    CANCELLED = "cancelled", "cancelled"


class OrderSource(models.TextChoices):
    UPLOAD = "upload", "upload"
    DRAFT = "draft", "draft"
    MANUAL = "manual", "manual"


class Order(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    client_name = models.CharField(max_length=255)
    event_date = models.DateField(blank=True, null=True)
    status = models.CharField(max_length=16, choices=OrderStatus.choices, default=OrderStatus.CONFIRMED)
    notes = models.JSONField(default=list, blank=True)
    source = models.CharField(max_length=16, choices=OrderSource.choices, default=OrderSource.UPLOAD)
    batch = models.ForeignKey(
        IngestionBatch,
        on_delete=models.SET_NULL,
        related_name="orders",
        blank=True,
        null=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "orders_order"
        ordering = ["event_date", "client_name"]

    def __str__(self) -> str:
        return f"{self.client_name} ({self.event_date or 'no date'})"


class OrderItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    title = models.CharField(max_length=255)
    qty = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        validators=[MinValueValidator(Decimal("0.001"))],
    )
    unit = models.CharField(max_length=32, blank=True, null=True)
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "orders_order_item"
        ordering = ["title"]
        constraints = [
            models.UniqueConstraint(
                fields=["order", "title"],
                name="uq_orders_item_order_title",
            )
        ]

    def __str__(self) -> str:
        return f"{self.title} x {self.qty}"
