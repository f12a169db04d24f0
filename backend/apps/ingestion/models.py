import logging
import uuid

from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone

logger = logging.getLogger(__name__)


class IngestionBatch(models.Model):
    """One commit request, kept whether or not its orders were saved.

    A completed batch remembers the ids of the orders it created so a retry
    carrying the same ``Idempotency-Key`` can answer without ingesting again.
    """

    class Status(models.TextChoices):
        STARTED = "started", "started"
        COMPLETED = "completed", "completed"
        FAILED = "failed", "failed"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    source = models.CharField(max_length=64)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.STARTED)
    idempotency_key = models.CharField(max_length=255, blank=True, null=True)
    request = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)
    order_ids = models.JSONField(default=list, blank=True)
    missing_dates = models.JSONField(default=list, blank=True)
    error_status = models.PositiveSmallIntegerField(blank=True, null=True)
    error = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)
    started_at = models.DateTimeField(auto_now_add=True)
    finished_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "ingestion_batch"
        ordering = ["-started_at"]
        indexes = [
            models.Index(fields=["source", "idempotency_key"], name="ix_ingestion_batch_idem"),
        ]

    def __str__(self) -> str:
        return f"{self.source}:{self.status}"

    @classmethod
    def completed_for(cls, source: str, idempotency_key: str):
        if not idempotency_key:
            return None
        return (
            cls.objects.filter(source=source, idempotency_key=idempotency_key, status=cls.Status.COMPLETED)
            .order_by("-started_at")
            .first()
        )

    @classmethod
    def start(cls, source: str, idempotency_key: str, request: dict) -> "IngestionBatch":
        batch = cls.objects.create(source=source, idempotency_key=idempotency_key or None, request=request)
        logger.info("Started %s batch %s", source, batch.id)
        return batch

    def complete(self, orders, missing_dates: list[dict]) -> None:
        self.status = self.Status.COMPLETED
        self.finished_at = timezone.now()
        self.order_ids = [str(order.id) for order in orders]
        self.missing_dates = list(missing_dates)
        self.save(update_fields=["status", "finished_at", "order_ids", "missing_dates", "updated_at"])
        logger.info("Completed batch %s: %d orders, %d without a date", self.id, len(orders), len(missing_dates))

    def fail(self, status_code: int, error: dict) -> None:
        self.status = self.Status.FAILED
        self.finished_at = timezone.now()
        self.error_status = status_code
        self.error = error
        self.save(update_fields=["status", "finished_at", "error_status", "error", "updated_at"])
        logger.warning("Batch %s failed with status %s", self.id, status_code)


class ProductAlias(models.Model):
    class Status(models.TextChoices):
        RESOLVED = "resolved", "resolved"
        IGNORED = "ignored", "ignored"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    key = models.CharField(max_length=255, unique=True)
    status = models.CharField(max_length=16, choices=Status.choices)
    canonical_title = models.CharField(max_length=255, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "ingestion_product_alias"
        ordering = ["key"]

    def __str__(self) -> str:
        if self.status == self.Status.IGNORED:
            return f"{self.key} (ignored)"
        return f"{self.key} -> {self.canonical_title}"
