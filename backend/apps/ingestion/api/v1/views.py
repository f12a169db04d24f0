from dataclasses import asdict

from django.db import transaction
from rest_framework import status
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.catalog.recipes import menu_catalog
from apps.core.errors import BakeOpsError
from apps.ingestion.aliases import AliasDecision, DjangoAliasRepository, apply_decisions
from apps.ingestion.api.v1.serializers import (
    AliasDecisionSerializer,
    AliasRoundSerializer,
    DraftBatchSerializer,
    ProductAliasSerializer,
)
from apps.ingestion.extraction import extract_batch, read_uploads, validate_batch_sizes
from apps.ingestion.models import IngestionBatch, ProductAlias
from apps.ingestion.pipeline import BatchOptions, build_resolver, commit, preview
from apps.orders.api.v1.serializers import OrderSerializer
from apps.orders.api.v1.views import orders_with_items


def batch_response(batch: IngestionBatch, envelope: bool) -> Response:
    position = {order_id: index for index, order_id in enumerate(batch.order_ids)}
    orders = sorted(
        orders_with_items().filter(id__in=batch.order_ids),
        key=lambda order: position[str(order.id)],
    )
    data = OrderSerializer(orders, many=True).data
    body = {"orders": data, "missing_dates": batch.missing_dates} if envelope else data
    response = Response(body, status=status.HTTP_201_CREATED)
    response["X-Missing-Dates"] = str(len(batch.missing_dates))
    return response


class CommitBatchMixin:
    """Shared commit phase: idempotent replay, batch bookkeeping, one transaction."""

    batch_source = "upload"

    def commit_batch(self, request, options: BatchOptions, load_source, summary: dict) -> Response:
        envelope = request.query_params.get("envelope") in {"1", "true", "True"}
        idempotency_key = request.headers.get("Idempotency-Key", "")

        existing = IngestionBatch.completed_for(self.batch_source, idempotency_key)
        if existing:
            return batch_response(existing, envelope)

        batch = IngestionBatch.start(self.batch_source, idempotency_key, summary)
        try:
            source = load_source()
            with transaction.atomic():
                orders, result = commit(
                    source,
                    build_resolver(),
                    overrides=options.mapping,
                    decisions=options.decisions,
                    date_overrides=options.date_overrides,
                    batch=batch,
                )
        except BakeOpsError as exc:
            batch.fail(exc.status_code, exc.as_payload())
            raise
        except Exception as exc:
            batch.fail(status.HTTP_500_INTERNAL_SERVER_ERROR, {"detail": str(exc)})
            raise

        batch.complete(orders, result.missing_dates)
        return batch_response(batch, envelope)


class IngestView(CommitBatchMixin, APIView):
    parser_classes = [MultiPartParser, FormParser]
    batch_source = "upload"

    def post(self, request):
        uploads = request.FILES.getlist("files")
        validate_batch_sizes(uploads)
        options = BatchOptions.from_request_data(request.data)

        if options.mode == "preview":
            matrix = extract_batch(read_uploads(uploads))
            return Response(preview(matrix, build_resolver(), options.mapping))

        summary = {
            "files": [upload.name for upload in uploads],
            "mapping": options.mapping,
            "decisions": [asdict(decision) for decision in options.decisions],
            "date_overrides": options.date_overrides,
        }
        return self.commit_batch(request, options, lambda: extract_batch(read_uploads(uploads)), summary)


class DraftIngestView(CommitBatchMixin, APIView):
    parser_classes = [JSONParser]
    batch_source = "draft"

    def post(self, request):
        serializer = DraftBatchSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        options = BatchOptions.from_request_data(request.data)
        drafts = serializer.to_drafts()

        if options.mode == "preview":
            return Response(preview(drafts, build_resolver(), options.mapping))
        return self.commit_batch(request, options, lambda: drafts, request.data)


class AliasListView(APIView):
    def get(self, request):
        queryset = ProductAlias.objects.order_by("key")
        status_filter = request.query_params.get("status")
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        return Response(ProductAliasSerializer(queryset, many=True).data)

    def post(self, request):
        serializer = AliasDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        decision = AliasDecision.from_payload(serializer.validated_data)
        applied = apply_decisions(DjangoAliasRepository(), [decision], menu_catalog())
        alias = ProductAlias.objects.get(key=applied[0].key)
        return Response(ProductAliasSerializer(alias).data, status=status.HTTP_201_CREATED)


class AliasDecisionView(APIView):
    def post(self, request):
        serializer = AliasRoundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        decisions = [AliasDecision.from_payload(entry) for entry in serializer.validated_data["decisions"]]
        applied = apply_decisions(DjangoAliasRepository(), decisions, menu_catalog())
        aliases = ProductAlias.objects.filter(key__in=[decision.key for decision in applied]).order_by("key")
        return Response({"applied": ProductAliasSerializer(aliases, many=True).data})
