import json
from decimal import Decimal
from unittest import mock

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from apps.catalog.models import MenuItem
from apps.ingestion.models import IngestionBatch, ProductAlias
from apps.orders.models import Order


def json_upload(name, payload):
    return SimpleUploadedFile(name, json.dumps(payload).encode("utf-8"), content_type="application/json")


def rosa_order(**extra):
    payload = {
        "client": "Café Rosa",
        "event_date": "2026-05-14",
        "items": [
            {"title": "Chocolate Cake", "qty": 2},
            {"title": "chocolate cake ", "qty": 1},
            {"title": "Focaccia", "qty": 4},
        ],
    }
    payload.update(extra)
    return payload


class IngestApiTests(APITestCase):
    url = "/api/v1/ingest/"

    def setUp(self):
        MenuItem.objects.create(title="Choco Cake")
        MenuItem.objects.create(title="Focaccia")

    def post(self, payload, files=None, query="", **extra):
        data = {"files": files if files is not None else [json_upload("rosa.json", rosa_order())]}
        data.update(payload)
        return self.client.post(f"{self.url}{query}", data, format="multipart", **extra)

    def test_preview_reports_unresolved_names_and_persists_nothing(self):
        response = self.post({"mode": "preview"})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        body = response.json()
        self.assertEqual(body["unresolved"], ["chocolate cake"])
        self.assertEqual(body["known"], {"focaccia": "Focaccia"})
        self.assertEqual(body["raw_names"]["chocolate cake"], ["Chocolate Cake", "chocolate cake"])
        self.assertEqual(body["clients"], ["Café Rosa"])
        self.assertEqual(Order.objects.count(), 0)
        self.assertEqual(IngestionBatch.objects.count(), 0)

    def test_operator_decision_is_reused_by_later_batches(self):
        refused = self.post({"mode": "json"})
        self.assertEqual(refused.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(refused.json()["error"], "unresolved-products")
        self.assertEqual(refused.json()["details"]["unresolved"], ["chocolate cake"])
        self.assertEqual(Order.objects.count(), 0)

        decided = self.client.post(
            "/api/v1/aliases/decisions/",
            {"decisions": [{"key": "Chocolate Cake", "canonical_title": "Choco Cake"}]},
            format="json",
        )
        self.assertEqual(decided.status_code, status.HTTP_200_OK)

        preview = self.post({"mode": "preview"})
        self.assertEqual(preview.json()["unresolved"], [])

        response = self.post({"mode": "json"})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        [order] = response.json()
        items = {item["title"]: Decimal(item["qty"]) for item in order["items"]}
        self.assertEqual(items, {"Choco Cake": Decimal("3"), "Focaccia": Decimal("4")})
        self.assertEqual(order["client_name"], "Café Rosa")
        self.assertEqual(order["event_date"], "2026-05-14")
        self.assertEqual(response["X-Missing-Dates"], "0")

    def test_request_mapping_applies_to_this_batch_only(self):
        items = [{"title": "Chocolate Cake", "qty": 2}, {"title": "napkins", "qty": 10}]
        files = [json_upload("rosa.json", rosa_order(items=items))]

        response = self.post(
            {"mode": "json", "mapping": json.dumps({"Chocolate Cake": "Choco Cake", "napkins": ""})},
            files=files,
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual([item["title"] for item in response.json()[0]["items"]], ["Choco Cake"])
        self.assertFalse(ProductAlias.objects.exists())

    def test_inline_decisions_roll_back_when_commit_is_refused(self):
        items = [{"title": "napkins", "qty": 1}, {"title": "mystery box", "qty": 1}]
        files = [json_upload("rosa.json", rosa_order(items=items))]

        response = self.post(
            {"mode": "json", "decisions": json.dumps([{"key": "napkins", "ignore": True}])},
            files=files,
        )

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.json()["details"]["unresolved"], ["mystery box"])
        self.assertFalse(ProductAlias.objects.exists())
        batch = IngestionBatch.objects.get()
        self.assertEqual(batch.status, IngestionBatch.Status.FAILED)
        self.assertEqual(batch.error_status, status.HTTP_409_CONFLICT)
        self.assertEqual(batch.error["error"], "unresolved-products")
        self.assertEqual(batch.order_ids, [])

    def test_inline_decisions_are_kept_when_commit_succeeds(self):
        response = self.post(
            {"mode": "json", "decisions": json.dumps([{"key": "chocolate cake", "canonical_title": "Choco Cake"}])}
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(ProductAlias.objects.get().canonical_title, "Choco Cake")

    def test_missing_dates_are_reported_and_can_be_overridden(self):
        undated = {"client": "Bistro", "items": [{"title": "Focaccia", "qty": 1}]}

        response = self.post({"mode": "json"}, files=[json_upload("bistro.json", undated)], query="?envelope=1")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        body = response.json()
        self.assertEqual(body["missing_dates"], [{"order_id": body["orders"][0]["id"], "client_name": "Bistro"}])
        self.assertEqual(response["X-Missing-Dates"], "1")

        overridden = self.post(
            {"mode": "json", "date_overrides": json.dumps({"Bistro": "2026-05-20"})},
            files=[json_upload("bistro.json", undated)],
        )
        self.assertEqual(overridden.json()[0]["event_date"], "2026-05-20")
        self.assertEqual(overridden["X-Missing-Dates"], "0")

    def test_idempotency_key_replays_the_first_result(self):
        decisions = json.dumps([{"key": "chocolate cake", "canonical_title": "Choco Cake"}])

        first = self.post({"mode": "json", "decisions": decisions}, HTTP_IDEMPOTENCY_KEY="upload-001")
        second = self.post(
            {"mode": "json", "decisions": decisions},
            files=[json_upload("rosa.json", rosa_order())],
            HTTP_IDEMPOTENCY_KEY="upload-001",
        )

        self.assertEqual(first.status_code, status.HTTP_201_CREATED)
        self.assertEqual(second.status_code, status.HTTP_201_CREATED)
        self.assertEqual(first.json(), second.json())
        self.assertEqual(Order.objects.count(), 1)
        self.assertEqual(IngestionBatch.objects.count(), 1)

    def test_completed_batch_records_created_orders_and_missing_dates(self):
        undated = {"client": "Bistro", "items": [{"title": "Focaccia", "qty": 1}]}
        files = [json_upload("rosa.json", rosa_order()), json_upload("bistro.json", undated)]

        response = self.post(
            {"mode": "json", "mapping": json.dumps({"Chocolate Cake": "Choco Cake"})},
            files=files,
            query="?envelope=1",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        batch = IngestionBatch.objects.get()
        self.assertEqual(batch.status, IngestionBatch.Status.COMPLETED)
        self.assertEqual(batch.order_ids, [order["id"] for order in response.json()["orders"]])
        saved_ids = {str(order_id) for order_id in batch.orders.values_list("id", flat=True)}
        self.assertEqual(set(batch.order_ids), saved_ids)
        self.assertEqual([entry["client_name"] for entry in batch.missing_dates], ["Bistro"])
        self.assertEqual(batch.request["files"], ["rosa.json", "bistro.json"])

    def test_replay_reports_the_orders_of_the_first_batch(self):
        first = self.post(
            {"mode": "json", "mapping": json.dumps({"Chocolate Cake": "Choco Cake"})},
            HTTP_IDEMPOTENCY_KEY="upload-002",
        )
        Order.objects.filter(id=first.json()[0]["id"]).update(status="delivered")

        replay = self.post({"mode": "json"}, HTTP_IDEMPOTENCY_KEY="upload-002")

        self.assertEqual(replay.status_code, status.HTTP_201_CREATED)
        self.assertEqual([order["id"] for order in replay.json()], [order["id"] for order in first.json()])
        self.assertEqual(replay.json()[0]["status"], "delivered")
        self.assertEqual(replay["X-Missing-Dates"], "0")

    def test_parse_failure_rejects_the_whole_batch(self):
        files = [
            json_upload("rosa.json", rosa_order()),
            SimpleUploadedFile("bad.json", b"{oops", content_type="application/json"),
        ]

        response = self.post({"mode": "json", "mapping": json.dumps({"Chocolate Cake": "Choco Cake"})}, files=files)

        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.json()["error"], "parse-error")
        self.assertEqual(response.json()["details"]["filename"], "bad.json")
        self.assertEqual(Order.objects.count(), 0)
        self.assertEqual(IngestionBatch.objects.get().status, IngestionBatch.Status.FAILED)

    @override_settings(INGEST_MAX_FILE_MB=0.001)
    def test_oversized_document_is_rejected_before_parsing(self):
        big = SimpleUploadedFile("big.txt", b"Focaccia x1\n" * 200, content_type="text/plain")

        with mock.patch("apps.ingestion.api.v1.views.extract_batch") as extract:
            response = self.post({"mode": "json"}, files=[big])

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()["error"], "file-too-large")
        extract.assert_not_called()
        self.assertEqual(Order.objects.count(), 0)
        self.assertEqual(IngestionBatch.objects.count(), 0)

    def test_no_files(self):
        response = self.client.post(self.url, {"mode": "preview"}, format="multipart")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()["error"], "no-files")

    def test_bad_mapping_and_mode(self):
        bad_mapping = self.post({"mode": "preview", "mapping": "[1, 2]"})
        bad_mode = self.post({"mode": "excel"})

        self.assertEqual(bad_mapping.json()["error"], "bad-mapping")
        self.assertEqual(bad_mode.json()["error"], "bad-mode")

    def test_mapping_to_unknown_title_is_rejected(self):
        response = self.post({"mode": "preview", "mapping": json.dumps({"Chocolate Cake": "Lemon Tart"})})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()["error"], "unknown-canonical")


class DraftIngestApiTests(APITestCase):
    url = "/api/v1/ingest/drafts/"

    def setUp(self):
        MenuItem.objects.create(title="Choco Cake")

    def test_duplicate_titles_merge_into_one_item(self):
        payload = {
            "mode": "json",
            "orders": [
                {
                    "client_name": "Bistro",
                    "event_date": "2026-05-14",
                    "items": [
                        {"title": "choco cake", "qty": "2", "notes": "candles"},
                        {"title": "Choco Cake", "qty": 1, "notes": "candles"},
                        {"title": "Chocolate Cake", "qty": 1, "notes": "gluten free"},
                    ],
                }
            ],
            "mapping": {"Chocolate Cake": "Choco Cake"},
        }

        response = self.client.post(self.url, payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        [item] = response.json()[0]["items"]
        self.assertEqual(item["title"], "Choco Cake")
        self.assertEqual(Decimal(item["qty"]), Decimal("4"))
        self.assertEqual(item["notes"], "candles | gluten free")

    def test_preview_drafts(self):
        payload = {
            "mode": "preview",
            "orders": [{"client_name": "Bistro", "items": [{"title": "Mystery Box", "qty": 1}]}],
        }

        response = self.client.post(self.url, payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["unresolved"], ["mystery box"])

    def test_non_positive_quantity_is_rejected(self):
        payload = {"orders": [{"client_name": "Bistro", "items": [{"title": "Choco Cake", "qty": 0}]}]}

        response = self.client.post(self.url, payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()["error"], "validation_error")


class AliasApiTests(APITestCase):
    def setUp(self):
        MenuItem.objects.create(title="Choco Cake")

    def test_single_decision_and_listing(self):
        created = self.client.post("/api/v1/aliases/", {"key": "Napkins", "ignore": True}, format="json")
        listed = self.client.get("/api/v1/aliases/")

        self.assertEqual(created.status_code, status.HTTP_201_CREATED)
        self.assertEqual(listed.json(), [created.json()])
        self.assertEqual(listed.json()[0]["status"], "ignored")

    def test_conflicting_round_is_rejected_whole(self):
        response = self.client.post(
            "/api/v1/aliases/decisions/",
            {
                "decisions": [
                    {"key": "cake", "canonical_title": "Choco Cake"},
                    {"key": "CAKE", "ignore": True},
                    {"key": "napkins", "ignore": True},
                ]
            },
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.json()["details"]["keys"], ["cake"])
        self.assertFalse(ProductAlias.objects.exists())

    def test_unknown_canonical_title(self):
        response = self.client.post("/api/v1/aliases/", {"key": "tart", "canonical_title": "Lemon Tart"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()["error"], "unknown-canonical")
