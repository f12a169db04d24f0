import threading

from django.test import SimpleTestCase, TestCase

from apps.core.errors import IngestionValidationError, MappingConflict
from apps.ingestion.aliases import (
    AliasDecision,
    AliasResolver,
    DjangoAliasRepository,
    InMemoryAliasRepository,
    apply_decisions,
    classify,
)
from apps.ingestion.models import ProductAlias

CATALOG = ["Choco Cake", "Focaccia", "Fruit Tray"]


class ClassifyTests(SimpleTestCase):
    def test_catalog_titles_are_known_after_normalization(self):
        result = classify(["choco cake", "FOCACCIA"], CATALOG, {}, set())

        self.assertEqual(result.resolved, {"choco cake": "Choco Cake", "focaccia": "Focaccia"})
        self.assertEqual(result.unresolved, [])

    def test_three_way_split(self):
        result = classify(
            ["chocolate cake", "delivery fee", "mystery box", "focaccia"],
            CATALOG,
            {"chocolate cake": "Choco Cake", "delivery fee": ""},
            {"gift wrap"},
        )

        self.assertEqual(result.resolved, {"chocolate cake": "Choco Cake", "focaccia": "Focaccia"})
        self.assertEqual(result.ignored, ["delivery fee"])
        self.assertEqual(result.unresolved, ["mystery box"])
        self.assertFalse(result.is_complete)

    def test_alias_to_retired_title_is_unresolved(self):
        result = classify(["old tart"], CATALOG, {"old tart": "Lemon Tart"}, set())

        self.assertEqual(result.unresolved, ["old tart"])


class ApplyDecisionsTests(SimpleTestCase):
    def setUp(self):
        self.repository = InMemoryAliasRepository()
        self.resolver = AliasResolver(self.repository, CATALOG)

    def test_decided_keys_are_never_prompted_again(self):
        first = self.resolver.preview(["chocolate cake", "napkins"])
        self.assertEqual(first.unresolved, ["chocolate cake", "napkins"])

        self.resolver.decide(
            [
                AliasDecision(key="chocolate cake", canonical_title="choco cake"),
                AliasDecision(key="napkins", ignore=True),
            ]
        )

        for _ in range(3):
            again = self.resolver.preview(["Chocolate Cake", "napkins"])
            self.assertEqual(again.unresolved, [])
            self.assertEqual(again.resolved, {"chocolate cake": "Choco Cake"})
            self.assertEqual(again.ignored, ["napkins"])

    def test_conflicting_round_writes_nothing(self):
        decisions = [
            AliasDecision(key="chocolate cake", canonical_title="Choco Cake"),
            AliasDecision(key="Chocolate  Cake", canonical_title="Focaccia"),
            AliasDecision(key="napkins", ignore=True),
        ]

        with self.assertRaises(MappingConflict) as ctx:
            apply_decisions(self.repository, decisions, CATALOG)

        self.assertEqual(ctx.exception.keys, ["chocolate cake"])
        self.assertEqual(self.repository.mapping, {})
        self.assertEqual(self.repository.ignored, set())

    def test_identical_duplicates_collapse(self):
        decisions = [
            AliasDecision(key="chocolate cake", canonical_title="Choco Cake"),
            AliasDecision(key="chocolate cake", canonical_title="choco cake"),
        ]

        applied = apply_decisions(self.repository, decisions, CATALOG)

        self.assertEqual(len(applied), 1)
        self.assertEqual(self.repository.mapping, {"chocolate cake": "Choco Cake"})

    def test_unknown_canonical_title_is_rejected(self):
        with self.assertRaises(IngestionValidationError) as ctx:
            apply_decisions(self.repository, [AliasDecision(key="tart", canonical_title="Lemon Tart")], CATALOG)

        self.assertEqual(ctx.exception.code, "unknown-canonical")
        self.assertEqual(self.repository.mapping, {})

    def test_request_overrides_are_not_persisted(self):
        result = self.resolver.preview(["chocolate cake", "napkins"], {"Chocolate Cake": "Choco Cake", "napkins": ""})

        self.assertEqual(result.resolved, {"chocolate cake": "Choco Cake"})
        self.assertEqual(result.ignored, ["napkins"])
        self.assertEqual(self.repository.snapshot().mapping, {})

    def test_from_payload_requires_a_target_or_ignore(self):
        with self.assertRaises(IngestionValidationError):
            AliasDecision.from_payload({"key": "napkins"})
        with self.assertRaises(IngestionValidationError):
            AliasDecision.from_payload({"key": "napkins", "canonical_title": "Focaccia", "ignore": True})


class ConcurrentDecisionTests(SimpleTestCase):
    def test_concurrent_rounds_on_the_same_key_last_writer_wins(self):
        """Two rounds race on one key; the store ends with one of the two decisions."""
        repository = InMemoryAliasRepository()
        barrier = threading.Barrier(2)
        errors = []

        def decide(canonical_title):
            try:
                barrier.wait()
                apply_decisions(repository, [AliasDecision(key="cake", canonical_title=canonical_title)], CATALOG)
            except Exception as exc:  # surfaced by the assertion below
                errors.append(exc)

        threads = [threading.Thread(target=decide, args=(title,)) for title in ("Choco Cake", "Fruit Tray")]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])
        self.assertIn(repository.mapping["cake"], {"Choco Cake", "Fruit Tray"})


class DjangoAliasRepositoryTests(TestCase):
    def test_later_round_overwrites_earlier_decision(self):
        repository = DjangoAliasRepository()

        apply_decisions(repository, [AliasDecision(key="cake", canonical_title="Choco Cake")], CATALOG)
        apply_decisions(repository, [AliasDecision(key="cake", ignore=True)], CATALOG)

        alias = ProductAlias.objects.get(key="cake")
        self.assertEqual(alias.status, ProductAlias.Status.IGNORED)
        self.assertIsNone(alias.canonical_title)
        self.assertEqual(repository.snapshot().ignored, {"cake"})

    def test_failed_round_leaves_table_untouched(self):
        repository = DjangoAliasRepository()

        with self.assertRaises(IngestionValidationError):
            apply_decisions(
                repository,
                [
                    AliasDecision(key="cake", canonical_title="Choco Cake"),
                    AliasDecision(key="tart", canonical_title="Lemon Tart"),
                ],
                CATALOG,
            )

        self.assertFalse(ProductAlias.objects.exists())
