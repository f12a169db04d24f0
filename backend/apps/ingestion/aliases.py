"""Alias store and product-name classification.

A product key is *known* when it matches a catalog title after normalization
or when an operator mapped it to one; *ignored* when an operator marked it as
never corresponding to a catalog entry; *unresolved* otherwise. Decisions are
stored per normalized key, so once a key is decided every later batch reuses
the decision.

The store has no locking: concurrent rounds deciding the same key end with
whichever write landed last.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from django.db import transaction

from apps.core.errors import IngestionValidationError, MappingConflict
from apps.core.naming import normalize_name
from apps.ingestion.models import ProductAlias

logger = logging.getLogger(__name__)

IGNORED = ""


@dataclass(frozen=True)
class AliasDecision:
    key: str
    canonical_title: str | None = None
    ignore: bool = False

    @classmethod
    def from_payload(cls, payload: Mapping) -> "AliasDecision":
        key = normalize_name(payload.get("key") or payload.get("raw"))
        canonical = payload.get("canonical_title", payload.get("canonical"))
        ignore = bool(payload.get("ignore"))
        if not key:
            raise IngestionValidationError("Every decision needs a product name.", code="invalid-product")
        if ignore and canonical:
            raise IngestionValidationError(
                f"'{key}' cannot be both mapped and ignored.",
                code="invalid-decision",
                details={"key": key},
            )
        if not ignore and not canonical:
            raise IngestionValidationError(
                f"'{key}' needs a canonical title or ignore=true.",
                code="invalid-decision",
                details={"key": key},
            )
        return cls(key=key, canonical_title=None if ignore else str(canonical), ignore=ignore)

    @property
    def outcome(self) -> str:
        return IGNORED if self.ignore else normalize_name(self.canonical_title)


@dataclass
class AliasSnapshot:
    mapping: dict[str, str] = field(default_factory=dict)
    ignored: set[str] = field(default_factory=set)

    def overlay(self, overrides: Mapping[str, str], catalog: Iterable[str]) -> "AliasSnapshot":
        """Apply request-scoped ``{raw: canonical or ""}`` overrides without persisting them."""
        index = catalog_index(catalog)
        mapping = dict(self.mapping)
        ignored = set(self.ignored)
        for raw, target in overrides.items():
            key = normalize_name(raw)
            if not key:
                continue
            if not target:
                mapping.pop(key, None)
                ignored.add(key)
                continue
            canonical = index.get(normalize_name(target))
            if canonical is None:
                raise IngestionValidationError(
                    f"'{target}' is not a menu item.",
                    code="unknown-canonical",
                    details={"key": key, "canonical_title": target},
                )
            ignored.discard(key)
            mapping[key] = canonical
        return AliasSnapshot(mapping=mapping, ignored=ignored)


@dataclass
class Classification:
    resolved: dict[str, str] = field(default_factory=dict)
    ignored: list[str] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return not self.unresolved

    def as_dict(self) -> dict:
        return {"known": dict(self.resolved), "ignored": list(self.ignored), "unresolved": list(self.unresolved)}


class AliasRepository(ABC):
    @abstractmethod
    def snapshot(self) -> AliasSnapshot:
        raise NotImplementedError

    @abstractmethod
    def save_decisions(self, decisions: list[AliasDecision]) -> None:
        raise NotImplementedError


class InMemoryAliasRepository(AliasRepository):
    def __init__(self, mapping: Mapping[str, str] | None = None, ignored: Iterable[str] = ()):
        self.mapping = {normalize_name(key): value for key, value in (mapping or {}).items()}
        self.ignored = {normalize_name(key) for key in ignored}

    def snapshot(self) -> AliasSnapshot:
        return AliasSnapshot(mapping=dict(self.mapping), ignored=set(self.ignored))

    def save_decisions(self, decisions: list[AliasDecision]) -> None:
        for decision in decisions:
            if decision.ignore:
                self.mapping.pop(decision.key, None)
                self.ignored.add(decision.key)
            else:
                self.ignored.discard(decision.key)
                self.mapping[decision.key] = decision.canonical_title


class DjangoAliasRepository(AliasRepository):
    def snapshot(self) -> AliasSnapshot:
        snapshot = AliasSnapshot()
        for alias in ProductAlias.objects.all():
            if alias.status == ProductAlias.Status.IGNORED:
                snapshot.ignored.add(alias.key)
            elif alias.canonical_title:
                snapshot.mapping[alias.key] = alias.canonical_title
        return snapshot

    @transaction.atomic
    def save_decisions(self, decisions: list[AliasDecision]) -> None:
        for decision in decisions:
            ProductAlias.objects.update_or_create(
                key=decision.key,
                defaults={
                    "status": ProductAlias.Status.IGNORED if decision.ignore else ProductAlias.Status.RESOLVED,
                    "canonical_title": decision.canonical_title,
                },
            )


def catalog_index(catalog: Iterable[str]) -> dict[str, str]:
    index: dict[str, str] = {}
    for title in catalog:
        key = normalize_name(title)
        if key:
            index.setdefault(key, title)
    return index


def classify(
    product_keys: Iterable[str],
    catalog: Iterable[str],
    alias_mapping: Mapping[str, str],
    ignored: Iterable[str],
) -> Classification:
    index = catalog_index(catalog)
    ignored_keys = {normalize_name(key) for key in ignored}
    mapping = {normalize_name(key): value for key, value in alias_mapping.items()}
    result = Classification()
    for key in sorted({normalize_name(key) for key in product_keys} - {""}):
        if key in index:
            result.resolved[key] = index[key]
            continue
        target = mapping.get(key)
        if target == IGNORED or key in ignored_keys:
            result.ignored.append(key)
            continue
        # aliases pointing at a title that left the catalog count as unresolved
        canonical = index.get(normalize_name(target)) if target else None
        if canonical is not None:
            result.resolved[key] = canonical
        else:
            result.unresolved.append(key)
    return result


def validate_decisions(decisions: Iterable[AliasDecision], catalog: Iterable[str]) -> list[AliasDecision]:
    index = catalog_index(catalog)
    by_key: dict[str, AliasDecision] = {}
    conflicts: set[str] = set()
    for decision in decisions:
        key = normalize_name(decision.key)
        if not key:
            raise IngestionValidationError("Every decision needs a product name.", code="invalid-product")
        existing = by_key.get(key)
        if existing is not None and existing.outcome != decision.outcome:
            conflicts.add(key)
            continue
        by_key.setdefault(key, decision)
    if conflicts:
        raise MappingConflict(sorted(conflicts))

    validated = []
    for key, decision in sorted(by_key.items()):
        if decision.ignore:
            validated.append(AliasDecision(key=key, ignore=True))
            continue
        canonical = index.get(normalize_name(decision.canonical_title))
        if canonical is None:
            raise IngestionValidationError(
                f"'{decision.canonical_title}' is not a menu item.",
                code="unknown-canonical",
                details={"key": key, "canonical_title": decision.canonical_title},
            )
        validated.append(AliasDecision(key=key, canonical_title=canonical))
    return validated


def apply_decisions(
    repository: AliasRepository,
    decisions: Iterable[AliasDecision],
    catalog: Iterable[str],
) -> list[AliasDecision]:
    """Validate one resolution round and persist it all-or-nothing."""
    validated = validate_decisions(decisions, list(catalog))
    if validated:
        repository.save_decisions(validated)
        logger.info(
            "Recorded %d alias decisions (%d ignored)",
            len(validated),
            sum(1 for decision in validated if decision.ignore),
        )
    return validated


class AliasResolver:
    def __init__(self, repository: AliasRepository, catalog: Iterable[str]):
        self.repository = repository
        self.catalog = list(catalog)

    def preview(self, product_keys: Iterable[str], overrides: Mapping[str, str] | None = None) -> Classification:
        snapshot = self.repository.snapshot()
        if overrides:
            snapshot = snapshot.overlay(overrides, self.catalog)
        return classify(product_keys, self.catalog, snapshot.mapping, snapshot.ignored)

    def decide(self, decisions: Iterable[AliasDecision]) -> list[AliasDecision]:
        return apply_decisions(self.repository, decisions, self.catalog)
