"""Preview and commit phases of a batch.

Preview classifies the product names of a batch and persists nothing. Commit
applies any decisions sent along, materializes the orders and saves them; it is
meant to run inside one transaction so a refused commit leaves no trace.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Mapping

from apps.catalog.recipes import menu_catalog
from apps.core.errors import IngestionValidationError
from apps.core.naming import normalize_name
from apps.ingestion.aliases import AliasDecision, AliasResolver, Classification, DjangoAliasRepository
from apps.ingestion.matrix import ProductMatrix
from apps.orders.materializer import MaterializationResult, materialize, persist_orders, source_product_keys

logger = logging.getLogger(__name__)

MODES = ("preview", "json")


def _load_json(raw, code: str, label: str):
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise IngestionValidationError(f"{label} is not valid JSON.", code=code) from exc


def parse_mode(raw) -> str:
    mode = str(raw or "json").strip().lower()
    if mode not in MODES:
        raise IngestionValidationError(
            f"Unknown mode '{raw}'.",
            code="bad-mode",
            details={"allowed": list(MODES)},
        )
    return mode


def parse_mapping(raw) -> dict[str, str]:
    if raw in (None, ""):
        return {}
    mapping = _load_json(raw, "bad-mapping", "mapping")
    if not isinstance(mapping, dict) or not all(
        isinstance(key, str) and isinstance(value, str) for key, value in mapping.items()
    ):
        raise IngestionValidationError(
            "mapping must be an object of product name to canonical title (or \"\" to ignore).",
            code="bad-mapping",
        )
    return mapping


def parse_decisions(raw) -> list[AliasDecision]:
    if raw in (None, ""):
        return []
    decisions = _load_json(raw, "bad-decisions", "decisions")
    if not isinstance(decisions, list) or not all(isinstance(entry, dict) for entry in decisions):
        raise IngestionValidationError("decisions must be a list of objects.", code="bad-decisions")
    return [AliasDecision.from_payload(entry) for entry in decisions]


def parse_date_overrides(raw) -> dict[str, date]:
    if raw in (None, ""):
        return {}
    overrides = _load_json(raw, "bad-date", "date_overrides")
    if not isinstance(overrides, dict):
        raise IngestionValidationError("date_overrides must be an object of client name to date.", code="bad-date")
    parsed = {}
    for client, value in overrides.items():
        if isinstance(value, date):
            parsed[client] = value
            continue
        try:
            parsed[client] = date.fromisoformat(str(value))
        except ValueError as exc:
            raise IngestionValidationError(
                f"'{value}' is not a YYYY-MM-DD date.",
                code="bad-date",
                details={"client_name": client, "value": str(value)},
            ) from exc
    return parsed


def build_resolver() -> AliasResolver:
    return AliasResolver(DjangoAliasRepository(), menu_catalog())


def preview(source, resolver: AliasResolver, overrides: Mapping[str, str] | None = None) -> dict:
    classification = resolver.preview(source_product_keys(source), overrides)
    payload = classification.as_dict()
    if isinstance(source, ProductMatrix):
        payload["raw_names"] = {key: sorted(source.raw_names.get(key, ())) for key in source.product_keys()}
        payload["clients"] = source.clients()
    else:
        raw_names: dict[str, set[str]] = {}
        for draft in source:
            for item in draft.items:
                raw_names.setdefault(normalize_name(item.title), set()).add(item.title)
        payload["raw_names"] = {key: sorted(names) for key, names in sorted(raw_names.items()) if key}
        payload["clients"] = sorted({draft.client_name for draft in source})
    logger.info(
        "Preview: %d known, %d ignored, %d unresolved",
        len(classification.resolved),
        len(classification.ignored),
        len(classification.unresolved),
    )
    return payload


def commit(
    source,
    resolver: AliasResolver,
    *,
    overrides: Mapping[str, str] | None = None,
    decisions: list[AliasDecision] | None = None,
    date_overrides: Mapping[str, date] | None = None,
    batch=None,
) -> tuple[list, MaterializationResult]:
    if decisions:
        resolver.decide(decisions)
    classification: Classification = resolver.preview(source_product_keys(source), overrides)
    result = materialize(source, classification, resolver.catalog, date_overrides)
    orders = persist_orders(result, batch=batch)
    if result.missing_dates:
        logger.info("%d orders saved without an event date", len(result.missing_dates))
    return orders, result


@dataclass
class BatchOptions:
    mode: str = "json"
    mapping: dict[str, str] = field(default_factory=dict)
    decisions: list[AliasDecision] = field(default_factory=list)
    date_overrides: dict[str, date] = field(default_factory=dict)

    @classmethod
    def from_request_data(cls, data) -> "BatchOptions":
        """Accepts multipart form values (JSON strings) as well as parsed JSON bodies."""
        return cls(
            mode=parse_mode(data.get("mode")),
            mapping=parse_mapping(data.get("mapping")),
            decisions=parse_decisions(data.get("decisions")),
            date_overrides=parse_date_overrides(data.get("date_overrides")),
        )
