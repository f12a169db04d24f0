"""Building canonical orders from a reconciled batch.

A batch is either a ``ProductMatrix`` built from uploaded documents (one order
per client) or a list of already-parsed ``DraftOrder`` objects (one order per
draft). Materialization refuses to run while any product name of the batch is
still unresolved.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Mapping

from django.db import transaction

from apps.core.errors import UnresolvedProductError
from apps.core.naming import clean_text, normalize_name
from apps.ingestion.aliases import Classification, catalog_index
from apps.ingestion.matrix import ProductMatrix
from apps.orders.models import Order, OrderItem

logger = logging.getLogger(__name__)

NOTE_SEPARATOR = " | "


@dataclass
class DraftItem:
    title: str
    qty: Decimal
    unit: str | None = None
    notes: str = ""


@dataclass
class DraftOrder:
    client_name: str
    event_date: date | None = None
    items: list[DraftItem] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)


@dataclass
class MaterializedItem:
    title: str
    qty: Decimal
    unit: str | None = None
    notes: str = ""

    def add_note(self, note: str) -> None:
        note = clean_text(note)
        if not note:
            return
        parts = self.notes.split(NOTE_SEPARATOR) if self.notes else []
        if note not in parts:
            parts.append(note)
        self.notes = NOTE_SEPARATOR.join(parts)


@dataclass
class MaterializedOrder:
    id: uuid.UUID
    client_name: str
    event_date: date | None
    items: list[MaterializedItem] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    source: str = "upload"

    def item(self, title: str) -> MaterializedItem | None:
        return next((item for item in self.items if item.title == title), None)


@dataclass
class MaterializationResult:
    orders: list[MaterializedOrder] = field(default_factory=list)
    missing_dates: list[dict] = field(default_factory=list)


def source_product_keys(source) -> list[str]:
    if isinstance(source, ProductMatrix):
        return source.product_keys()
    keys = {normalize_name(item.title) for draft in source for item in draft.items}
    return sorted(keys - {""})


def _unresolved(keys: Iterable[str], resolution: Classification, catalog_keys: set[str]) -> list[str]:
    ignored = set(resolution.ignored)
    missing = []
    for key in keys:
        if key in ignored:
            continue
        canonical = resolution.resolved.get(key)
        if canonical is None or normalize_name(canonical) not in catalog_keys:
            missing.append(key)
    return missing


def _add_item(order: MaterializedOrder, title: str, qty: Decimal, unit: str | None = None, notes: str = "") -> None:
    item = order.item(title)
    if item is None:
        item = MaterializedItem(title=title, qty=Decimal("0"), unit=unit or None)
        order.items.append(item)
    item.qty += qty
    if not item.unit and unit:
        item.unit = unit
    item.add_note(notes)


def _orders_from_matrix(matrix: ProductMatrix, resolution: Classification) -> list[MaterializedOrder]:
    orders = []
    for client in matrix.clients():
        order = MaterializedOrder(
            id=uuid.uuid4(),
            client_name=client,
            event_date=matrix.client_dates.get(client),
            source="upload",
        )
        for product_key, qty in matrix.client_items(client).items():
            title = resolution.resolved.get(product_key)
            if title is not None:
                _add_item(order, title, qty)
        for product_key, note in matrix.client_notes(client):
            title = resolution.resolved.get(product_key)
            item = order.item(title) if title else None
            # a note on an ignored row goes away with the row
            if item is not None:
                item.add_note(note)
        orders.append(order)
    return orders


def _orders_from_drafts(drafts: Iterable[DraftOrder], resolution: Classification) -> list[MaterializedOrder]:
    orders = []
    for draft in drafts:
        order = MaterializedOrder(
            id=uuid.uuid4(),
            client_name=clean_text(draft.client_name),
            event_date=draft.event_date,
            notes=[note for note in (clean_text(note) for note in draft.notes) if note],
            source="draft",
        )
        for item in draft.items:
            title = resolution.resolved.get(normalize_name(item.title))
            if title is not None:
                _add_item(order, title, Decimal(item.qty), item.unit, item.notes)
        orders.append(order)
    return sorted(orders, key=lambda order: order.client_name)


def materialize(
    source,
    resolution: Classification,
    catalog: Iterable[str],
    date_overrides: Mapping[str, date] | None = None,
) -> MaterializationResult:
    catalog_keys = set(catalog_index(catalog))
    unresolved = _unresolved(source_product_keys(source), resolution, catalog_keys)
    if unresolved:
        raise UnresolvedProductError(unresolved)

    if isinstance(source, ProductMatrix):
        orders = _orders_from_matrix(source, resolution)
    else:
        orders = _orders_from_drafts(source, resolution)

    overrides = {normalize_name(client): value for client, value in (date_overrides or {}).items()}
    result = MaterializationResult()
    for order in orders:
        if not order.items:
            logger.info("Dropping order for %s: every item was ignored", order.client_name)
            continue
        order.items.sort(key=lambda item: normalize_name(item.title))
        override = overrides.get(normalize_name(order.client_name))
        if override is not None:
            order.event_date = override
        if order.event_date is None:
            result.missing_dates.append({"order_id": str(order.id), "client_name": order.client_name})
        result.orders.append(order)
    return result


@transaction.atomic
def persist_orders(result: MaterializationResult, batch=None) -> list:
    saved = []
    for materialized in result.orders:
        order = Order.objects.create(
            id=materialized.id,
            client_name=materialized.client_name,
            event_date=materialized.event_date,
            notes=list(materialized.notes),
            source=materialized.source,
            batch=batch,
        )
        OrderItem.objects.bulk_create(
            [
                OrderItem(order=order, title=item.title, qty=item.qty, unit=item.unit, notes=item.notes)
                for item in materialized.items
            ]
        )
        saved.append(order)
    logger.info("Saved %d orders", len(saved))
    return saved


def from_stored(order: Order) -> MaterializedOrder:
    """Read a saved order back into the in-memory shape used for aggregation."""
    return MaterializedOrder(
        id=order.id,
        client_name=order.client_name,
        event_date=order.event_date,
        items=[
            MaterializedItem(title=item.title, qty=item.qty, unit=item.unit, notes=item.notes)
            for item in order.items.all()
        ],
        notes=list(order.notes or []),
        source=order.source,
    )
