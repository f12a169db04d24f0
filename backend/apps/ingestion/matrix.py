from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable

from apps.catalog.quantities import to_decimal
from apps.core.errors import IngestionValidationError
from apps.core.naming import clean_text, normalize_name


@dataclass(frozen=True)
class RawLineItem:
    client_key: str
    product_raw: str
    qty: Decimal
    source_doc_id: str
    position: int = 0
    notes: str = ""


@dataclass
class ProductMatrix:
    """Sparse product x client quantity table for one ingestion batch."""

    cells: dict[str, dict[str, Decimal]] = field(default_factory=dict)
    raw_names: dict[str, set[str]] = field(default_factory=dict)
    client_dates: dict[str, date] = field(default_factory=dict)
    notes: dict[str, list[tuple[str, int, str, str]]] = field(default_factory=dict)

    def add(self, item: RawLineItem) -> None:
        qty = to_decimal(item.qty)
        product_key = normalize_name(item.product_raw)
        if qty is None or qty <= 0:
            raise IngestionValidationError(
                f"Quantity for '{item.product_raw}' in {item.source_doc_id} must be greater than 0.",
                code="invalid-quantity",
                details={"document": item.source_doc_id, "product": item.product_raw, "qty": str(item.qty)},
            )
        if not product_key:
            raise IngestionValidationError(
                f"Empty product name in {item.source_doc_id}.",
                code="invalid-product",
                details={"document": item.source_doc_id, "product": item.product_raw},
            )
        client_key = clean_text(item.client_key)
        row = self.cells.setdefault(product_key, {})
        row[client_key] = row.get(client_key, Decimal("0")) + qty
        self.raw_names.setdefault(product_key, set()).add(clean_text(item.product_raw))
        note = clean_text(item.notes)
        if note:
            self.notes.setdefault(client_key, []).append((item.source_doc_id, item.position, product_key, note))

    def set_client_date(self, client_key: str, event_date: date | None) -> None:
        if event_date is None:
            return
        client_key = clean_text(client_key)
        current = self.client_dates.get(client_key)
        # earliest wins so the result does not depend on document order
        if current is None or event_date < current:
            self.client_dates[client_key] = event_date

    def merge(self, other: "ProductMatrix") -> "ProductMatrix":
        for product_key, row in other.cells.items():
            target = self.cells.setdefault(product_key, {})
            for client_key, qty in row.items():
                target[client_key] = target.get(client_key, Decimal("0")) + qty
        for product_key, spellings in other.raw_names.items():
            self.raw_names.setdefault(product_key, set()).update(spellings)
        for client_key, event_date in other.client_dates.items():
            self.set_client_date(client_key, event_date)
        for client_key, entries in other.notes.items():
            self.notes.setdefault(client_key, []).extend(entries)
        return self

    def product_keys(self) -> list[str]:
        return sorted(self.cells)

    def clients(self) -> list[str]:
        found = {client_key for row in self.cells.values() for client_key in row}
        return sorted(found)

    def client_items(self, client_key: str) -> dict[str, Decimal]:
        return {
            product_key: row[client_key]
            for product_key, row in sorted(self.cells.items())
            if client_key in row
        }

    def client_notes(self, client_key: str) -> list[tuple[str, str]]:
        entries = sorted(self.notes.get(client_key, []))
        return [(product_key, note) for _, _, product_key, note in entries]

    def product_total(self, product_key: str) -> Decimal:
        return sum(self.cells.get(product_key, {}).values(), Decimal("0"))


def build_matrix(line_items: Iterable[RawLineItem]) -> ProductMatrix:
    matrix = ProductMatrix()
    for item in line_items:
        matrix.add(item)
    return matrix
