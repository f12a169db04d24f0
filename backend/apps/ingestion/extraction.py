"""Turning uploaded order documents into raw line items.

Every uploaded file is handed to the first registered extractor that accepts
it (``INGEST_EXTRACTORS``). Extraction of the files of one upload runs in a
thread pool; the upload fails as a whole if any single file cannot be read.
"""
from __future__ import annotations

import json
import logging
import os
import re
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date

from django.conf import settings
from django.utils import timezone
from django.utils.module_loading import import_string

from apps.catalog.quantities import parse_qty
from apps.core.errors import IngestionValidationError, ParseError
from apps.core.naming import clean_text
from apps.ingestion.matrix import ProductMatrix, RawLineItem, build_matrix

logger = logging.getLogger(__name__)

MB = 1024 * 1024


@dataclass(frozen=True)
class UploadedDocument:
    doc_id: str
    filename: str
    content_type: str
    content: bytes

    @property
    def extension(self) -> str:
        return os.path.splitext(self.filename)[1].lower()

    def text(self) -> str:
        try:
            return self.content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ParseError(
                f"{self.filename} is not UTF-8 text.",
                details={"filename": self.filename},
            ) from exc


@dataclass
class ExtractedDocument:
    doc_id: str
    client: str
    event_date: date | None = None
    items: list[RawLineItem] = field(default_factory=list)


class DocumentExtractor(ABC):
    content_types: tuple[str, ...] = ()
    extensions: tuple[str, ...] = ()

    def accepts(self, document: UploadedDocument) -> bool:
        content_type = (document.content_type or "").split(";")[0].strip().lower()
        return content_type in self.content_types or document.extension in self.extensions

    @abstractmethod
    def extract(self, document: UploadedDocument) -> list[ExtractedDocument]:
        raise NotImplementedError


def default_client() -> str:
    return settings.INGEST_DEFAULT_CLIENT


class JsonDocumentExtractor(DocumentExtractor):
    """``{client, event_date?, items: [{title|product, qty, notes?}]}`` or a list of those."""

    content_types = ("application/json",)
    extensions = (".json",)

    def extract(self, document: UploadedDocument) -> list[ExtractedDocument]:
        try:
            data = json.loads(document.text())
        except json.JSONDecodeError as exc:
            raise ParseError(
                f"{document.filename} is not valid JSON: {exc.msg}.",
                details={"filename": document.filename, "line": exc.lineno},
            ) from exc

        entries = data if isinstance(data, list) else [data]
        extracted = []
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict) or not isinstance(entry.get("items"), list):
                raise ParseError(
                    f"{document.filename} entry {index} has no item list.",
                    details={"filename": document.filename, "entry": index},
                )
            doc_id = document.doc_id if len(entries) == 1 else f"{document.doc_id}#{index}"
            client = clean_text(entry.get("client") or entry.get("client_name")) or default_client()
            extracted.append(
                ExtractedDocument(
                    doc_id=doc_id,
                    client=client,
                    event_date=self._parse_date(entry.get("event_date"), document.filename),
                    items=[
                        self._line_item(raw_item, client, doc_id, position, document.filename)
                        for position, raw_item in enumerate(entry["items"])
                    ],
                )
            )
        return extracted

    def _parse_date(self, value, filename: str) -> date | None:
        if not value:
            return None
        try:
            return date.fromisoformat(str(value)[:10])
        except ValueError as exc:
            raise ParseError(
                f"{filename} has an invalid event_date '{value}'.",
                details={"filename": filename, "event_date": str(value)},
            ) from exc

    def _line_item(self, raw_item, client: str, doc_id: str, position: int, filename: str) -> RawLineItem:
        if not isinstance(raw_item, dict):
            raise ParseError(
                f"{filename} item {position} is not an object.",
                details={"filename": filename, "position": position},
            )
        raw_qty = raw_item.get("qty", raw_item.get("quantity"))
        qty = parse_qty(raw_qty)
        return RawLineItem(
            client_key=client,
            product_raw=str(raw_item.get("title") or raw_item.get("product") or ""),
            qty=qty if qty is not None else raw_qty,
            source_doc_id=doc_id,
            position=position,
            notes=str(raw_item.get("notes") or ""),
        )


_NUM = r"(?:\d{1,3}(?:[.,]\d{3})*|\d+)(?:[.,]\d+)?"

CLIENT_RE = re.compile(r"^(?:to|לכבוד)\s*:\s*(?P<client>.+?)\s*$", re.IGNORECASE)
FREE_DATE_RE = re.compile(r"\b(\d{1,2})[./](\d{1,2})\b")
NOTE_RE = re.compile(r"^(?:note|notes|הערה)\s*:\s*(?P<note>.*)$", re.IGNORECASE)

# <title> <qty> <unit price> <total>₪
PRICED_LINE_RE = re.compile(rf"^(?P<title>.+?)\s+(?P<qty>\d+)\s+{_NUM}\s+{_NUM}\s*₪\s*$")
# <title> <total>₪
PRICE_ONLY_LINE_RE = re.compile(rf"^(?P<title>.+?)\s+{_NUM}\s*₪\s*$")
# <qty> <unit price> <total>₪ under a title line
QTY_ONLY_LINE_RE = re.compile(rf"^\s*(?P<qty>\d+)\s+{_NUM}\s+{_NUM}\s*₪\s*$")
# <title> x<qty>
TIMES_LINE_RE = re.compile(r"^(?P<title>.+?)\s+[x×*]\s*(?P<qty>\d+(?:[.,]\d+)?)\s*$", re.IGNORECASE)

NOISE_PATTERNS = (
    'סה"כ',
    'מע"מ',
    "הנחה",
    "משלוח",
    "הובלה",
    "חתימה",
    "עמוד ",
    "עוסק מורשה",
    "מספר קטלוגי:",
)
NOISE_RE = re.compile(r"\b(?:sub)?total\b|\bvat\b|\bdiscount\b|\bshipping\b|\bdelivery\b|^page \d", re.IGNORECASE)


def is_table_header(line: str) -> bool:
    lowered = line.lower()
    return ("מוצר" in line and "סה" in line) or ("product" in lowered and "qty" in lowered)


def is_noise(line: str) -> bool:
    return any(pattern in line for pattern in NOISE_PATTERNS) or bool(NOISE_RE.search(line))


def find_event_date(lines: list[str], year: int) -> date | None:
    """First valid DD/MM (or DD.MM) date in ``lines``.

    When only one of the two numbers can be a month it is taken as the month;
    when both can, the first one is the day.
    """
    for line in lines:
        for match in FREE_DATE_RE.finditer(line):
            a, b = int(match.group(1)), int(match.group(2))
            if not (1 <= a <= 31 and 1 <= b <= 31):
                continue
            if b > 12 and a <= 12:
                day, month = b, a
            else:
                day, month = a, b
            try:
                return date(year, month, day)
            except ValueError:
                continue
    return None


class TextDocumentExtractor(DocumentExtractor):
    content_types = ("text/plain",)
    extensions = (".txt",)

    def extract(self, document: UploadedDocument) -> list[ExtractedDocument]:
        raw_lines = document.text().splitlines()
        lines = [clean_text(line.replace("ILS", "₪")) for line in raw_lines]

        client = default_client()
        client_index = None
        for index, line in enumerate(lines):
            match = CLIENT_RE.match(line)
            if match:
                client = match.group("client")
                client_index = index
                break

        header_index = next((index for index, line in enumerate(lines) if is_table_header(line)), None)
        table_start = header_index + 1 if header_index is not None else 0

        items: list[RawLineItem] = []
        pending_title = None
        first_item_index = None
        for index in range(table_start, len(lines)):
            if index == client_index:
                continue
            line = lines[index]
            if not line:
                continue
            note = NOTE_RE.match(line)
            if note:
                if items:
                    previous = items[-1]
                    joined = " ".join(part for part in (previous.notes, note.group("note").strip()) if part)
                    items[-1] = RawLineItem(
                        client_key=previous.client_key,
                        product_raw=previous.product_raw,
                        qty=previous.qty,
                        source_doc_id=previous.source_doc_id,
                        position=previous.position,
                        notes=joined,
                    )
                continue
            if is_noise(line):
                pending_title = None
                continue
            title, qty = self._parse_item_line(raw_lines[index], line)
            if title is None and pending_title is not None:
                match = QTY_ONLY_LINE_RE.match(line)
                if match:
                    title, qty = pending_title, match.group("qty")
            if title is None:
                pending_title = line
                continue
            pending_title = None
            if first_item_index is None:
                first_item_index = index
            items.append(
                RawLineItem(
                    client_key=client,
                    product_raw=title,
                    qty=parse_qty(qty),
                    source_doc_id=document.doc_id,
                    position=len(items),
                )
            )

        if not items:
            raise ParseError(
                f"No order lines found in {document.filename}.",
                details={"filename": document.filename},
            )

        date_scope = header_index if header_index is not None else first_item_index
        event_date = find_event_date(lines[:date_scope], timezone.localdate().year)
        return [ExtractedDocument(doc_id=document.doc_id, client=client, event_date=event_date, items=items)]

    def _parse_item_line(self, raw_line: str, line: str) -> tuple[str | None, str | None]:
        cells = [clean_text(cell) for cell in raw_line.split("\t") if clean_text(cell)]
        if len(cells) == 2 and parse_qty(cells[1]) is not None:
            return cells[0], cells[1]
        for pattern in (PRICED_LINE_RE, TIMES_LINE_RE):
            match = pattern.match(line)
            if match:
                return match.group("title"), match.group("qty")
        match = PRICE_ONLY_LINE_RE.match(line)
        if match and not QTY_ONLY_LINE_RE.match(line):
            return match.group("title"), "1"
        return None, None


def load_extractors(paths=None) -> list[DocumentExtractor]:
    paths = paths if paths is not None else settings.INGEST_EXTRACTORS
    return [import_string(path)() for path in paths]


def validate_batch_sizes(uploads) -> None:
    if not uploads:
        raise IngestionValidationError("Upload at least one document.", code="no-files")
    max_file = int(settings.INGEST_MAX_FILE_MB * MB)
    max_total = int(settings.INGEST_MAX_TOTAL_MB * MB)
    total = 0
    for upload in uploads:
        size = upload.size or 0
        if size > max_file:
            raise IngestionValidationError(
                f"{upload.name} exceeds the {settings.INGEST_MAX_FILE_MB:g} MB file limit.",
                code="file-too-large",
                details={"filename": upload.name, "size": size, "limit": max_file},
            )
        total += size
    if total > max_total:
        raise IngestionValidationError(
            f"Upload exceeds the {settings.INGEST_MAX_TOTAL_MB:g} MB request limit.",
            code="request-too-large",
            details={"size": total, "limit": max_total},
        )


def read_uploads(uploads) -> list[UploadedDocument]:
    validate_batch_sizes(uploads)
    documents = []
    for index, upload in enumerate(uploads):
        documents.append(
            UploadedDocument(
                doc_id=f"{index:03d}:{upload.name}",
                filename=upload.name,
                content_type=getattr(upload, "content_type", "") or "",
                content=upload.read(),
            )
        )
    return documents


def extract_document(document: UploadedDocument, extractors: list[DocumentExtractor]) -> list[ExtractedDocument]:
    extractor = next((candidate for candidate in extractors if candidate.accepts(document)), None)
    if extractor is None:
        raise ParseError(
            f"Unsupported document type for {document.filename}.",
            details={"filename": document.filename, "content_type": document.content_type},
        )
    try:
        return extractor.extract(document)
    except (ParseError, IngestionValidationError):
        raise
    except Exception as exc:
        logger.exception("Extractor %s failed on %s", type(extractor).__name__, document.filename)
        raise ParseError(
            f"{document.filename} could not be read.",
            details={"filename": document.filename},
        ) from exc


def _document_matrix(document: UploadedDocument, extractors: list[DocumentExtractor]) -> ProductMatrix:
    matrix = ProductMatrix()
    for extracted in extract_document(document, extractors):
        matrix.merge(build_matrix(extracted.items))
        matrix.set_client_date(extracted.client, extracted.event_date)
    return matrix


def extract_batch(documents: list[UploadedDocument], extractors=None, max_workers=None) -> ProductMatrix:
    extractors = extractors if extractors is not None else load_extractors()
    max_workers = max_workers or settings.INGEST_MAX_WORKERS
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(_document_matrix, document, extractors) for document in documents]

    matrix = ProductMatrix()
    errors = []
    for document, future in zip(documents, futures):
        error = future.exception()
        if error is not None:
            errors.append((document, error))
            continue
        matrix.merge(future.result())
    if errors:
        document, error = errors[0]
        logger.warning(
            "Batch rejected: %d of %d documents failed, first %s", len(errors), len(documents), document.filename
        )
        raise error

    logger.info(
        "Extracted %d products for %d clients from %d documents",
        len(matrix.cells),
        len(matrix.clients()),
        len(documents),
    )
    return matrix
