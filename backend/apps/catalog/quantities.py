from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Any

VULGAR_FRACTIONS = {
    "¼": Decimal("0.25"),
    "½": Decimal("0.5"),
    "¾": Decimal("0.75"),
    "⅓": Decimal(1) / Decimal(3),
    "⅔": Decimal(2) / Decimal(3),
    "⅛": Decimal("0.125"),
    "⅜": Decimal("0.375"),
    "⅝": Decimal("0.625"),
    "⅞": Decimal("0.875"),
}

_VULGAR_CHARS = "".join(VULGAR_FRACTIONS)
QTY_WITH_UNIT_PATTERN = re.compile(
    rf"^\s*([0-9{_VULGAR_CHARS}][0-9{_VULGAR_CHARS}\s/.,]*)\s*([^\d\s/.,{_VULGAR_CHARS}][^\d{_VULGAR_CHARS}]*)?\s*$"
)
FRACTION_PATTERN = re.compile(r"^(\d+)/(\d+)$")


def to_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    try:
        result = Decimal(str(value).strip().replace(",", "."))
    except (InvalidOperation, ValueError, TypeError):
        return None
    if not result.is_finite():
        return None
    return result


def _parse_number_tokens(text: str) -> Decimal | None:
    total = Decimal("0")
    used = False
    for char, amount in VULGAR_FRACTIONS.items():
        if char in text:
            total += amount * text.count(char)
            text = text.replace(char, " ")
            used = True
    for token in text.split():
        match = FRACTION_PATTERN.match(token)
        if match:
            denominator = int(match.group(2))
            if not denominator:
                return None
            total += Decimal(int(match.group(1))) / Decimal(denominator)
            used = True
            continue
        value = to_decimal(token)
        if value is None:
            return None
        total += value
        used = True
    return total if used else None


def split_qty_unit(raw_qty: Any) -> tuple[Decimal | None, str | None]:
    if raw_qty is None or isinstance(raw_qty, bool):
        return None, None
    if isinstance(raw_qty, (int, float, Decimal)):
        return to_decimal(raw_qty), None
    text = str(raw_qty).strip()
    if not text:
        return None, None
    qty = _parse_number_tokens(text)
    if qty is not None:
        return qty, None
    match = QTY_WITH_UNIT_PATTERN.match(text)
    if match:
        qty = _parse_number_tokens(match.group(1))
        unit = (match.group(2) or "").strip() or None
        return qty, unit if qty is not None else None
    return None, None


def parse_qty(raw_qty: Any) -> Decimal | None:
    qty, _ = split_qty_unit(raw_qty)
    return qty
