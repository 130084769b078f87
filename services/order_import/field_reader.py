"""
Flexible field access for rows with unpredictable header vocabularies
("Qty" vs "Sales QTY" vs "Inv. Qty").
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, Optional, Tuple

from .models import Row

# Header substrings per logical field, highest priority first.
HEADER_SYNONYMS: Dict[str, Tuple[str, ...]] = {
    "company": ("customer", "client", "company", "branch"),
    "product": ("product name", "product", "item name", "item", "description"),
    "quantity": ("quantity", "qty", "inv. qty", "inv qty"),
    "price": ("unit price", "price"),
    "invoice": (
        "order id", "order no", "order number", "invoice", "inv. no", "inv no",
        "ref", "bill no", "receipt",
    ),
    "date": ("order date", "inv. date", "inv date", "date"),
    "area": ("area", "region", "location"),
    "tax": ("tax rate", "vat %", "tax %", "vat", "tax"),
    "discount_type": ("discount type", "discounttype", "disc. type", "disc type"),
    "discount_percent": ("discount %", "disc. %", "disc %", "discount percent"),
    "discount": ("discount amount", "disc. amount", "discount value", "discount", "rebate"),
}

# Header fragments that must never satisfy a field even if they contain one of its substrings.
HEADER_EXCLUSIONS: Dict[str, Tuple[str, ...]] = {
    "tax": ("amount",),
    "discount": ("type", "%", "percent"),
    "date": ("update",),
    "invoice": ("date", "qty", "unit"),
}


def _normalize_header(header: Any) -> str:
    if header is None:
        return ""
    return str(header).replace("\ufeff", "").strip().lower()


def _clean_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float):
        if value != value:  # NaN from spreadsheet readers
            return None
        if value.is_integer():
            return str(int(value))
    text = str(value).strip()
    return text or None


def find_value(row: Row, *substrings: str, exclude: Iterable[str] = ()) -> Optional[str]:
    """
    Return the first non-empty value whose header contains one of `substrings`.

    Substrings are tried in priority order; for each, headers are scanned in row
    order. Matching is case-insensitive. Returns None when nothing matches.
    """
    if not row:
        return None
    excluded = tuple(x.lower() for x in exclude)
    headers = [(key, _normalize_header(key)) for key in row.keys()]
    for sub in substrings:
        needle = sub.lower()
        for key, header in headers:
            if needle not in header:
                continue
            if excluded and any(x in header for x in excluded):
                continue
            value = _clean_value(row.get(key))
            if value is not None:
                return value
    return None


def read_field(row: Row, field_name: str) -> Optional[str]:
    """Read a logical field using its registered synonyms and exclusions."""
    return find_value(
        row,
        *HEADER_SYNONYMS[field_name],
        exclude=HEADER_EXCLUSIONS.get(field_name, ()),
    )


def is_blank_row(row: Any) -> bool:
    if not row or not hasattr(row, "values"):
        return True
    return all(_clean_value(v) is None for v in row.values())
