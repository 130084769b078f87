"""
Centralized configuration for the order import service.
"""
from __future__ import annotations

import os
from datetime import date
from typing import Iterator, List, Sequence, TypeVar

T = TypeVar("T")


def positive_int_env(name: str, default: int) -> int:
    """Read a positive integer from the environment, falling back to default."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        return default
    return value if value > 0 else default


# Only order rows are importable through the bulk pipeline.
ORDER_IMPORT_ENTITY_TYPE: str = "order"

# Backend `IN (...)` lookups are split into chunks of this size.
IMPORT_LOOKUP_CHUNK_SIZE: int = positive_int_env("IMPORT_LOOKUP_CHUNK_SIZE", 50)

# Orders are inserted in chunks of this size.
IMPORT_INSERT_BATCH_SIZE: int = positive_int_env("IMPORT_INSERT_BATCH_SIZE", 500)

IMPORT_MAX_UPLOAD_BYTES: int = positive_int_env("IMPORT_MAX_UPLOAD_BYTES", 20 * 1024 * 1024)

# Spreadsheet serial dates count days from this anchor.
SERIAL_DATE_EPOCH: date = date(1899, 12, 30)
MIN_ORDER_YEAR: int = 2000
MAX_ORDER_YEAR: int = 2100

ORDERS_TABLE = "orders"
COMPANIES_TABLE = "companies"
PRODUCTS_TABLE = "products"
PRICE_AUDIT_TABLE = "price_audit_log"


def chunked(values: Sequence[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive slices of at most `size` items."""
    if size <= 0:
        raise ValueError("chunk size must be positive")
    for start in range(0, len(values), size):
        yield list(values[start:start + size])
