"""
Collaborator interfaces consumed by the importer.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Protocol, Sequence

from settings import IMPORT_LOOKUP_CHUNK_SIZE, chunked

logger = logging.getLogger(__name__)


class ImportStore(Protocol):
    async def select(self, table: str, field: str, values: Sequence[Any]) -> List[Dict[str, Any]]:
        """Return every record of `table` whose `field` is one of `values`.

        Lookups on `name` are expected to match case-insensitively.
        """
        ...

    async def insert(self, table: str, records: List[Dict[str, Any]]) -> None:
        """Insert records; raises on failure."""
        ...


class PriceAuditSink(Protocol):
    async def log_price_audit_batch(self, entries: List[Dict[str, Any]]) -> None:
        ...


def _unique(values: Iterable[Any]) -> List[Any]:
    seen = set()
    out = []
    for v in values:
        if v is None or v in seen:
            continue
        seen.add(v)
        out.append(v)
    return out


async def select_in_chunks(
    store: ImportStore,
    table: str,
    field: str,
    values: Iterable[Any],
    chunk_size: int = IMPORT_LOOKUP_CHUNK_SIZE,
) -> List[Dict[str, Any]]:
    """Run `store.select` over `values` in sequential chunks to respect backend IN-list limits."""
    unique_values = _unique(values)
    if not unique_values:
        return []
    results: List[Dict[str, Any]] = []
    for chunk in chunked(unique_values, chunk_size):
        rows = await store.select(table, field, chunk)
        results.extend(rows or [])
    logger.debug(
        "Chunked lookup table=%s field=%s values=%d chunks=%d rows=%d",
        table, field, len(unique_values), (len(unique_values) + chunk_size - 1) // chunk_size, len(results),
    )
    return results
