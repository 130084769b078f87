"""
Order Import Pipeline
Orchestrates the import stages: resolve -> group -> aggregate -> hash -> deduplicate -> commit.
"""
from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from settings import (
    ORDER_IMPORT_ENTITY_TYPE,
    IMPORT_LOOKUP_CHUNK_SIZE,
    IMPORT_INSERT_BATCH_SIZE,
)

from .committer import BatchCommitter
from .deduplication import OrderDeduplicator
from .entity_resolver import EntityResolver, LookupTables, prefetch_lookup_tables
from .errors import INVALID_DATA, CommitError, ErrorCollector
from .field_reader import is_blank_row
from .financials import aggregate_group
from .grouping import OrderGrouper, parse_line
from .hashing import compute_import_hash
from .models import CandidateOrder, Company, ImportResult, ImportRowError, OrderGroup, Product, Row
from .store import ImportStore, PriceAuditSink

ZERO = Decimal("0")


def _as_companies(items: Iterable[Any]) -> List[Company]:
    return [c if isinstance(c, Company) else Company.from_record(c) for c in items]


def _as_products(items: Iterable[Any]) -> List[Product]:
    return [p if isinstance(p, Product) else Product.from_record(p) for p in items]


def _default_store() -> ImportStore:
    from services.storage import storage
    return storage


async def _build_lookup_tables(
    rows: Sequence[Row],
    companies: Optional[Sequence[Any]],
    products: Optional[Sequence[Any]],
    store: Optional[ImportStore],
    chunk_size: int,
    log: logging.Logger,
) -> LookupTables:
    if companies is not None and products is not None:
        return LookupTables(_as_companies(companies), _as_products(products), log=log)

    fetched = await prefetch_lookup_tables(rows, store, chunk_size=chunk_size, log=log)
    company_list = _as_companies(companies) if companies is not None else fetched.companies
    product_list = _as_products(products) if products is not None else fetched.products
    return LookupTables(company_list, product_list, log=log)


def finalize_group(group: OrderGroup) -> CandidateOrder:
    """Aggregate a group's items and stamp its content hash."""
    items, totals = aggregate_group(group)
    import_hash = compute_import_hash(
        group.invoice_number, group.company_id, group.order_date, items, group_key=group.key,
    )
    return CandidateOrder(
        company_id=group.company_id,
        branch_id=group.branch_id,
        company_name=group.company_name,
        branch_name=group.branch_name,
        area=group.area,
        order_date=group.order_date,
        items=items,
        subtotal=totals.subtotal,
        total_tax=totals.total_tax,
        grand_total=totals.grand_total,
        total=totals.grand_total,
        status=totals.status,
        payment_status=totals.payment_status,
        cancellation_reason=totals.cancellation_reason,
        import_hash=import_hash,
        source_row_index=group.first_row_index,
        invoice_number=group.invoice_number,
        group_key=group.key,
    )


def _non_blank_rows(rows: Sequence[Row]) -> List[Tuple[int, Row]]:
    return [(index, row) for index, row in enumerate(rows) if not is_blank_row(row)]


async def run_import(
    entity_type: str,
    rows: Sequence[Row],
    companies: Optional[Sequence[Any]] = None,
    products: Optional[Sequence[Any]] = None,
    *,
    store: Optional[ImportStore] = None,
    audit_sink: Optional[PriceAuditSink] = None,
    logger: Optional[logging.Logger] = None,
    lookup_chunk_size: int = IMPORT_LOOKUP_CHUNK_SIZE,
    insert_batch_size: int = IMPORT_INSERT_BATCH_SIZE,
) -> ImportResult:
    """
    Import a batch of loosely structured order rows.

    Never raises: every failure is reported through the returned ImportResult.
    Row indices in errors and duplicates refer to positions in `rows`.
    """
    log = logger or logging.getLogger(__name__)
    batch_id = uuid.uuid4().hex
    errors = ErrorCollector(log=log)

    if entity_type != ORDER_IMPORT_ENTITY_TYPE:
        errors.errors.append(_entity_type_error(entity_type))
        log.warning(f"Import batch={batch_id} rejected: unsupported entity type '{entity_type}'")
        return ImportResult(success=False, errors=errors.errors, batch_id=batch_id)

    try:
        return await _run_order_import(
            batch_id, rows, companies, products, errors,
            store=store, audit_sink=audit_sink, log=log,
            lookup_chunk_size=lookup_chunk_size, insert_batch_size=insert_batch_size,
        )
    except Exception as e:
        log.exception(f"Import batch={batch_id} failed unexpectedly: {e}")
        errors.infrastructure(f"Unexpected import failure: {e}")
        return ImportResult(
            success=False,
            errors=errors.errors,
            warnings=errors.warnings,
            batch_id=batch_id,
        )


def _entity_type_error(entity_type: str) -> ImportRowError:
    return ImportRowError(
        row_index=0,
        error_type=INVALID_DATA,
        error_message=f"Unsupported entity type '{entity_type}'; expected '{ORDER_IMPORT_ENTITY_TYPE}'.",
        blocking=True,
    )


async def _run_order_import(
    batch_id: str,
    rows: Sequence[Row],
    companies: Optional[Sequence[Any]],
    products: Optional[Sequence[Any]],
    errors: ErrorCollector,
    *,
    store: Optional[ImportStore],
    audit_sink: Optional[PriceAuditSink],
    log: logging.Logger,
    lookup_chunk_size: int,
    insert_batch_size: int,
) -> ImportResult:
    t0 = time.time()
    # One clock reading per run, so rows without a date agree with each other.
    now = datetime.now(timezone.utc)
    indexed_rows = _non_blank_rows(rows)
    log.info(f"Import batch={batch_id} started rows={len(rows)} non_blank={len(indexed_rows)}")

    if store is None:
        store = _default_store()

    tables = await _build_lookup_tables(
        [row for _, row in indexed_rows], companies, products, store, lookup_chunk_size, log,
    )
    resolver = EntityResolver(tables, errors)
    grouper = OrderGrouper(log=log)

    for row_index, row in indexed_rows:
        resolved = resolver.resolve(row, row_index)
        if resolved is None:
            continue
        line = parse_line(row, row_index, resolved, errors, now=now)
        if line is None:
            continue
        grouper.add(line)

    candidates: List[CandidateOrder] = []
    for group in grouper.groups:
        for conflict in group.conflicts:
            errors.warn(
                conflict.row_index,
                f"Conflicting {conflict.field} for order '{group.key}': "
                f"kept '{conflict.kept}', ignored '{conflict.ignored}'.",
            )
        candidates.append(finalize_group(group))
    log.info(f"Import batch={batch_id} grouped {len(indexed_rows)} rows into {len(candidates)} orders")

    outcome = await OrderDeduplicator(store, chunk_size=lookup_chunk_size, log=log).deduplicate(candidates)
    to_commit = outcome.unique

    committer = BatchCommitter(store, audit_sink=audit_sink, batch_size=insert_batch_size, log=log)
    try:
        imported_count = await committer.commit(to_commit)
        committed = to_commit
    except CommitError as e:
        errors.infrastructure(str(e))
        imported_count = e.committed_count
        committed = to_commit[:imported_count]

    imported_total = sum((c.grand_total for c in committed), ZERO)
    imported_subtotal = sum((c.subtotal for c in committed), ZERO)
    result = ImportResult(
        success=errors.is_success(imported_count),
        imported_count=imported_count,
        skipped_count=len(outcome.duplicates),
        imported_total=imported_total,
        imported_subtotal=imported_subtotal,
        errors=errors.errors,
        duplicates=outcome.duplicates,
        warnings=errors.warnings,
        batch_id=batch_id,
    )
    dur_ms = int((time.time() - t0) * 1000)
    log.info(
        "Import batch=%s done success=%s imported=%d skipped=%d errors=%d blocking=%d warnings=%d durMs=%d",
        batch_id, result.success, imported_count, result.skipped_count,
        len(result.errors), errors.blocking_count, len(result.warnings), dur_ms,
    )
    return result
