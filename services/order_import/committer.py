"""
Batch Committer
Persists surviving orders in fixed-size chunks and forwards line prices to the audit trail
"""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

from settings import ORDERS_TABLE, IMPORT_INSERT_BATCH_SIZE, chunked

from .errors import CommitError
from .models import CandidateOrder
from .store import ImportStore, PriceAuditSink

logger = logging.getLogger(__name__)

AUDIT_SOURCE = "import"


def build_price_audit_entries(orders: List[CandidateOrder]) -> List[Dict[str, Any]]:
    entries = []
    for order in orders:
        for item in order.items:
            entries.append({
                "product_id": item.product_id,
                "product_name": item.product_name,
                "price": item.price,
                "source": AUDIT_SOURCE,
                "order_hash": order.import_hash,
            })
    return entries


class BatchCommitter:
    def __init__(
        self,
        store: ImportStore,
        audit_sink: Optional[PriceAuditSink] = None,
        batch_size: int = IMPORT_INSERT_BATCH_SIZE,
        log: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.audit_sink = audit_sink
        self.batch_size = batch_size
        self._log = log or logger

    async def commit(self, orders: List[CandidateOrder]) -> int:
        """
        Insert orders chunk by chunk. Returns the number committed.

        A failing chunk stops the remaining ones and raises CommitError; chunks
        already written are not rolled back.
        """
        if not orders:
            return 0
        committed = 0
        t0 = time.time()
        for batch_no, batch in enumerate(chunked(orders, self.batch_size), 1):
            records = [order.to_record() for order in batch]
            try:
                await self.store.insert(ORDERS_TABLE, records)
            except Exception as e:
                self._log.error(
                    f"Order insert failed at batch={batch_no} committed={committed} "
                    f"remaining={len(orders) - committed}: {e}"
                )
                raise CommitError(f"Failed to save orders (batch {batch_no}): {e}", committed) from e
            committed += len(batch)
            self._log.info(f"Committed order batch={batch_no} size={len(batch)} total={committed}")

        dur_ms = int((time.time() - t0) * 1000)
        self._log.info(f"Order commit complete count={committed} durMs={dur_ms}")
        await self._log_price_audit(orders)
        return committed

    async def _log_price_audit(self, orders: List[CandidateOrder]) -> None:
        if self.audit_sink is None:
            return
        entries = build_price_audit_entries(orders)
        if not entries:
            return
        try:
            await self.audit_sink.log_price_audit_batch(entries)
        except Exception as e:
            # Audit trail is best-effort; the orders are already committed.
            self._log.warning(f"Price audit logging failed for {len(entries)} entries: {e}")
