"""
Price audit trail for imported order lines.
Entries are written to the price_audit_log table; callers treat the write as best-effort.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional
import logging

from settings import PRICE_AUDIT_TABLE
from services.storage import SqlAlchemyImportStore, storage as default_storage

logger = logging.getLogger(__name__)


class StoragePriceAuditSink:
    """Persists price audit entries through the import store."""

    def __init__(self, store: Optional[SqlAlchemyImportStore] = None):
        self.store = store or default_storage

    async def log_price_audit_batch(self, entries: List[Dict[str, Any]]) -> None:
        """Write one batch of entries: {product_id, product_name, price, source, order_hash}."""
        if not entries:
            return
        await self.store.insert(PRICE_AUDIT_TABLE, entries)
        sources = sorted({e.get("source") for e in entries if e.get("source")})
        logger.info("[AUDIT] Price audit batch logged | entries=%d sources=%s", len(entries), sources)
