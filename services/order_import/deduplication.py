"""
Deduplication Service
Drops candidate orders whose content hash is already stored or already seen in this run
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from settings import ORDERS_TABLE, IMPORT_LOOKUP_CHUNK_SIZE

from .models import CandidateOrder, DuplicateRecord
from .store import ImportStore, select_in_chunks

logger = logging.getLogger(__name__)

SOURCE_STORAGE = "storage"
SOURCE_FILE = "file"


@dataclass
class DeduplicationOutcome:
    unique: List[CandidateOrder] = field(default_factory=list)
    duplicates: List[DuplicateRecord] = field(default_factory=list)
    metrics: Dict[str, int] = field(default_factory=dict)


class OrderDeduplicator:
    """Two-pass duplicate filter: stored hashes first, then hashes seen earlier in the batch."""

    def __init__(self, store: ImportStore, chunk_size: int = IMPORT_LOOKUP_CHUNK_SIZE,
                 log: Optional[logging.Logger] = None):
        self.store = store
        self.chunk_size = chunk_size
        self._log = log or logger

    async def get_existing_hashes(self, hashes: List[str]) -> Set[str]:
        records = await select_in_chunks(self.store, ORDERS_TABLE, "import_hash", hashes, self.chunk_size)
        return {r.get("import_hash") for r in records if r.get("import_hash")}

    async def deduplicate(self, candidates: List[CandidateOrder]) -> DeduplicationOutcome:
        outcome = DeduplicationOutcome()
        metrics = {
            "total_candidates": len(candidates),
            "unique_candidates": 0,
            "existing_in_storage": 0,
            "repeated_in_file": 0,
        }
        if not candidates:
            outcome.metrics = metrics
            return outcome

        existing_hashes = await self.get_existing_hashes([c.import_hash for c in candidates])
        self._log.info(f"Found {len(existing_hashes)} existing orders matching candidate hashes")

        # hash -> row index of the first candidate that claimed it
        seen_in_run: Dict[str, int] = {}

        for candidate in candidates:
            order_hash = candidate.import_hash
            if order_hash in existing_hashes:
                metrics["existing_in_storage"] += 1
                outcome.duplicates.append(DuplicateRecord(
                    row_index=candidate.source_row_index,
                    import_hash=order_hash,
                    source=SOURCE_STORAGE,
                    invoice_number=candidate.invoice_number,
                ))
                self._log.debug(f"Skipping order already in storage hash={order_hash} row={candidate.source_row_index}")
                continue

            if order_hash in seen_in_run:
                metrics["repeated_in_file"] += 1
                outcome.duplicates.append(DuplicateRecord(
                    row_index=candidate.source_row_index,
                    import_hash=order_hash,
                    source=SOURCE_FILE,
                    invoice_number=candidate.invoice_number,
                    first_row_index=seen_in_run[order_hash],
                ))
                self._log.debug(
                    f"Skipping repeated order hash={order_hash} row={candidate.source_row_index} "
                    f"first_row={seen_in_run[order_hash]}"
                )
                continue

            seen_in_run[order_hash] = candidate.source_row_index
            outcome.unique.append(candidate)

        metrics["unique_candidates"] = len(outcome.unique)
        outcome.metrics = metrics
        self._log.info(f"Deduplication completed: {metrics}")
        return outcome
