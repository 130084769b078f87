import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


class FakeImportStore:
    """In-memory select/insert store keyed by table name."""

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None,
                 fail_insert_on_call: Optional[int] = None):
        self.tables: Dict[str, List[Dict[str, Any]]] = {k: list(v) for k, v in (tables or {}).items()}
        self.select_calls: List[tuple] = []
        self.insert_calls: List[tuple] = []
        self.fail_insert_on_call = fail_insert_on_call

    async def select(self, table: str, field: str, values: Sequence[Any]) -> List[Dict[str, Any]]:
        self.select_calls.append((table, field, list(values)))
        if field == "name":
            wanted = {str(v).lower() for v in values}
            return [dict(r) for r in self.tables.get(table, []) if str(r.get(field, "")).lower() in wanted]
        wanted = set(values)
        return [dict(r) for r in self.tables.get(table, []) if r.get(field) in wanted]

    async def insert(self, table: str, records: List[Dict[str, Any]]) -> None:
        self.insert_calls.append((table, len(records)))
        if self.fail_insert_on_call is not None and len(self.insert_calls) == self.fail_insert_on_call:
            raise RuntimeError("connection reset")
        self.tables.setdefault(table, []).extend(dict(r) for r in records)

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.get(table, [])


class FakeAuditSink:
    def __init__(self, fail: bool = False):
        self.batches: List[List[Dict[str, Any]]] = []
        self.fail = fail

    async def log_price_audit_batch(self, entries: List[Dict[str, Any]]) -> None:
        self.batches.append(list(entries))
        if self.fail:
            raise RuntimeError("audit backend down")


COMPANIES = [
    {"id": "c-acme", "name": "Acme", "is_branch": False},
    {"id": "c-globex", "name": "Globex", "is_branch": False},
    {"id": "b-acme-north", "name": "Acme North", "is_branch": True, "parent_company_id": "c-acme"},
    {"id": "b-orphan", "name": "Lonely Branch", "is_branch": True, "parent_company_id": "c-missing"},
]

PRODUCTS = [
    {"id": "p-widget", "name": "Widget", "price": "10.00"},
    {"id": "p-gadget", "name": "Gadget", "price": "25.00"},
]


@pytest.fixture
def store():
    return FakeImportStore({"companies": COMPANIES, "products": PRODUCTS})


@pytest.fixture
def audit_sink():
    return FakeAuditSink()
