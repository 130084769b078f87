import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from services.order_import.committer import BatchCommitter
from services.order_import.errors import CommitError
from services.order_import.models import CandidateOrder, OrderItem

from conftest import FakeAuditSink, FakeImportStore


def _order(n):
    return CandidateOrder(
        company_id="c-acme", branch_id=None, company_name="Acme", branch_name="Acme", area="North",
        order_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
        items=[OrderItem("p-widget", "Widget", Decimal("1"), Decimal("10"))],
        subtotal=Decimal("10"), total_tax=Decimal("0"), grand_total=Decimal("10"), total=Decimal("10"),
        status="Delivered", payment_status="Paid", import_hash=f"h-{n}", source_row_index=n,
    )


def test_commit_inserts_in_batches_and_logs_audit_once():
    store = FakeImportStore()
    sink = FakeAuditSink()

    committed = asyncio.run(BatchCommitter(store, sink, batch_size=2).commit([_order(i) for i in range(5)]))

    assert committed == 5
    assert store.insert_calls == [("orders", 2), ("orders", 2), ("orders", 1)]
    assert len(store.rows("orders")) == 5
    assert len(sink.batches) == 1
    assert sink.batches[0][0] == {
        "product_id": "p-widget",
        "product_name": "Widget",
        "price": Decimal("10"),
        "source": "import",
        "order_hash": "h-0",
    }
    assert len(sink.batches[0]) == 5


def test_commit_failure_stops_remaining_batches():
    store = FakeImportStore(fail_insert_on_call=2)
    sink = FakeAuditSink()

    with pytest.raises(CommitError) as excinfo:
        asyncio.run(BatchCommitter(store, sink, batch_size=2).commit([_order(i) for i in range(5)]))

    assert excinfo.value.committed_count == 2
    assert len(store.insert_calls) == 2
    assert len(store.rows("orders")) == 2
    assert sink.batches == []


def test_audit_failure_does_not_fail_commit():
    store = FakeImportStore()
    sink = FakeAuditSink(fail=True)

    committed = asyncio.run(BatchCommitter(store, sink).commit([_order(1)]))

    assert committed == 1
    assert len(sink.batches) == 1


def test_commit_nothing_is_a_noop():
    store = FakeImportStore()
    sink = FakeAuditSink()
    assert asyncio.run(BatchCommitter(store, sink).commit([])) == 0
    assert store.insert_calls == []
    assert sink.batches == []
