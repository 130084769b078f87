import asyncio
from decimal import Decimal

from services.order_import import read_rows, run_import
from services.order_import.errors import INFRASTRUCTURE, INVALID_DATA, MISSING_ENTITY

from conftest import COMPANIES, PRODUCTS, FakeAuditSink, FakeImportStore

ACME_ROWS = [
    {"customer": "Acme", "product": "Widget", "qty": 5, "price": "10,00", "invoice": "INV-1", "date": "2024-01-15"},
    {"customer": "Acme", "product": "Widget", "qty": -2, "price": "10,00", "invoice": "INV-1", "date": "2024-01-15"},
]


def _run(rows, store, sink=None, **kwargs):
    return asyncio.run(run_import("order", rows, store=store, audit_sink=sink, **kwargs))


def test_acme_scenario_imports_one_delivered_order(store, audit_sink):
    result = _run(ACME_ROWS, store, audit_sink)

    assert result.success is True
    assert result.imported_count == 1
    assert result.skipped_count == 0
    assert result.imported_subtotal == Decimal("30")
    assert result.imported_total == Decimal("30")
    assert result.errors == []
    assert result.batch_id

    [order] = store.rows("orders")
    assert order["company_id"] == "c-acme"
    assert order["status"] == "Delivered"
    assert order["payment_status"] == "Paid"
    assert len(order["items"]) == 2
    assert order["items"][1]["is_return"] is True
    assert order["items"][1]["quantity"] == 2.0
    assert len(audit_sink.batches[0]) == 2


def test_reimport_is_idempotent(store, audit_sink):
    first = _run(ACME_ROWS, store, audit_sink)
    second = _run(ACME_ROWS, store, audit_sink)

    assert first.imported_count == 1
    assert second.imported_count == 0
    assert second.skipped_count == 1
    assert second.success is False
    assert second.errors == []
    assert second.duplicates[0].source == "storage"
    assert len(store.rows("orders")) == 1
    assert second.duplicates[0].import_hash == store.rows("orders")[0]["import_hash"]


def test_identical_rows_without_invoice_import_separately(store):
    rows = [
        {"customer": "Acme", "product": "Widget", "qty": 1, "price": "10", "date": "2024-01-15"},
        {"customer": "Acme", "product": "Widget", "qty": 1, "price": "10", "date": "2024-01-15"},
    ]

    result = _run(rows, store)

    assert result.imported_count == 2
    assert result.skipped_count == 0
    assert result.imported_total == Decimal("20")
    hashes = [o["import_hash"] for o in store.rows("orders")]
    assert len(set(hashes)) == 2


def test_return_is_not_a_duplicate_of_the_matching_sale(store):
    sale = [{"customer": "Acme", "product": "Widget", "qty": 2, "price": "10",
             "invoice": "INV-7", "date": "2024-01-15"}]
    refund = [dict(sale[0], qty=-2)]

    first = _run(sale, store)
    second = _run(refund, store)

    assert first.imported_count == 1
    assert second.imported_count == 1
    assert second.skipped_count == 0
    assert second.duplicates == []
    assert second.imported_total == Decimal("-20")
    assert len(store.rows("orders")) == 2


def test_sale_and_return_lines_without_invoice_both_import(store):
    rows = [
        {"customer": "Acme", "product": "Widget", "qty": 2, "price": "10", "date": "2024-01-15"},
        {"customer": "Acme", "product": "Widget", "qty": -2, "price": "10", "date": "2024-01-15"},
    ]

    result = _run(rows, store)

    assert result.imported_count == 2
    assert result.duplicates == []
    assert result.imported_total == Decimal("0")


def test_invoice_case_differences_merge_into_one_order(store):
    rows = [
        {"customer": "Acme", "product": "Widget", "qty": 1, "price": "10", "invoice": "INV-3", "date": "2024-01-15"},
        {"customer": "Acme", "product": "Gadget", "qty": 1, "price": "25", "invoice": " inv-3", "date": "2024-01-15"},
    ]

    result = _run(rows, store)

    assert result.imported_count == 1
    assert result.imported_subtotal == Decimal("35")
    assert len(store.rows("orders")[0]["items"]) == 2


def test_uploaded_sheet_blank_lines_keep_error_row_indices(store):
    content = (
        b"Customer,Product,Qty,Price,Order Date\n"
        b"Acme,Widget,1,10,2024-01-15\n"
        b",,,,\n"
        b"Nobody,Widget,1,10,2024-01-15\n"
    )

    result = _run(read_rows(content, "orders.csv"), store)

    assert result.imported_count == 1
    assert [(e.row_index, e.error_type) for e in result.errors] == [(2, MISSING_ENTITY)]


def test_missing_entity_is_blocking_but_valid_rows_still_import(store):
    rows = [
        {"customer": "Initech", "product": "Widget", "qty": 1, "price": "10"},
        {"customer": "Globex", "product": "Gadget", "qty": 2, "price": "25", "date": "2024-02-01"},
    ]

    result = _run(rows, store)

    assert result.success is False
    assert result.imported_count == 1
    assert [(e.row_index, e.error_type, e.blocking) for e in result.errors] == [(0, MISSING_ENTITY, True)]
    assert store.rows("orders")[0]["company_id"] == "c-globex"


def test_invalid_rows_are_reported_without_blocking(store):
    rows = [
        {"customer": "Acme", "product": "Widget", "qty": 0, "price": "10"},
        {"customer": "Acme", "product": "Widget", "qty": 3, "price": "10", "date": "2024-02-01"},
    ]

    result = _run(rows, store)

    assert result.success is True
    assert result.imported_count == 1
    assert result.errors[0].error_type == INVALID_DATA
    assert result.errors[0].blocking is False


def test_blank_rows_are_ignored_and_indices_preserved(store):
    rows = [
        {"customer": "", "product": None},
        {"customer": "Nobody", "product": "Widget", "qty": 1, "price": "1"},
    ]

    result = _run(rows, store)

    assert [e.row_index for e in result.errors] == [1]


def test_return_reduces_grand_total_and_cancels_net_negative_order(store):
    rows = [
        {"customer": "Acme", "product": "Widget", "qty": -3, "price": "10", "invoice": "R-1", "date": "2024-03-01"},
    ]

    result = _run(rows, store)

    assert result.imported_total == Decimal("-30")
    order = store.rows("orders")[0]
    assert order["status"] == "Cancelled"
    assert order["payment_status"] == "Pending"
    assert order["cancellation_reason"] == "item returned"


def test_header_conflicts_surface_as_warnings(store):
    rows = [
        {"customer": "Acme", "product": "Widget", "qty": 1, "price": "10", "invoice": "INV-9", "date": "2024-01-01"},
        {"customer": "Acme", "product": "Gadget", "qty": 1, "price": "25", "invoice": "INV-9", "date": "2024-01-05"},
    ]

    result = _run(rows, store)

    assert result.success is True
    assert result.errors == []
    assert len(result.warnings) == 1
    assert result.warnings[0].row_index == 1
    assert "order_date" in result.warnings[0].error_message


def test_wrong_entity_type_returns_single_blocking_error(store):
    result = asyncio.run(run_import("invoice", ACME_ROWS, store=store))

    assert result.success is False
    assert len(result.errors) == 1
    assert result.errors[0].row_index == 0
    assert result.errors[0].error_type == INVALID_DATA
    assert result.errors[0].blocking is True
    assert store.select_calls == []


def test_commit_failure_reports_infrastructure_error(store):
    store.fail_insert_on_call = 2
    rows = [
        {"customer": "Acme", "product": "Widget", "qty": i + 1, "price": "10", "invoice": f"INV-{i}", "date": "2024-01-01"}
        for i in range(3)
    ]

    result = _run(rows, store, insert_batch_size=2)

    assert result.success is False
    assert result.imported_count == 2
    assert result.imported_subtotal == Decimal("30")
    infra = [e for e in result.errors if e.error_type == INFRASTRUCTURE]
    assert len(infra) == 1
    assert infra[0].row_index == -1
    assert infra[0].blocking is True


def test_provided_lookup_data_skips_prefetch():
    store = FakeImportStore()

    result = asyncio.run(run_import("order", ACME_ROWS, COMPANIES, PRODUCTS, store=store))

    assert result.imported_count == 1
    assert all(call[0] == "orders" for call in store.select_calls)


def test_unexpected_failure_is_returned_not_raised():
    class BrokenStore(FakeImportStore):
        async def select(self, table, field, values):
            raise RuntimeError("boom")

    result = asyncio.run(run_import("order", ACME_ROWS, store=BrokenStore()))

    assert result.success is False
    assert len(result.errors) == 1
    assert result.errors[0].blocking is True
    assert "boom" in result.errors[0].error_message


def test_injected_logger_receives_summary(store, caplog):
    import logging

    log = logging.getLogger("tests.order_import")
    with caplog.at_level(logging.INFO, logger="tests.order_import"):
        _run(ACME_ROWS, store, logger=log)

    assert any("done success=True" in r.getMessage() for r in caplog.records if r.name == "tests.order_import")
