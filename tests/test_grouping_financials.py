from datetime import datetime, timezone
from decimal import Decimal

from services.order_import.entity_resolver import EntityResolver, LookupTables
from services.order_import.errors import ErrorCollector, INVALID_DATA
from services.order_import.financials import aggregate_items, item_amounts
from services.order_import.grouping import OrderGrouper, parse_line
from services.order_import.models import (
    Company, OrderItem, Product,
    STATUS_CANCELLED, STATUS_DELIVERED, PAYMENT_PAID, PAYMENT_PENDING,
)

from conftest import COMPANIES, PRODUCTS

NOW = datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc)


def _lines(rows):
    errors = ErrorCollector()
    resolver = EntityResolver(
        LookupTables([Company.from_record(c) for c in COMPANIES], [Product.from_record(p) for p in PRODUCTS]),
        errors,
    )
    lines = []
    for index, row in enumerate(rows):
        resolved = resolver.resolve(row, index)
        if resolved is None:
            continue
        line = parse_line(row, index, resolved, errors, now=NOW)
        if line is not None:
            lines.append(line)
    return lines, errors


def _group(rows):
    lines, errors = _lines(rows)
    grouper = OrderGrouper()
    for line in lines:
        grouper.add(line)
    return grouper, errors


def test_negative_quantity_becomes_return_item():
    lines, errors = _lines([{"customer": "Acme", "product": "Widget", "qty": -2, "price": "10,00"}])

    item = lines[0].item
    assert item.quantity == Decimal("2")
    assert item.is_return is True
    assert errors.errors == []


def test_zero_quantity_is_invalid_data():
    lines, errors = _lines([{"customer": "Acme", "product": "Widget", "qty": 0, "price": "5"}])

    assert lines == []
    assert errors.errors[0].error_type == INVALID_DATA
    assert errors.errors[0].blocking is False
    assert "Widget" in errors.errors[0].error_message


def test_negative_price_is_invalid_data():
    lines, errors = _lines([{"customer": "Acme", "product": "Widget", "qty": 1, "price": "-5"}])
    assert lines == []
    assert errors.errors[0].error_type == INVALID_DATA


def test_unparseable_date_is_invalid_data():
    lines, errors = _lines([{"customer": "Acme", "product": "Widget", "qty": 1, "price": "5", "date": "someday"}])
    assert lines == []
    assert errors.errors[0].error_message.startswith("Invalid date")


def test_same_invoice_merges_into_one_group():
    grouper, _ = _group([
        {"customer": "Acme", "product": "Widget", "qty": 1, "price": "10", "invoice": "INV-1"},
        {"customer": "Acme", "product": "Gadget", "qty": 1, "price": "25", "invoice": "INV-1"},
    ])

    assert len(grouper) == 1
    group = grouper.groups[0]
    assert group.key == "c-acme|inv-1"
    assert [i.product_id for i in group.items] == ["p-widget", "p-gadget"]
    assert group.first_row_index == 0


def test_different_or_missing_invoices_never_merge():
    grouper, _ = _group([
        {"customer": "Acme", "product": "Widget", "qty": 1, "price": "10", "invoice": "INV-1"},
        {"customer": "Acme", "product": "Widget", "qty": 1, "price": "10", "invoice": "INV-2"},
        {"customer": "Acme", "product": "Widget", "qty": 1, "price": "10"},
        {"customer": "Acme", "product": "Widget", "qty": 1, "price": "10"},
    ])

    assert [g.key for g in grouper.groups] == ["c-acme|inv-1", "c-acme|inv-2", "row-2", "row-3"]


def test_branch_and_parent_with_same_invoice_stay_separate():
    grouper, _ = _group([
        {"customer": "Acme", "product": "Widget", "qty": 1, "price": "10", "invoice": "INV-1"},
        {"customer": "Acme North", "product": "Widget", "qty": 1, "price": "10", "invoice": "INV-1"},
    ])

    assert len(grouper) == 2
    branch_group = grouper.groups[1]
    assert branch_group.company_id == "c-acme"
    assert branch_group.branch_id == "b-acme-north"
    assert branch_group.company_name == "Acme"
    assert branch_group.branch_name == "Acme North"


def test_conflicting_header_values_are_recorded_and_first_kept():
    grouper, _ = _group([
        {"customer": "Acme", "product": "Widget", "qty": 1, "price": "10", "invoice": "INV-1",
         "date": "2024-01-01", "area": "North"},
        {"customer": "Acme", "product": "Widget", "qty": 1, "price": "10", "invoice": "INV-1",
         "date": "2024-01-02", "area": "South"},
    ])

    group = grouper.groups[0]
    assert group.order_date.date().isoformat() == "2024-01-01"
    assert group.area == "North"
    assert {c.field for c in group.conflicts} == {"order_date", "area"}
    assert all(c.row_index == 1 for c in group.conflicts)


def test_item_amounts_percentage_discount_and_tax():
    item = OrderItem("p", "P", Decimal("4"), Decimal("25"), tax_rate=Decimal("10"),
                     discount_type="percentage", discount_value=Decimal("10"))
    amounts = item_amounts(item)

    assert amounts.subtotal == Decimal("100")
    assert amounts.discount == Decimal("10")
    assert amounts.net == Decimal("90")
    assert amounts.tax == Decimal("9")
    assert amounts.total == Decimal("99")


def test_item_amounts_fixed_discount():
    item = OrderItem("p", "P", Decimal("2"), Decimal("10"), discount_type="fixed", discount_value=Decimal("5"))
    assert item_amounts(item).total == Decimal("15")


def test_acme_widget_sale_and_return_nets_to_delivered():
    grouper, errors = _group([
        {"customer": "Acme", "product": "Widget", "qty": 5, "price": "10,00", "invoice": "INV-1"},
        {"customer": "Acme", "product": "Widget", "qty": -2, "price": "10,00", "invoice": "INV-1"},
    ])

    assert errors.errors == []
    assert len(grouper) == 1
    items, totals = aggregate_items(grouper.groups[0].items)

    assert len(items) == 2
    assert totals.subtotal == Decimal("30")
    assert totals.grand_total == Decimal("30")
    assert totals.status == STATUS_DELIVERED
    assert totals.payment_status == PAYMENT_PAID
    assert totals.cancellation_reason is None


def test_net_return_cancels_order():
    items = [
        OrderItem("p", "P", Decimal("1"), Decimal("10")),
        OrderItem("p", "P", Decimal("3"), Decimal("10"), is_return=True, tax_rate=Decimal("14")),
    ]
    priced, totals = aggregate_items(items)

    assert totals.subtotal == Decimal("-20")
    assert totals.total_tax == Decimal("-4.2")
    assert totals.grand_total == Decimal("-24.2")
    assert totals.status == STATUS_CANCELLED
    assert totals.payment_status == PAYMENT_PENDING
    assert totals.cancellation_reason == "item returned"
    assert priced[0].tax_amount is None
    assert priced[1].tax_amount == Decimal("4.2")
