"""
Order Grouper
Turns resolved rows into line items and groups them into logical orders
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from .entity_resolver import ResolvedRow
from .errors import ErrorCollector, InvalidDateError
from .field_reader import read_field
from .models import (
    DISCOUNT_FIXED, DISCOUNT_PERCENTAGE, HeaderConflict, OrderGroup, OrderItem, Row,
)
from .normalizers import normalize_invoice, parse_number, parse_order_date, parse_tax_rate

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class ParsedLine:
    row_index: int
    resolved: ResolvedRow
    item: OrderItem
    invoice_number: Optional[str]
    order_date: datetime
    area: Optional[str]


def _discount(row: Row):
    percent = read_field(row, "discount_percent")
    if percent:
        value = parse_number(percent)
        return (DISCOUNT_PERCENTAGE, value) if value > ZERO else (None, None)
    value = parse_number(read_field(row, "discount"))
    if value <= ZERO:
        return None, None
    raw_type = (read_field(row, "discount_type") or DISCOUNT_FIXED).strip().lower()
    return (DISCOUNT_PERCENTAGE if raw_type in ("percentage", "percent", "%") else DISCOUNT_FIXED), value


def parse_line(row: Row, row_index: int, resolved: ResolvedRow, errors: ErrorCollector,
               now: Optional[datetime] = None) -> Optional[ParsedLine]:
    """Build the line item for one resolved row; invalid data drops the row."""
    product = resolved.product
    price = parse_number(read_field(row, "price"))
    raw_quantity = parse_number(read_field(row, "quantity"))
    is_return = raw_quantity < ZERO
    quantity = abs(raw_quantity)

    if quantity == ZERO or price < ZERO:
        errors.invalid_data(row_index, f"Invalid quantity or price for product '{product.name}'.")
        return None

    try:
        order_date = parse_order_date(read_field(row, "date"), now=now)
    except InvalidDateError as exc:
        errors.invalid_data(row_index, f"Invalid date: {exc}")
        return None

    tax_rate = parse_tax_rate(read_field(row, "tax"))
    discount_type, discount_value = _discount(row)

    item = OrderItem(
        product_id=product.id,
        product_name=product.name,
        quantity=quantity,
        price=price,
        is_return=is_return,
        tax_rate=tax_rate if tax_rate > ZERO else None,
        discount_type=discount_type,
        discount_value=discount_value,
    )
    return ParsedLine(
        row_index=row_index,
        resolved=resolved,
        item=item,
        invoice_number=read_field(row, "invoice"),
        order_date=order_date,
        area=read_field(row, "area"),
    )


class OrderGrouper:
    """Single forward pass accumulation of lines under composite order keys."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self._groups: Dict[str, OrderGroup] = {}
        self._log = log or logger

    @staticmethod
    def group_key(line: ParsedLine) -> str:
        invoice = normalize_invoice(line.invoice_number)
        if invoice:
            return f"{line.resolved.grouping_id}|{invoice}"
        return f"row-{line.row_index}"

    def add(self, line: ParsedLine) -> OrderGroup:
        key = self.group_key(line)
        group = self._groups.get(key)
        if group is None:
            resolved = line.resolved
            group = OrderGroup(
                key=key,
                company_id=resolved.company_id,
                branch_id=resolved.branch_id,
                company_name=resolved.company.name,
                branch_name=resolved.matched.name,
                order_date=line.order_date,
                first_row_index=line.row_index,
                invoice_number=line.invoice_number,
                area=line.area,
            )
            self._groups[key] = group
        else:
            self._record_conflicts(group, line)
        group.items.append(line.item)
        return group

    def _record_conflicts(self, group: OrderGroup, line: ParsedLine) -> None:
        # The first row's header values are kept; later disagreements are only reported.
        if line.order_date != group.order_date:
            group.conflicts.append(HeaderConflict(line.row_index, "order_date", group.order_date, line.order_date))
        if line.area and group.area and line.area != group.area:
            group.conflicts.append(HeaderConflict(line.row_index, "area", group.area, line.area))

    @property
    def groups(self) -> List[OrderGroup]:
        return list(self._groups.values())

    def __len__(self) -> int:
        return len(self._groups)
