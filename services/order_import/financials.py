"""
Financial Aggregator
Per-item and per-order money math, with returns subtracted from order totals
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import List, Optional, Tuple

from .models import (
    DISCOUNT_PERCENTAGE, OrderGroup, OrderItem,
    STATUS_CANCELLED, STATUS_DELIVERED, PAYMENT_PAID, PAYMENT_PENDING,
)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class ItemAmounts:
    subtotal: Decimal
    discount: Decimal
    net: Decimal
    tax: Decimal
    total: Decimal


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    total_tax: Decimal
    grand_total: Decimal
    status: str
    payment_status: str
    cancellation_reason: Optional[str] = None


def item_amounts(item: OrderItem) -> ItemAmounts:
    subtotal = item.price * item.quantity
    discount = ZERO
    if item.discount_value and item.discount_value > ZERO:
        if item.discount_type == DISCOUNT_PERCENTAGE:
            discount = subtotal * item.discount_value / HUNDRED
        else:
            discount = item.discount_value
    net = subtotal - discount
    tax = net * (item.tax_rate or ZERO) / HUNDRED
    return ItemAmounts(subtotal=subtotal, discount=discount, net=net, tax=tax, total=net + tax)


def aggregate_items(items: List[OrderItem]) -> Tuple[List[OrderItem], OrderTotals]:
    """
    Sum item amounts into order totals.

    Return lines are subtracted. Status is derived only after every line is
    summed, so mixed sale/return orders resolve by their net effect.
    """
    subtotal = ZERO
    total_tax = ZERO
    grand_total = ZERO
    priced: List[OrderItem] = []
    for item in items:
        amounts = item_amounts(item)
        sign = -1 if item.is_return else 1
        subtotal += sign * amounts.subtotal
        total_tax += sign * amounts.tax
        grand_total += sign * amounts.total
        priced.append(replace(item, tax_amount=amounts.tax if amounts.tax > ZERO else None))

    if grand_total < ZERO:
        totals = OrderTotals(subtotal, total_tax, grand_total, STATUS_CANCELLED, PAYMENT_PENDING, "item returned")
    else:
        totals = OrderTotals(subtotal, total_tax, grand_total, STATUS_DELIVERED, PAYMENT_PAID)
    return priced, totals


def aggregate_group(group: OrderGroup) -> Tuple[List[OrderItem], OrderTotals]:
    return aggregate_items(group.items)
