"""
Content hashing for imported orders.
The hash is the deduplication key, so it must be identical on every run.
"""
from __future__ import annotations

import hashlib
import json
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from .models import CENTS, OrderItem
from .normalizers import normalize_invoice


def _canonical_quantity(item: OrderItem) -> str:
    # Returns hash by their effective (negative) quantity
    quantity = -item.quantity if item.is_return else item.quantity
    return format(quantity.normalize(), "f")


def _canonical_price(price: Decimal) -> str:
    return format(price.quantize(CENTS, rounding=ROUND_HALF_UP), "f")


def compute_import_hash(
    invoice_number: Optional[str],
    company_id: str,
    order_date: datetime,
    items: Iterable[OrderItem],
    group_key: str = "",
) -> str:
    """
    SHA-256 over the canonical JSON of an order's identity-defining fields.

    `group_key` keeps rows that were never merged (no invoice number) distinct
    even when their content is identical.
    """
    canonical_data = {
        "inv": normalize_invoice(invoice_number),
        "cid": company_id,
        "key": group_key,
        "date": order_date.date().isoformat(),
        "items": [
            [item.product_id, _canonical_quantity(item), _canonical_price(item.price)]
            for item in items
        ],
    }
    canonical_string = json.dumps(canonical_data, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical_string.encode("utf-8")).hexdigest()
