"""
Order Import Data Model
Entities read by the importer and the records it produces
"""
from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Mapping, Optional

# A raw input line: header -> scalar. Headers are only normalized at read time.
Row = Mapping[str, Any]

STATUS_DELIVERED = "Delivered"
STATUS_CANCELLED = "Cancelled"
PAYMENT_PAID = "Paid"
PAYMENT_PENDING = "Pending"

DISCOUNT_FIXED = "fixed"
DISCOUNT_PERCENTAGE = "percentage"

CENTS = Decimal("0.01")


def money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Company:
    id: str
    name: str
    is_branch: bool = False
    parent_company_id: Optional[str] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Company":
        parent = record.get("parent_company_id", record.get("parentCompanyId"))
        is_branch = record.get("is_branch", record.get("isBranch", False))
        return cls(
            id=str(record["id"]),
            name=str(record.get("name") or ""),
            is_branch=bool(is_branch),
            parent_company_id=str(parent) if parent else None,
        )


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    price: Decimal = Decimal("0")

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Product":
        raw_price = record.get("price")
        try:
            price = Decimal(str(raw_price)) if raw_price not in (None, "") else Decimal("0")
        except ArithmeticError:
            price = Decimal("0")
        return cls(id=str(record["id"]), name=str(record.get("name") or ""), price=price)


@dataclass
class OrderItem:
    product_id: str
    product_name: str
    quantity: Decimal
    price: Decimal
    is_return: bool = False
    tax_rate: Optional[Decimal] = None
    discount_type: Optional[str] = None
    discount_value: Optional[Decimal] = None
    tax_amount: Optional[Decimal] = None

    def to_record(self) -> Dict[str, Any]:
        """JSON-safe line item as stored inside the order's `items` column."""
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": float(self.quantity),
            "price": float(self.price),
            "tax_rate": float(self.tax_rate) if self.tax_rate is not None else None,
            "tax_amount": float(money(self.tax_amount)) if self.tax_amount is not None else None,
            "discount_type": self.discount_type,
            "discount_value": float(self.discount_value) if self.discount_value is not None else None,
            "is_return": self.is_return,
        }


@dataclass
class HeaderConflict:
    row_index: int
    field: str
    kept: Any
    ignored: Any


@dataclass
class OrderGroup:
    """Mutable accumulator for all rows sharing one composite key."""
    key: str
    company_id: str
    branch_id: Optional[str]
    company_name: str
    branch_name: str
    order_date: datetime
    first_row_index: int
    invoice_number: Optional[str] = None
    area: Optional[str] = None
    items: List[OrderItem] = field(default_factory=list)
    conflicts: List[HeaderConflict] = field(default_factory=list)


@dataclass(frozen=True)
class CandidateOrder:
    company_id: str
    branch_id: Optional[str]
    company_name: str
    branch_name: str
    area: Optional[str]
    order_date: datetime
    items: List[OrderItem]
    subtotal: Decimal
    total_tax: Decimal
    grand_total: Decimal
    total: Decimal
    status: str
    payment_status: str
    import_hash: str
    cancellation_reason: Optional[str] = None
    # Pipeline metadata; never persisted.
    source_row_index: int = -1
    invoice_number: Optional[str] = None
    group_key: str = ""

    def to_record(self) -> Dict[str, Any]:
        """Row for the `orders` table. Pipeline metadata is left out."""
        return {
            "company_id": self.company_id,
            "branch_id": self.branch_id,
            "company_name": self.company_name,
            "branch_name": self.branch_name,
            "area": self.area,
            "order_date": self.order_date,
            "status": self.status,
            "payment_status": self.payment_status,
            "cancellation_reason": self.cancellation_reason,
            "items": [item.to_record() for item in self.items],
            "subtotal": money(self.subtotal),
            "total_tax": money(self.total_tax),
            "grand_total": money(self.grand_total),
            "total": money(self.total),
            "status_history": [{"status": self.status, "timestamp": self.order_date.isoformat()}],
            "import_hash": self.import_hash,
        }


@dataclass
class ImportRowError:
    row_index: int
    error_type: str
    error_message: str
    blocking: bool
    resolution: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DuplicateRecord:
    row_index: int
    import_hash: str
    source: str
    invoice_number: Optional[str] = None
    first_row_index: Optional[int] = None


@dataclass
class ImportResult:
    success: bool
    imported_count: int = 0
    skipped_count: int = 0
    imported_total: Decimal = Decimal("0")
    imported_subtotal: Decimal = Decimal("0")
    errors: List[ImportRowError] = field(default_factory=list)
    duplicates: List[DuplicateRecord] = field(default_factory=list)
    warnings: List[ImportRowError] = field(default_factory=list)
    batch_id: Optional[str] = None
