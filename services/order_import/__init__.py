"""
Bulk order import: resolve, group, price, hash, deduplicate and commit order rows.
"""
from .errors import CommitError, InvalidDateError, OrderImportError, UnsupportedFileError
from .file_reader import read_rows
from .models import (
    CandidateOrder, Company, DuplicateRecord, ImportResult, ImportRowError, OrderItem, Product,
)
from .pipeline import run_import

__all__ = [
    "run_import",
    "read_rows",
    "ImportResult",
    "ImportRowError",
    "DuplicateRecord",
    "CandidateOrder",
    "OrderItem",
    "Company",
    "Product",
    "OrderImportError",
    "InvalidDateError",
    "CommitError",
    "UnsupportedFileError",
]
