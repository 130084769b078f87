"""
Import error taxonomy and the per-run error collector.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .models import ImportRowError

logger = logging.getLogger(__name__)

MISSING_ENTITY = "missing-entity"
INVALID_DATA = "invalid-data"
INFRASTRUCTURE = "infrastructure"


class OrderImportError(Exception):
    """Base class for order import failures."""


class InvalidDateError(OrderImportError, ValueError):
    pass


class UnsupportedFileError(OrderImportError, ValueError):
    pass


class CommitError(OrderImportError):
    """A chunk insert failed; chunks before it stay committed."""

    def __init__(self, message: str, committed_count: int = 0):
        super().__init__(message)
        self.committed_count = committed_count


class ErrorCollector:
    """Accumulates row diagnostics without interrupting row processing."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.errors: List[ImportRowError] = []
        self.warnings: List[ImportRowError] = []
        self._log = log or logger

    def missing_entity(self, row_index: int, message: str, entity: str,
                       suggested_data: Dict[str, Any]) -> ImportRowError:
        error = ImportRowError(
            row_index=row_index,
            error_type=MISSING_ENTITY,
            error_message=message,
            blocking=True,
            resolution={
                "type": "create-entity",
                "entity": entity,
                "suggested_data": suggested_data,
            },
        )
        self.errors.append(error)
        self._log.info(f"Row {row_index}: {message}")
        return error

    def invalid_data(self, row_index: int, message: str) -> ImportRowError:
        error = ImportRowError(
            row_index=row_index,
            error_type=INVALID_DATA,
            error_message=message,
            blocking=False,
        )
        self.errors.append(error)
        self._log.info(f"Row {row_index}: {message}")
        return error

    def infrastructure(self, message: str) -> ImportRowError:
        error = ImportRowError(
            row_index=-1,
            error_type=INFRASTRUCTURE,
            error_message=message,
            blocking=True,
        )
        self.errors.append(error)
        self._log.error(message)
        return error

    def warn(self, row_index: int, message: str) -> ImportRowError:
        warning = ImportRowError(
            row_index=row_index,
            error_type=INVALID_DATA,
            error_message=message,
            blocking=False,
        )
        self.warnings.append(warning)
        self._log.warning(f"Row {row_index}: {message}")
        return warning

    @property
    def blocking_count(self) -> int:
        return sum(1 for e in self.errors if e.blocking)

    @property
    def has_blocking(self) -> bool:
        return any(e.blocking for e in self.errors)

    def is_success(self, imported_count: int) -> bool:
        # An import that added nothing new is not a success, even without blocking errors.
        return not self.has_blocking and imported_count > 0
