"""
Order Import Schemas
====================

Request/response models for the order import endpoints. Field names are
snake_case in Python and camelCase on the wire.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from services.order_import.models import DuplicateRecord, ImportResult, ImportRowError


class ImportRowsRequest(BaseModel):
    """JSON import payload: raw rows plus optional pre-fetched lookup data."""

    entity_type: str = Field(..., alias="entityType", min_length=1, max_length=50)
    rows: List[Dict[str, Any]]
    companies: Optional[List[Dict[str, Any]]] = None
    products: Optional[List[Dict[str, Any]]] = None

    model_config = ConfigDict(populate_by_name=True)


class ResolutionModel(BaseModel):
    type: str
    entity: str
    suggested_data: Dict[str, Any] = Field(default_factory=dict, alias="suggestedData")

    model_config = ConfigDict(populate_by_name=True)


class ImportRowErrorModel(BaseModel):
    row_index: int = Field(..., alias="rowIndex")
    error_type: str = Field(..., alias="errorType")
    error_message: str = Field(..., alias="errorMessage")
    blocking: bool
    resolution: Optional[ResolutionModel] = None

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_error(cls, error: ImportRowError) -> "ImportRowErrorModel":
        resolution = None
        if error.resolution:
            resolution = ResolutionModel(
                type=error.resolution.get("type", ""),
                entity=error.resolution.get("entity", ""),
                suggested_data=error.resolution.get("suggested_data") or {},
            )
        return cls(
            row_index=error.row_index,
            error_type=error.error_type,
            error_message=error.error_message,
            blocking=error.blocking,
            resolution=resolution,
        )


class DuplicateModel(BaseModel):
    row_index: int = Field(..., alias="rowIndex")
    import_hash: str = Field(..., alias="importHash")
    source: str
    invoice_number: Optional[str] = Field(None, alias="invoiceNumber")
    first_row_index: Optional[int] = Field(None, alias="firstRowIndex")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_record(cls, duplicate: DuplicateRecord) -> "DuplicateModel":
        return cls(
            row_index=duplicate.row_index,
            import_hash=duplicate.import_hash,
            source=duplicate.source,
            invoice_number=duplicate.invoice_number,
            first_row_index=duplicate.first_row_index,
        )


class ImportResultResponse(BaseModel):
    success: bool
    imported_count: int = Field(0, alias="importedCount")
    skipped_count: int = Field(0, alias="skippedCount")
    imported_total: float = Field(0.0, alias="importedTotal")
    imported_subtotal: float = Field(0.0, alias="importedSubtotal")
    errors: List[ImportRowErrorModel] = Field(default_factory=list)
    duplicates: List[DuplicateModel] = Field(default_factory=list)
    warnings: List[ImportRowErrorModel] = Field(default_factory=list)
    batch_id: Optional[str] = Field(None, alias="batchId")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_result(cls, result: ImportResult) -> "ImportResultResponse":
        return cls(
            success=result.success,
            imported_count=result.imported_count,
            skipped_count=result.skipped_count,
            imported_total=float(result.imported_total),
            imported_subtotal=float(result.imported_subtotal),
            errors=[ImportRowErrorModel.from_error(e) for e in result.errors],
            duplicates=[DuplicateModel.from_record(d) for d in result.duplicates],
            warnings=[ImportRowErrorModel.from_error(w) for w in result.warnings],
            batch_id=result.batch_id,
        )
