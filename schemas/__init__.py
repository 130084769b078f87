"""
Order Import Schemas Package
Provides the request/response models for the import endpoints.
"""

from .order_import_schemas import (
    ImportRowsRequest,
    ImportResultResponse,
    ImportRowErrorModel,
    DuplicateModel,
    ResolutionModel,
)
