"""
Order Import Router
Bulk order imports from uploaded sheets or JSON rows
"""
from fastapi import APIRouter, UploadFile, File, HTTPException, Depends, Form
from typing import Optional
import logging
import uuid

from schemas.order_import_schemas import ImportRowsRequest, ImportResultResponse
from services.order_import import run_import, read_rows, UnsupportedFileError
from services.order_import.store import ImportStore, PriceAuditSink
from services.price_audit import StoragePriceAuditSink
from services.storage import storage
from settings import ORDER_IMPORT_ENTITY_TYPE, IMPORT_MAX_UPLOAD_BYTES

logger = logging.getLogger(__name__)
router = APIRouter()


def get_import_store() -> ImportStore:
    return storage


def get_audit_sink() -> PriceAuditSink:
    return StoragePriceAuditSink(storage)


@router.post("/orders/import", response_model=ImportResultResponse)
async def import_orders_file(
    file: UploadFile = File(...),
    entityType: Optional[str] = Form(None),
    store: ImportStore = Depends(get_import_store),
    audit_sink: PriceAuditSink = Depends(get_audit_sink),
):
    request_id = str(uuid.uuid4())
    logger.info(f"[{request_id}] Order import attempt filename={file.filename!r} content_type={file.content_type!r}")

    content = await file.read()
    size = len(content or b"")
    logger.info(f"[{request_id}] Received payload size={size} bytes")

    if size == 0:
        raise HTTPException(status_code=400, detail="Empty file")

    if size > IMPORT_MAX_UPLOAD_BYTES:
        max_mb = IMPORT_MAX_UPLOAD_BYTES // (1024 * 1024)
        raise HTTPException(status_code=400, detail=f"File too large. Maximum size is {max_mb}MB")

    try:
        rows = read_rows(content, file.filename or "")
    except UnsupportedFileError as e:
        logger.warning(f"[{request_id}] Reject upload: {e}")
        raise HTTPException(status_code=400, detail="Only CSV or XLSX files are allowed")
    except Exception as e:
        logger.exception(f"[{request_id}] Could not parse {file.filename!r}")
        raise HTTPException(status_code=400, detail=f"Could not read file: {e}")

    if not rows:
        raise HTTPException(status_code=400, detail="No data rows found")

    result = await run_import(
        entityType or ORDER_IMPORT_ENTITY_TYPE,
        rows,
        store=store,
        audit_sink=audit_sink,
    )
    logger.info(
        f"[{request_id}] Order import batch={result.batch_id} success={result.success} "
        f"imported={result.imported_count} skipped={result.skipped_count} errors={len(result.errors)}"
    )
    return ImportResultResponse.from_result(result)


@router.post("/orders/import/rows", response_model=ImportResultResponse)
async def import_order_rows(
    request: ImportRowsRequest,
    store: ImportStore = Depends(get_import_store),
    audit_sink: PriceAuditSink = Depends(get_audit_sink),
):
    logger.info(f"Order row import entityType={request.entity_type!r} rows={len(request.rows)}")
    result = await run_import(
        request.entity_type,
        request.rows,
        request.companies,
        request.products,
        store=store,
        audit_sink=audit_sink,
    )
    return ImportResultResponse.from_result(result)
