"""
Spreadsheet upload endpoints: ingest, validate, browse, export and delete.

Every route is scoped to the authenticated caller; uploads owned by someone
else answer 404.
"""
import io
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import StreamingResponse
from starlette.concurrency import run_in_threadpool

from roster.api.dependencies import (
    clamp_page_size,
    get_owned_upload,
    get_record_store,
    read_excel_upload,
)
from roster.api.schemas.uploads import (
    DeleteUploadResponse,
    UniqueValuesResponse,
    UploadDetailResponse,
    UploadErrorsResponse,
    UploadErrorInfo,
    UploadInfo,
    UploadListResponse,
    UploadResponse,
    UploadStats,
    ValidationPreviewResponse,
)
from roster.core.config import settings
from roster.core.security import User, get_current_user
from roster.domain.ingestion.pipeline import ingest_workbook, preview_workbook
from roster.domain.ingestion.workbook import build_template, write_workbook
from roster.domain.records.query import parse_filters
from roster.domain.records.store import RecordStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/uploads", tags=["uploads"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _xlsx_response(content: bytes, filename: str) -> StreamingResponse:
    return StreamingResponse(
        io.BytesIO(content),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


async def run_upload(
    store: RecordStore,
    file: Optional[UploadFile],
    owner: str,
) -> UploadResponse:
    """Read, validate and ingest one upload; shared with the admin console."""
    content = await read_excel_upload(file)
    logger.info("Received upload %s (%d bytes) from owner %s", file.filename, len(content), owner)

    summary = await run_in_threadpool(ingest_workbook, store, content, file.filename, owner)
    return UploadResponse(
        success=True,
        message="File uploaded and processed successfully",
        upload_id=summary.upload_id,
        status=summary.status,
        stats=UploadStats(**summary.stats()),
    )


def list_records_payload(
    store: RecordStore,
    upload,
    page: int,
    limit: Optional[int],
    search: Optional[str],
    filters: Optional[str],
    sort_by: Optional[str],
    sort_order: Optional[str],
) -> dict:
    result = store.query_records(
        upload,
        search=search,
        filters=parse_filters(filters),
        page=page,
        limit=clamp_page_size(limit),
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return {
        "success": True,
        "data": {
            "records": result.records,
            "pagination": result.pagination(),
            "file": {
                "id": upload.id,
                "filename": upload.filename,
                "headers": list(upload.headers or []),
                "total_records": upload.total_records,
                "status": upload.status,
            },
        },
    }


@router.post("", response_model=UploadResponse)
async def upload_workbook(
    file: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    store: RecordStore = Depends(get_record_store),
):
    """
    Upload an Excel workbook and store every non-empty row of its first sheet.

    Returns:
    - uploadId: identifier of the new upload
    - stats: total data rows, rows stored, rows that failed
    """
    return await run_upload(store, file, current_user.owner_id)


@router.post("/validate", response_model=ValidationPreviewResponse)
async def validate_workbook(
    file: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
):
    """Check a workbook without storing it: headers, row counts, preview rows, repeated ids."""
    content = await read_excel_upload(file)
    preview = await run_in_threadpool(preview_workbook, content)
    return ValidationPreviewResponse(
        success=True,
        filename=file.filename,
        headers=preview.headers,
        total_rows=preview.total_rows,
        valid_rows=preview.valid_rows,
        empty_rows=preview.empty_rows,
        preview=preview.preview,
        duplicate_ids=preview.duplicate_ids,
    )


@router.get("/template")
async def download_template():
    """Download a sample student workbook."""
    return _xlsx_response(build_template(), "student_template.xlsx")


@router.get("", response_model=UploadListResponse)
async def list_uploads(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    store: RecordStore = Depends(get_record_store),
):
    """List the caller's uploads, newest first."""
    uploads, total = store.list_uploads(current_user.owner_id, limit=limit, offset=offset)
    return UploadListResponse(
        success=True,
        uploads=[UploadInfo.model_validate(upload) for upload in uploads],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{upload_id}", response_model=UploadDetailResponse)
async def get_upload(
    upload_id: str,
    current_user: User = Depends(get_current_user),
    store: RecordStore = Depends(get_record_store),
):
    upload = get_owned_upload(store, upload_id, current_user.owner_id)
    return UploadDetailResponse(success=True, upload=UploadInfo.model_validate(upload))


@router.delete("/{upload_id}", response_model=DeleteUploadResponse)
async def delete_upload(
    upload_id: str,
    current_user: User = Depends(get_current_user),
    store: RecordStore = Depends(get_record_store),
):
    """Delete an upload together with its stored rows and errors."""
    if not store.delete_upload(upload_id, owner=current_user.owner_id):
        raise HTTPException(status_code=404, detail="File not found")
    return DeleteUploadResponse(success=True, message="File and associated data deleted successfully")


@router.get("/{upload_id}/records")
async def list_upload_records(
    upload_id: str,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    search: Optional[str] = None,
    filters: Optional[str] = Query(None, description="JSON object of header -> exact value"),
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = Query(None, pattern="^(asc|desc)$"),
    current_user: User = Depends(get_current_user),
    store: RecordStore = Depends(get_record_store),
):
    """
    Page through an upload's stored rows.

    Parameters:
    - search: case-insensitive substring over the row id and every column
    - filters: JSON object; each non-empty value (other than "ALL") must match exactly
    - sort_by: row_number (default), created_at or inferred_id
    """
    upload = get_owned_upload(store, upload_id, current_user.owner_id)
    return list_records_payload(store, upload, page, limit, search, filters, sort_by, sort_order)


@router.get("/{upload_id}/unique-values", response_model=UniqueValuesResponse)
async def get_unique_values(
    upload_id: str,
    current_user: User = Depends(get_current_user),
    store: RecordStore = Depends(get_record_store),
):
    """Distinct values per column, for building filter dropdowns."""
    upload = get_owned_upload(store, upload_id, current_user.owner_id)
    values = store.unique_values(upload, limit_per_column=settings.unique_values_limit)
    return UniqueValuesResponse(success=True, data=values)


@router.get("/{upload_id}/errors", response_model=UploadErrorsResponse)
async def list_upload_errors(
    upload_id: str,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    store: RecordStore = Depends(get_record_store),
):
    """Row- and batch-level errors recorded while the upload was processed."""
    get_owned_upload(store, upload_id, current_user.owner_id)
    errors, total = store.list_errors(upload_id, limit=limit, offset=offset)
    return UploadErrorsResponse(
        success=True,
        errors=[UploadErrorInfo.model_validate(error) for error in errors],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{upload_id}/export")
async def export_upload(
    upload_id: str,
    current_user: User = Depends(get_current_user),
    store: RecordStore = Depends(get_record_store),
):
    """Download the stored rows of an upload as .xlsx, columns in header order."""
    upload = get_owned_upload(store, upload_id, current_user.owner_id)
    headers = list(dict.fromkeys(upload.headers or []))
    content = await run_in_threadpool(write_workbook, headers, store.iter_raw_rows(upload_id))

    stem = upload.filename.rsplit(".", 1)[0] or "export"
    return _xlsx_response(content, f"{stem}_export.xlsx")
