"""
Shared dependencies and request helpers for the API routers.
"""
import logging
from typing import Optional

from fastapi import HTTPException, UploadFile

from roster.core.config import settings
from roster.db.models import UploadJob
from roster.domain.ingestion.exceptions import InvalidUploadError
from roster.domain.ingestion.workbook import is_excel_upload
from roster.domain.records.store import RecordStore

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = settings.upload_max_file_size_mb * 1024 * 1024

_record_store: Optional[RecordStore] = None


def get_record_store() -> RecordStore:
    """Process-wide record store; overridden in tests."""
    global _record_store
    if _record_store is None:
        _record_store = RecordStore()
    return _record_store


async def read_excel_upload(file: Optional[UploadFile]) -> bytes:
    """
    Read an uploaded workbook, rejecting anything that can't be ingested.

    Raises:
        InvalidUploadError: missing file, wrong type, empty or oversized content.
    """
    if file is None or not file.filename:
        raise InvalidUploadError("No file uploaded")

    if not is_excel_upload(file.filename, file.content_type):
        raise InvalidUploadError("Only Excel files (.xlsx, .xls) are allowed")

    content = await file.read()
    if not content:
        raise InvalidUploadError("Uploaded file is empty")
    if len(content) > MAX_UPLOAD_BYTES:
        raise InvalidUploadError(
            f"{file.filename} is too large. "
            f"Maximum allowed upload size is {settings.upload_max_file_size_mb}MB."
        )
    return content


def get_owned_upload(store: RecordStore, upload_id: str, owner: str) -> UploadJob:
    upload = store.get_upload(upload_id, owner=owner)
    if upload is None:
        raise HTTPException(status_code=404, detail="File not found")
    return upload


def clamp_page_size(limit: Optional[int]) -> int:
    if not limit or limit < 1:
        return settings.default_page_size
    return min(limit, settings.max_page_size)
