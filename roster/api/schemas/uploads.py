"""
Pydantic schemas for upload, record and stats endpoints.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class UploadStats(BaseModel):
    total: int
    successful: int
    failed: int


class UploadResponse(BaseModel):
    """Result of a completed ingestion run."""
    success: bool
    message: str
    upload_id: str = Field(..., alias="uploadId")
    status: str
    stats: UploadStats

    model_config = ConfigDict(populate_by_name=True)


class UploadInfo(BaseModel):
    """Upload bookkeeping record as exposed by the API."""
    id: str
    filename: str
    size_bytes: int
    status: str
    owner: str
    total_records: int
    processed_records: int
    failed_records: int
    skipped_records: int
    headers: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class UploadListResponse(BaseModel):
    success: bool
    uploads: List[UploadInfo]
    total: int
    limit: int
    offset: int


class UploadDetailResponse(BaseModel):
    success: bool
    upload: UploadInfo


class DeleteUploadResponse(BaseModel):
    success: bool
    message: str


class UploadErrorInfo(BaseModel):
    row_number: Optional[int] = None
    message: str
    raw_row_data: Optional[Any] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class UploadErrorsResponse(BaseModel):
    success: bool
    errors: List[UploadErrorInfo]
    total: int
    limit: int
    offset: int


class DuplicateIdInfo(BaseModel):
    row_number: int
    record_id: str
    first_row_number: int


class ValidationPreviewResponse(BaseModel):
    """Dry-run result for a workbook; nothing was stored."""
    success: bool
    filename: str
    headers: List[str]
    total_rows: int
    valid_rows: int
    empty_rows: int
    preview: List[Dict[str, Any]] = Field(default_factory=list)
    duplicate_ids: List[DuplicateIdInfo] = Field(default_factory=list)


class UniqueValuesResponse(BaseModel):
    success: bool
    data: Dict[str, List[str]]


class StoredRecordResponse(BaseModel):
    success: bool
    record: Dict[str, Any]


class StatsResponse(BaseModel):
    success: bool
    total_uploads: int
    uploads_by_status: Dict[str, int]
    total_records: int


class RecordUpdate(BaseModel):
    """Edited cells keyed by header; a blank value clears the cell."""
    raw_data: Dict[str, Any] = Field(..., min_length=1)


class DeleteRecordResponse(BaseModel):
    success: bool
    message: str
