"""
Exceptions raised by the spreadsheet ingestion pipeline.

Row- and batch-level failures never surface as exceptions; they are recorded on
the upload. Only the errors below terminate an upload request.
"""
from typing import Optional


class IngestionError(Exception):
    """Base class for failures that end an ingestion request."""

    status_code = 500

    def __init__(self, message: str, upload_id: Optional[str] = None):
        self.message = message
        self.upload_id = upload_id
        super().__init__(self.message)


class WorkbookParseError(IngestionError):
    """The uploaded buffer could not be decoded as a spreadsheet."""

    status_code = 400


class NoUsableDataError(IngestionError):
    """The sheet has no data rows or no usable header cells."""

    status_code = 400


class UploadProcessingError(IngestionError):
    """A fatal error after the upload record was created; the upload is marked failed."""

    status_code = 500

    def __init__(self, upload_id: str, message: str):
        super().__init__(message, upload_id=upload_id)


class InvalidUploadError(IngestionError):
    """The request carried no file, a non-Excel file, or one over the size limit."""

    status_code = 400
