"""
Spreadsheet ingestion orchestration.

parse workbook -> normalize headers -> create upload (processing) ->
batched row writes -> finalize status. Failures before the upload record exists
are raised directly and persist nothing; failures after it exists mark the
upload ``failed`` before being raised.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence

from .batch_writer import FIRST_DATA_ROW_NUMBER, BatchOutcome, BatchWriter, RecordWriter
from .exceptions import IngestionError, UploadProcessingError
from .headers import split_sheet
from .mapper import build_raw_data, explicit_record_id
from .workbook import read_workbook

logger = logging.getLogger(__name__)


class UploadStore(RecordWriter, Protocol):
    def create_upload(
        self,
        *,
        filename: str,
        size_bytes: int,
        owner: str,
        headers: Sequence[str],
        total_records: int,
    ) -> Any: ...

    def finalize_upload(self, upload_id: str) -> str: ...

    def fail_upload(self, upload_id: str, message: str) -> None: ...


@dataclass
class IngestionSummary:
    upload_id: str
    status: str
    total: int
    successful: int
    failed: int
    skipped: int

    def stats(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
        }


@dataclass
class WorkbookPreview:
    headers: List[str]
    total_rows: int
    valid_rows: int
    empty_rows: int
    preview: List[Dict[str, Any]] = field(default_factory=list)
    duplicate_ids: List[Dict[str, Any]] = field(default_factory=list)


def ingest_workbook(
    store: UploadStore,
    file_content: bytes,
    filename: str,
    owner: str,
    batch_size: Optional[int] = None,
    max_workers: Optional[int] = None,
) -> IngestionSummary:
    """
    Ingest one uploaded workbook and return the run summary.

    Raises:
        WorkbookParseError / NoUsableDataError: before anything is persisted.
        UploadProcessingError: the run died after the upload was created; the
            upload has been marked ``failed``.
    """
    sheet = read_workbook(file_content)
    headers, data_rows = split_sheet(sheet)

    try:
        upload = store.create_upload(
            filename=filename,
            size_bytes=len(file_content),
            owner=owner,
            headers=headers,
            total_records=len(data_rows),
        )
    except Exception as e:
        logger.exception("Could not create upload record for %s", filename)
        raise IngestionError(f"Could not create upload record: {e}") from e

    upload_id = upload.id
    logger.info(
        "Upload %s started: file=%s rows=%d headers=%s",
        upload_id,
        filename,
        len(data_rows),
        headers,
    )

    writer = BatchWriter(store, batch_size=batch_size, max_workers=max_workers)
    try:
        totals: BatchOutcome = writer.run(upload_id, headers, data_rows, owner)
        status = store.finalize_upload(upload_id)
    except Exception as e:
        logger.exception("Upload %s failed", upload_id)
        message = f"Upload processing failed: {e}"
        try:
            store.fail_upload(upload_id, message)
        except Exception as mark_error:
            logger.error("Unable to mark upload %s as failed: %s", upload_id, mark_error)
        raise UploadProcessingError(upload_id, message) from e

    logger.info(
        "Upload %s finished with status %s: %d successful, %d failed, %d skipped",
        upload_id,
        status,
        totals.successful,
        totals.failed,
        totals.skipped,
    )
    return IngestionSummary(
        upload_id=upload_id,
        status=status,
        total=len(data_rows),
        successful=totals.successful,
        failed=totals.failed,
        skipped=totals.skipped,
    )


def preview_workbook(file_content: bytes, preview_rows: int = 5) -> WorkbookPreview:
    """
    Dry-run validation of a workbook; nothing is persisted.

    Reports row counts, the first mapped rows, and rows whose id column repeats
    a value seen earlier in the same sheet.
    """
    sheet = read_workbook(file_content)
    headers, data_rows = split_sheet(sheet)

    result = WorkbookPreview(headers=headers, total_rows=len(data_rows), valid_rows=0, empty_rows=0)
    first_seen: Dict[str, int] = {}

    for offset, row in enumerate(data_rows):
        row_number = offset + FIRST_DATA_ROW_NUMBER
        raw_data = build_raw_data(headers, row)
        if not raw_data:
            result.empty_rows += 1
            continue

        result.valid_rows += 1
        if len(result.preview) < preview_rows:
            result.preview.append(raw_data)

        record_id = explicit_record_id(raw_data)
        if record_id is None:
            continue
        if record_id in first_seen:
            result.duplicate_ids.append(
                {
                    "row_number": row_number,
                    "record_id": record_id,
                    "first_row_number": first_seen[record_id],
                }
            )
        else:
            first_seen[record_id] = row_number

    return result
