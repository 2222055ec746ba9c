"""
In-memory stand-in for the record store, used by pipeline and batch tests.
"""
import threading
from types import SimpleNamespace

from roster.domain.ingestion.batch_writer import RowError


class FakeUploadStore:
    """
    Records every call the ingestion pipeline makes.

    ``failing_rows`` makes ``insert_record`` raise for those sheet rows;
    ``fail_progress_on_call`` makes the N-th (1-based) batch progress update raise.
    """

    def __init__(self, failing_rows=(), fail_progress_on_call=None, fail_create=False):
        self.failing_rows = set(failing_rows)
        self.fail_progress_on_call = fail_progress_on_call
        self.fail_create = fail_create
        self.uploads = {}
        self.records = []
        self.errors = []
        self.progress_calls = []
        self.processed_history = []
        self._lock = threading.Lock()

    def create_upload(self, *, filename, size_bytes, owner, headers, total_records):
        if self.fail_create:
            raise RuntimeError("database unavailable")
        upload = SimpleNamespace(
            id=f"upload-{len(self.uploads) + 1}",
            filename=filename,
            size_bytes=size_bytes,
            owner=owner,
            headers=list(headers),
            total_records=total_records,
            processed_records=0,
            failed_records=0,
            skipped_records=0,
            status="processing",
            completed_at=None,
        )
        self.uploads[upload.id] = upload
        return upload

    def insert_record(self, payload):
        if payload.row_number in self.failing_rows:
            raise RuntimeError(f"insert rejected for row {payload.row_number}")
        with self._lock:
            self.records.append(payload)
        return f"record-{payload.row_number}"

    def apply_batch_progress(self, upload_id, outcome):
        self.progress_calls.append(
            (upload_id, outcome.successful, outcome.failed, outcome.skipped, len(outcome.errors))
        )
        if self.fail_progress_on_call == len(self.progress_calls):
            raise RuntimeError("lost connection to database")
        upload = self.uploads[upload_id]
        upload.processed_records += outcome.successful
        upload.failed_records += outcome.failed
        upload.skipped_records += outcome.skipped
        self.processed_history.append(upload.processed_records)
        self.errors.extend(outcome.errors)

    def finalize_upload(self, upload_id):
        upload = self.uploads[upload_id]
        upload.status = "completed_with_errors" if upload.failed_records else "completed"
        upload.completed_at = "now"
        return upload.status

    def fail_upload(self, upload_id, message):
        upload = self.uploads[upload_id]
        upload.status = "failed"
        upload.completed_at = "now"
        self.errors.append(RowError(None, message))
