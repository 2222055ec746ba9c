"""
Batched, concurrent persistence of mapped spreadsheet rows.

Batches run strictly one after another. Inside a batch every row write is
submitted to a thread pool and the batch only closes once every write has
settled; one failing row never cancels its siblings. After each batch the
store applies a single "increment counters + append errors" update so partial
progress is visible while the upload is still running.
"""
from __future__ import annotations

import logging
from concurrent.futures import Executor, ThreadPoolExecutor, as_completed, wait
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional, Protocol, Sequence, Tuple

from roster.core.config import settings
from .mapper import RecordPayload, map_row
from .workbook import to_cell_value

logger = logging.getLogger(__name__)

# Sheet row number of the first data row (the header row is row 1).
FIRST_DATA_ROW_NUMBER = 2


@dataclass
class RowError:
    row_number: Optional[int]
    message: str
    raw_row_data: Any = None


@dataclass
class BatchOutcome:
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    errors: List[RowError] = field(default_factory=list)

    def add_failure(self, error: RowError) -> None:
        self.failed += 1
        self.errors.append(error)

    def merge(self, other: "BatchOutcome") -> None:
        self.successful += other.successful
        self.failed += other.failed
        self.skipped += other.skipped
        self.errors.extend(other.errors)


class RecordWriter(Protocol):
    def insert_record(self, payload: RecordPayload) -> str: ...

    def apply_batch_progress(self, upload_id: str, outcome: BatchOutcome) -> None: ...


def chunk_rows(rows: Sequence[Any], size: int) -> Iterator[Tuple[int, Sequence[Any]]]:
    """Yield ``(start_index, chunk)`` pairs of at most ``size`` rows."""
    if size < 1:
        raise ValueError("Batch size must be at least 1")
    for start in range(0, len(rows), size):
        yield start, rows[start:start + size]


def _json_safe_row(row: Any) -> Any:
    if isinstance(row, (list, tuple)):
        return [to_cell_value(value) for value in row]
    return row


class BatchWriter:
    """Write data rows for one upload in sequential, internally concurrent batches."""

    def __init__(
        self,
        store: RecordWriter,
        batch_size: Optional[int] = None,
        max_workers: Optional[int] = None,
    ):
        self.store = store
        self.batch_size = batch_size or settings.ingest_batch_size
        self.max_workers = max(1, min(self.batch_size, max_workers or settings.ingest_max_workers))

    def run(
        self,
        upload_id: str,
        headers: Sequence[str],
        data_rows: Sequence[Sequence[Any]],
        owner: str,
    ) -> BatchOutcome:
        """
        Process every data row and return the running totals.

        Exceptions raised by the per-batch progress update are not caught here;
        they end the run and the caller marks the upload as failed.
        """
        totals = BatchOutcome()
        total_batches = (len(data_rows) + self.batch_size - 1) // self.batch_size

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            for batch_number, (start, rows) in enumerate(chunk_rows(data_rows, self.batch_size), start=1):
                outcome = self.write_batch(
                    executor,
                    upload_id=upload_id,
                    headers=headers,
                    owner=owner,
                    batch_number=batch_number,
                    start_index=start,
                    rows=rows,
                )
                self.store.apply_batch_progress(upload_id, outcome)
                totals.merge(outcome)
                logger.info(
                    "Upload %s batch %d/%d: %d successful, %d failed, %d skipped",
                    upload_id,
                    batch_number,
                    total_batches,
                    outcome.successful,
                    outcome.failed,
                    outcome.skipped,
                )

        return totals

    def write_batch(
        self,
        executor: Executor,
        *,
        upload_id: str,
        headers: Sequence[str],
        owner: str,
        batch_number: int,
        start_index: int,
        rows: Sequence[Sequence[Any]],
    ) -> BatchOutcome:
        """Map and persist one batch; never raises."""
        outcome = BatchOutcome()
        first_row_number = start_index + FIRST_DATA_ROW_NUMBER
        future_to_payload = {}

        try:
            for offset, row in enumerate(rows):
                row_number = first_row_number + offset
                try:
                    payload = map_row(headers, row, row_number, owner, upload_id)
                except Exception as e:
                    logger.warning("Row %d could not be mapped: %s", row_number, e)
                    outcome.add_failure(RowError(row_number, f"Row mapping failed: {e}", _json_safe_row(row)))
                    continue

                if payload is None:
                    outcome.skipped += 1
                    continue

                future_to_payload[executor.submit(self.store.insert_record, payload)] = payload

            for future in as_completed(future_to_payload):
                payload = future_to_payload[future]
                try:
                    future.result()
                    outcome.successful += 1
                except Exception as e:
                    logger.warning("Row %d failed to save: %s", payload.row_number, e)
                    outcome.add_failure(RowError(payload.row_number, str(e), payload.raw_data))

        except Exception as e:
            logger.error("Batch %d of upload %s failed: %s", batch_number, upload_id, e)
            # Close the batch before reporting it: nothing may still be writing.
            for future in future_to_payload:
                future.cancel()
            wait(future_to_payload)
            outcome = BatchOutcome(failed=len(rows))
            outcome.errors.append(
                RowError(
                    first_row_number,
                    f"Batch {batch_number} (rows {first_row_number}-{first_row_number + len(rows) - 1}) failed: {e}",
                )
            )

        return outcome
