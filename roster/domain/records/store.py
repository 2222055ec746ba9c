"""
SQLAlchemy-backed persistence for uploads, stored rows and upload errors.

Every method opens (and closes) its own session, so a single ``RecordStore``
can be shared by the request thread and by the ingestion worker threads.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from roster.db.models import RecordRow, UploadError, UploadJob, UploadStatus
from roster.db.session import get_session_local
from roster.domain.ingestion.batch_writer import BatchOutcome
from roster.domain.ingestion.mapper import RecordPayload, explicit_record_id, merge_raw_data
from .query import build_filter_clauses, build_search_clause, raw_field, resolve_sort

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_record(record: RecordRow) -> Dict[str, Any]:
    return {
        "id": record.id,
        "inferred_id": record.inferred_id,
        "raw_data": record.raw_data,
        "upload_id": record.upload_id,
        "row_number": record.row_number,
        "owner": record.owner,
        "created_at": _isoformat(record.created_at),
    }


@dataclass
class RecordPage:
    records: List[Dict[str, Any]] = field(default_factory=list)
    page: int = 1
    limit: int = 50
    total: int = 0

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def pagination(self) -> Dict[str, int]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "pages": self.pages,
        }


class RecordStore:
    """Upload, record and error persistence used by the pipeline and the API."""

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self._session_factory = session_factory

    def _session(self) -> Session:
        factory = self._session_factory or get_session_local()
        return factory()

    @staticmethod
    def _dialect_name(session: Session) -> str:
        return session.get_bind().dialect.name

    # ------------------------------------------------------------------
    # Ingestion side
    # ------------------------------------------------------------------

    def create_upload(
        self,
        *,
        filename: str,
        size_bytes: int,
        owner: str,
        headers: Sequence[str],
        total_records: int,
    ) -> UploadJob:
        with self._session() as session:
            upload = UploadJob(
                filename=filename,
                size_bytes=size_bytes,
                owner=owner,
                headers=list(headers),
                total_records=total_records,
                status=UploadStatus.PROCESSING.value,
            )
            session.add(upload)
            session.commit()
            session.refresh(upload)
            return upload

    def insert_record(self, payload: RecordPayload) -> str:
        with self._session() as session:
            record = RecordRow(
                inferred_id=payload.inferred_id,
                raw_data=payload.raw_data,
                upload_id=payload.upload_id,
                row_number=payload.row_number,
                owner=payload.owner,
                created_at=payload.created_at,
            )
            session.add(record)
            session.commit()
            return record.id

    def apply_batch_progress(self, upload_id: str, outcome: BatchOutcome) -> None:
        """Add one batch's counts to the upload and append its errors atomically."""
        with self._session() as session:
            with session.begin():
                session.execute(
                    update(UploadJob)
                    .where(UploadJob.id == upload_id)
                    .values(
                        processed_records=UploadJob.processed_records + outcome.successful,
                        failed_records=UploadJob.failed_records + outcome.failed,
                        skipped_records=UploadJob.skipped_records + outcome.skipped,
                        updated_at=_utcnow(),
                    )
                )
                for error in outcome.errors:
                    session.add(
                        UploadError(
                            upload_id=upload_id,
                            row_number=error.row_number,
                            message=error.message,
                            raw_row_data=error.raw_row_data,
                        )
                    )

    def finalize_upload(self, upload_id: str) -> str:
        """Derive the terminal status from the stored failure count."""
        with self._session() as session:
            upload = session.get(UploadJob, upload_id)
            if upload is None:
                raise LookupError(f"Upload {upload_id} not found")
            if upload.failed_records:
                upload.status = UploadStatus.COMPLETED_WITH_ERRORS.value
            else:
                upload.status = UploadStatus.COMPLETED.value
            upload.completed_at = _utcnow()
            session.commit()
            return upload.status

    def fail_upload(self, upload_id: str, message: str) -> None:
        with self._session() as session:
            with session.begin():
                session.execute(
                    update(UploadJob)
                    .where(UploadJob.id == upload_id)
                    .values(
                        status=UploadStatus.FAILED.value,
                        completed_at=_utcnow(),
                        updated_at=_utcnow(),
                    )
                )
                session.add(UploadError(upload_id=upload_id, row_number=None, message=message))

    # ------------------------------------------------------------------
    # Read / maintenance side
    # ------------------------------------------------------------------

    def get_upload(self, upload_id: str, owner: Optional[str] = None) -> Optional[UploadJob]:
        with self._session() as session:
            query = select(UploadJob).where(UploadJob.id == upload_id)
            if owner is not None:
                query = query.where(UploadJob.owner == owner)
            return session.execute(query).scalar_one_or_none()

    def list_uploads(
        self,
        owner: Optional[str],
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[UploadJob], int]:
        with self._session() as session:
            query = select(UploadJob)
            count_query = select(func.count()).select_from(UploadJob)
            if owner is not None:
                query = query.where(UploadJob.owner == owner)
                count_query = count_query.where(UploadJob.owner == owner)

            total = session.execute(count_query).scalar_one()
            items = session.execute(
                query.order_by(UploadJob.created_at.desc()).limit(limit).offset(offset)
            ).scalars().all()
            return list(items), total

    def delete_upload(self, upload_id: str, owner: Optional[str] = None) -> bool:
        """Delete an upload with its rows and errors. Returns False when not found."""
        with self._session() as session:
            with session.begin():
                query = select(UploadJob).where(UploadJob.id == upload_id)
                if owner is not None:
                    query = query.where(UploadJob.owner == owner)
                upload = session.execute(query).scalar_one_or_none()
                if upload is None:
                    return False

                deleted_rows = session.execute(
                    delete(RecordRow).where(RecordRow.upload_id == upload_id)
                ).rowcount
                session.execute(delete(UploadError).where(UploadError.upload_id == upload_id))
                session.delete(upload)

        logger.info("Deleted upload %s and %d stored rows", upload_id, deleted_rows)
        return True

    def query_records(
        self,
        upload: UploadJob,
        search: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
        page: int = 1,
        limit: int = 50,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
    ) -> RecordPage:
        headers = list(upload.headers or [])
        page = max(1, page)
        with self._session() as session:
            dialect_name = self._dialect_name(session)
            conditions = [RecordRow.upload_id == upload.id]
            search_clause = build_search_clause(headers, search, dialect_name)
            if search_clause is not None:
                conditions.append(search_clause)
            conditions.extend(build_filter_clauses(headers, filters, dialect_name))

            total = session.execute(
                select(func.count()).select_from(RecordRow).where(*conditions)
            ).scalar_one()
            rows = session.execute(
                select(RecordRow)
                .where(*conditions)
                .order_by(resolve_sort(sort_by, sort_order), RecordRow.id)
                .limit(limit)
                .offset((page - 1) * limit)
            ).scalars().all()

        return RecordPage(
            records=[serialize_record(row) for row in rows],
            page=page,
            limit=limit,
            total=total,
        )

    def get_record(self, record_id: str, owner: Optional[str] = None) -> Optional[RecordRow]:
        with self._session() as session:
            query = select(RecordRow).where(RecordRow.id == record_id)
            if owner is not None:
                query = query.where(RecordRow.owner == owner)
            return session.execute(query).scalar_one_or_none()

    def update_record(
        self, record_id: str, changes: Dict[str, Any], owner: Optional[str] = None
    ) -> Optional[RecordRow]:
        """
        Merge edited cells into a stored row.

        The row id follows an edited id column; otherwise it is kept. Returns
        None when the row does not exist for ``owner``.

        Raises:
            ValueError: the edit would leave the row without any value.
        """
        with self._session() as session:
            with session.begin():
                query = select(RecordRow).where(RecordRow.id == record_id)
                if owner is not None:
                    query = query.where(RecordRow.owner == owner)
                record = session.execute(query).scalar_one_or_none()
                if record is None:
                    return None

                raw_data = merge_raw_data(record.raw_data, changes)
                if not raw_data:
                    raise ValueError("A record must keep at least one value")

                record.raw_data = raw_data
                record.inferred_id = explicit_record_id(raw_data) or record.inferred_id

        logger.info("Updated record %s (%d cells changed)", record_id, len(changes))
        return record

    def delete_record(self, record_id: str, owner: Optional[str] = None) -> bool:
        """Remove one stored row; upload counters keep describing the ingestion run."""
        with self._session() as session:
            with session.begin():
                query = delete(RecordRow).where(RecordRow.id == record_id)
                if owner is not None:
                    query = query.where(RecordRow.owner == owner)
                deleted = session.execute(query).rowcount

        if deleted:
            logger.info("Deleted record %s", record_id)
        return bool(deleted)

    def list_errors(self, upload_id: str, limit: int = 100, offset: int = 0) -> Tuple[List[UploadError], int]:
        with self._session() as session:
            total = session.execute(
                select(func.count()).select_from(UploadError).where(UploadError.upload_id == upload_id)
            ).scalar_one()
            items = session.execute(
                select(UploadError)
                .where(UploadError.upload_id == upload_id)
                .order_by(UploadError.id)
                .limit(limit)
                .offset(offset)
            ).scalars().all()
            return list(items), total

    def unique_values(self, upload: UploadJob, limit_per_column: int = 100) -> Dict[str, List[str]]:
        """Distinct trimmed, non-empty values for every header of an upload."""
        result: Dict[str, List[str]] = {}
        with self._session() as session:
            dialect_name = self._dialect_name(session)
            for header in dict.fromkeys(upload.headers or []):
                column = raw_field(header, dialect_name)
                values = session.execute(
                    select(column)
                    .where(RecordRow.upload_id == upload.id, column.isnot(None))
                    .distinct()
                ).scalars()

                seen: Dict[str, None] = {}
                for value in values:
                    trimmed = str(value).strip()
                    if trimmed:
                        seen.setdefault(trimmed, None)
                    if len(seen) >= limit_per_column:
                        break
                result[header] = sorted(seen)
        return result

    def iter_raw_rows(self, upload_id: str, chunk_size: int = 500) -> Iterator[Dict[str, Any]]:
        """Yield stored ``raw_data`` mappings in sheet order."""
        offset = 0
        while True:
            with self._session() as session:
                chunk = session.execute(
                    select(RecordRow.raw_data)
                    .where(RecordRow.upload_id == upload_id)
                    .order_by(RecordRow.row_number, RecordRow.id)
                    .limit(chunk_size)
                    .offset(offset)
                ).scalars().all()
            if not chunk:
                return
            yield from chunk
            offset += len(chunk)

    def count_overview(self, owner: Optional[str] = None) -> Dict[str, Any]:
        """Upload totals by status plus the stored row count."""
        with self._session() as session:
            status_query = select(UploadJob.status, func.count()).group_by(UploadJob.status)
            record_query = select(func.count()).select_from(RecordRow)
            if owner is not None:
                status_query = status_query.where(UploadJob.owner == owner)
                record_query = record_query.where(RecordRow.owner == owner)

            by_status = {status.value: 0 for status in UploadStatus}
            for status, count in session.execute(status_query).all():
                by_status[status] = count
            total_records = session.execute(record_query).scalar_one()

        return {
            "total_uploads": sum(by_status.values()),
            "uploads_by_status": by_status,
            "total_records": total_records,
        }
