"""
ORM models for uploads, their stored rows and their per-row errors.

``raw_data`` is an open header -> value mapping. The plain ``JSON`` type is used
rather than JSONB so PostgreSQL keeps the column order the sheet had.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text

from roster.db.session import Base, get_engine


def _utcnow() -> datetime:
    """Return a timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class UploadStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    FAILED = "failed"


class UploadJob(Base):
    """Parent bookkeeping record for one spreadsheet ingestion run."""
    __tablename__ = "uploads"

    id = Column(String(36), primary_key=True, default=_new_id)
    filename = Column(String(500), nullable=False)
    size_bytes = Column(Integer, nullable=False, default=0)
    status = Column(String(50), nullable=False, default=UploadStatus.PROCESSING.value, index=True)
    owner = Column(String(255), nullable=False, index=True)

    total_records = Column(Integer, nullable=False, default=0)
    processed_records = Column(Integer, nullable=False, default=0)
    failed_records = Column(Integer, nullable=False, default=0)
    skipped_records = Column(Integer, nullable=False, default=0)

    headers = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<UploadJob(id={self.id}, filename='{self.filename}', status='{self.status}')>"


class UploadError(Base):
    """One entry of an upload's append-only error list."""
    __tablename__ = "upload_errors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    upload_id = Column(String(36), ForeignKey("uploads.id", ondelete="CASCADE"), nullable=False, index=True)
    row_number = Column(Integer, nullable=True)  # Sheet row (header row = 1)
    message = Column(Text, nullable=False)
    raw_row_data = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class RecordRow(Base):
    """One persisted spreadsheet data row."""
    __tablename__ = "records"

    id = Column(String(36), primary_key=True, default=_new_id)
    inferred_id = Column(String(255), nullable=False, index=True)
    raw_data = Column(JSON, nullable=False)
    upload_id = Column(String(36), ForeignKey("uploads.id", ondelete="CASCADE"), nullable=False, index=True)
    row_number = Column(Integer, nullable=False)
    owner = Column(String(255), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    def __repr__(self):
        return f"<RecordRow(id={self.id}, inferred_id='{self.inferred_id}', row={self.row_number})>"


def create_tables(engine=None) -> None:
    """Create the upload, record and error tables if they don't exist."""
    engine = engine or get_engine()
    Base.metadata.create_all(
        bind=engine,
        tables=[UploadJob.__table__, UploadError.__table__, RecordRow.__table__],
    )
