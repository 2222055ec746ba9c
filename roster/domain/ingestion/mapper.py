"""
Row mapping: turn one decoded data row into a record payload.

A payload is the schema-less ``raw_data`` mapping (header -> cell value) plus
the bookkeeping stamps and a best-effort row identifier.
"""
import math
import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence

# Checked in order; the first one holding a truthy value becomes the row id.
ID_CANDIDATE_FIELDS = (
    "ID",
    "id",
    "Student ID",
    "StudentID",
    "student_id",
    "Roll No",
    "Roll Number",
)

_BASE36_ALPHABET = string.digits + string.ascii_lowercase
SYNTHETIC_SUFFIX_LENGTH = 9


@dataclass
class RecordPayload:
    inferred_id: str
    raw_data: Dict[str, Any]
    upload_id: str
    row_number: int
    owner: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def build_raw_data(headers: Sequence[str], row: Sequence[Any]) -> Dict[str, Any]:
    """Zip headers against a positional row, leaving out empty cells."""
    raw_data: Dict[str, Any] = {}
    row = row or []
    for index, header in enumerate(headers):
        if index >= len(row):
            break
        value = row[index]
        if _is_blank(value):
            continue
        raw_data[header] = value
    return raw_data


def merge_raw_data(raw_data: Dict[str, Any], changes: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply edited cells to a stored row.

    Existing keys keep their position; new keys are appended. A blank value
    removes the key, as an empty cell would on ingestion.
    """
    merged = dict(raw_data or {})
    for header, value in changes.items():
        if _is_blank(value):
            merged.pop(header, None)
        else:
            merged[header] = value
    return merged


def _epoch_millis() -> int:
    return int(time.time() * 1000)


def _random_suffix(length: int = SYNTHETIC_SUFFIX_LENGTH) -> str:
    return "".join(random.choices(_BASE36_ALPHABET, k=length))


def explicit_record_id(raw_data: Dict[str, Any]) -> Optional[str]:
    """Value of the first id column holding a truthy value, verbatim."""
    for candidate in ID_CANDIDATE_FIELDS:
        value = raw_data.get(candidate)
        if value:
            return str(value)
    return None


def infer_record_id(raw_data: Dict[str, Any], now_ms: Optional[int] = None) -> str:
    """
    Pick the row identifier from a known id column, or synthesize one.

    Synthesized ids (``ROW_<epoch ms>_<9 base36 chars>``) are not checked for
    collisions.
    """
    explicit_id = explicit_record_id(raw_data)
    if explicit_id is not None:
        return explicit_id

    millis = now_ms if now_ms is not None else _epoch_millis()
    if raw_data:
        return f"ROW_{millis}_{_random_suffix()}"
    return f"EMPTY_{millis}"


def map_row(
    headers: Sequence[str],
    row: Sequence[Any],
    row_number: int,
    owner: str,
    upload_id: str,
) -> Optional[RecordPayload]:
    """
    Map one data row; returns None when the row has no populated cells.

    ``row_number`` is the row's position in the sheet (header row = 1).
    """
    raw_data = build_raw_data(headers, row)
    if not raw_data:
        return None

    return RecordPayload(
        inferred_id=infer_record_id(raw_data),
        raw_data=raw_data,
        upload_id=upload_id,
        row_number=row_number,
        owner=owner,
    )
