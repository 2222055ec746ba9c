"""
Search / filter clause construction for stored spreadsheet rows.

Rows keep their cells in an open ``raw_data`` JSON object, so the upload's
header list is the only schema: search and filters are expanded into one
expression per header. Every user-supplied value is escaped before it is
embedded in a pattern, so it always matches literally.
"""
import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import String, cast, func, or_, select
from sqlalchemy.sql.elements import ColumnElement

from roster.db.models import RecordRow

logger = logging.getLogger(__name__)

_PATTERN_SPECIAL_CHARS = re.compile(r"[.*+?^${}()|\[\]\\]")

# Filter keys that are not headers fall back to these top-level columns.
TOP_LEVEL_FIELDS = {
    "inferredId": RecordRow.inferred_id,
    "studentId": RecordRow.inferred_id,
    "rowNumber": RecordRow.row_number,
    "owner": RecordRow.owner,
}

SORTABLE_FIELDS = {
    "row_number": RecordRow.row_number,
    "created_at": RecordRow.created_at,
    "inferred_id": RecordRow.inferred_id,
}

# Filter values meaning "no filter" in the table UI.
_NO_FILTER_VALUES = {"", "ALL"}


def escape_pattern(value: str) -> str:
    """Backslash-escape regex metacharacters so ``value`` matches literally."""
    return _PATTERN_SPECIAL_CHARS.sub(lambda match: "\\" + match.group(0), value)


def _sqlite_field_value(header: str) -> ColumnElement:
    # SQLite JSON paths cannot address a key containing a double quote, so the
    # key is matched against json_each() as a bound value instead.
    entries = func.json_each(RecordRow.raw_data).table_valued("key", "value")
    return (
        select(entries.c.value)
        .where(entries.c.key == header)
        .correlate(RecordRow)
        .scalar_subquery()
    )


def raw_field(header: str, dialect_name: Optional[str] = None) -> ColumnElement:
    """
    Text value of one ``raw_data`` field.

    PostgreSQL binds the key as a parameter of ``->>``; SQLite looks it up
    through ``json_each`` so any header text works as a key.
    """
    if (dialect_name or "").lower() == "sqlite":
        return cast(_sqlite_field_value(header), String)
    return cast(RecordRow.raw_data[header].as_string(), String)


def _as_text(column) -> ColumnElement:
    return cast(column, String)


# Inline option understood by both PostgreSQL AREs and Python's re (SQLite REGEXP).
_CASE_INSENSITIVE = "(?i)"


def _contains(expression: ColumnElement, term: str) -> ColumnElement:
    return expression.regexp_match(_CASE_INSENSITIVE + escape_pattern(term))


def _equals(expression: ColumnElement, value: str) -> ColumnElement:
    return expression.regexp_match(f"{_CASE_INSENSITIVE}^{escape_pattern(value)}$")


def build_search_clause(
    headers: Sequence[str], search: Optional[str], dialect_name: Optional[str] = None
) -> Optional[ColumnElement]:
    """Case-insensitive substring match over the row id and every header field."""
    if search is None or not search.strip():
        return None

    term = search.strip()
    conditions = [_contains(RecordRow.inferred_id, term)]
    conditions.extend(_contains(raw_field(header, dialect_name), term) for header in headers)
    return or_(*conditions)


def build_filter_clauses(
    headers: Sequence[str], filters: Optional[Dict[str, Any]], dialect_name: Optional[str] = None
) -> List[ColumnElement]:
    """
    Anchored, case-insensitive exact matches for each active filter.

    Known headers match their ``raw_data`` field; other keys naming a top-level
    column match that column; anything else is ignored.
    """
    clauses: List[ColumnElement] = []
    if not filters:
        return clauses

    known_headers = set(headers)
    for key, value in filters.items():
        if value is None:
            continue
        filter_value = str(value).strip()
        if filter_value in _NO_FILTER_VALUES:
            continue

        if key in known_headers:
            clauses.append(_equals(raw_field(key, dialect_name), filter_value))
        elif key in TOP_LEVEL_FIELDS:
            clauses.append(_equals(_as_text(TOP_LEVEL_FIELDS[key]), filter_value))
        else:
            logger.debug("Ignoring filter on unknown field '%s'", key)

    return clauses


def parse_filters(raw_filters: Optional[str]) -> Dict[str, Any]:
    """Decode the JSON ``filters`` query parameter; invalid input means no filters."""
    if raw_filters is None or not raw_filters.strip():
        return {}
    try:
        parsed = json.loads(raw_filters)
    except ValueError as e:
        logger.warning("Invalid filters format: %s", e)
        return {}
    if not isinstance(parsed, dict):
        logger.warning("Invalid filters format: expected a JSON object, got %s", type(parsed).__name__)
        return {}
    return parsed


def resolve_sort(sort_by: Optional[str], sort_order: Optional[str]):
    """Order-by clause for record listings; unknown fields fall back to sheet order."""
    column = SORTABLE_FIELDS.get(sort_by or "row_number", RecordRow.row_number)
    if (sort_order or "asc").lower() == "desc":
        return column.desc()
    return column.asc()
