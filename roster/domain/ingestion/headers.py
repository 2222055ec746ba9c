from typing import Any, List, Sequence, Tuple

from .exceptions import NoUsableDataError


def _header_columns(first_row: Sequence[Any]) -> List[Tuple[int, str]]:
    columns = []
    for index, cell in enumerate(first_row or []):
        if cell is None:
            continue
        name = str(cell).strip()
        if name:
            columns.append((index, name))
    return columns


def normalize_headers(first_row: Sequence[Any]) -> List[str]:
    """
    Stringify and trim each header cell, dropping cells that end up empty.

    Duplicate names are kept as-is; when rows are mapped the last column with a
    given name wins.
    """
    return [name for _, name in _header_columns(first_row)]


def split_sheet(sheet: Sequence[Sequence[Any]]) -> Tuple[List[str], List[List[Any]]]:
    """
    Split a decoded sheet into its normalized headers and its data rows.

    Data rows are projected onto the columns that kept a header, so that
    ``row[i]`` always belongs to ``headers[i]`` even when a blank header cell
    sits between named columns.

    Raises:
        NoUsableDataError: the sheet has no data rows or no usable headers.
    """
    if len(sheet) <= 1:
        raise NoUsableDataError("Excel file is empty")

    columns = _header_columns(sheet[0])
    if not columns:
        raise NoUsableDataError("No valid headers found")

    headers = [name for _, name in columns]
    data_rows = []
    for row in sheet[1:]:
        row = row or []
        data_rows.append([row[index] if index < len(row) else None for index, _ in columns])
    return headers, data_rows
