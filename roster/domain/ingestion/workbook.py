"""
Spreadsheet codec: decode the first sheet of a workbook into raw cell rows and
encode stored rows back into an .xlsx buffer.
"""
import io
import logging
from datetime import date, datetime, time
from typing import Any, Dict, Iterable, List, Sequence

import numpy as np
import pandas as pd

from .exceptions import WorkbookParseError

logger = logging.getLogger(__name__)

EXCEL_EXTENSIONS = (".xlsx", ".xls")
EXCEL_CONTENT_TYPES = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel",
}

TEMPLATE_ROWS = [
    {
        "Student ID": "STU001",
        "First Name": "John",
        "Last Name": "Doe",
        "Email": "john.doe@example.com",
        "Phone": "+1234567890",
        "Date of Birth": "1999-05-15",
        "Program": "Computer Science",
        "Year": 2,
        "Semester": "Fall",
        "GPA": 3.75,
        "Credits": 60,
        "Status": "Active",
    },
    {
        "Student ID": "STU002",
        "First Name": "Jane",
        "Last Name": "Smith",
        "Email": "jane.smith@example.com",
        "Phone": "+1234567891",
        "Date of Birth": "2000-03-22",
        "Program": "Business Administration",
        "Year": 1,
        "Semester": "Spring",
        "GPA": 3.90,
        "Credits": 30,
        "Status": "Active",
    },
]


def is_excel_upload(filename: str, content_type: str = "") -> bool:
    """Accept by content type or by extension, as browsers disagree on the MIME type."""
    if content_type in EXCEL_CONTENT_TYPES:
        return True
    return (filename or "").lower().endswith(EXCEL_EXTENSIONS)


def to_cell_value(value: Any) -> Any:
    """Convert a decoded cell into a JSON-safe Python value (None for empty cells)."""
    if value is None:
        return None
    if isinstance(value, float) and np.isnan(value):
        return None
    if value is pd.NaT:
        return None
    if isinstance(value, np.generic):
        value = value.item()
        if isinstance(value, float) and np.isnan(value):
            return None
    if isinstance(value, pd.Timestamp):
        return value.isoformat()
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return value


def read_workbook(file_content: bytes) -> List[List[Any]]:
    """
    Decode the first sheet of a workbook into a row-major list of cell values.

    Row 0 is the header row. Cells keep their decoded types (str, int, float,
    bool); dates are rendered as ISO-8601 strings and empty cells as None.

    Raises:
        WorkbookParseError: the buffer is not a readable spreadsheet.
    """
    if not file_content:
        raise WorkbookParseError("Uploaded file is empty")

    try:
        df = pd.read_excel(io.BytesIO(file_content), header=None, dtype=object, engine="openpyxl")
    except Exception:
        # Fallback to default pandas engine (legacy .xls)
        try:
            df = pd.read_excel(io.BytesIO(file_content), header=None, dtype=object)
        except Exception as e:
            logger.warning("Unable to decode workbook: %s", e)
            raise WorkbookParseError(f"Could not read Excel file: {str(e)}")

    rows = [
        [to_cell_value(value) for value in row]
        for row in df.itertuples(index=False, name=None)
    ]
    logger.info("Decoded workbook: %d rows x %d columns", len(rows), len(df.columns))
    return rows


def write_workbook(
    headers: Sequence[str],
    rows: Iterable[Dict[str, Any]],
    sheet_name: str = "Sheet1",
) -> bytes:
    """Encode header-keyed rows into an .xlsx buffer, columns in ``headers`` order."""
    df = pd.DataFrame(list(rows), columns=list(headers))
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=sheet_name[:31] or "Sheet1", index=False)
    return buffer.getvalue()


def build_template() -> bytes:
    """Sample student workbook offered for download."""
    headers = list(TEMPLATE_ROWS[0].keys())
    return write_workbook(headers, TEMPLATE_ROWS, sheet_name="Students")
