"""
Workbook decoding, encoding and upload type checks.
"""
from datetime import datetime

import numpy as np
import pandas as pd
import pytest

from roster.domain.ingestion.exceptions import WorkbookParseError
from roster.domain.ingestion.workbook import (
    TEMPLATE_ROWS,
    build_template,
    is_excel_upload,
    read_workbook,
    to_cell_value,
    write_workbook,
)
from tests.utils.workbooks import workbook_bytes


def test_read_workbook_keeps_cell_types(tmp_path):
    df = pd.DataFrame(
        [["Name", "Age", "GPA"], ["Ann", 20, 3.5]],
        dtype=object,
    )
    excel_path = tmp_path / "students.xlsx"
    df.to_excel(excel_path, index=False, header=False)

    with open(excel_path, "rb") as f:
        rows = read_workbook(f.read())

    assert rows[0] == ["Name", "Age", "GPA"]
    assert rows[1] == ["Ann", 20, 3.5]


def test_read_workbook_renders_missing_cells_as_none():
    rows = read_workbook(workbook_bytes([["A", "B"], ["x", None]]))
    assert rows[1] == ["x", None]


def test_empty_buffer_is_rejected():
    with pytest.raises(WorkbookParseError, match="empty"):
        read_workbook(b"")


def test_garbage_buffer_is_rejected():
    with pytest.raises(WorkbookParseError, match="Could not read Excel file"):
        read_workbook(b"\x00\x01not-a-workbook")


def test_to_cell_value_normalizes_library_types():
    assert to_cell_value(np.int64(5)) == 5
    assert isinstance(to_cell_value(np.int64(5)), int)
    assert to_cell_value(np.float64("nan")) is None
    assert to_cell_value(pd.NaT) is None
    assert to_cell_value(pd.Timestamp("2024-01-02 03:04:05")) == "2024-01-02T03:04:05"
    assert to_cell_value(datetime(2024, 1, 2)) == "2024-01-02T00:00:00"
    assert to_cell_value("text") == "text"


def test_write_workbook_orders_columns_by_headers():
    content = write_workbook(["B", "A"], [{"A": 1, "B": 2}, {"A": 3}])
    rows = read_workbook(content)

    assert rows[0] == ["B", "A"]
    assert rows[1] == [2, 1]
    assert rows[2] == [None, 3]


def test_template_contains_sample_students():
    rows = read_workbook(build_template())
    assert rows[0] == list(TEMPLATE_ROWS[0].keys())
    assert rows[1][0] == "STU001"
    assert len(rows) == len(TEMPLATE_ROWS) + 1


@pytest.mark.parametrize(
    "filename,content_type,expected",
    [
        ("class.xlsx", "application/octet-stream", True),
        ("CLASS.XLS", None, True),
        ("export", "application/vnd.ms-excel", True),
        ("notes.csv", "text/csv", False),
        ("", "text/plain", False),
    ],
)
def test_is_excel_upload(filename, content_type, expected):
    assert is_excel_upload(filename, content_type) is expected
