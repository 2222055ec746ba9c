"""
Header row normalization and data row projection.
"""
import pytest

from roster.domain.ingestion.exceptions import NoUsableDataError
from roster.domain.ingestion.headers import normalize_headers, split_sheet


def test_headers_are_trimmed_and_blank_cells_dropped():
    first_row = ["  Name ", None, "", "   ", 2024, "Email"]
    assert normalize_headers(first_row) == ["Name", "2024", "Email"]


def test_duplicate_headers_are_kept():
    assert normalize_headers(["Name", "Name", "Age"]) == ["Name", "Name", "Age"]


def test_split_sheet_projects_rows_onto_named_columns():
    sheet = [
        ["ID", None, "Name"],
        ["S1", "ignored", "Ann"],
        ["S2"],
    ]
    headers, rows = split_sheet(sheet)

    assert headers == ["ID", "Name"]
    assert rows == [["S1", "Ann"], ["S2", None]]


def test_header_only_sheet_is_rejected():
    with pytest.raises(NoUsableDataError, match="Excel file is empty"):
        split_sheet([["ID", "Name"]])


def test_empty_sheet_is_rejected():
    with pytest.raises(NoUsableDataError, match="Excel file is empty"):
        split_sheet([])


def test_sheet_without_usable_headers_is_rejected():
    with pytest.raises(NoUsableDataError, match="No valid headers found"):
        split_sheet([[None, "  ", ""], ["a", "b", "c"]])


def test_no_usable_data_is_a_client_error():
    assert NoUsableDataError.status_code == 400


def test_normalizing_normalized_headers_is_a_no_op():
    headers = normalize_headers(["  Student ID", "Name ", None, "Email"])
    assert normalize_headers(headers) == headers
