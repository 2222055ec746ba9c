"""
Helpers that build .xlsx payloads for tests.
"""
import io

import pandas as pd


def workbook_bytes(rows, sheet_name="Sheet1"):
    """Write ``rows`` (first row = header row) to an in-memory workbook."""
    df = pd.DataFrame(rows, dtype=object)
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=sheet_name, index=False, header=False)
    return buffer.getvalue()


def student_rows(count, start=1):
    """Header row plus ``count`` student rows with explicit ids."""
    rows = [["Student ID", "Name", "Program"]]
    for number in range(start, start + count):
        rows.append([f"STU{number:04d}", f"Student {number}", "Physics" if number % 2 else "History"])
    return rows
