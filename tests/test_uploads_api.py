"""
HTTP tests for the upload, record and stats endpoints.
"""
import json

import pytest

from roster.api import dependencies
from roster.api.dependencies import get_record_store
from roster.domain.ingestion.workbook import read_workbook
from roster.domain.records.store import RecordStore
from roster.main import app
from tests.utils.workbooks import student_rows, workbook_bytes

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _upload(client, headers, content, filename="class.xlsx", content_type=XLSX):
    return client.post("/api/uploads", headers=headers, files={"file": (filename, content, content_type)})


@pytest.fixture
def uploaded(client, auth_headers):
    content = workbook_bytes(
        [
            ["Student ID", "Name", "Program"],
            ["S1", "Ann", "Physics"],
            ["S2", "Bob", "History"],
            ["S3", "Cara", "physics"],
        ]
    )
    response = _upload(client, auth_headers, content)
    assert response.status_code == 200
    return response.json()


def test_upload_requires_authentication(client):
    response = _upload(client, {}, workbook_bytes(student_rows(1)))
    assert response.status_code in (401, 403)


def test_upload_reports_stats(uploaded):
    assert uploaded["success"] is True
    assert uploaded["uploadId"]
    assert uploaded["status"] == "completed"
    assert uploaded["stats"] == {"total": 3, "successful": 3, "failed": 0}


def test_upload_without_file_is_rejected(client, auth_headers):
    response = client.post("/api/uploads", headers=auth_headers)
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "No file uploaded"}


def test_non_excel_file_is_rejected(client, auth_headers):
    response = _upload(client, auth_headers, b"a,b\n1,2", filename="notes.csv", content_type="text/csv")
    assert response.status_code == 400
    assert "Only Excel files" in response.json()["message"]


def test_undecodable_workbook_is_rejected(client, auth_headers):
    response = _upload(client, auth_headers, b"this is not a workbook")
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["message"].startswith("Could not read Excel file")


def test_header_only_workbook_is_rejected(client, auth_headers):
    response = _upload(client, auth_headers, workbook_bytes([["Student ID", "Name"]]))
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Excel file is empty"}

    listing = client.get("/api/uploads", headers=auth_headers).json()
    assert listing["total"] == 0


def test_oversized_file_is_rejected(client, auth_headers, monkeypatch):
    monkeypatch.setattr(dependencies, "MAX_UPLOAD_BYTES", 10)
    response = _upload(client, auth_headers, workbook_bytes(student_rows(2)))
    assert response.status_code == 400
    assert "too large" in response.json()["message"]


class _ProgressFailingStore(RecordStore):
    def apply_batch_progress(self, upload_id, outcome):
        raise RuntimeError("lost connection to database")


def test_fatal_error_returns_upload_id(client, auth_headers):
    app.dependency_overrides[get_record_store] = lambda: _ProgressFailingStore()
    try:
        response = _upload(client, auth_headers, workbook_bytes(student_rows(2)))
    finally:
        app.dependency_overrides.pop(get_record_store, None)

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert "lost connection" in body["message"]

    detail = client.get(f"/api/uploads/{body['uploadId']}", headers=auth_headers).json()
    assert detail["upload"]["status"] == "failed"


def test_list_and_detail(client, auth_headers, uploaded):
    listing = client.get("/api/uploads", headers=auth_headers).json()
    assert listing["total"] == 1
    assert listing["uploads"][0]["filename"] == "class.xlsx"

    detail = client.get(f"/api/uploads/{uploaded['uploadId']}", headers=auth_headers).json()
    assert detail["upload"]["headers"] == ["Student ID", "Name", "Program"]
    assert detail["upload"]["processed_records"] == 3


def test_other_owner_cannot_see_upload(client, other_auth_headers, uploaded):
    upload_id = uploaded["uploadId"]
    assert client.get(f"/api/uploads/{upload_id}", headers=other_auth_headers).status_code == 404
    assert client.get(f"/api/uploads/{upload_id}/records", headers=other_auth_headers).status_code == 404
    assert client.delete(f"/api/uploads/{upload_id}", headers=other_auth_headers).status_code == 404


def test_records_with_search_and_filters(client, auth_headers, uploaded):
    url = f"/api/uploads/{uploaded['uploadId']}/records"

    everything = client.get(url, headers=auth_headers).json()["data"]
    assert everything["pagination"] == {"page": 1, "limit": 50, "total": 3, "pages": 1}
    assert everything["file"]["headers"] == ["Student ID", "Name", "Program"]
    assert [record["row_number"] for record in everything["records"]] == [2, 3, 4]

    filtered = client.get(
        url,
        headers=auth_headers,
        params={"filters": json.dumps({"Program": "PHYSICS", "Name": "ALL"})},
    ).json()["data"]
    assert [record["inferred_id"] for record in filtered["records"]] == ["S1", "S3"]

    searched = client.get(url, headers=auth_headers, params={"search": "bo"}).json()["data"]
    assert [record["inferred_id"] for record in searched["records"]] == ["S2"]


def test_invalid_filters_are_ignored(client, auth_headers, uploaded):
    url = f"/api/uploads/{uploaded['uploadId']}/records"
    response = client.get(url, headers=auth_headers, params={"filters": "{not json"})
    assert response.status_code == 200
    assert response.json()["data"]["pagination"]["total"] == 3


def test_unique_values(client, auth_headers, uploaded):
    response = client.get(f"/api/uploads/{uploaded['uploadId']}/unique-values", headers=auth_headers)
    data = response.json()["data"]
    assert data["Name"] == ["Ann", "Bob", "Cara"]
    assert set(data["Program"]) == {"Physics", "History", "physics"}


def test_errors_endpoint_empty_for_clean_upload(client, auth_headers, uploaded):
    body = client.get(f"/api/uploads/{uploaded['uploadId']}/errors", headers=auth_headers).json()
    assert body["errors"] == []
    assert body["total"] == 0


def test_export_round_trips_stored_rows(client, auth_headers, uploaded):
    response = client.get(f"/api/uploads/{uploaded['uploadId']}/export", headers=auth_headers)
    assert response.status_code == 200
    assert "class_export.xlsx" in response.headers["content-disposition"]

    rows = read_workbook(response.content)
    assert rows[0] == ["Student ID", "Name", "Program"]
    assert rows[1] == ["S1", "Ann", "Physics"]
    assert len(rows) == 4


def test_delete_upload(client, auth_headers, uploaded):
    upload_id = uploaded["uploadId"]
    response = client.delete(f"/api/uploads/{upload_id}", headers=auth_headers)
    assert response.json()["success"] is True
    assert client.get(f"/api/uploads/{upload_id}", headers=auth_headers).status_code == 404


def test_validate_does_not_store_anything(client, auth_headers):
    content = workbook_bytes([["Student ID", "Name"], ["S1", "Ann"], ["S1", "Ann twin"]])
    response = client.post(
        "/api/uploads/validate",
        headers=auth_headers,
        files={"file": ("class.xlsx", content, XLSX)},
    )

    body = response.json()
    assert body["total_rows"] == 2
    assert body["duplicate_ids"] == [{"row_number": 3, "record_id": "S1", "first_row_number": 2}]
    assert client.get("/api/uploads", headers=auth_headers).json()["total"] == 0


def test_template_download(client):
    response = client.get("/api/uploads/template")
    assert response.status_code == 200
    assert read_workbook(response.content)[0][0] == "Student ID"


def test_single_record_and_stats(client, auth_headers, other_auth_headers, uploaded):
    records = client.get(f"/api/uploads/{uploaded['uploadId']}/records", headers=auth_headers).json()
    record_id = records["data"]["records"][0]["id"]

    record = client.get(f"/api/records/{record_id}", headers=auth_headers).json()["record"]
    assert record["raw_data"] == {"Student ID": "S1", "Name": "Ann", "Program": "Physics"}
    assert client.get(f"/api/records/{record_id}", headers=other_auth_headers).status_code == 404

    stats = client.get("/api/stats", headers=auth_headers).json()
    assert stats["total_uploads"] == 1
    assert stats["total_records"] == 3
    assert stats["uploads_by_status"]["completed"] == 1


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"


def test_edit_and_delete_single_record(client, auth_headers, other_auth_headers, uploaded):
    records = client.get(f"/api/uploads/{uploaded['uploadId']}/records", headers=auth_headers).json()
    record_id = records["data"]["records"][0]["id"]
    url = f"/api/records/{record_id}"

    edited = client.put(url, headers=auth_headers, json={"raw_data": {"Name": "Annie", "Program": ""}})
    assert edited.status_code == 200
    assert edited.json()["record"]["raw_data"] == {"Student ID": "S1", "Name": "Annie"}

    assert client.put(url, headers=other_auth_headers, json={"raw_data": {"Name": "x"}}).status_code == 404
    emptied = client.put(url, headers=auth_headers, json={"raw_data": {"Student ID": "", "Name": ""}})
    assert emptied.status_code == 400
    assert client.put(url, headers=auth_headers, json={"raw_data": {}}).status_code == 422

    assert client.delete(url, headers=other_auth_headers).status_code == 404
    deleted = client.delete(url, headers=auth_headers)
    assert deleted.json() == {"success": True, "message": "Record deleted"}
    assert client.get(url, headers=auth_headers).status_code == 404
