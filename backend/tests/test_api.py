import io

import openpyxl
import pytest
from fastapi.testclient import TestClient

from app.core.config import settings
from app.main import app
from app.services.exports.exporter import XLSX_MEDIA_TYPE
from app.services.jobs.status import JobState, JobStatusService, get_job_status_service
from app.services.sync.reader import XLSX_CONTENT_TYPE


@pytest.fixture()
def client(db):
    with TestClient(app) as c:
        yield c


def _xlsx(rows) -> bytes:
    wb = openpyxl.Workbook()
    ws = wb.active
    for row in rows:
        ws.append(list(row))
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def _upload(rows, name="people.xlsx"):
    return {"file": (name, _xlsx(rows), XLSX_CONTENT_TYPE)}


def _create_template(client) -> dict:
    r = client.post("/templates", json={
        "name": "People",
        "columns": [
            {"name": "Name", "data_type": "string", "required": True},
            {"name": "Age", "data_type": "number"},
        ],
    })
    assert r.status_code == 201, r.text
    return r.json()


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}


def test_template_crud(client):
    t = _create_template(client)
    assert [c["name"] for c in t["columns"]] == ["Name", "Age"]

    assert client.post("/templates", json={"name": "People"}).status_code == 409
    assert client.get("/templates/999").status_code == 404

    r = client.post(f"/templates/{t['id']}/columns", json={"name": "Active", "data_type": "boolean"})
    assert r.status_code == 201
    assert r.json()["position"] == 3

    col_id = t["columns"][1]["id"]
    assert client.put(f"/templates/{t['id']}/columns/{col_id}", json={"required": True}).json()["required"]
    assert client.delete(f"/templates/{t['id']}/columns/{col_id}").status_code == 200

    body = client.get(f"/templates/{t['id']}").json()
    assert [(c["position"], c["name"]) for c in body["columns"]] == [(1, "Name"), (2, "Active")]

    assert client.delete(f"/templates/{t['id']}").status_code == 200
    assert client.get("/templates").json() == []


def test_synchronous_import_then_records(client):
    t = _create_template(client)
    r = client.post(f"/templates/{t['id']}/imports", files=_upload([["Name", "Age"], ["Ann", 30], ["Bob", None]]))
    assert r.status_code == 200
    body = r.json()
    assert body["success"], body
    assert body["created_count"] == 2
    assert body["summary"] == "Successfully synchronized: 2 created"

    records = client.get(f"/templates/{t['id']}/records").json()
    assert [rec["data"] for rec in records] == [{"Name": "Ann", "Age": "30"}, {"Name": "Bob", "Age": None}]


def test_import_errors_are_returned_as_data(client):
    t = _create_template(client)
    r = client.post(f"/templates/{t['id']}/imports", files=_upload([["Age"], [1]]))
    assert r.status_code == 200
    assert r.json()["success"] is False
    assert r.json()["errors"] == ["Missing required headers: Name"]


def test_header_preview_suggests_mappings(client):
    t = _create_template(client)
    r = client.post(f"/templates/{t['id']}/imports/preview", files=_upload([["Nme", "Age"]]))
    body = r.json()
    assert body["valid"] is False
    assert body["suggestions"] == {"nme": "Name"}


def test_export_download(client):
    t = _create_template(client)
    client.post(f"/templates/{t['id']}/imports", files=_upload([["Name", "Age"], ["Ann", 30]]))

    r = client.get(f"/templates/{t['id']}/export", params={"mode": "data"})
    assert r.status_code == 200
    assert r.headers["content-type"] == XLSX_MEDIA_TYPE
    assert 'filename="People_data.xlsx"' in r.headers["content-disposition"]
    ws = openpyxl.load_workbook(io.BytesIO(r.content)).worksheets[0]
    assert [c.value for c in ws[2]][1:] == ["Ann", 30]


def test_background_import_reports_through_job_status(client):
    t = _create_template(client)
    r = client.post(
        f"/templates/{t['id']}/imports",
        params={"background": "true"},
        files=_upload([["Name", "Age"], ["Ann", 30]]),
    )
    assert r.status_code == 200
    job = r.json()
    assert job["status_url"] == f"/jobs/{job['job_id']}/status"

    st = client.get(job["status_url"]).json()
    assert st["status"] == "completed"
    assert st["created_count"] == 1

    # terminal jobs get a single snapshot over the websocket
    with client.websocket_connect(f"/jobs/{job['job_id']}/ws") as ws:
        assert ws.receive_json()["status"] == "completed"


def test_background_export_and_download(client):
    t = _create_template(client)
    job = client.post(f"/templates/{t['id']}/exports", params={"mode": "template"}).json()

    st = client.get(f"/jobs/{job['job_id']}/status").json()
    assert st["status"] == "completed"
    assert st["result_summary"] == "Export generated successfully"

    r = client.get(f"/jobs/{job['job_id']}/download")
    assert r.status_code == 200
    ws = openpyxl.load_workbook(io.BytesIO(r.content)).worksheets[0]
    assert [c.value for c in ws[1]] == ["__record_id", "Name", "Age"]


def test_unknown_job(client):
    assert client.get("/jobs/missing/status").json()["status"] == "not_found"
    assert client.get("/jobs/missing/download").status_code == 404
    with client.websocket_connect("/jobs/missing/ws") as ws:
        assert ws.receive_json()["status"] == "not_found"


def test_websocket_relays_updates_of_running_job(client):
    tracker = get_job_status_service()
    tracker.update_status("live", JobState.processing)

    with client.websocket_connect("/jobs/live/ws") as ws:
        assert ws.receive_json()["status"] == "processing"

        tracker.update_progress("live", "Half way")
        assert ws.receive_json()["progress"] == "Half way"

        tracker.update_status("live", JobState.completed, result_summary="done")
        last = ws.receive_json()
        assert last["status"] == "completed"
        assert last["result_summary"] == "done"


def test_websocket_rereads_status_when_nothing_is_published(client, monkeypatch):
    monkeypatch.setattr(settings, "JOB_STATUS_POLL_SECONDS", 0.05)
    tracker = get_job_status_service()
    tracker.update_status("quiet", JobState.processing)

    with client.websocket_connect("/jobs/quiet/ws") as ws:
        assert ws.receive_json()["status"] == "processing"
        # same cache, no broadcaster: the transition is stored but never published
        JobStatusService(tracker.cache).update_status("quiet", JobState.failed, error_message="lost")
        last = ws.receive_json()
        assert last["status"] == "failed"
        assert last["error_message"] == "lost"


def test_record_crud(client):
    t = _create_template(client)
    base = f"/templates/{t['id']}/records"

    r = client.post(base, json={"data": {"Name": "Ann", "Age": "30"}})
    assert r.status_code == 201, r.text
    rec = r.json()
    assert rec["data"] == {"Name": "Ann", "Age": "30"}

    assert client.get(f"{base}/{rec['id']}").json()["data"] == {"Name": "Ann", "Age": "30"}

    r = client.put(f"{base}/{rec['id']}", json={"data": {"Age": 31}})
    assert r.status_code == 200
    assert r.json()["data"] == {"Name": "Ann", "Age": "31"}

    r = client.put(f"{base}/{rec['id']}", json={"data": {"Age": "thirty"}})
    assert r.status_code == 422
    assert "could not convert 'thirty' to number" in r.json()["detail"]
    assert client.post(base, json={"data": {"Age": 1}}).status_code == 422
    assert client.post(base, json={"data": {"Name": "Bo", "Pet": "cat"}}).status_code == 422

    assert client.delete(f"{base}/{rec['id']}").status_code == 200
    assert client.get(f"{base}/{rec['id']}").status_code == 404
    assert client.get(base).json() == []
