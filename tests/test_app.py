import io

import pytest
from fastapi import UploadFile
from fastapi.testclient import TestClient

from grant_intake.server.app import _support_letter, app, get_orchestrator
from grant_intake.server.config import Settings, get_settings

FORM = {
    "is_for_child": "no",
    "applicant_name": "Jane O'Neil",
    "date_of_birth": "1990-04-12",
    "street": "123 Main St",
    "city": "Toronto",
    "province": "Ontario",
    "postal_code": "M5V 2T6",
    "email": "jane.oneil@gmail.com",
    "phone_number": "(416) 555-0123",
    "date_grant_requested": "2025-01-12",
    "funds_usage": "Respite care during hospital stays.",
    "previous_grant": "false",
    "previous_grant_usage": "",
    "verify_information": "true",
}
LETTER = ("letter.pdf", b"%PDF-1.4\n" + b"0" * 1024, "application/pdf")


@pytest.fixture
def client(orchestrator):
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_settings] = lambda: Settings(form_variant="standard")
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["ok"] is True


def test_form_definition(client):
    body = client.get("/form").json()
    assert body["variant"] == "standard"
    assert body["max_file_size"] == 5 * 1024 * 1024
    assert len(body["provinces"]) == 10
    assert body["accepted_file_types"] == ["application/pdf", "image/jpeg", "image/png"]
    assert body["conditional_fields"] == {"previous_grant_usage": "previous_grant"}


def test_validate_single_field(client):
    resp = client.post("/validate", json={"field": "postal_code", "value": "90210"})
    assert resp.json() == {"field": "postal_code", "error": "Please enter a valid postal code"}

    resp = client.post(
        "/validate",
        json={"field": "previous_grant_usage", "value": "", "values": {"previous_grant": True}},
    )
    assert resp.json()["error"] == "Please explain previous grant usage"

    resp = client.post("/validate", json={"field": "phone_number", "value": "416-555-0123"})
    assert resp.json()["error"] is None


def test_validate_unknown_field(client):
    resp = client.post("/validate", json={"field": "nickname", "value": "JJ"})
    assert resp.status_code == 404


def test_submit_application(client, records, notifier):
    resp = client.post("/applications", data=FORM, files={"support_letter": LETTER})

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "success"
    assert body["record"]["id"] == "app-1"
    assert body["record"]["mailing_address"] == "123 Main St, Toronto, Ontario M5V 2T6"
    assert len(records.rows) == 1
    assert notifier.payloads[0]["support_letter_file_name"] == "letter.pdf"


def test_submit_without_letter_is_rejected_before_any_upload(client, events):
    resp = client.post("/applications", data=FORM)

    assert resp.status_code == 422
    body = resp.json()
    assert body["status"] == "idle"
    assert body["errors"] == {"support_letter": "Support letter is required"}
    assert events == []


def test_submit_rejects_plain_text_letter(client, events):
    resp = client.post(
        "/applications",
        data=FORM,
        files={"support_letter": ("notes.txt", b"hello", "text/plain")},
    )

    assert resp.status_code == 422
    assert resp.json()["errors"]["support_letter"] == "Only .pdf, .jpg, and .png files are accepted"
    assert events == []


def test_submit_reports_insert_failure(client, records, storage):
    records.fail_with = "permission denied for table grant_applications"

    resp = client.post("/applications", data=FORM, files={"support_letter": LETTER})

    assert resp.status_code == 502
    body = resp.json()
    assert body["status"] == "error"
    assert body["error"] == "permission denied for table grant_applications"
    assert "Jane-ONeil-Support-Letter.pdf" in storage.objects


def test_submit_rejects_oversized_letter_without_uploading(client, events):
    big = ("letter.pdf", b"0" * (5 * 1024 * 1024 + 1), "application/pdf")

    resp = client.post("/applications", data=FORM, files={"support_letter": big})

    assert resp.status_code == 422
    assert resp.json()["errors"] == {"support_letter": "File size must be less than 5MB"}
    assert events == []


def test_support_letter_read_stops_past_the_ceiling():
    upload = UploadFile(io.BytesIO(b"0" * (5 * 1024 * 1024 + 4096)), filename="letter.pdf")

    letter = _support_letter(upload, "standard")

    assert letter.size == 5 * 1024 * 1024 + 1
