"""Shared fixtures: in-memory backend fakes and a known-good draft."""

from datetime import datetime, timezone
from typing import Any, Dict, List

import pytest

from grant_intake.server.notifier import NotificationError
from grant_intake.server.schemas import SupportLetter
from grant_intake.server.submission import SubmissionOrchestrator
from grant_intake.server.supabase_client import SupabaseError


class FakeStorage:
    """Bucket kept in a dict. Set fail_upload / hide_uploads to break it."""

    def __init__(self, events: List[str]):
        self.events = events
        self.objects: Dict[str, bytes] = {}
        self.uploads: List[Dict[str, Any]] = []
        self.fail_upload = False
        self.hide_uploads = False

    def upload(self, name: str, content: bytes, content_type: str, upsert: bool = True) -> str:
        self.events.append("upload")
        self.uploads.append({"name": name, "content_type": content_type, "upsert": upsert})
        if self.fail_upload:
            raise SupabaseError("The resource already exists", 409)
        if not self.hide_uploads:
            self.objects[name] = content
        return f"support-letters/{name}"

    def get_public_url(self, name: str) -> str:
        return f"https://files.example.org/support-letters/{name}"

    def list(self, search: str) -> List[str]:
        self.events.append("list")
        return [name for name in self.objects if search in name]


class FakeRecords:
    def __init__(self, events: List[str]):
        self.events = events
        self.rows: List[Dict[str, Any]] = []
        self.fail_with = None

    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        self.events.append("insert")
        if self.fail_with is not None:
            raise SupabaseError(self.fail_with, 400)
        stored = {
            **row,
            "id": f"app-{len(self.rows) + 1}",
            "created_at": datetime(2025, 1, 14, 12, 0, tzinfo=timezone.utc).isoformat(),
        }
        self.rows.append(stored)
        return stored


class RecordingNotifier:
    def __init__(self, events: List[str]):
        self.events = events
        self.payloads: List[Dict[str, Any]] = []

    def notify(self, payload: Dict[str, Any]) -> List[NotificationError]:
        self.events.append("notify")
        self.payloads.append(payload)
        return []


@pytest.fixture
def events() -> List[str]:
    return []


@pytest.fixture
def storage(events):
    return FakeStorage(events)


@pytest.fixture
def records(events):
    return FakeRecords(events)


@pytest.fixture
def notifier(events):
    return RecordingNotifier(events)


@pytest.fixture
def orchestrator(storage, records, notifier):
    return SubmissionOrchestrator(storage, records, notifier)


@pytest.fixture
def pdf_letter() -> SupportLetter:
    # ~2 MB PDF
    return SupportLetter(
        filename="Caseworker Letter.pdf",
        content_type="application/pdf",
        content=b"%PDF-1.4\n" + b"0" * (2 * 1000 * 1000),
    )


@pytest.fixture
def valid_values(pdf_letter) -> Dict[str, Any]:
    return {
        "is_for_child": "no",
        "applicant_name": "Jane O'Neil",
        "date_of_birth": "1990-04-12",
        "street": "123 Main St",
        "city": "Toronto",
        "province": "Ontario",
        "postal_code": "M5V 2T6",
        "email": "jane.oneil@gmail.com",
        "phone_number": "416-555-0123",
        "date_grant_requested": "2025-01-12",
        "funds_usage": "Respite care during hospital stays.",
        "previous_grant": False,
        "previous_grant_usage": "",
        "support_letter": pdf_letter,
        "verify_information": True,
    }
