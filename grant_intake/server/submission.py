# server/submission.py
# ---------------------------------------------------------
# Submission orchestrator: one validated draft in, one stored
# grant_applications row out.
#
#   1. upload support letter (overwrite on same name)   fatal
#   2. confirm it shows up in the bucket listing         fatal
#   3. resolve its public URL
#   4. build the flat payload
#   5. notify webhooks                                   best effort
#   6. insert the row                                    fatal
#   7. on_success()
#
# No retries. An insert failure leaves the uploaded letter in place.
# ---------------------------------------------------------

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol

from .notifier import NotificationError
from .schemas import ApplicationDraft, ApplicationPayload, SubmissionRecord
from .supabase_client import SupabaseError

log = logging.getLogger("grant_intake.submission")

UPLOAD_FAILED_MESSAGE = "Failed to upload support letter. Please try again."
GENERIC_FAILURE_MESSAGE = "An error occurred"

_EXT_BY_TYPE = {
    "application/pdf": "pdf",
    "image/jpeg": "jpg",
    "image/png": "png",
}


class ObjectStorage(Protocol):
    def upload(self, name: str, content: bytes, content_type: str, upsert: bool = True) -> str: ...

    def get_public_url(self, name: str) -> str: ...

    def list(self, search: str) -> List[str]: ...


class RecordStore(Protocol):
    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]: ...


class Notifier(Protocol):
    def notify(self, payload: Dict[str, Any]) -> List[NotificationError]: ...


class SubmissionError(Exception):
    """A fatal submission failure; `message` is safe to show the applicant."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AttachmentUploadError(SubmissionError):
    pass


class PersistenceError(SubmissionError):
    pass


@dataclass
class SubmissionResult:
    ok: bool
    record: Optional[SubmissionRecord] = None
    error: Optional[str] = None
    notification_errors: List[NotificationError] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def sanitize_applicant_name(name: str) -> str:
    """'  Jane  O'Neil ' -> 'Jane-ONeil'"""
    cleaned = re.sub(r"[^a-zA-Z0-9\s]", "", name.strip())
    return re.sub(r"\s+", "-", cleaned)


def support_letter_object_name(applicant_name: str, filename: str, content_type: str = "") -> str:
    if "." in filename:
        ext = filename.rsplit(".", 1)[-1].lower()
    else:
        ext = _EXT_BY_TYPE.get(content_type, filename.lower())
    return f"{sanitize_applicant_name(applicant_name)}-Support-Letter.{ext}"


def build_payload(draft: ApplicationDraft, support_letter_url: str) -> ApplicationPayload:
    return ApplicationPayload(
        is_for_child=bool(draft.is_for_child),
        applicant_name=draft.applicant_name,
        date_of_birth=draft.date_of_birth,
        mailing_address=draft.mailing_address,
        email=draft.email,
        phone_number=draft.phone_number,
        date_requested=draft.date_grant_requested,
        funds_usage=draft.funds_usage,
        previous_grant=bool(draft.previous_grant),
        previous_grant_usage=draft.previous_grant_usage if draft.previous_grant else None,
        verify_information=bool(draft.verify_information),
        support_letter_url=support_letter_url,
        support_letter_file_name=draft.support_letter.filename,
    )


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class SubmissionOrchestrator:
    def __init__(
        self,
        storage: ObjectStorage,
        records: RecordStore,
        notifier: Notifier,
        *,
        table: str = "grant_applications",
    ):
        self.storage = storage
        self.records = records
        self.notifier = notifier
        self.table = table

    def submit(
        self,
        draft: ApplicationDraft,
        on_success: Optional[Callable[[SubmissionRecord], Any]] = None,
    ) -> SubmissionResult:
        try:
            url = self._upload_support_letter(draft)
            payload = build_payload(draft, url)
            notification_errors = self.notifier.notify(payload.model_dump(mode="json"))
            record = self._insert(payload)
        except SubmissionError as exc:
            return SubmissionResult(ok=False, error=exc.message)

        log.info("application %s stored for %s", record.id, draft.applicant_name)
        if on_success is not None:
            on_success(record)
        return SubmissionResult(ok=True, record=record, notification_errors=notification_errors)

    def _upload_support_letter(self, draft: ApplicationDraft) -> str:
        letter = draft.support_letter
        name = support_letter_object_name(draft.applicant_name, letter.filename, letter.content_type)

        try:
            self.storage.upload(name, letter.content, letter.content_type, upsert=True)
            found = self.storage.list(name)
        except SupabaseError as exc:
            log.error("support letter upload failed for %s: %s", name, exc)
            raise AttachmentUploadError(UPLOAD_FAILED_MESSAGE) from exc

        if name not in found:
            log.error("support letter %s missing from bucket listing after upload", name)
            raise AttachmentUploadError(UPLOAD_FAILED_MESSAGE)

        return self.storage.get_public_url(name)

    def _insert(self, payload: ApplicationPayload) -> SubmissionRecord:
        try:
            row = self.records.insert(self.table, payload.record_row())
        except SupabaseError as exc:
            log.error("insert into %s failed: %s", self.table, exc)
            raise PersistenceError(exc.message or GENERIC_FAILURE_MESSAGE) from exc
        return SubmissionRecord.model_validate(row)
