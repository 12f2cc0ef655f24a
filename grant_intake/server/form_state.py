# server/form_state.py
"""
Form state for one applicant's draft.

Holds the current values, recomputes every field error on each change,
and gates submit(): nothing touches the network unless the draft is
clean and no other submit is in flight. Fatal submission errors land in
a single `submit_error` slot (last one wins); values are kept for retry.
"""

import logging
import threading
from typing import Any, Callable, Dict, Literal, Mapping, Optional

from .schemas import ApplicationDraft, SubmissionRecord, as_bool
from .submission import SubmissionOrchestrator
from .validation import DEFAULT_VARIANT, FIELD_RULES, validate_draft

log = logging.getLogger("grant_intake.form_state")

Status = Literal["idle", "submitting", "success", "error"]


class FormState:
    def __init__(
        self,
        orchestrator: SubmissionOrchestrator,
        *,
        variant: str = DEFAULT_VARIANT,
        on_success: Optional[Callable[[SubmissionRecord], Any]] = None,
    ):
        self.orchestrator = orchestrator
        self.variant = variant
        self.on_success = on_success

        self.values: Dict[str, Any] = {}
        self.errors: Dict[str, str] = {}
        self.status: Status = "idle"
        self.submit_error: Optional[str] = None
        self.record: Optional[SubmissionRecord] = None
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def set_value(self, field: str, value: Any) -> Dict[str, str]:
        if field not in FIELD_RULES:
            raise KeyError(field)
        self.values[field] = value
        return self._revalidate()

    def update(self, values: Mapping[str, Any]) -> Dict[str, str]:
        for field in values:
            if field not in FIELD_RULES:
                raise KeyError(field)
        self.values.update(values)
        return self._revalidate()

    def _revalidate(self) -> Dict[str, str]:
        self.errors = validate_draft(self.values, variant=self.variant)
        return self.errors

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def previous_grant(self) -> bool:
        return as_bool(self.values.get("previous_grant"))

    @property
    def show_previous_grant_usage(self) -> bool:
        return self.previous_grant

    # ------------------------------------------------------------------
    # Submit
    # ------------------------------------------------------------------

    def submit(self) -> bool:
        """
        Validate once more and hand the draft to the orchestrator.
        Returns True only when the application was stored.
        """
        if not self._lock.acquire(blocking=False):
            log.info("submit ignored; another submission is in flight")
            return False
        try:
            if self._revalidate():
                log.info("submit blocked by %d field error(s)", len(self.errors))
                return False

            self.status = "submitting"
            self.submit_error = None
            draft = ApplicationDraft.from_values(self.values)
            result = self.orchestrator.submit(draft, on_success=self.on_success)

            if result.ok:
                self.status = "success"
                self.record = result.record
                return True

            self.status = "error"
            self.submit_error = result.error
            return False
        finally:
            self._lock.release()

    def reset(self) -> bool:
        """Clear the draft. Refused (False) while a submission is in flight."""
        if not self._lock.acquire(blocking=False):
            log.info("reset ignored; a submission is in flight")
            return False
        try:
            self._clear()
        finally:
            self._lock.release()
        return True

    def _clear(self) -> None:
        self.values = {}
        self.errors = {}
        self.status = "idle"
        self.submit_error = None
        self.record = None
