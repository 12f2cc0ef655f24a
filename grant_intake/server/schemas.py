# server/schemas.py
"""
Pydantic schemas for the grant intake backend.

This file defines:
- SupportLetter                      (the uploaded attachment)
- ApplicationDraft                   (typed draft, built once validation is clean)
- ApplicationPayload / SubmissionRecord  (flat snake_cased projection)
- /validate, /form, /applications    (ValidateIn/Out, FormDefinitionOut, SubmissionOut)
"""

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from dateutil import parser as dateparser
from pydantic import BaseModel, ConfigDict, Field, field_validator

_TRUE_STRINGS = {"true", "yes", "on", "1"}


def as_bool(value: Any) -> bool:
    """Coerce checkbox / radio values ("on", "yes", "true") to a bool."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUE_STRINGS


# ---------------------------------------------------------------------------
# Attachment
# ---------------------------------------------------------------------------

class SupportLetter(BaseModel):
    filename: str
    content_type: str
    content: bytes = Field(repr=False)

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        # "letter.PDF" -> "pdf"; a name without a dot is used as-is
        return self.filename.rsplit(".", 1)[-1].lower()


# ---------------------------------------------------------------------------
# Draft
# ---------------------------------------------------------------------------

class ApplicationDraft(BaseModel):
    """
    The applicant's answers, typed. Only build this from values that
    already passed validate_draft(); it does not re-check the form rules.
    """
    is_for_child: bool = False
    applicant_name: str
    date_of_birth: Optional[date] = None
    street: str
    city: str
    province: str
    postal_code: str
    email: str
    phone_number: str
    date_grant_requested: date
    funds_usage: str
    previous_grant: bool = False
    previous_grant_usage: Optional[str] = None
    support_letter: SupportLetter
    verify_information: bool = False

    @field_validator("is_for_child", "previous_grant", "verify_information", mode="before")
    @classmethod
    def _coerce_checkbox(cls, v: Any) -> bool:
        return as_bool(v)

    @field_validator("date_of_birth", "date_grant_requested", mode="before")
    @classmethod
    def _parse_date(cls, v: Any) -> Any:
        if isinstance(v, str):
            return dateparser.isoparse(v.strip()).date() if v.strip() else None
        return v

    @field_validator("previous_grant_usage", mode="before")
    @classmethod
    def _blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @classmethod
    def from_values(cls, values: Dict[str, Any]) -> "ApplicationDraft":
        """Build the typed draft from form values that validate_draft() accepted."""
        return cls.model_validate(dict(values))

    @property
    def mailing_address(self) -> str:
        return f"{self.street}, {self.city}, {self.province} {self.postal_code}"


# ---------------------------------------------------------------------------
# Normalized payload / persisted record
# ---------------------------------------------------------------------------

class ApplicationRow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    is_for_child: bool
    applicant_name: str
    date_of_birth: Optional[date] = None
    mailing_address: str
    email: str
    phone_number: str
    date_requested: date
    funds_usage: str
    previous_grant: bool
    previous_grant_usage: Optional[str] = None
    verify_information: bool
    support_letter_url: str


class ApplicationPayload(ApplicationRow):
    """What the webhooks receive: the row plus the original file name."""
    support_letter_file_name: str

    def record_row(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude={"support_letter_file_name"})


class SubmissionRecord(ApplicationRow):
    id: str
    created_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# /validate
# ---------------------------------------------------------------------------

class ValidateIn(BaseModel):
    field: str
    value: Any = None
    # rest of the draft, needed for previous_grant_usage
    values: Dict[str, Any] = Field(default_factory=dict)


class ValidateOut(BaseModel):
    field: str
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# /form
# ---------------------------------------------------------------------------

class FormDefinitionOut(BaseModel):
    variant: str
    max_file_size: int
    accepted_file_types: List[str]
    provinces: List[str]
    fields: List[str]
    # field that is only shown when this flag is ticked
    conditional_fields: Dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# /applications
# ---------------------------------------------------------------------------

class SubmissionOut(BaseModel):
    status: Literal["idle", "submitting", "success", "error"]
    record: Optional[SubmissionRecord] = None
    error: Optional[str] = None
    errors: Dict[str, str] = Field(default_factory=dict)
