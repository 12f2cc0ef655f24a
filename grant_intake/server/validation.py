# server/validation.py
# ---------------------------------------------------------
# Declarative field rules for the grant application form.
#
# Every rule is pure and returns either None (pass) or the message the
# form shows under the field. Nothing here raises for bad user input;
# errors are collected per field by validate_draft().
#
# Public helpers:
#   - validate_field(field, value, values=None, variant="respite")
#   - validate_draft(values, variant="respite")
#   - max_file_size(variant)
# ---------------------------------------------------------

import re
from datetime import date
from typing import Any, Callable, Dict, List, Mapping, Optional

from dateutil import parser as dateparser
from email_validator import EmailNotValidError, validate_email

from .schemas import SupportLetter, as_bool

POSTAL_CODE_RE = re.compile(r"[A-Za-z]\d[A-Za-z][ -]?\d[A-Za-z]\d", re.ASCII)
# XXX-XXX-XXXX, (XXX) XXX-XXXX, XXX.XXX.XXXX, XXXXXXXXXX
PHONE_RE = re.compile(r"\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}", re.ASCII)

PROVINCES: List[str] = [
    "Ontario",
    "Quebec",
    "Nova Scotia",
    "New Brunswick",
    "Manitoba",
    "British Columbia",
    "Prince Edward Island",
    "Saskatchewan",
    "Alberta",
    "Newfoundland and Labrador",
]

ACCEPTED_FILE_TYPES = ("application/pdf", "image/jpeg", "image/png")

MIB = 1024 * 1024
FORM_VARIANTS: Dict[str, int] = {
    "standard": 5 * MIB,
    "respite": 25 * MIB,
}
DEFAULT_VARIANT = "respite"


def max_file_size(variant: str = DEFAULT_VARIANT) -> int:
    """Upload ceiling in bytes for a form variant."""
    try:
        return FORM_VARIANTS[variant]
    except KeyError:
        raise ValueError(f"unknown form variant: {variant!r}") from None


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _parse_date(value: Any) -> Optional[date]:
    if isinstance(value, date):
        return value
    try:
        return dateparser.isoparse(_text(value).strip()).date()
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Field rules
# ---------------------------------------------------------------------------

Rule = Callable[[Any, Mapping[str, Any], str], Optional[str]]


def _min_length(n: int, message: str) -> Rule:
    def rule(value: Any, values: Mapping[str, Any], variant: str) -> Optional[str]:
        if len(_text(value).strip()) < n:
            return message
        return None

    return rule


def _optional_bool(value: Any, values: Mapping[str, Any], variant: str) -> Optional[str]:
    return None


def _optional_date(value: Any, values: Mapping[str, Any], variant: str) -> Optional[str]:
    if value is None or _text(value).strip() == "":
        return None
    if _parse_date(value) is None:
        return "Please enter a valid date"
    return None


def _required_date(value: Any, values: Mapping[str, Any], variant: str) -> Optional[str]:
    if value is None or _text(value).strip() == "":
        return "Date is required"
    if _parse_date(value) is None:
        return "Please enter a valid date"
    return None


def _province(value: Any, values: Mapping[str, Any], variant: str) -> Optional[str]:
    if value not in PROVINCES:
        return "Please select a valid province"
    return None


def _postal_code(value: Any, values: Mapping[str, Any], variant: str) -> Optional[str]:
    if not POSTAL_CODE_RE.fullmatch(_text(value)):
        return "Please enter a valid postal code"
    return None


def _email(value: Any, values: Mapping[str, Any], variant: str) -> Optional[str]:
    try:
        validate_email(_text(value), check_deliverability=False)
    except EmailNotValidError:
        return "Please enter a valid email"
    return None


def _phone(value: Any, values: Mapping[str, Any], variant: str) -> Optional[str]:
    if not PHONE_RE.fullmatch(_text(value)):
        return "Please enter a valid phone number (e.g., XXX-XXX-XXXX)"
    return None


def _previous_grant_usage(value: Any, values: Mapping[str, Any], variant: str) -> Optional[str]:
    # only required while the "received a grant before" box is ticked
    if not as_bool(values.get("previous_grant")):
        return None
    if len(_text(value).strip()) < 1:
        return "Please explain previous grant usage"
    return None


def _support_letter(value: Any, values: Mapping[str, Any], variant: str) -> Optional[str]:
    """
    Four independent checks, reported in order:
    presence, real file content, size ceiling, accepted type.
    """
    if value is None:
        return "Support letter is required"
    if not isinstance(value, SupportLetter) or not value.content:
        return "Invalid file"
    limit = max_file_size(variant)
    if value.size > limit:
        return f"File size must be less than {limit // MIB}MB"
    if value.content_type not in ACCEPTED_FILE_TYPES:
        return "Only .pdf, .jpg, and .png files are accepted"
    return None


def _verify_information(value: Any, values: Mapping[str, Any], variant: str) -> Optional[str]:
    if not as_bool(value):
        return "You must verify the information"
    return None


FIELD_RULES: Dict[str, Rule] = {
    "is_for_child": _optional_bool,
    "applicant_name": _min_length(2, "Name must be at least 2 characters"),
    "date_of_birth": _optional_date,
    "street": _min_length(5, "Please enter a valid street address"),
    "city": _min_length(2, "Please enter a valid city"),
    "province": _province,
    "postal_code": _postal_code,
    "email": _email,
    "phone_number": _phone,
    "date_grant_requested": _required_date,
    "funds_usage": _min_length(10, "Please provide more details"),
    "previous_grant": _optional_bool,
    "previous_grant_usage": _previous_grant_usage,
    "support_letter": _support_letter,
    "verify_information": _verify_information,
}

FIELDS: List[str] = list(FIELD_RULES)


def validate_field(
    field: str,
    value: Any,
    values: Optional[Mapping[str, Any]] = None,
    variant: str = DEFAULT_VARIANT,
) -> Optional[str]:
    """
    Check one field. `values` is the whole draft, needed only by the
    previous_grant_usage rule. Raises KeyError for an unknown field.
    """
    rule = FIELD_RULES[field]
    return rule(value, values or {}, variant)


def validate_draft(
    values: Mapping[str, Any],
    variant: str = DEFAULT_VARIANT,
) -> Dict[str, str]:
    """Run every rule against the draft and return {field: message}."""
    errors: Dict[str, str] = {}
    for field, rule in FIELD_RULES.items():
        message = rule(values.get(field), values, variant)
        if message:
            errors[field] = message
    return errors
