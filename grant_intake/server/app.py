# server/app.py
import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .form_state import FormState
from .notifier import WebhookNotifier
from .schemas import (  # type: ignore
    FormDefinitionOut,
    SubmissionOut,
    SupportLetter,
    ValidateIn,
    ValidateOut,
)
from .submission import SubmissionOrchestrator
from .supabase_client import SupabaseClient
from .validation import (  # type: ignore
    ACCEPTED_FILE_TYPES,
    FIELDS,
    PROVINCES,
    max_file_size,
    validate_field,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
)
log = logging.getLogger("grant_intake.api")

app = FastAPI(title="SCAGO Grant Intake Backend")

# the form is embedded on the organization's site
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def _default_orchestrator() -> SubmissionOrchestrator:
    settings = get_settings()
    backend = SupabaseClient.from_settings(settings)
    return SubmissionOrchestrator(
        storage=backend,
        records=backend,
        notifier=WebhookNotifier.from_settings(settings),
        table=settings.applications_table,
    )


def get_orchestrator() -> SubmissionOrchestrator:
    return _default_orchestrator()


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@app.get("/health")
def health() -> Dict[str, Any]:
    return {"ok": True, "ts": datetime.now(timezone.utc).isoformat()}


# ---------------------------------------------------------------------------
# /form – what the browser needs to render the fields
# ---------------------------------------------------------------------------


@app.get("/form", response_model=FormDefinitionOut)
def form_definition(settings: Settings = Depends(get_settings)) -> FormDefinitionOut:
    return FormDefinitionOut(
        variant=settings.form_variant,
        max_file_size=max_file_size(settings.form_variant),
        accepted_file_types=list(ACCEPTED_FILE_TYPES),
        provinces=PROVINCES,
        fields=FIELDS,
        conditional_fields={"previous_grant_usage": "previous_grant"},
    )


# ---------------------------------------------------------------------------
# /validate – validate-on-change for a single field
# ---------------------------------------------------------------------------


@app.post("/validate", response_model=ValidateOut)
def validate(payload: ValidateIn, settings: Settings = Depends(get_settings)) -> ValidateOut:
    try:
        error = validate_field(
            payload.field,
            payload.value,
            values=payload.values,
            variant=settings.form_variant,
        )
    except KeyError:
        raise HTTPException(status_code=404, detail="unknown_field")
    return ValidateOut(field=payload.field, error=error)


# ---------------------------------------------------------------------------
# /applications – full submit
# ---------------------------------------------------------------------------


def _support_letter(upload: Optional[UploadFile], variant: str) -> Optional[SupportLetter]:
    if upload is None or not upload.filename:
        return None
    # one byte past the ceiling is enough for the size rule to reject it
    return SupportLetter(
        filename=upload.filename,
        content_type=upload.content_type or "",
        content=upload.file.read(max_file_size(variant) + 1),
    )


@app.post("/applications", response_model=SubmissionOut)
def submit_application(
    applicant_name: str = Form(""),
    is_for_child: str = Form("no"),
    date_of_birth: str = Form(""),
    street: str = Form(""),
    city: str = Form(""),
    province: str = Form(""),
    postal_code: str = Form(""),
    email: str = Form(""),
    phone_number: str = Form(""),
    date_grant_requested: str = Form(""),
    funds_usage: str = Form(""),
    previous_grant: str = Form("false"),
    previous_grant_usage: str = Form(""),
    verify_information: str = Form("false"),
    support_letter: Optional[UploadFile] = File(None),
    settings: Settings = Depends(get_settings),
    orchestrator: SubmissionOrchestrator = Depends(get_orchestrator),
) -> Any:
    form = FormState(orchestrator, variant=settings.form_variant)
    form.update(
        {
            "applicant_name": applicant_name,
            "is_for_child": is_for_child,
            "date_of_birth": date_of_birth,
            "street": street,
            "city": city,
            "province": province,
            "postal_code": postal_code,
            "email": email,
            "phone_number": phone_number,
            "date_grant_requested": date_grant_requested,
            "funds_usage": funds_usage,
            "previous_grant": previous_grant,
            "previous_grant_usage": previous_grant_usage,
            "verify_information": verify_information,
            "support_letter": _support_letter(support_letter, settings.form_variant),
        }
    )

    if not form.submit():
        if form.errors:
            out = SubmissionOut(status=form.status, errors=form.errors)
            return JSONResponse(status_code=422, content=out.model_dump(mode="json"))
        out = SubmissionOut(status=form.status, error=form.submit_error)
        return JSONResponse(status_code=502, content=out.model_dump(mode="json"))

    return SubmissionOut(status=form.status, record=form.record)
