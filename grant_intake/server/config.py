# server/config.py
# ---------------------------------------------------------
# Runtime configuration for the grant intake backend.
#
# Values come from the environment, with .env files loaded from the
# project root and the current working directory.
# ---------------------------------------------------------

import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel

# .../grant_intake/server
BASE_DIR = Path(__file__).resolve().parent
# repo root
ROOT_DIR = BASE_DIR.parent.parent

load_dotenv(ROOT_DIR / ".env")
load_dotenv()


class Settings(BaseModel):
    supabase_url: str = ""
    supabase_anon_key: str = ""
    support_letter_bucket: str = "support-letters"
    applications_table: str = "grant_applications"
    make_webhook_url: str = ""
    retool_webhook_url: str = ""
    form_variant: str = "respite"
    http_timeout_seconds: float = 30.0

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            supabase_url=os.getenv("SUPABASE_URL") or "",
            supabase_anon_key=os.getenv("SUPABASE_ANON_KEY") or "",
            support_letter_bucket=os.getenv("SUPPORT_LETTER_BUCKET") or "support-letters",
            applications_table=os.getenv("APPLICATIONS_TABLE") or "grant_applications",
            make_webhook_url=os.getenv("MAKE_WEBHOOK_URL") or "",
            retool_webhook_url=os.getenv("RETOOL_WEBHOOK_URL") or "",
            form_variant=os.getenv("FORM_VARIANT") or "respite",
            http_timeout_seconds=float(os.getenv("HTTP_TIMEOUT_SECONDS") or 30.0),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
