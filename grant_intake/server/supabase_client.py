# server/supabase_client.py
"""
Thin httpx client for the managed backend (Supabase REST surface).

Only what the intake form needs:
- storage: upload / get_public_url / list  (support letters bucket)
- database: insert                        (grant_applications table)

Every call is attempted exactly once. Failures raise SupabaseError.
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from .config import Settings

log = logging.getLogger("grant_intake.supabase")


class SupabaseError(Exception):
    """Raised when the backend rejects a request or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "error", "msg"):
            if body.get(key):
                return str(body[key])
    return f"Backend error: status={resp.status_code}, body={resp.text}"


def _json(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError as exc:
        raise SupabaseError(f"Backend returned a non-JSON body: status={resp.status_code}", resp.status_code) from exc


class SupabaseClient:
    """
    Storage + database handle passed into the submission orchestrator.

    `client` can be supplied (tests pass one built on httpx.MockTransport);
    otherwise one is created with the configured timeout.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        bucket: str = "support-letters",
        *,
        client: Optional[httpx.Client] = None,
        timeout: float = 30.0,
    ):
        if not url:
            raise SupabaseError("SUPABASE_URL is not set in the environment.")
        self.url = url.rstrip("/")
        self.bucket = bucket
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
        }
        self._client = client or httpx.Client(timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings, client: Optional[httpx.Client] = None) -> "SupabaseClient":
        return cls(
            settings.supabase_url,
            settings.supabase_anon_key,
            settings.support_letter_bucket,
            client=client,
            timeout=settings.http_timeout_seconds,
        )

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        headers = {**self._headers, **kwargs.pop("headers", {})}
        try:
            resp = self._client.request(method, f"{self.url}{path}", headers=headers, **kwargs)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise SupabaseError(f"Backend request failed: {exc}") from exc

        if resp.status_code >= 400:
            raise SupabaseError(_error_message(resp), resp.status_code)
        return resp

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def upload(
        self,
        name: str,
        content: bytes,
        content_type: str,
        upsert: bool = True,
    ) -> str:
        """Upload an object into the bucket and return its key."""
        resp = self._request(
            "POST",
            f"/storage/v1/object/{self.bucket}/{quote(name)}",
            content=content,
            headers={
                "Content-Type": content_type,
                "cache-control": "3600",
                "x-upsert": "true" if upsert else "false",
            },
        )
        data = _json(resp) if resp.content else {}
        log.info("uploaded %s to bucket %s", name, self.bucket)
        return str(data.get("Key") or f"{self.bucket}/{name}")

    def get_public_url(self, name: str) -> str:
        return f"{self.url}/storage/v1/object/public/{self.bucket}/{quote(name)}"

    def list(self, search: str) -> List[str]:
        """Names of objects at the bucket root matching `search`."""
        resp = self._request(
            "POST",
            f"/storage/v1/object/list/{self.bucket}",
            json={"prefix": "", "search": search},
        )
        return [item.get("name", "") for item in _json(resp) or []]

    # ------------------------------------------------------------------
    # Database
    # ------------------------------------------------------------------

    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert one row and return it as stored (id, created_at included)."""
        resp = self._request(
            "POST",
            f"/rest/v1/{table}",
            json=[row],
            headers={"Prefer": "return=representation"},
        )
        rows = _json(resp) or []
        if not rows:
            raise SupabaseError(f"Insert into {table} returned no row")
        return rows[0]
