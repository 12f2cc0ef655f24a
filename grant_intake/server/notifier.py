# server/notifier.py
"""
Best-effort webhook notifications.

Each submission is forwarded to the workflow-automation hooks (Make,
Retool) after the upload is verified. A failing hook is logged and
returned as a NotificationError; nothing here raises to the caller.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from .config import Settings

log = logging.getLogger("grant_intake.notifier")


@dataclass
class WebhookTarget:
    name: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class NotificationError:
    target: str
    message: str
    status_code: Optional[int] = None


def default_targets(settings: Settings) -> List[WebhookTarget]:
    return [
        WebhookTarget(
            name="make",
            url=settings.make_webhook_url,
            headers={"Content-Type": "application/json"},
        ),
        WebhookTarget(
            name="retool",
            url=settings.retool_webhook_url,
            headers={"Content-Type": "application/json", "Accept": "*/*"},
        ),
    ]


class WebhookNotifier:
    def __init__(
        self,
        targets: List[WebhookTarget],
        *,
        client: Optional[httpx.Client] = None,
        timeout: float = 30.0,
    ):
        self.targets = targets
        self._client = client or httpx.Client(timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings, client: Optional[httpx.Client] = None) -> "WebhookNotifier":
        return cls(
            default_targets(settings),
            client=client,
            timeout=settings.http_timeout_seconds,
        )

    def close(self) -> None:
        self._client.close()

    def notify(self, payload: Dict[str, Any]) -> List[NotificationError]:
        """POST `payload` to every target in order. Returns the failures."""
        failures: List[NotificationError] = []
        for target in self.targets:
            err = self._send(target, payload)
            if err is not None:
                failures.append(err)
        return failures

    def _send(self, target: WebhookTarget, payload: Dict[str, Any]) -> Optional[NotificationError]:
        if not target.url:
            log.info("%s webhook not configured; skipping", target.name)
            return None

        try:
            resp = self._client.post(target.url, json=payload, headers=target.headers)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            log.error("%s webhook error: %s", target.name, exc)
            return NotificationError(target=target.name, message=str(exc))

        if not resp.is_success:
            log.warning("%s webhook warning: status=%s body=%s", target.name, resp.status_code, resp.text)
            return NotificationError(
                target=target.name,
                message=resp.text,
                status_code=resp.status_code,
            )

        log.info("%s webhook delivered", target.name)
        return None
