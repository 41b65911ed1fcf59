"""
notifier.py - Best-effort block notifications.

FAILURE SEMANTICS:
- Fire-and-forget: delivery runs on a background thread pool and is never
  awaited by the gating decision
- Failures are logged and swallowed; never retried, never surfaced
- No exactly-once guarantee
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx

from app.core.clock import isoformat, utcnow
from app.models import WebhookType

logger = logging.getLogger(__name__)

ALERT_TITLE = "LoopGate: Session BLOCKED"
DISCORD_RED = 0xFF4444


@dataclass(frozen=True)
class WebhookTarget:
    """Detached copy of an enabled webhook row, safe to hand to worker threads."""

    id: int | None
    url: str
    type: str = WebhookType.SLACK.value


def format_payload(webhook_type: str, session_id: str, reason: str, timestamp: str) -> dict[str, Any]:
    """Render the block alert for one endpoint type; unknown types get the Slack shape."""
    if webhook_type == WebhookType.DISCORD.value:
        return {
            "content": None,
            "embeds": [{
                "title": ALERT_TITLE,
                "description": reason,
                "color": DISCORD_RED,
                "fields": [
                    {"name": "Session", "value": f"`{session_id}`", "inline": True},
                    {"name": "Time", "value": timestamp, "inline": True},
                ],
                "footer": {"text": "LoopGate Guardrail"},
            }],
        }
    # Slack-compatible; generic webhooks accept the same body
    return {
        "text": f"*{ALERT_TITLE}*\n>Session: `{session_id}`\n>Reason: {reason}\n>Time: {timestamp}",
    }


class Notifier:
    """
    Dispatches block alerts to webhook targets.

    Owned by the application: created once at startup and shut down with it.
    """

    def __init__(
        self,
        http_client: httpx.Client | None = None,
        max_workers: int = 4,
        timeout: float = 5.0,
    ):
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.Client(timeout=timeout)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="loopgate-notify",
        )

    def notify_blocked(
        self,
        session_id: str,
        reason: str,
        targets: Sequence[WebhookTarget],
        timestamp: datetime | None = None,
    ) -> list[Future]:
        """
        Queue one alert per target and return immediately.

        The returned futures resolve to True/False per delivery; callers on
        the request path must not wait on them.
        """
        when = isoformat(timestamp or utcnow())
        futures: list[Future] = []
        for target in targets:
            payload = format_payload(target.type, session_id, reason, when)
            try:
                futures.append(self._executor.submit(self._deliver, target, payload))
            except RuntimeError:
                # Executor already shut down
                logger.warning("Notifier stopped; dropping alert for session %s", session_id)
                break
        if futures:
            logger.info("Queued %d block alert(s) for session %s", len(futures), session_id)
        return futures

    def _deliver(self, target: WebhookTarget, payload: dict[str, Any]) -> bool:
        try:
            response = self.http_client.post(target.url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Webhook %s delivery failed: %s", target.id, e)
            return False
        except Exception:
            logger.exception("Webhook %s delivery crashed", target.id)
            return False
        return True

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
        if self._owns_client:
            self.http_client.close()
