"""
proxy.py - Forwarding proxy request path.

For every inbound call:
1. Validate the target URL (400, nothing logged, when missing/malformed)
2. Consult the gate for the session
3. BLOCKED   -> log BLOCKED, answer 429, no upstream call (no upstream cost)
4. OPERATING -> forward, log FORWARDED with the real status
5. status >= 400 or unreachable -> synthesize an error event and run the
   upstream-failure trigger

Fail-open below the loop threshold, fail-closed at or above it.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from app.models import ProxyOutcome, SessionState
from app.services.cost import CostTable
from app.services.errors import InvalidTargetError
from app.services.guardrail import GuardrailService

logger = logging.getLogger(__name__)

TARGET_HEADER = "x-target-url"
SESSION_HEADER = "x-session-id"
TARGET_PARAM = "target"
SESSION_PARAM = "session_id"

RESPONSE_SESSION_HEADER = "x-loopgate-session"
RESPONSE_STATUS_HEADER = "x-loopgate-status"

BLOCKED_STATUS = 429
UNREACHABLE_STATUS = 502  # also the sentinel stored on ERROR proxy logs

HOP_BY_HOP = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "proxy-connection",
    "te",
    "trailer",
    "trailers",
    "transfer-encoding",
    "upgrade",
}

# Never forwarded upstream: transport framing plus our own routing headers
SKIP_REQUEST_HEADERS = HOP_BY_HOP | {"host", "content-length", TARGET_HEADER, SESSION_HEADER}

# Never relayed back: httpx has already decoded and de-chunked the body
SKIP_RESPONSE_HEADERS = HOP_BY_HOP | {"content-length", "content-encoding"}

BODYLESS_METHODS = {"GET", "HEAD"}


@dataclass
class ProxyRequest:
    method: str
    target: str | None
    session_id: str
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: bytes | None = None


@dataclass
class ProxyResult:
    """Either a relayed upstream response (content) or a gate/error answer (payload)."""

    status_code: int
    outcome: ProxyOutcome
    headers: list[tuple[str, str]] = field(default_factory=list)
    content: bytes = b""
    payload: dict[str, Any] | None = None


def parse_target(target: str | None) -> httpx.URL:
    """
    Validate a proxy target.

    Raises:
        InvalidTargetError: If missing, unparsable, not http(s) or without a host.
    """
    if not target:
        raise InvalidTargetError(
            f"Missing target URL. Provide {TARGET_HEADER} header or ?{TARGET_PARAM}= query param."
        )
    try:
        url = httpx.URL(target.strip())
    except (httpx.InvalidURL, TypeError, ValueError):
        raise InvalidTargetError("Invalid target URL.", {"target": target})
    if url.scheme not in ("http", "https") or not url.host:
        raise InvalidTargetError("Invalid target URL.", {"target": target})
    return url


def forwardable_headers(headers: list[tuple[str, str]]) -> list[tuple[str, str]]:
    return [(k, v) for k, v in headers if k.lower() not in SKIP_REQUEST_HEADERS]


class ForwardingProxy:
    def __init__(self, guardrail: GuardrailService, http_client: httpx.Client, costs: CostTable):
        self.guardrail = guardrail
        self.http_client = http_client
        self.costs = costs

    def forward(self, request: ProxyRequest) -> ProxyResult:
        url = parse_target(request.target)
        target = request.target
        session_id = request.session_id
        method = request.method.upper()
        now = self.guardrail.clock()

        gate = self.guardrail.gate
        event_log = self.guardrail.event_log

        if gate.check(session_id) == SessionState.BLOCKED:
            event_log.record_proxy_outcome(session_id, target, method, ProxyOutcome.BLOCKED, BLOCKED_STATUS, now)
            session = self.guardrail.store.get(session_id)
            logger.info("Denied %s %s for blocked session %s", method, url.host, session_id)
            return ProxyResult(
                status_code=BLOCKED_STATUS,
                outcome=ProxyOutcome.BLOCKED,
                payload={
                    "error": "Session is BLOCKED due to error loop. Resolve errors or wait for cooldown.",
                    "session_id": session_id,
                    "blocked_reason": session.blocked_reason if session else None,
                    "cooldown_remaining": self.guardrail.store.cooldown_remaining(session_id),
                    "estimated_cost_saved": self.costs.cost_per_request(target),
                },
            )

        try:
            upstream = self.http_client.request(
                method,
                url,
                headers=forwardable_headers(request.headers),
                content=request.body if method not in BODYLESS_METHODS else None,
            )
        except httpx.HTTPError as e:
            detail = str(e) or e.__class__.__name__
            logger.warning("Upstream unreachable for session %s (%s): %s", session_id, url.host, detail)
            event_log.record_proxy_outcome(session_id, target, method, ProxyOutcome.ERROR, UNREACHABLE_STATUS, now)
            self.guardrail.observe_upstream_failure(
                session_id,
                f"Proxy network error: {detail}",
                None,
                now,
            )
            return ProxyResult(
                status_code=UNREACHABLE_STATUS,
                outcome=ProxyOutcome.ERROR,
                payload={"error": "Proxy failed to reach target.", "details": detail},
            )

        event_log.record_proxy_outcome(session_id, target, method, ProxyOutcome.FORWARDED, upstream.status_code, now)

        if upstream.status_code >= 400:
            logger.info("Upstream HTTP %d for session %s", upstream.status_code, session_id)
            self.guardrail.observe_upstream_failure(
                session_id,
                f"Upstream HTTP {upstream.status_code} from {url.host}{url.path}",
                upstream.status_code,
                now,
            )

        headers = [
            (k, v) for k, v in upstream.headers.multi_items()
            if k.lower() not in SKIP_RESPONSE_HEADERS
        ]
        headers.append((RESPONSE_SESSION_HEADER, session_id))
        headers.append((RESPONSE_STATUS_HEADER, ProxyOutcome.FORWARDED.value))

        return ProxyResult(
            status_code=upstream.status_code,
            outcome=ProxyOutcome.FORWARDED,
            headers=headers,
            content=upstream.content,
        )
