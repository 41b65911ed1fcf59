"""
test_proxy_api.py - Forwarding proxy endpoint.
"""

import httpx
from sqlalchemy import func, select

from app.models import ProxyLog, ProxyOutcome

PROXY = "/api/v1/proxy"
TARGET = "https://api.openai.com/v1/chat/completions"


def proxy_logs(db, session_id):
    db.expire_all()
    return list(db.scalars(
        select(ProxyLog).where(ProxyLog.session_id == session_id).order_by(ProxyLog.id)
    ))


class TestForwarding:
    def test_forwards_and_relays_response(self, client, upstream, app_db):
        response = client.post(
            PROXY,
            headers={"x-target-url": TARGET, "x-session-id": "agent-1", "authorization": "Bearer sk-test"},
            content=b'{"prompt": "hi"}',
        )

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert response.headers["x-upstream"] == "yes"
        assert response.headers["x-loopgate-session"] == "agent-1"
        assert response.headers["x-loopgate-status"] == "FORWARDED"

        sent = upstream.requests[0]
        assert str(sent.url) == TARGET
        assert sent.method == "POST"
        assert sent.content == b'{"prompt": "hi"}'
        assert sent.headers["authorization"] == "Bearer sk-test"
        assert "x-target-url" not in sent.headers
        assert "x-session-id" not in sent.headers

        [log] = proxy_logs(app_db, "agent-1")
        assert log.outcome == ProxyOutcome.FORWARDED.value
        assert log.status_code == 200
        assert log.target == TARGET

    def test_query_parameters_and_default_session(self, client, upstream, app_db):
        response = client.get(PROXY, params={"target": "https://example.com/items"})
        assert response.status_code == 200
        assert response.headers["x-loopgate-session"] == "default"
        assert str(upstream.requests[0].url) == "https://example.com/items"
        assert len(proxy_logs(app_db, "default")) == 1

    def test_sub_threshold_failures_are_relayed(self, client, upstream):
        upstream.status_code = 404
        for _ in range(2):
            response = client.get(PROXY, headers={"x-target-url": TARGET, "x-session-id": "s"})
            assert response.status_code == 404

        status = client.get("/api/v1/sessions/s").json()
        assert status["status"] == "OPERATING"


class TestInvalidTarget:
    def test_malformed_target_writes_nothing(self, client, upstream, app_db):
        response = client.get(PROXY, headers={"x-target-url": "not a url", "x-session-id": "s"})
        assert response.status_code == 400
        assert upstream.requests == []
        assert app_db.scalar(select(func.count(ProxyLog.id))) == 0

    def test_missing_target(self, client, app_db):
        response = client.get(PROXY)
        assert response.status_code == 400
        assert "x-target-url" in response.json()["detail"]
        assert app_db.scalar(select(func.count(ProxyLog.id))) == 0

    def test_non_http_scheme(self, client):
        response = client.get(PROXY, params={"target": "ftp://files.example.com/a"})
        assert response.status_code == 400


class TestAutonomousBlocking:
    def test_three_upstream_500s_block_the_session(self, client, upstream, clock, notifier, app_db):
        upstream.status_code = 500
        headers = {"x-target-url": TARGET, "x-session-id": "looping"}

        for _ in range(3):
            assert client.post(PROXY, headers=headers).status_code == 500
            clock.advance(seconds=10)

        status = client.get("/api/v1/sessions/looping").json()
        assert status["status"] == "BLOCKED"
        assert status["blocked_reason"] == (
            "Proxy auto-block: 3 upstream failures in 1 min (last: HTTP 500)"
        )
        assert len(notifier.alerts) == 1

        # Blocked: answered locally, upstream not contacted
        calls_before = len(upstream.requests)
        response = client.post(PROXY, headers=headers)
        assert response.status_code == 429
        body = response.json()
        assert body["session_id"] == "looping"
        assert body["blocked_reason"].startswith("Proxy auto-block")
        assert body["cooldown_remaining"] == 300 - 10
        assert body["estimated_cost_saved"] == 0.03
        assert len(upstream.requests) == calls_before

        outcomes = [(log.target, log.outcome) for log in proxy_logs(app_db, "looping")]
        assert outcomes[-1] == (TARGET, ProxyOutcome.BLOCKED.value)
        assert ("SYSTEM", ProxyOutcome.BLOCKED.value) in outcomes

    def test_blocked_session_recovers_after_cooldown(self, client, upstream, clock):
        upstream.status_code = 503
        headers = {"x-target-url": TARGET, "x-session-id": "s"}
        for _ in range(3):
            client.get(PROXY, headers=headers)
        assert client.get(PROXY, headers=headers).status_code == 429

        clock.advance(minutes=5)
        upstream.status_code = 200
        assert client.get(PROXY, headers=headers).status_code == 200


class TestUnreachableUpstream:
    def test_network_error_returns_502(self, client, upstream, app_db):
        upstream.fail_with = httpx.ConnectError("connection refused")
        response = client.get(PROXY, headers={"x-target-url": TARGET, "x-session-id": "net"})

        assert response.status_code == 502
        body = response.json()
        assert body["error"] == "Proxy failed to reach target."
        assert "connection refused" in body["details"]

        [log] = proxy_logs(app_db, "net")
        assert log.outcome == ProxyOutcome.ERROR.value
        assert log.status_code == 502

    def test_network_errors_are_recorded_as_session_errors(self, client, upstream):
        upstream.fail_with = httpx.ReadTimeout("timed out")
        client.get(PROXY, headers={"x-target-url": TARGET, "x-session-id": "net"})

        sessions = {s["session_id"]: s for s in client.get("/api/v1/sessions").json()["sessions"]}
        assert sessions["net"]["error_count"] == 1
        assert sessions["net"]["request_count"] == 1
