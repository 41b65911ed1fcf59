"""
test_sessions_api.py - Session status, listing and manual unblock.
"""

SESSIONS = "/api/v1/sessions"


def block(client, session_id):
    for _ in range(3):
        client.post("/api/v1/errors", json={"session_id": session_id, "error": "stuck"})


class TestSessionStatus:
    def test_unknown_session_is_operating(self, client):
        body = client.get(f"{SESSIONS}/ghost").json()
        assert body["status"] == "OPERATING"
        assert body["cooldown_remaining"] is None

    def test_blocked_session_reports_cooldown(self, client, clock):
        block(client, "s1")
        clock.advance(seconds=60)

        body = client.get(f"{SESSIONS}/s1").json()
        assert body["status"] == "BLOCKED"
        assert body["cooldown_minutes"] == 5
        assert body["cooldown_remaining"] == 240

    def test_status_read_applies_auto_recovery(self, client, clock):
        block(client, "s1")
        clock.advance(minutes=5)

        body = client.get(f"{SESSIONS}/s1").json()
        assert body["status"] == "OPERATING"
        assert body["blocked_reason"] is None

        sessions = {s["session_id"]: s for s in client.get(SESSIONS).json()["sessions"]}
        # three reports plus the recovery notice
        assert sessions["s1"]["error_count"] == 4


class TestUnblock:
    def test_unblock_is_immediate(self, client, upstream):
        block(client, "s1")
        proxy_headers = {"x-target-url": "https://example.com/", "x-session-id": "s1"}
        assert client.get("/api/v1/proxy", headers=proxy_headers).status_code == 429

        response = client.post(f"{SESSIONS}/unblock", json={"sessionId": "s1"})
        assert response.status_code == 200
        assert response.json() == {"success": True, "session_id": "s1", "status": "OPERATING"}
        assert client.get("/api/v1/proxy", headers=proxy_headers).status_code == 200

    def test_unblock_requires_session_id(self, client):
        assert client.post(f"{SESSIONS}/unblock", json={}).status_code == 400

    def test_unblock_operating_session(self, client):
        response = client.post(f"{SESSIONS}/unblock", json={"session_id": "fine"})
        assert response.status_code == 200


class TestSessionList:
    def test_lists_blocked_and_operating(self, client):
        block(client, "bad")
        client.post("/api/v1/errors", json={"session_id": "good", "error": "once"})

        sessions = {s["session_id"]: s for s in client.get(SESSIONS).json()["sessions"]}
        assert sessions["bad"]["status"] == "BLOCKED"
        assert sessions["good"]["status"] == "OPERATING"
        # the gate intervention is logged as a proxy entry
        assert sessions["bad"]["request_count"] == 1

    def test_lists_sessions_known_only_from_action_logs(self, client):
        for n, status in ((1, "failure"), (2, "loop_detected")):
            client.post(
                "/api/v1/logs",
                json={
                    "sessionId": "bot-7",
                    "step": n,
                    "action": "Click(Submit)",
                    "status": status,
                    "timestamp": f"2026-01-01T12:00:0{n}Z",
                },
            )

        sessions = {s["session_id"]: s for s in client.get(SESSIONS).json()["sessions"]}
        bot = sessions["bot-7"]
        assert bot["status"] == "OPERATING"
        assert bot["total_steps"] == 2
        assert bot["loops"] == 1
        assert bot["last_activity"] == "2026-01-01T12:00:02"


class TestCooldownOverride:
    def test_short_cooldown_recovers_first(self, client, clock):
        response = client.patch(f"{SESSIONS}/quick", json={"cooldown_minutes": 1})
        assert response.status_code == 200
        assert response.json()["cooldown_minutes"] == 1

        block(client, "quick")
        block(client, "slow")

        clock.advance(seconds=60)
        assert client.get(f"{SESSIONS}/quick").json()["status"] == "OPERATING"
        assert client.get(f"{SESSIONS}/slow").json()["status"] == "BLOCKED"

    def test_null_cooldown_disables_auto_recovery(self, client, clock):
        client.patch(f"{SESSIONS}/manual", json={"cooldownMinutes": None})
        block(client, "manual")

        clock.advance(hours=2)
        body = client.get(f"{SESSIONS}/manual").json()
        assert body["status"] == "BLOCKED"
        assert body["cooldown_remaining"] is None

    def test_empty_update_is_rejected(self, client):
        assert client.patch(f"{SESSIONS}/s1", json={}).status_code == 400

    def test_cooldown_must_be_positive(self, client):
        assert client.patch(f"{SESSIONS}/s1", json={"cooldown_minutes": 0}).status_code == 422


class TestTimeline:
    def test_collects_errors_calls_and_steps(self, client, upstream):
        upstream.status_code = 500
        client.get("/api/v1/proxy", headers={"x-target-url": "https://example.com/a", "x-session-id": "t1"})
        client.post(
            "/api/v1/logs",
            json={"sessionId": "t1", "step": 1, "action": "Fetch(a)", "status": "failure", "errorCode": "500"},
        )

        body = client.get(f"{SESSIONS}/t1/timeline").json()
        assert body["session_id"] == "t1"
        assert [e["message"] for e in body["errors"]] == ["Upstream HTTP 500 from example.com/a"]
        assert [(p["outcome"], p["status_code"]) for p in body["proxy_logs"]] == [("FORWARDED", 500)]
        assert [s["action"] for s in body["steps"]] == ["Fetch(a)"]

    def test_unknown_session_is_empty(self, client):
        body = client.get(f"{SESSIONS}/nobody/timeline").json()
        assert body == {"session_id": "nobody", "errors": [], "proxy_logs": [], "steps": []}
