"""
test_dashboard_api.py - Gate activity summary.
"""

TARGET = "https://api.openai.com/v1/chat/completions"


def block_via_errors(client, session_id):
    for _ in range(3):
        client.post("/api/v1/errors", json={"session_id": session_id, "error": "stuck"})


class TestDashboard:
    def test_empty(self, client):
        body = client.get("/api/v1/dashboard").json()
        assert body["blocked_requests_24h"] == 0
        assert body["active_loops"] == 0
        assert body["money_saved_24h"] == 0
        assert body["events"] == []
        assert body["blocked_sessions"] == []

    def test_blocked_calls_and_money_saved(self, client, clock):
        block_via_errors(client, "s1")
        for _ in range(5):
            response = client.post("/api/v1/proxy", headers={"x-target-url": TARGET, "x-session-id": "s1"})
            assert response.status_code == 429

        clock.advance(seconds=30)
        body = client.get("/api/v1/dashboard").json()
        # the SYSTEM intervention row is not a blocked request
        assert body["blocked_requests_24h"] == 5
        assert body["money_saved_24h"] == 0.15
        assert body["active_loops"] == 1

        [blocked] = body["blocked_sessions"]
        assert blocked["session_id"] == "s1"
        assert blocked["cooldown_remaining"] == 270

        types = {e["type"] for e in body["events"]}
        assert types == {"error", "blocked", "intervention"}

    def test_blocked_calls_older_than_a_day_are_excluded(self, client, clock):
        block_via_errors(client, "s1")
        client.get("/api/v1/proxy", headers={"x-target-url": TARGET, "x-session-id": "s1"})

        clock.advance(hours=25)
        body = client.get("/api/v1/dashboard").json()
        assert body["blocked_requests_24h"] == 0
        assert body["money_saved_24h"] == 0

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}
