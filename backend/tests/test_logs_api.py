"""
test_logs_api.py - Agent action logs and action-loop analysis.
"""

LOGS = "/api/v1/logs"


def step(client, n, status="failure", remedy=None, error_code="500", session_id="agent"):
    return client.post(
        LOGS,
        json={
            "sessionId": session_id,
            "step": n,
            "action": "Click(Submit)",
            "status": status,
            "error": "Server error" if status != "success" else None,
            "errorCode": error_code,
            "remedyAttempted": remedy,
            "state": {"url": "https://shop.example.com/checkout"},
        },
    )


class TestCreateActionLog:
    def test_records_step(self, client):
        response = step(client, 1)
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["loop"]["is_loop"] is False

        logs = client.get(LOGS, params={"sessionId": "agent"}).json()["logs"]
        assert logs[0]["action"] == "Click(Submit)"
        assert logs[0]["error_code"] == "500"
        assert logs[0]["state_snapshot"] == '{"url": "https://shop.example.com/checkout"}'

    def test_missing_required_fields(self, client):
        response = client.post(LOGS, json={"sessionId": "agent", "action": "Click(Submit)"})
        assert response.status_code == 400
        assert "step" in response.json()["detail"]
        assert "status" in response.json()["detail"]

    def test_same_remedy_three_times_is_a_loop(self, client):
        for n in (1, 2):
            step(client, n, remedy="retry_with_backoff")
        body = step(client, 3, remedy="retry_with_backoff").json()

        loop = body["loop"]
        assert loop["is_loop"] is True
        assert loop["occurrences"] == 3
        assert loop["suggested_remedy"] == "change_selector"

    def test_action_loop_does_not_block_session(self, client):
        for n in (1, 2, 3):
            step(client, n, remedy="retry_with_backoff", session_id="a1")
        assert client.get("/api/v1/sessions/a1").json()["status"] == "OPERATING"

    def test_varied_remedies_are_not_a_loop(self, client):
        for n, remedy in enumerate(["retry_with_backoff", "change_selector", "wait_for_element"], 1):
            body = step(client, n, remedy=remedy).json()
        assert body["loop"]["is_loop"] is False

    def test_successful_steps_are_not_fingerprinted(self, client):
        for n in (1, 2, 3):
            body = step(client, n, status="success", error_code=None).json()
        assert body["loop"]["is_loop"] is False


class TestListActionLogs:
    def test_ordered_by_step_with_remedy_history(self, client):
        step(client, 2, remedy="retry_with_backoff")
        step(client, 1)
        step(client, 3, status="success", remedy="change_selector", error_code=None)

        body = client.get(LOGS, params={"sessionId": "agent"}).json()
        assert [log["step"] for log in body["logs"]] == [1, 2, 3]
        assert body["remedy_history"]["total_attempts"] == 2
        assert [a["outcome"] for a in body["remedy_history"]["attempts"]] == ["failure", "success"]
        assert body["loop"]["is_loop"] is False

    def test_requires_session_id(self, client):
        assert client.get(LOGS).status_code == 400

    def test_unknown_session_is_empty(self, client):
        body = client.get(LOGS, params={"sessionId": "nobody"}).json()
        assert body["logs"] == []
        assert body["remedy_history"] == {"attempts": [], "total_attempts": 0}
