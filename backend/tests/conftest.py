"""Test configuration and fixtures."""

import os
import sys
from datetime import datetime, timedelta

import httpx
import pytest

# Add paths
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Set a throwaway database BEFORE app.config is imported.
# app.main builds its module-level app from these settings.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_MIGRATE"] = "false"

from fastapi.testclient import TestClient

from app.config import Settings
from app.database import build_engine, build_session_factory, run_migrations
from app.main import create_app

EPOCH = datetime(2026, 1, 1, 12, 0, 0)


class FakeClock:
    """Settable naive-UTC clock."""

    def __init__(self, start: datetime = EPOCH):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now

    def at(self, seconds: float) -> datetime:
        """Absolute time `seconds` after the start of the test."""
        return EPOCH + timedelta(seconds=seconds)


class RecordingNotifier:
    """Stands in for Notifier: records alerts instead of posting them."""

    def __init__(self):
        self.alerts = []

    def notify_blocked(self, session_id, reason, targets, timestamp=None):
        self.alerts.append({
            "session_id": session_id,
            "reason": reason,
            "targets": list(targets),
            "timestamp": timestamp,
        })
        return []

    def shutdown(self, wait=True):
        pass


class UpstreamStub:
    """
    Scriptable upstream behind an httpx.MockTransport.

    Set `status_code` for the next responses, or `fail_with` to raise a
    transport error instead.
    """

    def __init__(self):
        self.status_code = 200
        self.body = b'{"ok": true}'
        self.fail_with: Exception | None = None
        self.requests: list[httpx.Request] = []
        self.client = httpx.Client(transport=httpx.MockTransport(self.handle))

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            raise self.fail_with
        return httpx.Response(
            self.status_code,
            content=self.body,
            headers={"content-type": "application/json", "x-upstream": "yes"},
        )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def upstream():
    stub = UpstreamStub()
    yield stub
    stub.client.close()


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'loopgate.db'}",
        AUTO_MIGRATE=True,
        COST_CONFIG_PATH=None,
    )


@pytest.fixture
def engine(test_settings):
    """Migrated database engine for service-level tests."""
    engine = build_engine(test_settings.database_url)
    run_migrations(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    """Database session fixture."""
    session = build_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(test_settings, clock, notifier, upstream):
    """API client with a fake clock, recording notifier and stub upstream."""
    app = create_app(test_settings, http_client=upstream.client, notifier=notifier, clock=clock)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def app_db(client):
    """Session on the API's own database, for asserting on stored rows."""
    session = client.app.state.session_factory()
    try:
        yield session
    finally:
        session.close()
