"""
guardrail.py - Wiring of store, evidence log, detector and gate.

Two evidence paths can trip the gate independently:
- report_error(): client-reported errors (identical-message trigger)
- observe_upstream_failure(): failures the proxy saw itself, with no
  client cooperation (upstream-failure-count trigger)

No per-session lock is taken. Concurrent reports near the threshold may
both decide "loop"; Gate.trip is idempotent so the session ends BLOCKED
with one of the reasons and a single alert.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session as DBSession

from app.config import Settings, settings as default_settings
from app.core.clock import Clock, utcnow
from app.models import SessionState
from app.services.detector import DetectorConfig, FailureDetector, LoopDecision
from app.services.event_log import EventLog
from app.services.gate import AUTO_BLOCK, INTERVENTION, Gate
from app.services.notifier import Notifier
from app.services.session_store import SessionStore
from app.services.webhooks import WebhookRegistry

logger = logging.getLogger(__name__)


@dataclass
class ErrorReportResult:
    session_id: str
    loop_detected: bool
    session_status: SessionState
    count: int


class GuardrailService:
    def __init__(
        self,
        db: DBSession,
        notifier: Notifier,
        settings: Settings = default_settings,
        clock: Clock = utcnow,
    ):
        self.db = db
        self.settings = settings
        self.clock = clock
        self.event_log = EventLog(db, clock, settings.UPSTREAM_FAILURE_LIMIT)
        self.store = SessionStore(db, self.event_log, clock, settings.DEFAULT_COOLDOWN_MINUTES)
        self.gate = Gate(self.store, self.event_log, notifier, WebhookRegistry(db, clock), clock)
        self.detector = FailureDetector(DetectorConfig.from_settings(settings))

    def report_error(
        self,
        session_id: str,
        message: str,
        timestamp: datetime | None = None,
    ) -> ErrorReportResult:
        """
        Record a client-reported error and trip the gate on a repeat loop.

        The detection window ends at `timestamp` (the report's own time),
        defaulting to now when the client omits it.
        """
        reported_at = timestamp or self.clock()

        self.store.ensure(session_id)
        self.event_log.record_error(session_id, message, reported_at)

        recent = self.event_log.recent_errors(session_id, self.detector.config.recent_error_limit)
        decision = self.detector.evaluate_client_error(message, reported_at, recent)

        if decision.is_loop:
            # No-op when already BLOCKED: cooldown and alerts are not repeated
            self.gate.trip(session_id, decision.reason, reported_at, INTERVENTION)

        status = SessionState.BLOCKED if decision.is_loop else self.store.status(session_id)
        return ErrorReportResult(
            session_id=session_id,
            loop_detected=decision.is_loop,
            session_status=status,
            count=decision.count,
        )

    def observe_upstream_failure(
        self,
        session_id: str,
        description: str,
        status_code: int | None,
        timestamp: datetime | None = None,
    ) -> LoopDecision:
        """
        Record a failure seen on the proxy path and trip on repeated failures.

        `status_code` is None for network-level failures.
        """
        now = timestamp or self.clock()
        self.event_log.record_error(session_id, description, now)

        failures = self.event_log.recent_upstream_failures(session_id, self.detector.config.window)
        decision = self.detector.evaluate_upstream_failures(len(failures), status_code)
        if decision.is_loop:
            self.gate.trip(session_id, decision.reason, now, AUTO_BLOCK)
        return decision
