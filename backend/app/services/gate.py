"""
gate.py - Per-session forward/block state machine.

    OPERATING --(loop declared | explicit block)--> BLOCKED
    BLOCKED   --(explicit unblock | cooldown elapsed, observed lazily)--> OPERATING

Tripping is idempotent: a session that is already BLOCKED keeps its
original blocked_at (no cooldown reset) and no second alert is sent.
"""

import logging
from datetime import datetime

from app.core.clock import Clock, utcnow
from app.models import ProxyOutcome, SessionState
from app.services.event_log import SYSTEM_TARGET, EventLog
from app.services.notifier import Notifier
from app.services.session_store import SessionStore
from app.services.webhooks import WebhookRegistry

logger = logging.getLogger(__name__)

# Synthetic proxy-log methods recorded when the gate trips
INTERVENTION = "INTERVENTION"
AUTO_BLOCK = "AUTO_BLOCK"


class Gate:
    def __init__(
        self,
        store: SessionStore,
        event_log: EventLog,
        notifier: Notifier,
        webhooks: WebhookRegistry,
        clock: Clock = utcnow,
    ):
        self.store = store
        self.event_log = event_log
        self.notifier = notifier
        self.webhooks = webhooks
        self.clock = clock

    def check(self, session_id: str) -> SessionState:
        """Ensure the session exists and return its effective state."""
        self.store.ensure(session_id)
        return self.store.status(session_id)

    def trip(
        self,
        session_id: str,
        reason: str,
        timestamp: datetime | None = None,
        method: str = INTERVENTION,
    ) -> bool:
        """
        Move the session to BLOCKED after a declared loop.

        Returns True when this call performed the transition; False when the
        session was already BLOCKED (including when a concurrent caller won).
        """
        if self.store.status(session_id) == SessionState.BLOCKED:
            return False
        if not self.store.block_if_operating(session_id, reason):
            return False

        self.event_log.record_proxy_outcome(
            session_id,
            SYSTEM_TARGET,
            method,
            ProxyOutcome.BLOCKED,
            None,
            timestamp or self.clock(),
        )
        logger.warning("Session %s BLOCKED: %s", session_id, reason)

        self.notifier.notify_blocked(
            session_id,
            reason,
            self.webhooks.active_targets(),
            self.clock(),
        )
        return True

    def release(self, session_id: str) -> None:
        """Explicit override: back to OPERATING immediately, ignoring cooldown."""
        self.store.unblock(session_id)
        logger.info("Session %s unblocked by operator", session_id)
