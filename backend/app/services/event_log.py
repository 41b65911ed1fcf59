"""
event_log.py - Durable evidence base for loop detection.

Append-only: one ErrorEvent per reported or self-detected error, one
ProxyLog per proxied call (plus synthetic SYSTEM interventions).
Each write commits immediately so that concurrent detectors see it.
"""

import logging
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session as DBSession

from app.core.clock import Clock, utcnow
from app.models import ErrorEvent, ProxyLog, ProxyOutcome

logger = logging.getLogger(__name__)

# Synthetic proxy-log target used for gate interventions
SYSTEM_TARGET = "SYSTEM"

# Hard cap on upstream failures fetched per decision
UPSTREAM_FAILURE_LIMIT = 10


class EventLog:
    def __init__(self, db: DBSession, clock: Clock = utcnow, upstream_failure_limit: int = UPSTREAM_FAILURE_LIMIT):
        self.db = db
        self.clock = clock
        self.upstream_failure_limit = upstream_failure_limit

    def record_error(self, session_id: str, message: str, timestamp: datetime | None = None) -> ErrorEvent:
        event = ErrorEvent(
            session_id=session_id,
            message=message,
            timestamp=timestamp or self.clock(),
            created_at=self.clock(),
        )
        self.db.add(event)
        self.db.commit()
        return event

    def record_proxy_outcome(
        self,
        session_id: str,
        target: str,
        method: str,
        outcome: ProxyOutcome,
        status_code: int | None,
        timestamp: datetime | None = None,
    ) -> ProxyLog:
        entry = ProxyLog(
            session_id=session_id,
            target=target,
            method=method,
            outcome=ProxyOutcome(outcome).value,
            status_code=status_code,
            timestamp=timestamp or self.clock(),
            created_at=self.clock(),
        )
        self.db.add(entry)
        self.db.commit()
        return entry

    def recent_errors(self, session_id: str, limit: int = 5) -> list[ErrorEvent]:
        """Last `limit` errors for the session, most recent first (insertion order)."""
        stmt = (
            select(ErrorEvent)
            .where(ErrorEvent.session_id == session_id)
            .order_by(ErrorEvent.id.desc())
            .limit(limit)
        )
        return list(self.db.scalars(stmt))

    def recent_upstream_failures(self, session_id: str, window: timedelta) -> list[ProxyLog]:
        """
        Forwarded calls that came back with status >= 400 within `window` of now.

        Most recent first, capped at `upstream_failure_limit`.
        """
        cutoff = self.clock() - window
        stmt = (
            select(ProxyLog)
            .where(
                ProxyLog.session_id == session_id,
                ProxyLog.outcome == ProxyOutcome.FORWARDED.value,
                ProxyLog.status_code >= 400,
                ProxyLog.timestamp >= cutoff,
            )
            .order_by(ProxyLog.id.desc())
            .limit(self.upstream_failure_limit)
        )
        return list(self.db.scalars(stmt))

    @staticmethod
    def _blocked_since(since: datetime) -> tuple:
        return (
            ProxyLog.outcome == ProxyOutcome.BLOCKED.value,
            ProxyLog.target != SYSTEM_TARGET,
            ProxyLog.timestamp >= since,
        )

    def blocked_count_since(self, since: datetime) -> int:
        stmt = select(func.count(ProxyLog.id)).where(*self._blocked_since(since))
        return self.db.scalar(stmt) or 0

    def blocked_targets_since(self, since: datetime) -> list[str]:
        """Targets of real requests denied by the gate since `since`."""
        stmt = select(ProxyLog.target).where(*self._blocked_since(since))
        return list(self.db.scalars(stmt))

    def session_errors(self, session_id: str) -> list[ErrorEvent]:
        stmt = select(ErrorEvent).where(ErrorEvent.session_id == session_id).order_by(ErrorEvent.id)
        return list(self.db.scalars(stmt))

    def session_proxy_logs(self, session_id: str) -> list[ProxyLog]:
        stmt = select(ProxyLog).where(ProxyLog.session_id == session_id).order_by(ProxyLog.id)
        return list(self.db.scalars(stmt))

    def recent_events(self, limit: int = 50) -> list[dict[str, Any]]:
        """Merged feed of errors and blocked calls, newest first."""
        errors = self.db.scalars(
            select(ErrorEvent).order_by(ErrorEvent.id.desc()).limit(limit)
        )
        blocked = self.db.scalars(
            select(ProxyLog)
            .where(ProxyLog.outcome == ProxyOutcome.BLOCKED.value)
            .order_by(ProxyLog.id.desc())
            .limit(limit)
        )

        events: list[dict[str, Any]] = [
            {
                "id": e.id,
                "type": "error",
                "session_id": e.session_id,
                "message": e.message,
                "timestamp": e.timestamp,
            }
            for e in errors
        ]
        for entry in blocked:
            if entry.target == SYSTEM_TARGET:
                events.append({
                    "id": entry.id,
                    "type": "intervention",
                    "session_id": entry.session_id,
                    "message": f"Gate intervention ({entry.method})",
                    "timestamp": entry.timestamp,
                })
            else:
                events.append({
                    "id": entry.id,
                    "type": "blocked",
                    "session_id": entry.session_id,
                    "message": f"Blocked {entry.method} -> {entry.target}",
                    "timestamp": entry.timestamp,
                })

        events.sort(key=lambda e: e["timestamp"], reverse=True)
        return events[:limit]
