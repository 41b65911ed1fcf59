"""
session_store.py - Durable session -> gating state mapping.

Sessions move between OPERATING and BLOCKED. A BLOCKED session recovers
lazily: the transition back to OPERATING is applied the next time its
status is read after the cooldown has elapsed. There is no background
timer.

Writes use conditional UPDATEs so that concurrent callers racing on the
same session converge on one outcome (one blocked_at, one recovery event).
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession

from app.core.clock import Clock, utcnow
from app.models import ActionLog, ActionStatus, ErrorEvent, GuardSession, ProxyLog, SessionState
from app.services.event_log import EventLog

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_MINUTES = 5


class SessionStore:
    def __init__(
        self,
        db: DBSession,
        event_log: EventLog,
        clock: Clock = utcnow,
        default_cooldown_minutes: int = DEFAULT_COOLDOWN_MINUTES,
    ):
        self.db = db
        self.event_log = event_log
        self.clock = clock
        self.default_cooldown_minutes = default_cooldown_minutes

    def get(self, session_id: str) -> GuardSession | None:
        return self.db.get(GuardSession, session_id, populate_existing=True)

    def ensure(self, session_id: str) -> None:
        """Create the session in OPERATING state if it does not exist."""
        if self.get(session_id) is not None:
            return

        now = self.clock()
        self.db.add(GuardSession(
            session_id=session_id,
            status=SessionState.OPERATING.value,
            cooldown_minutes=self.default_cooldown_minutes,
            created_at=now,
            updated_at=now,
        ))
        try:
            self.db.commit()
            logger.info("Session %s created", session_id)
        except IntegrityError:
            # Created concurrently by another request
            self.db.rollback()

    def status(self, session_id: str) -> SessionState:
        """
        Effective state of the session, applying auto-recovery.

        Unknown sessions are OPERATING. A BLOCKED session whose cooldown has
        elapsed is unblocked here and a [SYSTEM] recovery error is appended.
        """
        session = self.get(session_id)
        if session is None or not session.is_blocked:
            return SessionState.OPERATING

        if not self._cooldown_elapsed(session):
            return SessionState.BLOCKED

        cooldown = session.cooldown_minutes
        if self._recover(session):
            self.event_log.record_error(
                session_id,
                f"[SYSTEM] Auto-recovered after {cooldown}m cooldown",
                self.clock(),
            )
            logger.info("Session %s auto-recovered after %sm cooldown", session_id, cooldown)
        return SessionState.OPERATING

    def block(self, session_id: str, reason: str) -> None:
        """
        Unconditionally mark the session BLOCKED as of now.

        Re-blocking an already blocked session restarts its cooldown; callers
        that must not do that use `block_if_operating`.
        """
        self.ensure(session_id)
        now = self.clock()
        self.db.execute(
            update(GuardSession)
            .where(GuardSession.session_id == session_id)
            .values(
                status=SessionState.BLOCKED.value,
                blocked_reason=reason,
                blocked_at=now,
                updated_at=now,
            )
        )
        self.db.commit()

    def block_if_operating(self, session_id: str, reason: str) -> bool:
        """
        Block the session only if it is not already BLOCKED.

        Returns True when this call performed the transition.
        """
        self.ensure(session_id)
        now = self.clock()
        result = self.db.execute(
            update(GuardSession)
            .where(
                GuardSession.session_id == session_id,
                GuardSession.status != SessionState.BLOCKED.value,
            )
            .values(
                status=SessionState.BLOCKED.value,
                blocked_reason=reason,
                blocked_at=now,
                updated_at=now,
            )
        )
        self.db.commit()
        return result.rowcount == 1

    def unblock(self, session_id: str) -> None:
        """Force the session back to OPERATING. Always succeeds."""
        self.db.execute(
            update(GuardSession)
            .where(GuardSession.session_id == session_id)
            .values(
                status=SessionState.OPERATING.value,
                blocked_reason=None,
                blocked_at=None,
                updated_at=self.clock(),
            )
        )
        self.db.commit()

    def cooldown_remaining(self, session_id: str) -> int | None:
        """
        Whole seconds until auto-recovery (rounded up).

        None when the session is not blocked or has no cooldown; 0 once the
        cooldown has elapsed but recovery has not been observed yet.
        """
        session = self.get(session_id)
        if session is None or not session.is_blocked:
            return None
        deadline = self._recovery_deadline(session)
        if deadline is None:
            return None
        remaining = (deadline - self.clock()).total_seconds()
        return math.ceil(remaining) if remaining > 0 else 0

    def list_blocked(self) -> list[GuardSession]:
        stmt = (
            select(GuardSession)
            .where(GuardSession.status == SessionState.BLOCKED.value)
            .order_by(GuardSession.updated_at.desc())
        )
        return list(self.db.scalars(stmt))

    def count_blocked(self) -> int:
        stmt = select(func.count()).select_from(GuardSession).where(
            GuardSession.status == SessionState.BLOCKED.value
        )
        return self.db.scalar(stmt) or 0

    def set_cooldown(self, session_id: str, cooldown_minutes: int | None) -> None:
        """
        Override the session's cooldown, creating the session if needed.

        None means the session only recovers through an explicit unblock.
        A BLOCKED session's recovery deadline moves with the new value.
        """
        self.ensure(session_id)
        self.db.execute(
            update(GuardSession)
            .where(GuardSession.session_id == session_id)
            .values(cooldown_minutes=cooldown_minutes, updated_at=self.clock())
        )
        self.db.commit()
        logger.info("Session %s cooldown set to %s", session_id, cooldown_minutes)

    def list_sessions(self) -> list[dict[str, Any]]:
        """
        Every known session, most recently active first.

        A session is known once the gate has seen it or once it has logged
        an action step; agents that only report steps are listed as
        OPERATING.
        """
        error_counts = dict(self.db.execute(
            select(ErrorEvent.session_id, func.count(ErrorEvent.id)).group_by(ErrorEvent.session_id)
        ).all())
        request_counts = dict(self.db.execute(
            select(ProxyLog.session_id, func.count(ProxyLog.id)).group_by(ProxyLog.session_id)
        ).all())
        step_stats = {
            row.session_id: row
            for row in self.db.execute(
                select(
                    ActionLog.session_id,
                    func.count(ActionLog.id).label("total_steps"),
                    func.sum(
                        case((ActionLog.status == ActionStatus.LOOP_DETECTED.value, 1), else_=0)
                    ).label("loops"),
                    func.max(ActionLog.timestamp).label("last_step_at"),
                ).group_by(ActionLog.session_id)
            )
        }
        gated = {s.session_id: s for s in self.db.scalars(select(GuardSession))}

        summaries = []
        for session_id in gated.keys() | step_stats.keys():
            session = gated.get(session_id)
            steps = step_stats.get(session_id)
            activity = [
                t for t in (
                    session.updated_at if session else None,
                    steps.last_step_at if steps else None,
                )
                if t is not None
            ]
            summaries.append({
                "session_id": session_id,
                "status": session.status if session else SessionState.OPERATING.value,
                "blocked_reason": session.blocked_reason if session else None,
                "blocked_at": session.blocked_at if session else None,
                "cooldown_minutes": session.cooldown_minutes if session else None,
                "error_count": error_counts.get(session_id, 0),
                "request_count": request_counts.get(session_id, 0),
                "total_steps": steps.total_steps if steps else 0,
                "loops": int(steps.loops or 0) if steps else 0,
                "last_activity": max(activity) if activity else None,
                "created_at": session.created_at if session else None,
                "updated_at": session.updated_at if session else None,
            })

        summaries.sort(key=lambda s: (s["last_activity"] or datetime.min, s["session_id"]), reverse=True)
        return summaries

    @staticmethod
    def _recovery_deadline(session: GuardSession) -> datetime | None:
        if session.blocked_at is None or session.cooldown_minutes is None:
            return None
        return session.blocked_at + timedelta(minutes=session.cooldown_minutes)

    def _cooldown_elapsed(self, session: GuardSession) -> bool:
        deadline = self._recovery_deadline(session)
        return deadline is not None and self.clock() >= deadline

    def _recover(self, session: GuardSession) -> bool:
        """Unblock only the block we observed; False if another caller got there first."""
        result = self.db.execute(
            update(GuardSession)
            .where(
                GuardSession.session_id == session.session_id,
                GuardSession.status == SessionState.BLOCKED.value,
                GuardSession.blocked_at == session.blocked_at,
            )
            .values(
                status=SessionState.OPERATING.value,
                blocked_reason=None,
                blocked_at=None,
                updated_at=self.clock(),
            )
        )
        self.db.commit()
        return result.rowcount == 1
