"""
action_log.py - Agent step history and action-signature analysis.

Only non-successful steps are fingerprinted: a successful step repeated
(polling, pagination) is progress, not a loop.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session as DBSession

from app.core.clock import Clock, utcnow
from app.models import ActionLog, ActionStatus
from app.services.action_signature import (
    DEFAULT_THRESHOLD,
    ActionLoopResult,
    ActionSignature,
    build_remedy_history,
    detect_action_loop,
    suggest_next_remedy,
)

logger = logging.getLogger(__name__)


@dataclass
class ActionAnalysis:
    loop: ActionLoopResult
    suggested_remedy: str | None
    remedy_history: dict[str, Any]


class ActionLogService:
    def __init__(self, db: DBSession, clock: Clock = utcnow, threshold: int = DEFAULT_THRESHOLD):
        self.db = db
        self.clock = clock
        self.threshold = threshold

    def record(
        self,
        session_id: str,
        step: int,
        action: str,
        status: ActionStatus,
        error: str | None = None,
        timestamp: datetime | None = None,
        state: Any = None,
        error_code: str | None = None,
        remedy_attempted: str | None = None,
    ) -> ActionLog:
        entry = ActionLog(
            session_id=session_id,
            step=step,
            action=action,
            status=ActionStatus(status).value,
            error=error,
            error_code=error_code,
            remedy_attempted=remedy_attempted,
            state_snapshot=json.dumps(state) if state is not None else None,
            timestamp=timestamp or self.clock(),
            created_at=self.clock(),
        )
        self.db.add(entry)
        self.db.commit()
        return entry

    def by_session(self, session_id: str) -> list[ActionLog]:
        stmt = (
            select(ActionLog)
            .where(ActionLog.session_id == session_id)
            .order_by(ActionLog.step, ActionLog.id)
        )
        return list(self.db.scalars(stmt))

    def analyze(self, session_id: str) -> ActionAnalysis:
        entries = self.by_session(session_id)
        failures = [e for e in entries if e.status != ActionStatus.SUCCESS.value]
        loop = detect_action_loop(
            (ActionSignature(e.action, e.error_code, e.remedy_attempted) for e in failures),
            self.threshold,
        )
        suggested = None
        if loop.is_loop:
            suggested = suggest_next_remedy(loop.remedy_chain)
            logger.info(
                "Action loop in session %s: fingerprint %s seen %d times",
                session_id,
                loop.fingerprint,
                loop.occurrences,
            )
        return ActionAnalysis(
            loop=loop,
            suggested_remedy=suggested,
            remedy_history=build_remedy_history(entries),
        )
