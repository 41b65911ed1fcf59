"""
logs.py - Agent action log endpoints.

Action loops are reported with a suggested next remedy; they never block
the session. Blocking is driven by error reports and upstream failures.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError

from app.api.deps import get_action_logs
from app.core.clock import parse_timestamp
from app.schemas.guard import (
    ActionLogCreate,
    ActionLogCreated,
    ActionLogList,
    ActionLogRead,
    ActionLoopRead,
)
from app.services.action_log import ActionAnalysis, ActionLogService

logger = logging.getLogger(__name__)

router = APIRouter()


def _loop_read(analysis: ActionAnalysis) -> ActionLoopRead:
    return ActionLoopRead(
        **analysis.loop.to_dict(),
        suggested_remedy=analysis.suggested_remedy,
    )


@router.post(
    "",
    response_model=ActionLogCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Record an agent step",
)
def create_action_log(
    entry: ActionLogCreate,
    service: ActionLogService = Depends(get_action_logs),
) -> ActionLogCreated:
    missing = [
        name
        for name, value in (
            ("sessionId", entry.session_id),
            ("step", entry.step),
            ("action", entry.action),
            ("status", entry.status),
        )
        if value is None or value == ""
    ]
    if missing:
        raise HTTPException(status_code=400, detail=f"Missing required fields: {', '.join(missing)}")

    timestamp = None
    if entry.timestamp:
        try:
            timestamp = parse_timestamp(entry.timestamp)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid timestamp: {entry.timestamp}")

    try:
        row = service.record(
            entry.session_id,
            entry.step,
            entry.action,
            entry.status,
            error=entry.error,
            timestamp=timestamp,
            state=entry.state,
            error_code=entry.error_code,
            remedy_attempted=entry.remedy_attempted,
        )
        analysis = service.analyze(entry.session_id)
    except SQLAlchemyError:
        service.db.rollback()
        logger.exception("Failed to record action log for session %s", entry.session_id)
        raise HTTPException(status_code=500, detail="Failed to record action log.")

    return ActionLogCreated(id=row.id, loop=_loop_read(analysis))


@router.get("", response_model=ActionLogList, summary="Action history for a session")
def list_action_logs(
    session_id: str | None = Query(None, alias="sessionId", description="Session identifier"),
    service: ActionLogService = Depends(get_action_logs),
) -> ActionLogList:
    """
    Return the session's steps in step order with loop analysis.

    `remedy_history` lists every step that attempted a remedy and whether
    it succeeded.
    """
    if not session_id:
        raise HTTPException(status_code=400, detail="Missing sessionId.")

    analysis = service.analyze(session_id)
    return ActionLogList(
        logs=[ActionLogRead.model_validate(e) for e in service.by_session(session_id)],
        loop=_loop_read(analysis),
        remedy_history=analysis.remedy_history,
    )
