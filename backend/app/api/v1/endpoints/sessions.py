"""
sessions.py - Session gating state endpoints.

ENDPOINTS:
- GET   /sessions                    Every known session (gated or step-logging)
- GET   /sessions/{id}               Effective status; applies pending auto-recovery
- PATCH /sessions/{id}               Per-session cooldown override
- GET   /sessions/{id}/timeline      Errors, proxied calls and steps for one session
- POST  /sessions/unblock            Force a session back to OPERATING

RESPONSE CODES:
- 400 Bad Request: Missing session_id, or nothing to update
- 500 Internal Server Error: Storage failure
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError

from app.api.deps import get_action_logs, get_guardrail
from app.models import SessionState
from app.schemas.guard import (
    ActionLogRead,
    ErrorEventRead,
    ProxyLogRead,
    SessionList,
    SessionStatusResponse,
    SessionTimeline,
    SessionUpdate,
    UnblockRequest,
    UnblockResponse,
)
from app.services.action_log import ActionLogService
from app.services.guardrail import GuardrailService

logger = logging.getLogger(__name__)

router = APIRouter()


def _status_response(guardrail: GuardrailService, session_id: str) -> SessionStatusResponse:
    # status() first: it applies any pending auto-recovery
    state = guardrail.store.status(session_id)
    session = guardrail.store.get(session_id)
    if session is None:
        # Unknown sessions are OPERATING
        return SessionStatusResponse(session_id=session_id, status=state)
    return SessionStatusResponse(
        session_id=session_id,
        status=state,
        blocked_reason=session.blocked_reason,
        blocked_at=session.blocked_at,
        cooldown_minutes=session.cooldown_minutes,
        cooldown_remaining=guardrail.store.cooldown_remaining(session_id),
    )


@router.get("", response_model=SessionList)
def list_sessions(guardrail: GuardrailService = Depends(get_guardrail)):
    return SessionList(sessions=guardrail.store.list_sessions())


@router.post("/unblock", response_model=UnblockResponse)
def unblock_session(body: UnblockRequest, guardrail: GuardrailService = Depends(get_guardrail)):
    if not body.session_id:
        raise HTTPException(status_code=400, detail="Missing session_id.")
    try:
        guardrail.gate.release(body.session_id)
    except SQLAlchemyError:
        guardrail.db.rollback()
        logger.exception("Unblock failed for session %s", body.session_id)
        raise HTTPException(status_code=500, detail="Failed to unblock session.")
    return UnblockResponse(session_id=body.session_id, status=SessionState.OPERATING)


@router.get("/{session_id}", response_model=SessionStatusResponse)
def get_session_status(session_id: str, guardrail: GuardrailService = Depends(get_guardrail)):
    return _status_response(guardrail, session_id)


@router.patch("/{session_id}", response_model=SessionStatusResponse)
def update_session(
    session_id: str,
    body: SessionUpdate,
    guardrail: GuardrailService = Depends(get_guardrail),
):
    """
    Override the session's cooldown.

    `{"cooldown_minutes": null}` disables auto-recovery for the session.
    Unknown sessions are created in OPERATING state with the override.
    """
    if "cooldown_minutes" not in body.model_fields_set:
        raise HTTPException(status_code=400, detail="Nothing to update: expected cooldown_minutes.")
    try:
        guardrail.store.set_cooldown(session_id, body.cooldown_minutes)
    except SQLAlchemyError:
        guardrail.db.rollback()
        logger.exception("Cooldown update failed for session %s", session_id)
        raise HTTPException(status_code=500, detail="Failed to update session.")
    return _status_response(guardrail, session_id)


@router.get("/{session_id}/timeline", response_model=SessionTimeline)
def get_session_timeline(
    session_id: str,
    guardrail: GuardrailService = Depends(get_guardrail),
    action_logs: ActionLogService = Depends(get_action_logs),
):
    event_log = guardrail.event_log
    return SessionTimeline(
        session_id=session_id,
        errors=[ErrorEventRead.model_validate(e) for e in event_log.session_errors(session_id)],
        proxy_logs=[ProxyLogRead.model_validate(p) for p in event_log.session_proxy_logs(session_id)],
        steps=[ActionLogRead.model_validate(s) for s in action_logs.by_session(session_id)],
    )
