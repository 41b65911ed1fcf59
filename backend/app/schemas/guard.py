"""
guard.py - Pydantic schemas for the guardrail API.

Request bodies accept both snake_case and camelCase keys, since agents
report in whichever convention their client library uses. Fields whose
absence is a 400 (not a 422) are declared optional and checked by the
endpoint.
"""

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from app.models import ActionStatus, SessionState, WebhookType


# --- Error reports ---


class ErrorReport(BaseModel):
    """Client-reported error (untrusted)."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str | None = Field(
        None,
        validation_alias=AliasChoices("session_id", "sessionId"),
        description="Session identifier; 'default' when omitted",
    )
    error_message: str | None = Field(
        None,
        validation_alias=AliasChoices("error_message", "error"),
        description="Error text, compared verbatim for loop detection",
    )
    timestamp: str | None = Field(
        None, description="ISO 8601 time of the error; defaults to receipt time"
    )


class ErrorReportResponse(BaseModel):
    success: bool = True
    session_id: str
    loop_detected: bool
    session_status: SessionState


# --- Sessions ---


class SessionStatusResponse(BaseModel):
    session_id: str
    status: SessionState
    blocked_reason: str | None = None
    blocked_at: datetime | None = None
    cooldown_minutes: int | None = None
    cooldown_remaining: int | None = Field(
        None, description="Seconds until auto-recovery"
    )


class SessionSummary(BaseModel):
    session_id: str
    status: SessionState
    blocked_reason: str | None = None
    blocked_at: datetime | None = None
    cooldown_minutes: int | None = None
    error_count: int = 0
    request_count: int = 0
    total_steps: int = Field(0, description="Action-log steps reported")
    loops: int = Field(0, description="Steps reported as loop_detected")
    last_activity: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SessionList(BaseModel):
    sessions: list[SessionSummary]


class SessionUpdate(BaseModel):
    """Per-session overrides. A null cooldown means manual unblock only."""

    model_config = ConfigDict(populate_by_name=True)

    cooldown_minutes: int | None = Field(
        None, ge=1, validation_alias=AliasChoices("cooldown_minutes", "cooldownMinutes")
    )


class UnblockRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str | None = Field(
        None, validation_alias=AliasChoices("session_id", "sessionId")
    )


class UnblockResponse(BaseModel):
    success: bool = True
    session_id: str
    status: SessionState


# --- Action logs ---


class ActionLogCreate(BaseModel):
    """One agent step (untrusted)."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str | None = Field(None, validation_alias=AliasChoices("session_id", "sessionId"))
    step: int | None = None
    action: str | None = None
    status: ActionStatus | None = None
    error: str | None = None
    timestamp: str | None = None
    state: Any = None
    error_code: str | None = Field(None, validation_alias=AliasChoices("error_code", "errorCode"))
    remedy_attempted: str | None = Field(
        None, validation_alias=AliasChoices("remedy_attempted", "remedyAttempted")
    )


class ActionLogRead(BaseModel):
    id: int
    session_id: str
    step: int
    action: str
    status: str
    error: str | None
    error_code: str | None
    remedy_attempted: str | None
    state_snapshot: str | None
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)


class ActionLoopRead(BaseModel):
    is_loop: bool
    fingerprint: str | None = None
    occurrences: int = 0
    remedy_chain: list[str] = Field(default_factory=list)
    suggested_remedy: str | None = None


class ActionLogCreated(BaseModel):
    success: bool = True
    id: int
    loop: ActionLoopRead


class ActionLogList(BaseModel):
    logs: list[ActionLogRead]
    loop: ActionLoopRead
    remedy_history: dict[str, Any]


class ErrorEventRead(BaseModel):
    id: int
    message: str
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)


class ProxyLogRead(BaseModel):
    id: int
    target: str
    method: str
    outcome: str
    status_code: int | None
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)


class SessionTimeline(BaseModel):
    """Everything recorded for one session, each list in insertion order."""

    session_id: str
    errors: list[ErrorEventRead]
    proxy_logs: list[ProxyLogRead]
    steps: list[ActionLogRead]


# --- Collaborator configuration ---


class CostConfigRead(BaseModel):
    id: int
    domain_pattern: str
    cost_per_request: float
    label: str | None

    model_config = ConfigDict(from_attributes=True)


class CostConfigUpsert(BaseModel):
    domain_pattern: str | None = None
    cost_per_request: float | None = Field(None, ge=0)
    label: str | None = None


class WebhookRead(BaseModel):
    id: int
    url: str
    type: WebhookType
    enabled: bool

    model_config = ConfigDict(from_attributes=True)


class WebhookRequest(BaseModel):
    """Add a webhook, or toggle/delete one when `action` is set."""

    url: str | None = None
    type: WebhookType = WebhookType.SLACK
    action: str | None = Field(None, description="'toggle' or 'delete'")
    id: int | None = None
    enabled: bool | None = None


# --- Dashboard ---


class GuardEvent(BaseModel):
    id: int
    type: str
    session_id: str
    message: str
    timestamp: datetime


class BlockedSession(BaseModel):
    session_id: str
    blocked_reason: str | None
    blocked_at: datetime | None
    cooldown_minutes: int | None
    updated_at: datetime
    cooldown_remaining: int | None


class DashboardSummary(BaseModel):
    blocked_requests_24h: int
    active_loops: int
    money_saved_24h: float
    events: list[GuardEvent]
    blocked_sessions: list[BlockedSession]
