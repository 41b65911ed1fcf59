"""
dashboard.py - Read-only summary of gate activity.

Counts and money saved cover real blocked requests in the last 24 hours;
synthetic SYSTEM intervention rows are excluded from both.
"""

from datetime import timedelta

from fastapi import APIRouter, Depends, Query, Request

from app.api.deps import get_cost_table, get_guardrail
from app.schemas.guard import BlockedSession, DashboardSummary, GuardEvent
from app.services.cost import CostTable
from app.services.guardrail import GuardrailService

router = APIRouter()

SUMMARY_WINDOW = timedelta(hours=24)


@router.get("", response_model=DashboardSummary, summary="Gate activity summary")
def get_dashboard(
    request: Request,
    limit: int = Query(50, ge=1, le=500, description="Max recent events"),
    guardrail: GuardrailService = Depends(get_guardrail),
    costs: CostTable = Depends(get_cost_table),
) -> DashboardSummary:
    since = request.app.state.clock() - SUMMARY_WINDOW
    event_log = guardrail.event_log
    store = guardrail.store

    blocked = store.list_blocked()
    return DashboardSummary(
        blocked_requests_24h=event_log.blocked_count_since(since),
        active_loops=len(blocked),
        money_saved_24h=costs.estimate_saved(event_log.blocked_targets_since(since)),
        events=[GuardEvent(**e) for e in event_log.recent_events(limit)],
        blocked_sessions=[
            BlockedSession(
                session_id=s.session_id,
                blocked_reason=s.blocked_reason,
                blocked_at=s.blocked_at,
                cooldown_minutes=s.cooldown_minutes,
                updated_at=s.updated_at,
                cooldown_remaining=store.cooldown_remaining(s.session_id),
            )
            for s in blocked
        ],
    )
