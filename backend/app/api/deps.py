"""
deps.py - FastAPI dependencies.

Everything long-lived (engine, HTTP client, notifier, clock, settings) is
created once by create_app() and read from app.state here; nothing is a
hidden module global.
"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session as DBSession

from app.database import get_db
from app.services.action_log import ActionLogService
from app.services.cost import CostTable
from app.services.guardrail import GuardrailService
from app.services.proxy import ForwardingProxy
from app.services.webhooks import WebhookRegistry


def get_guardrail(request: Request, db: DBSession = Depends(get_db)) -> GuardrailService:
    state = request.app.state
    return GuardrailService(db, state.notifier, state.settings, state.clock)


def get_proxy(
    request: Request,
    db: DBSession = Depends(get_db),
    guardrail: GuardrailService = Depends(get_guardrail),
) -> ForwardingProxy:
    return ForwardingProxy(guardrail, request.app.state.http_client, CostTable(db))


def get_action_logs(request: Request, db: DBSession = Depends(get_db)) -> ActionLogService:
    state = request.app.state
    return ActionLogService(db, state.clock, state.settings.ACTION_LOOP_THRESHOLD)


def get_cost_table(db: DBSession = Depends(get_db)) -> CostTable:
    return CostTable(db)


def get_webhooks(request: Request, db: DBSession = Depends(get_db)) -> WebhookRegistry:
    return WebhookRegistry(db, request.app.state.clock)


async def read_body(request: Request) -> bytes:
    return await request.body()
