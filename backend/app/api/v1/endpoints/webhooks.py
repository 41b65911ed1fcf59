"""
webhooks.py - Block notification targets.

POST adds a webhook, or with `action` set toggles or deletes one:
    {"url": "...", "type": "slack"}
    {"action": "toggle", "id": 3, "enabled": false}
    {"action": "delete", "id": 3}
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from app.api.deps import get_webhooks
from app.schemas.guard import WebhookRead, WebhookRequest
from app.services.webhooks import WebhookRegistry

logger = logging.getLogger(__name__)

router = APIRouter()

TOGGLE = "toggle"
DELETE = "delete"


@router.get("", response_model=list[WebhookRead])
def list_webhooks(registry: WebhookRegistry = Depends(get_webhooks)):
    return registry.all()


@router.post("")
def manage_webhook(body: WebhookRequest, registry: WebhookRegistry = Depends(get_webhooks)):
    if body.action == TOGGLE:
        if body.id is None or body.enabled is None:
            raise HTTPException(status_code=400, detail="toggle requires id and enabled.")
        if not registry.toggle(body.id, body.enabled):
            raise HTTPException(status_code=404, detail="Webhook not found")
        logger.info("Webhook %d %s", body.id, "enabled" if body.enabled else "disabled")
        return {"success": True}

    if body.action == DELETE:
        if body.id is None:
            raise HTTPException(status_code=400, detail="delete requires id.")
        if not registry.delete(body.id):
            raise HTTPException(status_code=404, detail="Webhook not found")
        logger.info("Webhook %d deleted", body.id)
        return {"success": True}

    if body.action is not None:
        raise HTTPException(status_code=400, detail=f"Unknown action: {body.action}")

    if not body.url:
        raise HTTPException(status_code=400, detail="Missing url.")
    webhook = registry.add(body.url, body.type)
    logger.info("Webhook %d added (%s)", webhook.id, webhook.type)
    return JSONResponse(
        WebhookRead.model_validate(webhook).model_dump(mode="json"),
        status_code=201,
    )
