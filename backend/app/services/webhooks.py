"""webhooks.py - Notification target configuration."""

from sqlalchemy import select
from sqlalchemy.orm import Session as DBSession

from app.core.clock import Clock, utcnow
from app.models import Webhook, WebhookType
from app.services.notifier import WebhookTarget


class WebhookRegistry:
    def __init__(self, db: DBSession, clock: Clock = utcnow):
        self.db = db
        self.clock = clock

    def all(self) -> list[Webhook]:
        return list(self.db.scalars(select(Webhook).order_by(Webhook.id)))

    def active_targets(self) -> list[WebhookTarget]:
        rows = self.db.scalars(select(Webhook).where(Webhook.enabled.is_(True)).order_by(Webhook.id))
        return [WebhookTarget(id=w.id, url=w.url, type=w.type) for w in rows]

    def add(self, url: str, webhook_type: WebhookType = WebhookType.SLACK) -> Webhook:
        webhook = Webhook(
            url=url,
            type=WebhookType(webhook_type).value,
            enabled=True,
            created_at=self.clock(),
        )
        self.db.add(webhook)
        self.db.commit()
        return webhook

    def toggle(self, webhook_id: int, enabled: bool) -> bool:
        webhook = self.db.get(Webhook, webhook_id)
        if webhook is None:
            return False
        webhook.enabled = enabled
        self.db.commit()
        return True

    def delete(self, webhook_id: int) -> bool:
        webhook = self.db.get(Webhook, webhook_id)
        if webhook is None:
            return False
        self.db.delete(webhook)
        self.db.commit()
        return True
