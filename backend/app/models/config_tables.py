"""
config_tables.py - Collaborator configuration consumed by the gate.

CostConfig is a domain -> cost lookup used only for reporting money saved
by blocked calls. Webhook lists the notification targets fired on a block.
"""

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, Text

from app.database import Base
from app.models.enums import WebhookType


class CostConfig(Base):
    __tablename__ = "cost_configs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    domain_pattern = Column(String(255), nullable=False, unique=True)  # hostname or "*"
    cost_per_request = Column(Float, nullable=False)
    label = Column(String(100), nullable=True)


class Webhook(Base):
    __tablename__ = "webhooks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    url = Column(Text, nullable=False)
    type = Column(String(20), nullable=False, default=WebhookType.SLACK.value)
    enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False)
