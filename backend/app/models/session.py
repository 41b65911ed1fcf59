"""
session.py - Gating session model.

A session is one caller identity sharing a single forward/block decision.
Rows are created on first contact with the gate and are never deleted.

INVARIANT: blocked_reason and blocked_at are both set exactly when
status == BLOCKED.
"""

from sqlalchemy import Column, DateTime, Integer, String, Text

from app.database import Base
from app.models.enums import SessionState


class GuardSession(Base):
    __tablename__ = "guard_sessions"

    session_id = Column(String(255), primary_key=True)
    status = Column(String(20), nullable=False, default=SessionState.OPERATING.value, index=True)
    blocked_reason = Column(Text, nullable=True)
    blocked_at = Column(DateTime, nullable=True)
    cooldown_minutes = Column(Integer, nullable=True, default=5)  # NULL = manual unblock only
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    @property
    def is_blocked(self) -> bool:
        return self.status == SessionState.BLOCKED.value
