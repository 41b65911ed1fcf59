"""
event_log.py - Append-only evidence records.

ErrorEvent and ProxyLog are the evidence base for loop detection.
Neither table is ever updated or deleted by the service; ordering is by
the autoincrement id (insertion order).

No foreign key to guard_sessions: evidence may be written before the
session row exists.
"""

from sqlalchemy import Column, DateTime, Index, Integer, String, Text

from app.database import Base


class ErrorEvent(Base):
    """One client-reported or self-detected error."""

    __tablename__ = "error_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(255), nullable=False, index=True)
    message = Column(Text, nullable=False)
    timestamp = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False)


class ProxyLog(Base):
    """One proxied request outcome, or a synthetic SYSTEM intervention."""

    __tablename__ = "proxy_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(255), nullable=False, index=True)
    target = Column(Text, nullable=False)
    method = Column(String(20), nullable=False)
    outcome = Column(String(20), nullable=False)  # ProxyOutcome value
    status_code = Column(Integer, nullable=True)
    timestamp = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_proxy_logs_session_outcome", "session_id", "outcome"),
    )
