from sqlalchemy import Column, DateTime, Integer, String, Text

from app.database import Base


class ActionLog(Base):
    """Step-by-step action history reported by an agent."""

    __tablename__ = "action_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(255), nullable=False, index=True)
    step = Column(Integer, nullable=False)
    action = Column(Text, nullable=False)
    status = Column(String(20), nullable=False)  # ActionStatus value
    error = Column(Text, nullable=True)
    error_code = Column(String(50), nullable=True)
    remedy_attempted = Column(String(100), nullable=True)
    state_snapshot = Column(Text, nullable=True)  # JSON-serialized agent state
    timestamp = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False)
