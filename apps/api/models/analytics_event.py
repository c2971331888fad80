"""Page analytics event model."""

from sqlalchemy import Column, DateTime, JSON, String
from sqlalchemy.sql import func

from database import Base


class AnalyticsEvent(Base):
    """One tracked page view, page exit or interaction event."""

    __tablename__ = "analytics_events"

    id = Column(String, primary_key=True)
    type = Column(String, nullable=False, index=True)
    page = Column(String, nullable=False, index=True)
    session_id = Column(String, nullable=False, index=True)
    event_type = Column(String, nullable=False)
    event_data = Column(JSON, nullable=True)
    ip = Column(String, nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
