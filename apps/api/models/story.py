"""User-submitted story model."""

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.sql import func

from database import Base


class Story(Base):
    """A story submitted through the public form, moderated by admins."""

    __tablename__ = "stories"

    id = Column(String, primary_key=True)
    title = Column(String, nullable=False, default="Untitled Story")
    content = Column(Text, nullable=False)
    category = Column(String, nullable=False, default="other", index=True)
    status = Column(String, nullable=False, default="pending", index=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
