"""Processed webhook event ids (replay protection)."""

from sqlalchemy import Column, DateTime, String

from draftboard.database.base import Base
from draftboard.models.base import utcnow


class ProcessedWebhookEvent(Base):
    __tablename__ = "processed_webhook_events"

    event_id = Column(String(255), primary_key=True)
    event_type = Column(String(100), nullable=False)
    outcome = Column(String(40), nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<ProcessedWebhookEvent {self.event_id} {self.event_type}>"
