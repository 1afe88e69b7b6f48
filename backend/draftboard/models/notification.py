"""Outbound notification records consumed by the external delivery sink."""

from sqlalchemy import Column, DateTime, Index, String, Text

from draftboard.database.base import Base
from draftboard.models.base import JSONType, UUIDMixin, utcnow


class Notification(Base, UUIDMixin):
    __tablename__ = "notifications"

    recipient_id = Column(String(64), nullable=False)
    recipient_type = Column(String(20), nullable=False)  # brand | creator
    category = Column(String(40), nullable=False)
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)
    data = Column(JSONType, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    delivered_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_notifications_recipient", "recipient_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Notification {self.category} -> {self.recipient_type}:{self.recipient_id}>"
