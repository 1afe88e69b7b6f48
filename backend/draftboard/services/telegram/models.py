"""Telegram alert models."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class AlertResult(BaseModel):
    success: bool
    message_id: int | None = None
    recipient: str | None = None
    sent_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    attempts: int = 0
    suppressed: bool = False
    error: str | None = None

    def __str__(self) -> str:
        if self.success:
            return f"alert {self.message_id} to {self.recipient}"
        if self.suppressed:
            return f"alert to {self.recipient} suppressed as a repeat"
        return f"alert to {self.recipient} not delivered: {self.error}"
