"""Telegram operator alert config."""

from pydantic import BaseModel, Field


class TelegramConfig(BaseModel):
    """Alerts are disabled while bot_token or default_chat_id is empty."""

    bot_token: str = ""
    default_chat_id: str = ""
    parse_mode: str = "HTML"
    max_attempts: int = Field(default=2, ge=1)
    retry_delay_seconds: float = 2.0
    dedupe_window_seconds: float = 300.0

    @property
    def enabled(self) -> bool:
        return bool(self.bot_token and self.default_chat_id)
