"""Operator alerts over Telegram."""

from __future__ import annotations

import asyncio
import html
import logging
import time
from typing import Any

from telegram import Bot
from telegram.error import TelegramError as BotError

from .config import TelegramConfig
from .exceptions import TelegramAuthError
from .models import AlertResult

logger = logging.getLogger(__name__)


def format_alert(title: str, **fields: Any) -> str:
    """Render an alert as HTML: bold title followed by key/value lines."""
    lines = [f"<b>{html.escape(title)}</b>"]
    for key, value in fields.items():
        lines.append(f"{html.escape(key)}: <code>{html.escape(str(value))}</code>")
    return "\n".join(lines)


class TelegramAlerter:
    """
    Posts money-movement alerts (amount mismatches, failed payouts and
    refunds) to the operators' chat.

    Identical alerts inside ``dedupe_window_seconds`` are suppressed so a
    reconciliation sweep over many stuck payouts does not flood the chat.
    Without a bot token and chat id the alerter is disabled and drops alerts.
    """

    def __init__(self, config: TelegramConfig | None = None, bot: Bot | None = None):
        self.config = config or TelegramConfig()
        self._bot = bot
        self._recent: dict[str, float] = {}

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    async def __aenter__(self) -> TelegramAlerter:
        if not self.enabled or self._bot is not None:
            return self

        bot = Bot(token=self.config.bot_token)
        try:
            await bot.initialize()
        except BotError as e:
            raise TelegramAuthError(f"Telegram rejected the bot token: {e}")

        self._bot = bot
        logger.info(f"Operator alerts go to chat {self.config.default_chat_id} via @{bot.username}")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._bot is not None:
            await self._bot.shutdown()
            self._bot = None

    def _suppressed(self, text: str) -> bool:
        now = time.monotonic()
        window = self.config.dedupe_window_seconds
        self._recent = {k: t for k, t in self._recent.items() if now - t < window}
        if text in self._recent:
            return True
        self._recent[text] = now
        return False

    async def send_alert(self, title: str, **fields: Any) -> AlertResult:
        """Deliver one alert. Delivery problems are reported in the result, never raised."""
        chat_id = self.config.default_chat_id or None
        if not self.enabled or self._bot is None:
            return AlertResult(success=False, recipient=chat_id, error="alerts disabled")

        text = format_alert(title, **fields)
        if self._suppressed(text):
            logger.debug(f"Suppressed repeated alert: {title}")
            return AlertResult(success=False, recipient=chat_id, suppressed=True)

        error = None
        for attempt in range(1, self.config.max_attempts + 1):
            try:
                message = await self._bot.send_message(
                    chat_id=chat_id,
                    text=text,
                    parse_mode=self.config.parse_mode,
                )
                return AlertResult(
                    success=True,
                    message_id=message.message_id,
                    recipient=chat_id,
                    attempts=attempt,
                )
            except BotError as e:
                error = e.message or type(e).__name__
                logger.warning(f"Alert delivery failed ({attempt}/{self.config.max_attempts}): {error}")
            if attempt < self.config.max_attempts:
                await asyncio.sleep(self.config.retry_delay_seconds)

        # Let the same alert through again on the next occurrence
        self._recent.pop(text, None)
        return AlertResult(
            success=False,
            recipient=chat_id,
            error=error,
            attempts=self.config.max_attempts,
        )
