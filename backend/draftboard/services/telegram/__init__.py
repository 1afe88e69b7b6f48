"""Telegram operator alerts."""

from .client import TelegramAlerter, format_alert
from .config import TelegramConfig
from .exceptions import TelegramAuthError, TelegramError
from .models import AlertResult

__all__ = [
    "TelegramAlerter",
    "TelegramConfig",
    "AlertResult",
    "TelegramError",
    "TelegramAuthError",
    "format_alert",
]
