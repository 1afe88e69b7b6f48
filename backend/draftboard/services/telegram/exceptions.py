"""Telegram alert exceptions."""


class TelegramError(Exception):
    """Base Telegram alert exception."""


class TelegramAuthError(TelegramError):
    """The bot token was rejected at startup."""
