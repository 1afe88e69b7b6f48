"""Operator alert formatting, dedupe and retries."""

import asyncio
from types import SimpleNamespace

from telegram.error import NetworkError

from draftboard.services.telegram import TelegramAlerter, TelegramConfig, format_alert

CONFIG = TelegramConfig(
    bot_token="123:abc",
    default_chat_id="-1001",
    retry_delay_seconds=0,
)


class FakeBot:
    def __init__(self, failures: int = 0):
        self.failures = failures
        self.sent: list[str] = []

    async def send_message(self, chat_id, text, parse_mode=None):
        if self.failures:
            self.failures -= 1
            raise NetworkError("connection reset")
        self.sent.append(text)
        return SimpleNamespace(message_id=len(self.sent))


def test_format_alert_escapes_values():
    text = format_alert("Payout failed", reason="<bank> closed", amount="12.00")
    assert text.splitlines() == [
        "<b>Payout failed</b>",
        "reason: <code>&lt;bank&gt; closed</code>",
        "amount: <code>12.00</code>",
    ]


def test_disabled_alerter_drops_alerts():
    result = asyncio.run(TelegramAlerter(TelegramConfig()).send_alert("Payout failed"))
    assert not result.success
    assert result.error == "alerts disabled"


def test_repeated_alert_suppressed():
    bot = FakeBot()
    alerter = TelegramAlerter(CONFIG, bot=bot)

    async def scenario():
        first = await alerter.send_alert("Payout failed", payout="payout-a-1")
        repeat = await alerter.send_alert("Payout failed", payout="payout-a-1")
        other = await alerter.send_alert("Payout failed", payout="payout-b-1")
        return first, repeat, other

    first, repeat, other = asyncio.run(scenario())
    assert first.success and other.success
    assert repeat.suppressed
    assert len(bot.sent) == 2


def test_retry_then_give_up():
    bot = FakeBot(failures=5)
    alerter = TelegramAlerter(CONFIG, bot=bot)

    result = asyncio.run(alerter.send_alert("Brief refund failed", brief_id="b1"))
    assert not result.success
    assert result.attempts == 2
    assert result.error == "connection reset"

    # A failed delivery does not count towards the dedupe window
    bot.failures = 0
    assert asyncio.run(alerter.send_alert("Brief refund failed", brief_id="b1")).success
