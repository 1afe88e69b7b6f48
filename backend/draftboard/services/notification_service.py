"""Best-effort outbound notifications and operator alerts.

Both paths run after the financial state change has committed. Failures are
logged and never propagate to the caller.
"""

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from draftboard.models import Notification
from draftboard.services.telegram import TelegramAlerter

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        alerter: TelegramAlerter | None = None,
    ):
        self._session_factory = session_factory
        self._alerter = alerter

    async def publish(
        self,
        recipient_id: str,
        recipient_type: str,
        title: str,
        body: str,
        category: str,
        data: dict[str, Any] | None = None,
    ) -> Notification | None:
        """Write a notification to the outbox consumed by the delivery sink."""
        try:
            async with self._session_factory() as db:
                notification = Notification(
                    recipient_id=recipient_id,
                    recipient_type=recipient_type,
                    category=category,
                    title=title,
                    body=body,
                    data=data,
                )
                db.add(notification)
                await db.commit()
                logger.debug(f"Queued {category} notification for {recipient_type} {recipient_id}")
                return notification
        except Exception as e:
            logger.warning(f"Failed to queue {category} notification for {recipient_id}: {e}")
            return None

    async def alert_operators(self, title: str, **fields: Any) -> None:
        """Send an operator alert through Telegram when configured."""
        if self._alerter is None:
            return
        try:
            result = await self._alerter.send_alert(title, **fields)
            if not result.success and not result.suppressed and self._alerter.enabled:
                logger.warning(f"Operator alert not delivered: {result}")
        except Exception as e:
            logger.warning(f"Operator alert failed ({title}): {e}")

    async def list_for(self, recipient_id: str, limit: int = 50) -> list[Notification]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(Notification)
                .where(Notification.recipient_id == recipient_id)
                .order_by(Notification.created_at.desc())
                .limit(limit)
            )
            return list(result.scalars().all())
