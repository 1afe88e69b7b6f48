"""Idempotent reconciliation of payment processor webhook events."""

import json
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from draftboard.exceptions import AmountMismatch, FundingSessionNotFound, InvalidSignature
from draftboard.models import ProcessedWebhookEvent
from draftboard.services.funding_service import FundingService
from draftboard.services.notification_service import NotificationService
from draftboard.services.payment_account_service import PaymentAccountService
from draftboard.services.payout_service import PayoutService
from draftboard.services.processor import (
    ConnectedAccount,
    ProcessorConfig,
    ProcessorEvent,
    verify_signature,
)

logger = logging.getLogger(__name__)

TRANSFER_PAID_EVENTS = ("transfer.succeeded", "transfer.paid")
TRANSFER_FAILED_EVENTS = ("transfer.failed", "transfer.reversed")
CHECKOUT_COMPLETED_EVENTS = (
    "checkout.session.completed",
    "checkout.session.async_payment_succeeded",
)


class WebhookReconciler:
    """
    Applies processor events to local state.

    Processed event ids are stored so redeliveries are no-ops, and every
    transition is itself idempotent so events for the same object commute.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        funding: FundingService,
        accounts: PaymentAccountService,
        payouts: PayoutService,
        notifications: NotificationService,
        config: ProcessorConfig | None = None,
    ):
        self._session_factory = session_factory
        self._funding = funding
        self._accounts = accounts
        self._payouts = payouts
        self._notifications = notifications
        self.config = config or ProcessorConfig()

    def parse_event(self, payload: bytes, signature_header: str | None) -> ProcessorEvent:
        """Verify the signature and parse the raw request body."""
        verify_signature(
            payload,
            signature_header,
            self.config.webhook_secret,
            tolerance_seconds=self.config.signature_tolerance_seconds,
        )
        try:
            data = json.loads(payload)
        except ValueError:
            raise InvalidSignature("Webhook payload is not valid JSON")
        if not isinstance(data, dict) or not data.get("id") or not data.get("type"):
            raise InvalidSignature("Webhook payload is not an event")
        return ProcessorEvent.from_api(data)

    async def handle(self, payload: bytes, signature_header: str | None) -> str:
        event = self.parse_event(payload, signature_header)
        return await self.process_event(event)

    async def process_event(self, event: ProcessorEvent) -> str:
        """Apply one event. Returns a short outcome label."""
        async with self._session_factory() as db:
            if await db.get(ProcessedWebhookEvent, event.id) is not None:
                logger.info(f"Duplicate webhook {event.id} ({event.type}) ignored")
                return "duplicate"

        outcome = await self._dispatch(event)

        async with self._session_factory() as db:
            db.add(
                ProcessedWebhookEvent(
                    event_id=event.id,
                    event_type=event.type,
                    outcome=outcome,
                )
            )
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                logger.info(f"Webhook {event.id} processed concurrently")
                return "duplicate"

        logger.info(f"Webhook {event.id} ({event.type}): {outcome}")
        return outcome

    async def _dispatch(self, event: ProcessorEvent) -> str:
        if event.type in TRANSFER_PAID_EVENTS:
            return await self._on_transfer_paid(event)
        if event.type in TRANSFER_FAILED_EVENTS:
            return await self._on_transfer_failed(event)
        if event.type == "account.updated":
            return await self._on_account_updated(event)
        if event.type in CHECKOUT_COMPLETED_EVENTS:
            return await self._on_checkout_completed(event)
        if event.type in ("checkout.session.expired", "checkout.session.async_payment_failed"):
            return await self._on_checkout_expired(event)
        if event.type in ("refund.succeeded", "refund.failed", "refund.updated", "charge.refund.updated"):
            return await self._on_refund(event)

        logger.info(f"Unhandled webhook type {event.type} acknowledged")
        return "ignored"

    async def _on_transfer_paid(self, event: ProcessorEvent) -> str:
        async with self._session_factory() as db:
            payout = await self._payouts.find_payout(
                db, event.object_id, event.metadata.get("payout_id")
            )
            if payout is None:
                logger.warning(f"Transfer {event.object_id} does not match any payout")
                return "unknown_transfer"

            changed = await self._payouts.mark_paid(db, payout.id, event.created, event.object_id)
            await db.commit()

        if changed:
            await self._notifications.publish(
                recipient_id=payout.creator_id,
                recipient_type="creator",
                title="Payout sent",
                body=f"${payout.net_amount} is on its way to your payment account.",
                category="payout_paid",
                data={"payout_id": payout.id, "amount": str(payout.net_amount)},
            )
        return "payout_paid" if changed else "no_change"

    async def _on_transfer_failed(self, event: ProcessorEvent) -> str:
        reason = (
            event.data.get("failure_message")
            or event.data.get("failure_code")
            or event.type.replace(".", " ")
        )
        async with self._session_factory() as db:
            payout = await self._payouts.find_payout(
                db, event.object_id, event.metadata.get("payout_id")
            )
            if payout is None:
                logger.warning(f"Transfer {event.object_id} does not match any payout")
                return "unknown_transfer"

            changed = await self._payouts.mark_failed(db, payout.id, reason)
            await db.commit()

        if changed:
            await self._notifications.alert_operators(
                "Payout failed",
                payout=payout.idempotency_key,
                kind=payout.kind,
                creator_id=payout.creator_id,
                amount=payout.net_amount,
                reason=reason,
            )
        return "payout_failed" if changed else "no_change"

    async def _on_account_updated(self, event: ProcessorEvent) -> str:
        snapshot = ConnectedAccount.from_api(event.data)
        if not snapshot.id:
            return "ignored"

        async with self._session_factory() as db:
            account = await self._accounts.upsert_from_snapshot(db, snapshot, event.created)
            await db.commit()

        logger.info(
            f"Account {snapshot.id} updated: status={account.status}, "
            f"payouts_enabled={account.payouts_enabled}"
        )
        return "account_updated"

    async def _on_checkout_completed(self, event: ProcessorEvent) -> str:
        if event.data.get("payment_status") not in (None, "paid", "no_payment_required"):
            return "awaiting_payment"
        try:
            await self._funding.confirm_funding(
                event.object_id,
                event.amount,
                payment_intent_id=event.data.get("payment_intent"),
                funding_session_id=event.metadata.get("funding_session_id"),
            )
        except AmountMismatch:
            # Held for manual review; redelivery would not change the outcome
            return "amount_mismatch"
        except FundingSessionNotFound:
            logger.warning(f"Checkout session {event.object_id} does not match any funding session")
            return "unknown_session"
        return "brief_funded"

    async def _on_checkout_expired(self, event: ProcessorEvent) -> str:
        try:
            await self._funding.expire_funding(event.object_id)
        except FundingSessionNotFound:
            return "unknown_session"
        return "funding_expired"

    async def _on_refund(self, event: ProcessorEvent) -> str:
        status = event.status or ("succeeded" if event.type == "refund.succeeded" else None)
        if event.type == "refund.failed":
            status = "failed"
        if status not in ("succeeded", "failed"):
            return "no_change"

        refund = await self._funding.record_refund_outcome(
            event.object_id,
            succeeded=status == "succeeded",
            failure_reason=event.data.get("failure_reason"),
            brief_id=event.metadata.get("brief_id"),
            occurred_at=event.created,
        )
        if refund is None:
            logger.warning(f"Refund {event.object_id} does not match any brief refund")
            return "unknown_refund"
        return f"refund_{refund.status}"

