"""Escrow funding, confirmation and refunds of briefs."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from draftboard.config import FundingConfig
from draftboard.exceptions import (
    AmountMismatch,
    BriefAlreadyFunded,
    BriefLocked,
    FundingInProgress,
    FundingSessionNotFound,
    InvalidAmount,
)
from draftboard.models import (
    Brief,
    BriefRefund,
    BriefStatus,
    FundingSession,
    FundingSessionStatus,
    RefundStatus,
    RewardTier,
    WinnerAssignment,
)
from draftboard.models.base import as_utc, utcnow
from draftboard.services.brief_service import load_brief
from draftboard.services.fee_policy import FeeBreakdown, FeePolicy, to_money
from draftboard.services.notification_service import NotificationService
from draftboard.services.processor import (
    ProcessorClient,
    ProcessorError,
    ProcessorNotFoundError,
    ProcessorUnavailable,
)

logger = logging.getLogger(__name__)

# Status a brief moves to when funding is confirmed
FUNDED_STATUS = {
    BriefStatus.DRAFT.value: BriefStatus.PUBLISHED.value,
    BriefStatus.PUBLISHED.value: BriefStatus.ACTIVE.value,
}


@dataclass
class FundingStart:
    session: FundingSession
    fees: FeeBreakdown


class FundingService:
    """Opens checkout sessions for briefs and applies confirmed funding."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        processor: ProcessorClient,
        fee_policy: FeePolicy,
        notifications: NotificationService,
        config: FundingConfig | None = None,
    ):
        self._session_factory = session_factory
        self._processor = processor
        self._fees = fee_policy
        self._notifications = notifications
        self.config = config or FundingConfig()

    async def start_funding(
        self,
        brief_id: str,
        amount,
        success_url: str | None = None,
        cancel_url: str | None = None,
    ) -> FundingStart:
        """
        Open a checkout session for the brand to fund a brief.

        Process:
        1. Reject funded or closed briefs and briefs with a pending session
        2. Reserve a pending funding session row (one per brief, unique index)
        3. Create the processor checkout session
        4. Store the checkout id and URL on the reserved row
        """
        fees = self._fees.compute_fee(amount)
        if fees.net <= 0:
            raise InvalidAmount(
                f"Funding amount ${fees.gross} does not cover the ${fees.fee} platform fee"
            )

        async with self._session_factory() as db:
            brief = await load_brief(db, brief_id)
            if brief.is_funded:
                raise BriefAlreadyFunded(f"Brief {brief_id} is already funded")
            if brief.status == BriefStatus.CLOSED.value:
                raise BriefLocked(f"Brief {brief_id} is closed")

            await self._release_stale_session(db, brief_id)

            session = FundingSession(
                brief_id=brief_id,
                amount=fees.gross,
                platform_fee=fees.fee,
                net_amount=fees.net,
                currency=self.config.currency,
            )
            db.add(session)
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                raise FundingInProgress(f"Brief {brief_id} already has a pending funding session")

        success_url = success_url or self.config.success_url.format(brief_id=brief_id)
        cancel_url = cancel_url or self.config.cancel_url.format(brief_id=brief_id)

        try:
            checkout = await self._processor.create_checkout_session(
                amount=fees.gross,
                description=f"Escrow funding for brief {brief.title or brief_id}",
                success_url=success_url,
                cancel_url=cancel_url,
                metadata={
                    "brief_id": brief_id,
                    "funding_session_id": session.id,
                    "brand_id": brief.brand_id,
                },
                currency=self.config.currency,
            )
        except ProcessorError:
            # No usable checkout URL was handed out; free the brief for another attempt
            await self._set_session_status(session.id, FundingSessionStatus.EXPIRED)
            raise

        async with self._session_factory() as db:
            await db.execute(
                update(FundingSession)
                .where(FundingSession.id == session.id)
                .values(checkout_session_id=checkout.id, checkout_url=checkout.url)
            )
            await db.commit()

        session.checkout_session_id = checkout.id
        session.checkout_url = checkout.url

        logger.info(
            f"Opened funding session {checkout.id} for brief {brief_id}: "
            f"gross=${fees.gross}, fee=${fees.fee}, net=${fees.net}"
        )
        return FundingStart(session=session, fees=fees)

    async def confirm_funding(
        self,
        checkout_session_id: str | None,
        confirmed_amount,
        payment_intent_id: str | None = None,
        funding_session_id: str | None = None,
    ) -> Brief:
        """
        Apply a processor-confirmed payment to its brief.

        Re-confirming a completed session is a no-op. A confirmed amount that
        differs from the session amount is never applied: the session is held
        as 'mismatch' and AmountMismatch is raised.
        """
        confirmed = to_money(confirmed_amount)

        async with self._session_factory() as db:
            session = await self._load_session(db, checkout_session_id, funding_session_id)

            if session.status == FundingSessionStatus.COMPLETED.value:
                logger.info(f"Funding session {session.checkout_session_id} already applied")
                return await load_brief(db, session.brief_id)

            if session.status == FundingSessionStatus.MISMATCH.value:
                raise AmountMismatch(
                    f"Funding session {session.checkout_session_id} is held for review"
                )

            if confirmed != session.amount:
                await db.execute(
                    update(FundingSession)
                    .where(FundingSession.id == session.id)
                    .values(
                        status=FundingSessionStatus.MISMATCH.value,
                        confirmed_amount=confirmed,
                        payment_intent_id=payment_intent_id,
                    )
                )
                await db.commit()
                logger.error(
                    f"AMOUNT MISMATCH on funding session {session.checkout_session_id} "
                    f"for brief {session.brief_id}: expected ${session.amount}, "
                    f"confirmed ${confirmed}. Funding not applied."
                )
                await self._notifications.alert_operators(
                    "Funding amount mismatch",
                    brief_id=session.brief_id,
                    session=session.checkout_session_id,
                    expected=session.amount,
                    confirmed=confirmed,
                )
                raise AmountMismatch(
                    f"Confirmed amount ${confirmed} does not match session amount ${session.amount}"
                )

            fees = self._fees.compute_fee(confirmed)
            now = utcnow()

            claimed = await db.execute(
                update(FundingSession)
                .where(
                    FundingSession.id == session.id,
                    FundingSession.status.in_(
                        (FundingSessionStatus.PENDING.value, FundingSessionStatus.EXPIRED.value)
                    ),
                )
                .values(
                    status=FundingSessionStatus.COMPLETED.value,
                    confirmed_amount=confirmed,
                    payment_intent_id=payment_intent_id,
                    completed_at=now,
                )
            )
            if claimed.rowcount != 1:
                # A concurrent delivery applied it first
                await db.rollback()
                return await load_brief(db, session.brief_id)

            brief = await load_brief(db, session.brief_id)
            if brief.is_funded:
                await db.commit()
                logger.error(
                    f"Brief {brief.id} received a second funding payment "
                    f"({session.checkout_session_id}, ${confirmed}); manual refund required"
                )
                await self._notifications.alert_operators(
                    "Duplicate brief funding",
                    brief_id=brief.id,
                    session=session.checkout_session_id,
                    amount=confirmed,
                )
                return brief

            if brief.status == BriefStatus.CLOSED.value:
                return await self._refund_late_payment(db, brief, session, fees, now)

            previous_status = brief.status
            brief.funded_amount = fees.gross
            brief.platform_fee = fees.fee
            brief.net_funded_amount = fees.net
            brief.is_funded = True
            brief.funded_at = now
            brief.status = FUNDED_STATUS.get(previous_status, previous_status)
            await db.commit()

        logger.info(
            f"Brief {brief.id} funded: gross=${fees.gross}, fee=${fees.fee}, "
            f"net=${fees.net} ({previous_status} -> {brief.status})"
        )

        await self._notifications.publish(
            recipient_id=brief.brand_id,
            recipient_type="brand",
            title="Brief funded",
            body=f"Your brief is funded with ${fees.net} available for rewards.",
            category="brief_funded",
            data={"brief_id": brief.id, "net_funded_amount": str(fees.net)},
        )
        return brief

    async def expire_funding(self, checkout_session_id: str) -> FundingSession:
        """Mark a pending session expired, freeing the brief for a new attempt."""
        async with self._session_factory() as db:
            session = await self._load_session(db, checkout_session_id)
            if session.status != FundingSessionStatus.PENDING.value:
                return session

            await db.execute(
                update(FundingSession)
                .where(
                    FundingSession.id == session.id,
                    FundingSession.status == FundingSessionStatus.PENDING.value,
                )
                .values(status=FundingSessionStatus.EXPIRED.value)
            )
            await db.commit()
            session.status = FundingSessionStatus.EXPIRED.value

        logger.info(f"Funding session {checkout_session_id} expired for brief {session.brief_id}")
        return session

    async def refresh_funding(self, brief_id: str, checkout_session_id: str) -> FundingSession:
        """Ask the processor for a session's state and apply it."""
        async with self._session_factory() as db:
            session = await self._load_session(db, checkout_session_id)
        if session.brief_id != brief_id:
            raise FundingSessionNotFound(
                f"Funding session {checkout_session_id} does not belong to brief {brief_id}"
            )

        checkout = await self._processor.retrieve_checkout_session(checkout_session_id)

        if checkout.is_paid:
            await self.confirm_funding(
                checkout.id,
                checkout.amount_total,
                payment_intent_id=checkout.payment_intent,
            )
        elif checkout.status == "expired":
            await self.expire_funding(checkout.id)

        async with self._session_factory() as db:
            return await self._load_session(db, checkout_session_id)

    async def expire_stale_sessions(self, ttl_minutes: int | None = None) -> int:
        """Reconcile pending sessions older than the TTL. Returns how many were closed out."""
        ttl = ttl_minutes if ttl_minutes is not None else self.config.session_ttl_minutes
        cutoff = utcnow() - timedelta(minutes=ttl)

        async with self._session_factory() as db:
            result = await db.execute(
                select(FundingSession).where(
                    FundingSession.status == FundingSessionStatus.PENDING.value,
                    FundingSession.created_at < cutoff,
                )
            )
            stale = list(result.scalars().all())

        closed = 0
        for session in stale:
            if session.checkout_session_id is None:
                await self._set_session_status(session.id, FundingSessionStatus.EXPIRED)
                closed += 1
                continue
            try:
                refreshed = await self.refresh_funding(session.brief_id, session.checkout_session_id)
            except (ProcessorUnavailable, AmountMismatch) as e:
                logger.warning(f"Could not reconcile funding session {session.checkout_session_id}: {e}")
                continue
            except ProcessorNotFoundError:
                await self._set_session_status(session.id, FundingSessionStatus.EXPIRED)
                closed += 1
                continue
            if refreshed.status != FundingSessionStatus.PENDING.value:
                closed += 1

        if closed:
            logger.info(f"Closed out {closed} stale funding sessions")
        return closed

    # ------------------------------------------------------------------
    # Closing and refunds
    # ------------------------------------------------------------------

    async def close_brief(self, brief_id: str, reason: str | None = None) -> BriefRefund | None:
        """
        Close a brief and refund escrow that will not be paid out.

        No assignments: the full net funded amount is refunded. All
        assignments paid: the unassigned remainder is refunded. Any
        assignment not yet paid blocks closing.
        """
        async with self._session_factory() as db:
            brief = await load_brief(db, brief_id)

            existing = await self._get_refund(db, brief_id)
            if brief.status == BriefStatus.CLOSED.value:
                if existing is not None and existing.status == RefundStatus.PENDING.value and not existing.external_refund_id:
                    return await self._submit_refund(existing)
                return existing

            assignments = await db.execute(
                select(WinnerAssignment, RewardTier.amount)
                .join(RewardTier, RewardTier.id == WinnerAssignment.tier_id)
                .where(WinnerAssignment.brief_id == brief_id)
            )
            rows = assignments.all()
            unpaid = [a.id for a, _ in rows if a.payout_status != "paid"]
            if unpaid:
                raise BriefLocked(
                    f"Brief {brief_id} has {len(unpaid)} assignment(s) not yet paid"
                )

            paid_total = sum((amount for _, amount in rows), Decimal("0.00"))
            remainder = brief.net_funded_amount - paid_total if brief.is_funded else Decimal("0.00")

            # A checkout still open at the processor may complete later;
            # confirm_funding refunds it against the closed brief
            await db.execute(
                update(FundingSession)
                .where(
                    FundingSession.brief_id == brief_id,
                    FundingSession.status == FundingSessionStatus.PENDING.value,
                )
                .values(status=FundingSessionStatus.EXPIRED.value)
            )

            brief.status = BriefStatus.CLOSED.value
            brief.closed_reason = reason

            refund = None
            if remainder > 0:
                refund = BriefRefund(
                    brief_id=brief_id,
                    amount=remainder,
                    reason=reason,
                    idempotency_key=f"refund-{brief_id}",
                )
                db.add(refund)

            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                logger.info(f"Brief {brief_id} closed concurrently")
                return await self._get_refund(db, brief_id)

        logger.info(
            f"Closed brief {brief_id} (reason={reason!r}, paid=${paid_total}, refund=${remainder})"
        )
        if refund is None:
            return None
        return await self._submit_refund(refund)

    async def record_refund_outcome(
        self,
        external_refund_id: str | None,
        succeeded: bool,
        failure_reason: str | None = None,
        brief_id: str | None = None,
        occurred_at: datetime | None = None,
    ) -> BriefRefund | None:
        """Apply a refund webhook. Succeeded is terminal."""
        async with self._session_factory() as db:
            conditions = []
            if external_refund_id:
                conditions.append(BriefRefund.external_refund_id == external_refund_id)
            if brief_id:
                conditions.append(BriefRefund.brief_id == brief_id)
            if not conditions:
                return None

            result = await db.execute(select(BriefRefund).where(or_(*conditions)))
            refund = result.scalars().first()
            if refund is None:
                return None

            values = {"external_refund_id": refund.external_refund_id or external_refund_id}
            if succeeded:
                values.update(
                    status=RefundStatus.SUCCEEDED.value,
                    completed_at=occurred_at or utcnow(),
                    failure_reason=None,
                )
                allowed = (RefundStatus.PENDING.value, RefundStatus.FAILED.value)
            else:
                values.update(status=RefundStatus.FAILED.value, failure_reason=failure_reason)
                allowed = (RefundStatus.PENDING.value,)

            await db.execute(
                update(BriefRefund)
                .where(BriefRefund.id == refund.id, BriefRefund.status.in_(allowed))
                .values(**values)
            )
            await db.commit()
            await db.refresh(refund)

        if refund.status == RefundStatus.FAILED.value:
            await self._notifications.alert_operators(
                "Brief refund failed",
                brief_id=refund.brief_id,
                amount=refund.amount,
                reason=failure_reason or "unknown",
            )
        return refund

    async def _refund_late_payment(
        self,
        db: AsyncSession,
        brief: Brief,
        session: FundingSession,
        fees: FeeBreakdown,
        now: datetime,
    ) -> Brief:
        """Record a payment that landed on a closed brief and refund its escrow."""
        brief.funded_amount = fees.gross
        brief.platform_fee = fees.fee
        brief.net_funded_amount = fees.net
        brief.is_funded = True
        brief.funded_at = now
        refund = BriefRefund(
            brief_id=brief.id,
            amount=fees.net,
            reason="payment received after close",
            idempotency_key=f"refund-{brief.id}",
        )
        db.add(refund)
        await db.commit()

        logger.error(
            f"Brief {brief.id} was closed before funding session "
            f"{session.checkout_session_id} completed; refunding ${fees.net}"
        )
        await self._notifications.alert_operators(
            "Payment on closed brief",
            brief_id=brief.id,
            session=session.checkout_session_id,
            amount=fees.gross,
            refund=fees.net,
        )
        await self._submit_refund(refund)
        return brief

    async def _submit_refund(self, refund: BriefRefund) -> BriefRefund:
        async with self._session_factory() as db:
            result = await db.execute(
                select(FundingSession.payment_intent_id).where(
                    FundingSession.brief_id == refund.brief_id,
                    FundingSession.status == FundingSessionStatus.COMPLETED.value,
                )
            )
            payment_intent_id = result.scalars().first()

        try:
            processed = await self._processor.create_refund(
                payment_intent_id=payment_intent_id,
                amount=refund.amount,
                idempotency_key=refund.idempotency_key,
                metadata={"brief_id": refund.brief_id, "refund_id": refund.id},
            )
        except ProcessorUnavailable as e:
            logger.warning(f"Refund for brief {refund.brief_id} outcome unknown, left pending: {e}")
            return refund
        except ProcessorError as e:
            logger.error(f"Refund for brief {refund.brief_id} rejected: {e.message}")
            async with self._session_factory() as db:
                await db.execute(
                    update(BriefRefund)
                    .where(BriefRefund.id == refund.id)
                    .values(status=RefundStatus.FAILED.value, failure_reason=e.message)
                )
                await db.commit()
            refund.status = RefundStatus.FAILED.value
            refund.failure_reason = e.message
            await self._notifications.alert_operators(
                "Brief refund failed",
                brief_id=refund.brief_id,
                amount=refund.amount,
                reason=e.message,
            )
            return refund

        async with self._session_factory() as db:
            values = {"external_refund_id": processed.id}
            if processed.status == RefundStatus.SUCCEEDED.value:
                values.update(status=RefundStatus.SUCCEEDED.value, completed_at=utcnow())
            await db.execute(
                update(BriefRefund)
                .where(BriefRefund.id == refund.id, BriefRefund.status == RefundStatus.PENDING.value)
                .values(**values)
            )
            await db.commit()
            refund = await self._get_refund(db, refund.brief_id)

        logger.info(f"Refund {processed.id} for brief {refund.brief_id}: ${refund.amount} ({refund.status})")
        return refund

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _load_session(
        db: AsyncSession,
        checkout_session_id: str | None,
        funding_session_id: str | None = None,
    ) -> FundingSession:
        session = None
        if checkout_session_id:
            result = await db.execute(
                select(FundingSession).where(
                    FundingSession.checkout_session_id == checkout_session_id
                )
            )
            session = result.scalar_one_or_none()
        if session is None and funding_session_id:
            result = await db.execute(
                select(FundingSession).where(FundingSession.id == funding_session_id)
            )
            session = result.scalar_one_or_none()
        if session is None:
            raise FundingSessionNotFound(
                f"Funding session {checkout_session_id or funding_session_id} not found"
            )
        return session

    @staticmethod
    async def _get_refund(db: AsyncSession, brief_id: str) -> BriefRefund | None:
        result = await db.execute(
            select(BriefRefund)
            .where(BriefRefund.brief_id == brief_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _set_session_status(self, session_id: str, status: FundingSessionStatus) -> None:
        async with self._session_factory() as db:
            await db.execute(
                update(FundingSession)
                .where(
                    FundingSession.id == session_id,
                    FundingSession.status == FundingSessionStatus.PENDING.value,
                )
                .values(status=status.value)
            )
            await db.commit()

    async def _release_stale_session(self, db: AsyncSession, brief_id: str) -> None:
        """Expire this brief's pending session when it is past the TTL."""
        result = await db.execute(
            select(FundingSession).where(
                FundingSession.brief_id == brief_id,
                FundingSession.status == FundingSessionStatus.PENDING.value,
            )
        )
        pending = result.scalar_one_or_none()
        if pending is None:
            return

        age = utcnow() - as_utc(pending.created_at)
        if age < timedelta(minutes=self.config.session_ttl_minutes):
            raise FundingInProgress(
                f"Brief {brief_id} already has a pending funding session "
                f"({pending.checkout_session_id})"
            )

        await db.execute(
            update(FundingSession)
            .where(
                FundingSession.id == pending.id,
                FundingSession.status == FundingSessionStatus.PENDING.value,
            )
            .values(status=FundingSessionStatus.EXPIRED.value)
        )
        await db.commit()
        logger.info(f"Expired stale funding session {pending.checkout_session_id} for brief {brief_id}")
