"""Payout execution: single, bulk, operator reset/refresh and credit settlement."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from draftboard.config import PayoutConfig
from draftboard.exceptions import (
    AlreadyProcessing,
    DraftboardError,
    InsufficientBalance,
    PayoutNotPending,
)
from draftboard.models import (
    Payout,
    PayoutKind,
    PayoutStatus,
    RewardTier,
    WinnerAssignment,
)
from draftboard.models.base import new_id, utcnow
from draftboard.services.brief_service import load_brief
from draftboard.services.credit_ledger_service import (
    credit_wallet,
    ensure_balance_row,
    reverse_redemption,
)
from draftboard.services.notification_service import NotificationService
from draftboard.services.payment_account_service import PaymentAccountService
from draftboard.services.processor import (
    ProcessorClient,
    ProcessorError,
    ProcessorUnavailable,
    Transfer,
)
from draftboard.services.winner_assignment_service import (
    load_assignment,
    record_assignment_event,
    refresh_brief_completion,
)

logger = logging.getLogger(__name__)


@dataclass
class PayoutResult:
    """Outcome of one payout attempt as reported to callers."""

    assignment_id: str | None
    status: str
    payout_id: str | None = None
    amount: Decimal | None = None
    external_transfer_id: str | None = None
    error: str | None = None
    detail: str | None = None
    outcome_unknown: bool = False

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.status in (
            PayoutStatus.PROCESSING.value,
            PayoutStatus.PAID.value,
        )


@dataclass
class BulkPayoutResult:
    results: list[PayoutResult] = field(default_factory=list)
    total_amount: Decimal = Decimal("0.00")

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.succeeded)

    @property
    def failed(self) -> int:
        return len(self.results) - self.succeeded


class PayoutService:
    """Transfers tier rewards to creator accounts through the processor."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        processor: ProcessorClient,
        accounts: PaymentAccountService,
        notifications: NotificationService,
        config: PayoutConfig | None = None,
        settle_synchronously: bool = False,
    ):
        self._session_factory = session_factory
        self._processor = processor
        self._accounts = accounts
        self._notifications = notifications
        self.config = config or PayoutConfig()
        self.settle_synchronously = settle_synchronously

    # ------------------------------------------------------------------
    # Single payout
    # ------------------------------------------------------------------

    async def process_single_payout(self, assignment_id: str) -> PayoutResult:
        """
        Pay one winner assignment.

        Process:
        1. Require the assignment to be pending
        2. Require the creator's account to accept payouts (AccountNotReady)
        3. CAS pending -> processing; losing the race raises AlreadyProcessing
        4. Record the payout attempt, commit, then submit the transfer with
           the idempotency key payout-{assignment_id}-{attempt}
        """
        async with self._session_factory() as db:
            assignment = await load_assignment(db, assignment_id)
            self._require_pending(assignment)

            account = await self._accounts.require_payouts_allowed(db, assignment.creator_id)
            tier = await db.get(RewardTier, assignment.tier_id)

            claimed = await db.execute(
                update(WinnerAssignment)
                .where(
                    WinnerAssignment.id == assignment_id,
                    WinnerAssignment.payout_status == PayoutStatus.PENDING.value,
                )
                .values(payout_status=PayoutStatus.PROCESSING.value, failure_reason=None)
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount != 1:
                await db.rollback()
                raise AlreadyProcessing(f"Payout for assignment {assignment_id} is already processing")

            payout = await self._get_payout_by_key(db, assignment.payout_idempotency_key)
            if payout is None:
                payout = Payout(
                    id=new_id(),
                    assignment_id=assignment_id,
                    creator_id=assignment.creator_id,
                    kind=PayoutKind.REWARD.value,
                    amount=tier.amount,
                    fee=Decimal("0.00"),
                    net_amount=tier.amount,
                    status=PayoutStatus.PROCESSING.value,
                    idempotency_key=assignment.payout_idempotency_key,
                    destination_account_id=account.external_account_id,
                )
                db.add(payout)
            else:
                payout.status = PayoutStatus.PROCESSING.value
                payout.destination_account_id = account.external_account_id

            record_assignment_event(
                db, assignment, "payout_started",
                attempt=assignment.payout_attempt, amount=tier.amount,
            )
            await db.commit()

        logger.info(
            f"Submitting payout {payout.idempotency_key}: ${payout.net_amount} "
            f"to {payout.destination_account_id}"
        )
        return await self.submit_transfer(payout)

    async def submit_transfer(self, payout: Payout) -> PayoutResult:
        """
        Send a recorded payout to the processor and apply the synchronous result.

        Definitive rejections mark the payout failed. Timeouts and 5xx leave
        it processing for a webhook or refresh to settle.
        """
        try:
            transfer = await self._processor.create_transfer(
                amount=payout.net_amount,
                destination=payout.destination_account_id,
                idempotency_key=payout.idempotency_key,
                metadata={
                    "payout_id": payout.id,
                    "assignment_id": payout.assignment_id or "",
                    "creator_id": payout.creator_id,
                    "kind": payout.kind,
                },
            )
        except ProcessorUnavailable as e:
            logger.warning(f"Payout {payout.idempotency_key} outcome unknown, left processing: {e}")
            return self._result(payout, PayoutStatus.PROCESSING.value, outcome_unknown=True, detail=e.message)
        except ProcessorError as e:
            logger.error(f"Payout {payout.idempotency_key} rejected by processor: {e.message}")
            async with self._session_factory() as db:
                await self.mark_failed(db, payout.id, e.message)
                await db.commit()
            await self._alert_failure(payout, e.message)
            return self._result(payout, PayoutStatus.FAILED.value, error="processor_rejected", detail=e.message)

        return await self._apply_transfer(payout, transfer)

    async def _apply_transfer(self, payout: Payout, transfer: Transfer) -> PayoutResult:
        async with self._session_factory() as db:
            await self._record_transfer_id(db, payout, transfer.id)

            if transfer.status == PayoutStatus.FAILED.value:
                await self.mark_failed(db, payout.id, transfer.failure_reason or "Transfer reversed")
                status = PayoutStatus.FAILED.value
            elif self.settle_synchronously:
                await self.mark_paid(db, payout.id, utcnow(), transfer.id)
                status = PayoutStatus.PAID.value
            else:
                status = PayoutStatus.PROCESSING.value
            await db.commit()

        logger.info(f"Transfer {transfer.id} for payout {payout.idempotency_key}: {status}")
        if status == PayoutStatus.FAILED.value:
            await self._alert_failure(payout, transfer.failure_reason or "Transfer reversed")
        return self._result(payout, status, external_transfer_id=transfer.id)

    # ------------------------------------------------------------------
    # Bulk
    # ------------------------------------------------------------------

    async def process_bulk_payout(self, assignment_ids: list[str]) -> BulkPayoutResult:
        """
        Pay a batch of assignments.

        The batch total must fit within the processor's available balance,
        otherwise InsufficientBalance is raised before any transfer. Each
        assignment then runs the single-payout algorithm independently.
        """
        ids = list(dict.fromkeys(assignment_ids))

        async with self._session_factory() as db:
            result = await db.execute(
                select(WinnerAssignment.id, RewardTier.amount)
                .join(RewardTier, RewardTier.id == WinnerAssignment.tier_id)
                .where(
                    WinnerAssignment.id.in_(ids),
                    WinnerAssignment.payout_status == PayoutStatus.PENDING.value,
                )
            )
            total = sum((amount for _, amount in result.all()), Decimal("0.00"))

        if total > 0:
            balance = await self._processor.retrieve_balance()
            if total > balance.available:
                logger.warning(
                    f"Bulk payout of ${total} rejected: available balance ${balance.available}"
                )
                raise InsufficientBalance(
                    f"Batch total ${total} exceeds available balance ${balance.available}"
                )

        bulk = BulkPayoutResult(total_amount=total)
        for assignment_id in ids:
            try:
                bulk.results.append(await self.process_single_payout(assignment_id))
            except DraftboardError as e:
                bulk.results.append(
                    PayoutResult(
                        assignment_id=assignment_id,
                        status=await self._current_status(assignment_id),
                        error=e.code,
                        detail=e.message,
                    )
                )

        logger.info(
            f"Bulk payout of {len(ids)} assignments (${total}): "
            f"{bulk.succeeded} succeeded, {bulk.failed} failed"
        )
        return bulk

    async def process_brief_payouts(self, brief_id: str) -> BulkPayoutResult:
        async with self._session_factory() as db:
            await load_brief(db, brief_id)
            result = await db.execute(
                select(WinnerAssignment.id)
                .where(
                    WinnerAssignment.brief_id == brief_id,
                    WinnerAssignment.payout_status == PayoutStatus.PENDING.value,
                )
                .order_by(WinnerAssignment.assigned_at)
            )
            ids = list(result.scalars().all())

        if not ids:
            return BulkPayoutResult()
        return await self.process_bulk_payout(ids)

    # ------------------------------------------------------------------
    # Operator actions
    # ------------------------------------------------------------------

    async def reset_failed_payout(self, assignment_id: str) -> WinnerAssignment:
        """Return a failed assignment to pending under a new attempt number."""
        async with self._session_factory() as db:
            assignment = await load_assignment(db, assignment_id)
            if assignment.payout_status != PayoutStatus.FAILED.value:
                raise PayoutNotPending(
                    f"Only failed payouts can be retried (assignment {assignment_id} is {assignment.payout_status})"
                )

            result = await db.execute(
                update(WinnerAssignment)
                .where(
                    WinnerAssignment.id == assignment_id,
                    WinnerAssignment.payout_status == PayoutStatus.FAILED.value,
                )
                .values(
                    payout_status=PayoutStatus.PENDING.value,
                    payout_attempt=WinnerAssignment.payout_attempt + 1,
                    external_transfer_id=None,
                    failure_reason=None,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await db.rollback()
                raise PayoutNotPending(f"Assignment {assignment_id} changed state concurrently")

            record_assignment_event(db, assignment, "payout_reset", previous_attempt=assignment.payout_attempt)
            await db.commit()
            assignment = await load_assignment(db, assignment_id)

        logger.info(f"Reset failed payout of assignment {assignment_id} (attempt {assignment.payout_attempt})")
        return assignment

    async def retry_payout(self, assignment_id: str) -> PayoutResult:
        """Reset a failed payout and submit it again."""
        await self.reset_failed_payout(assignment_id)
        return await self.process_single_payout(assignment_id)

    async def refresh_payout(self, assignment_id: str) -> PayoutResult:
        """Re-check a processing payout with the processor."""
        async with self._session_factory() as db:
            assignment = await load_assignment(db, assignment_id)
            if assignment.payout_status != PayoutStatus.PROCESSING.value:
                raise PayoutNotPending(
                    f"Assignment {assignment_id} is {assignment.payout_status}, not processing"
                )
            payout = await self._get_payout_by_key(db, assignment.payout_idempotency_key)

        if payout is None:
            raise PayoutNotPending(f"No payout attempt recorded for assignment {assignment_id}")
        return await self.refresh_payout_record(payout)

    async def refresh_payout_record(self, payout: Payout) -> PayoutResult:
        if payout.external_transfer_id is None:
            # Submission outcome unknown: resubmitting with the same key cannot pay twice
            return await self.submit_transfer(payout)

        transfer = await self._processor.retrieve_transfer(payout.external_transfer_id)
        async with self._session_factory() as db:
            if transfer.status == PayoutStatus.PAID.value:
                await self.mark_paid(db, payout.id, utcnow(), transfer.id)
            elif transfer.status == PayoutStatus.FAILED.value:
                await self.mark_failed(db, payout.id, transfer.failure_reason or "Transfer reversed")
            await db.commit()
            refreshed = await db.get(Payout, payout.id, populate_existing=True)

        return self._result(refreshed, refreshed.status, external_transfer_id=transfer.id)

    async def refresh_stale_payouts(
        self,
        older_than_minutes: int | None = None,
        limit: int | None = None,
    ) -> int:
        """Refresh payouts stuck in processing. Returns how many were re-checked."""
        minutes = older_than_minutes if older_than_minutes is not None else self.config.stale_processing_minutes
        cutoff = utcnow() - timedelta(minutes=minutes)

        async with self._session_factory() as db:
            result = await db.execute(
                select(Payout)
                .where(
                    Payout.status == PayoutStatus.PROCESSING.value,
                    Payout.kind != PayoutKind.CREDIT.value,
                    Payout.updated_at < cutoff,
                )
                .order_by(Payout.updated_at)
                .limit(limit or self.config.refresh_batch_size)
            )
            stale = list(result.scalars().all())

        checked = 0
        for payout in stale:
            try:
                await self.refresh_payout_record(payout)
                checked += 1
            except ProcessorError as e:
                logger.warning(f"Could not refresh payout {payout.idempotency_key}: {e.message}")

        if stale:
            logger.info(f"Refreshed {checked}/{len(stale)} stale processing payouts")
        return checked

    async def settle_to_credit(self, assignment_id: str) -> PayoutResult:
        """Settle a winner into wallet credit instead of a cash transfer."""
        async with self._session_factory() as db:
            assignment = await load_assignment(db, assignment_id)
            self._require_pending(assignment)

        await ensure_balance_row(self._session_factory, assignment.creator_id)

        async with self._session_factory() as db:
            tier = await db.get(RewardTier, assignment.tier_id)
            claimed = await db.execute(
                update(WinnerAssignment)
                .where(
                    WinnerAssignment.id == assignment_id,
                    WinnerAssignment.payout_status == PayoutStatus.PENDING.value,
                )
                .values(payout_status=PayoutStatus.PROCESSING.value)
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount != 1:
                await db.rollback()
                raise AlreadyProcessing(f"Payout for assignment {assignment_id} is already processing")

            payout = Payout(
                id=new_id(),
                assignment_id=assignment_id,
                creator_id=assignment.creator_id,
                kind=PayoutKind.CREDIT.value,
                amount=tier.amount,
                fee=Decimal("0.00"),
                net_amount=tier.amount,
                status=PayoutStatus.PROCESSING.value,
                idempotency_key=f"credit-{assignment_id}-{assignment.payout_attempt}",
            )
            db.add(payout)
            await credit_wallet(
                db,
                assignment.creator_id,
                tier.amount,
                description=f"Reward for brief {assignment.brief_id} (tier #{tier.position})",
                reference_id=payout.id,
            )
            await db.flush()
            await self.mark_paid(db, payout.id, utcnow())
            await db.commit()

        logger.info(f"Settled assignment {assignment_id} as ${tier.amount} wallet credit")
        return self._result(payout, PayoutStatus.PAID.value)

    async def list_creator_payouts(self, creator_id: str, limit: int = 100) -> list[Payout]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(Payout)
                .where(Payout.creator_id == creator_id)
                .order_by(Payout.created_at.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    # ------------------------------------------------------------------
    # State transitions shared with the webhook reconciler
    # ------------------------------------------------------------------

    async def find_payout(
        self,
        db: AsyncSession,
        external_transfer_id: str | None = None,
        payout_id: str | None = None,
    ) -> Payout | None:
        conditions = []
        if external_transfer_id:
            conditions.append(Payout.external_transfer_id == external_transfer_id)
        if payout_id:
            conditions.append(Payout.id == payout_id)
        if not conditions:
            return None
        result = await db.execute(
            select(Payout).where(or_(*conditions)).execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def mark_paid(
        self,
        db: AsyncSession,
        payout_id: str,
        paid_at: datetime,
        external_transfer_id: str | None = None,
    ) -> bool:
        """
        Mark a payout (and its assignment) paid. Paid is terminal.

        Returns False when the payout was already paid.
        """
        payout = await db.get(Payout, payout_id, populate_existing=True)
        if payout is None or payout.status == PayoutStatus.PAID.value:
            return False
        previous_status = payout.status

        result = await db.execute(
            update(Payout)
            .where(Payout.id == payout_id, Payout.status != PayoutStatus.PAID.value)
            .values(
                status=PayoutStatus.PAID.value,
                paid_at=paid_at,
                failure_reason=None,
                external_transfer_id=external_transfer_id or payout.external_transfer_id,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False

        if previous_status == PayoutStatus.FAILED.value:
            logger.error(f"Payout {payout.idempotency_key} reported paid after it was marked failed")
            await self._notifications.alert_operators(
                "Payout paid after failure",
                payout=payout.idempotency_key,
                creator_id=payout.creator_id,
                amount=payout.net_amount,
            )

        if payout.assignment_id:
            assignment = await db.get(WinnerAssignment, payout.assignment_id, populate_existing=True)
            if assignment is None:
                logger.error(
                    f"Payout {payout.idempotency_key} paid after assignment {payout.assignment_id} was removed"
                )
                await self._notifications.alert_operators(
                    "Payout paid for removed assignment",
                    payout=payout.idempotency_key,
                    creator_id=payout.creator_id,
                    amount=payout.net_amount,
                )
            elif assignment.payout_status != PayoutStatus.PAID.value:
                if assignment.payout_idempotency_key != payout.idempotency_key and payout.kind == PayoutKind.REWARD.value:
                    logger.error(
                        f"Assignment {assignment.id} paid by earlier attempt {payout.idempotency_key} "
                        f"while on attempt {assignment.payout_attempt}"
                    )
                await db.execute(
                    update(WinnerAssignment)
                    .where(
                        WinnerAssignment.id == assignment.id,
                        WinnerAssignment.payout_status != PayoutStatus.PAID.value,
                    )
                    .values(
                        payout_status=PayoutStatus.PAID.value,
                        paid_at=paid_at,
                        failure_reason=None,
                        external_transfer_id=external_transfer_id or payout.external_transfer_id,
                    )
                    .execution_options(synchronize_session=False)
                )
                record_assignment_event(db, assignment, "payout_paid", payout=payout.idempotency_key)
                await refresh_brief_completion(db, assignment.brief_id)

        logger.info(f"Payout {payout.idempotency_key} paid (${payout.net_amount} to creator {payout.creator_id})")
        return True

    async def mark_failed(self, db: AsyncSession, payout_id: str, reason: str) -> bool:
        """
        Mark a payout failed unless it is already paid or failed.

        A failed reward returns its assignment to 'failed' for operator
        review; a failed redemption restores the creator's credit once.
        """
        payout = await db.get(Payout, payout_id, populate_existing=True)
        if payout is None:
            return False

        result = await db.execute(
            update(Payout)
            .where(
                Payout.id == payout_id,
                Payout.status.in_((PayoutStatus.PENDING.value, PayoutStatus.PROCESSING.value)),
            )
            .values(status=PayoutStatus.FAILED.value, failure_reason=reason)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.info(f"Ignoring failure for payout {payout.idempotency_key} ({payout.status})")
            return False

        if payout.kind == PayoutKind.REDEMPTION.value:
            await reverse_redemption(db, payout, reason)

        if payout.assignment_id:
            assignment = await db.get(WinnerAssignment, payout.assignment_id, populate_existing=True)
            if assignment is not None and assignment.payout_idempotency_key == payout.idempotency_key:
                await db.execute(
                    update(WinnerAssignment)
                    .where(
                        WinnerAssignment.id == assignment.id,
                        WinnerAssignment.payout_status == PayoutStatus.PROCESSING.value,
                    )
                    .values(payout_status=PayoutStatus.FAILED.value, failure_reason=reason)
                    .execution_options(synchronize_session=False)
                )
                record_assignment_event(db, assignment, "payout_failed", reason=reason)

        logger.warning(f"Payout {payout.idempotency_key} failed: {reason}")
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _require_pending(assignment: WinnerAssignment) -> None:
        if assignment.payout_status == PayoutStatus.PROCESSING.value:
            raise AlreadyProcessing(f"Payout for assignment {assignment.id} is already processing")
        if assignment.payout_status != PayoutStatus.PENDING.value:
            raise PayoutNotPending(
                f"Assignment {assignment.id} payout is {assignment.payout_status}, not pending"
            )

    @staticmethod
    async def _get_payout_by_key(db: AsyncSession, idempotency_key: str) -> Payout | None:
        result = await db.execute(select(Payout).where(Payout.idempotency_key == idempotency_key))
        return result.scalar_one_or_none()

    @staticmethod
    async def _record_transfer_id(db: AsyncSession, payout: Payout, transfer_id: str) -> None:
        await db.execute(
            update(Payout)
            .where(Payout.id == payout.id)
            .values(external_transfer_id=transfer_id)
            .execution_options(synchronize_session=False)
        )
        if payout.assignment_id:
            await db.execute(
                update(WinnerAssignment)
                .where(
                    WinnerAssignment.id == payout.assignment_id,
                    WinnerAssignment.payout_status == PayoutStatus.PROCESSING.value,
                )
                .values(external_transfer_id=transfer_id)
                .execution_options(synchronize_session=False)
            )
        payout.external_transfer_id = transfer_id

    async def _current_status(self, assignment_id: str) -> str:
        async with self._session_factory() as db:
            result = await db.execute(
                select(WinnerAssignment.payout_status).where(WinnerAssignment.id == assignment_id)
            )
            return result.scalar_one_or_none() or "unknown"

    async def _alert_failure(self, payout: Payout, reason: str) -> None:
        await self._notifications.alert_operators(
            "Payout failed",
            payout=payout.idempotency_key,
            kind=payout.kind,
            creator_id=payout.creator_id,
            amount=payout.net_amount,
            reason=reason,
        )

    @staticmethod
    def _result(payout: Payout, status: str, **kwargs) -> PayoutResult:
        return PayoutResult(
            assignment_id=payout.assignment_id,
            status=status,
            payout_id=payout.id,
            amount=payout.net_amount,
            external_transfer_id=kwargs.pop("external_transfer_id", payout.external_transfer_id),
            **kwargs,
        )
