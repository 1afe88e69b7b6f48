"""Creator wallet: non-cash reward credit and redemption into payouts."""

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from draftboard.config import CreditConfig
from draftboard.exceptions import InsufficientCredit, InvalidAmount
from draftboard.models import (
    CreditBalance,
    CreditTransaction,
    CreditTransactionType,
    Payout,
    PayoutKind,
    PayoutStatus,
)
from draftboard.models.base import new_id, utcnow
from draftboard.services.fee_policy import to_money

logger = logging.getLogger(__name__)


# ============================================================================
# Balance primitives (run inside the caller's transaction)
# ============================================================================


async def ensure_balance_row(
    session_factory: async_sessionmaker[AsyncSession], creator_id: str
) -> None:
    """Create an empty balance row for the creator if none exists."""
    async with session_factory() as db:
        if await db.get(CreditBalance, creator_id) is not None:
            return
        db.add(CreditBalance(creator_id=creator_id))
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()


async def _adjust_balance(
    db: AsyncSession,
    creator_id: str,
    delta: Decimal,
    earned: Decimal = Decimal("0"),
    redeemed: Decimal = Decimal("0"),
    require_funds: bool = False,
) -> Decimal | None:
    """Conditionally apply ``delta``. Returns the new balance or None if no row matched."""
    stmt = (
        update(CreditBalance)
        .where(CreditBalance.creator_id == creator_id)
        .values(
            balance=CreditBalance.balance + delta,
            total_earned=CreditBalance.total_earned + earned,
            total_redeemed=CreditBalance.total_redeemed + redeemed,
            last_updated=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    if require_funds:
        stmt = stmt.where(CreditBalance.balance >= -delta)

    result = await db.execute(stmt)
    if result.rowcount != 1:
        return None

    balance = await db.execute(
        select(CreditBalance.balance).where(CreditBalance.creator_id == creator_id)
    )
    return to_money(balance.scalar_one())


async def credit_wallet(
    db: AsyncSession,
    creator_id: str,
    amount: Decimal,
    description: str,
    reference_id: str | None = None,
) -> CreditTransaction:
    """Add credit. The balance row must exist (see ensure_balance_row)."""
    after = await _adjust_balance(db, creator_id, amount, earned=amount)
    if after is None:
        raise RuntimeError(f"No credit balance row for creator {creator_id}")

    transaction = CreditTransaction(
        id=new_id(),
        creator_id=creator_id,
        type=CreditTransactionType.CREDIT.value,
        amount=amount,
        balance_before=after - amount,
        balance_after=after,
        description=description,
        reference_id=reference_id,
    )
    db.add(transaction)
    return transaction


async def reverse_redemption(db: AsyncSession, payout: Payout, reason: str | None) -> CreditTransaction:
    """Give a failed redemption's amount back to the creator."""
    after = await _adjust_balance(
        db, payout.creator_id, payout.amount, redeemed=-payout.amount
    )
    if after is None:
        raise RuntimeError(f"No credit balance row for creator {payout.creator_id}")

    transaction = CreditTransaction(
        id=new_id(),
        creator_id=payout.creator_id,
        type=CreditTransactionType.REVERSAL.value,
        amount=payout.amount,
        balance_before=after - payout.amount,
        balance_after=after,
        description=f"Redemption payout failed: {reason or 'unknown reason'}",
        reference_id=payout.id,
    )
    db.add(transaction)
    logger.info(f"Restored ${payout.amount} credit to creator {payout.creator_id} (payout {payout.id})")
    return transaction


# ============================================================================
# Service
# ============================================================================


@dataclass
class RedemptionResult:
    transaction: CreditTransaction
    payout_id: str
    payout_status: str
    balance: Decimal
    failure_reason: str | None = None


class CreditLedgerService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        accounts,
        payouts,
        config: CreditConfig | None = None,
    ):
        self._session_factory = session_factory
        self._accounts = accounts
        self._payouts = payouts
        self.config = config or CreditConfig()

    async def credit_reward(
        self,
        creator_id: str,
        amount,
        description: str,
        reference_id: str | None = None,
    ) -> CreditTransaction:
        amount = to_money(amount)
        if amount <= 0:
            raise InvalidAmount(f"Credit amount must be positive, got {amount}")

        await ensure_balance_row(self._session_factory, creator_id)
        async with self._session_factory() as db:
            transaction = await credit_wallet(db, creator_id, amount, description, reference_id)
            await db.commit()

        logger.info(f"Credited ${amount} to creator {creator_id}: {description}")
        return transaction

    async def redeem(self, creator_id: str, amount) -> RedemptionResult:
        """
        Convert wallet credit into a cash payout.

        Process:
        1. Validate amount, account readiness and balance
        2. Conditionally decrement the balance and record the redemption
        3. Create the redemption payout (same transaction)
        4. Submit the transfer; a definitive failure appends a reversal
           restoring the balance, an unknown outcome keeps the deduction
        """
        amount = to_money(amount)
        if amount <= 0:
            raise InvalidAmount(f"Redemption amount must be positive, got {amount}")
        if amount < self.config.minimum_redemption:
            raise InvalidAmount(
                f"Minimum redemption is ${self.config.minimum_redemption}, got ${amount}"
            )

        async with self._session_factory() as db:
            account = await self._accounts.require_payouts_allowed(db, creator_id)

            after = await _adjust_balance(
                db, creator_id, -amount, redeemed=amount, require_funds=True
            )
            if after is None:
                await db.rollback()
                current = await self.get_balance(creator_id)
                raise InsufficientCredit(
                    f"Redemption of ${amount} exceeds available credit ${current.balance}"
                )

            transaction = CreditTransaction(
                id=new_id(),
                creator_id=creator_id,
                type=CreditTransactionType.REDEMPTION.value,
                amount=amount,
                balance_before=after + amount,
                balance_after=after,
                description="Redemption to payment account",
            )
            payout = Payout(
                id=new_id(),
                creator_id=creator_id,
                kind=PayoutKind.REDEMPTION.value,
                amount=amount,
                fee=Decimal("0.00"),
                net_amount=amount,
                status=PayoutStatus.PROCESSING.value,
                idempotency_key=f"redeem-{transaction.id}",
                destination_account_id=account.external_account_id,
                reference_id=transaction.id,
            )
            transaction.reference_id = payout.id
            db.add_all([transaction, payout])
            await db.commit()

        logger.info(f"Creator {creator_id} redeemed ${amount} (payout {payout.id})")

        result = await self._payouts.submit_transfer(payout)
        balance = await self.get_balance(creator_id)
        return RedemptionResult(
            transaction=transaction,
            payout_id=payout.id,
            payout_status=result.status,
            balance=balance.balance,
            failure_reason=result.detail if result.status == PayoutStatus.FAILED.value else None,
        )

    async def get_balance(self, creator_id: str) -> CreditBalance:
        async with self._session_factory() as db:
            result = await db.execute(
                select(CreditBalance).where(CreditBalance.creator_id == creator_id)
            )
            balance = result.scalar_one_or_none()
        if balance is None:
            return CreditBalance(
                creator_id=creator_id,
                balance=Decimal("0.00"),
                total_earned=Decimal("0.00"),
                total_redeemed=Decimal("0.00"),
            )
        return balance

    async def list_transactions(self, creator_id: str, limit: int = 100) -> list[CreditTransaction]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(CreditTransaction)
                .where(CreditTransaction.creator_id == creator_id)
                .order_by(CreditTransaction.created_at.desc())
                .limit(limit)
            )
            return list(result.scalars().all())
