"""Creator payment account registry."""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from draftboard.exceptions import AccountCreationError, AccountNotFound, AccountNotReady
from draftboard.models import AccountStatus, PaymentAccount, derive_account_status
from draftboard.models.base import as_utc, utcnow
from draftboard.services.processor import ConnectedAccount, ProcessorClient

logger = logging.getLogger(__name__)


class PaymentAccountService:
    """Tracks each creator's processor account and gates payouts on it."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        processor: ProcessorClient,
    ):
        self._session_factory = session_factory
        self._processor = processor

    @staticmethod
    async def get_for_creator(db: AsyncSession, creator_id: str) -> PaymentAccount | None:
        result = await db.execute(
            select(PaymentAccount).where(PaymentAccount.creator_id == creator_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_external_id(db: AsyncSession, external_account_id: str) -> PaymentAccount | None:
        result = await db.execute(
            select(PaymentAccount).where(
                PaymentAccount.external_account_id == external_account_id
            )
        )
        return result.scalar_one_or_none()

    async def get_account(self, creator_id: str) -> PaymentAccount | None:
        async with self._session_factory() as db:
            return await self.get_for_creator(db, creator_id)

    async def request_onboarding(self, creator_id: str, country: str) -> str:
        """
        Create (or reuse) the creator's processor account.

        Returns the external account id. A creator with an active account
        cannot onboard again; a pending or restricted account is reused.
        """
        async with self._session_factory() as db:
            existing = await self.get_for_creator(db, creator_id)

        if existing is not None:
            if existing.status == AccountStatus.ACTIVE.value:
                raise AccountCreationError(
                    f"Creator {creator_id} already has an active payment account"
                )
            logger.info(
                f"Reusing {existing.status} account {existing.external_account_id} "
                f"for creator {creator_id}"
            )
            return existing.external_account_id

        snapshot = await self._processor.create_account(
            country=country,
            metadata={"creator_id": creator_id},
            idempotency_key=f"account-{creator_id}",
        )

        async with self._session_factory() as db:
            account = PaymentAccount(
                creator_id=creator_id,
                external_account_id=snapshot.id,
                country=country,
            )
            self._apply_snapshot(account, snapshot, utcnow())
            db.add(account)
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                existing = await self.get_for_creator(db, creator_id)
                if existing is None:
                    raise
                logger.info(f"Concurrent onboarding for creator {creator_id}, using existing account")
                return existing.external_account_id

        logger.info(f"Created payment account {snapshot.id} for creator {creator_id} ({country})")
        return snapshot.id

    async def create_onboarding_link(
        self, creator_id: str, return_url: str, refresh_url: str
    ) -> str:
        account = await self.get_account(creator_id)
        if account is None:
            raise AccountNotFound(f"Creator {creator_id} has no payment account")

        link = await self._processor.create_account_link(
            account.external_account_id,
            return_url=return_url,
            refresh_url=refresh_url,
        )
        return link.url

    async def refresh_status(self, external_account_id: str) -> PaymentAccount:
        """Pull current capability flags from the processor and persist them."""
        snapshot = await self._processor.retrieve_account(external_account_id)

        async with self._session_factory() as db:
            account = await self.upsert_from_snapshot(db, snapshot, utcnow())
            await db.commit()

        logger.info(
            f"Refreshed account {external_account_id}: status={account.status}, "
            f"payouts_enabled={account.payouts_enabled}"
        )
        return account

    async def refresh_creator_status(self, creator_id: str) -> PaymentAccount:
        account = await self.get_account(creator_id)
        if account is None:
            raise AccountNotFound(f"Creator {creator_id} has no payment account")
        return await self.refresh_status(account.external_account_id)

    async def payouts_allowed(self, creator_id: str) -> bool:
        account = await self.get_account(creator_id)
        return account is not None and account.payouts_allowed

    async def require_payouts_allowed(self, db: AsyncSession, creator_id: str) -> PaymentAccount:
        account = await self.get_for_creator(db, creator_id)
        if account is None:
            raise AccountNotReady(f"Creator {creator_id} has not connected a payment account")
        if not account.payouts_allowed:
            raise AccountNotReady(
                f"Payment account of creator {creator_id} cannot receive payouts "
                f"(status={account.status})"
            )
        return account

    async def upsert_from_snapshot(
        self,
        db: AsyncSession,
        snapshot: ConnectedAccount,
        synced_at: datetime,
    ) -> PaymentAccount:
        """
        Insert or update an account from a processor snapshot (no commit).

        Snapshots older than the stored status_synced_at are ignored so
        out-of-order account events cannot roll the flags back.
        """
        account = await self.get_by_external_id(db, snapshot.id)

        if account is None:
            creator_id = snapshot.metadata.get("creator_id")
            if creator_id and await self.get_for_creator(db, creator_id) is not None:
                logger.warning(
                    f"Creator {creator_id} already linked to another account; "
                    f"storing {snapshot.id} unlinked"
                )
                creator_id = None
            account = PaymentAccount(
                creator_id=creator_id,
                external_account_id=snapshot.id,
                country=snapshot.country,
            )
            db.add(account)
            logger.info(f"Registered previously unknown account {snapshot.id}")
        else:
            last_synced = as_utc(account.status_synced_at)
            if last_synced is not None and as_utc(synced_at) < last_synced:
                logger.info(
                    f"Ignoring stale snapshot for {snapshot.id} "
                    f"({synced_at.isoformat()} < {last_synced.isoformat()})"
                )
                return account

        self._apply_snapshot(account, snapshot, synced_at)
        await db.flush()
        return account

    @staticmethod
    def _apply_snapshot(
        account: PaymentAccount,
        snapshot: ConnectedAccount,
        synced_at: datetime,
    ) -> None:
        account.charges_enabled = snapshot.charges_enabled
        account.payouts_enabled = snapshot.payouts_enabled
        account.details_submitted = snapshot.details_submitted
        account.requirements_due = list(snapshot.requirements_due)
        account.disabled_reason = snapshot.disabled_reason
        if snapshot.country:
            account.country = snapshot.country
        account.status = derive_account_status(
            snapshot.charges_enabled,
            snapshot.payouts_enabled,
            snapshot.details_submitted,
            snapshot.requirements_due,
            snapshot.disabled_reason,
        ).value
        account.status_synced_at = synced_at
