"""Brief registration and escrow state lookups."""

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from draftboard.exceptions import BriefLocked, BriefNotFound
from draftboard.models import (
    Brief,
    BriefRefund,
    BriefStatus,
    FundingSession,
    RewardTier,
    WinnerAssignment,
)
from draftboard.services.fee_policy import to_money

logger = logging.getLogger(__name__)


async def load_brief(db: AsyncSession, brief_id: str) -> Brief:
    result = await db.execute(select(Brief).where(Brief.id == brief_id))
    brief = result.scalar_one_or_none()
    if brief is None:
        raise BriefNotFound(f"Brief {brief_id} not found")
    return brief


@dataclass
class BriefState:
    brief: Brief
    tiers: list[RewardTier] = field(default_factory=list)
    assignments: list[WinnerAssignment] = field(default_factory=list)
    refund: BriefRefund | None = None

    @property
    def allocated_amount(self) -> Decimal:
        return sum((t.amount for t in self.tiers if t.is_active), Decimal("0.00"))

    @property
    def paid_amount(self) -> Decimal:
        amounts = {t.id: t.amount for t in self.tiers}
        return sum(
            (amounts.get(a.tier_id, Decimal("0.00")) for a in self.assignments if a.payout_status == "paid"),
            Decimal("0.00"),
        )


class BriefService:
    """Registers briefs created by the content service and reports their money state."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def register_brief(
        self,
        brand_id: str,
        reward_total,
        title: str | None = None,
        status: BriefStatus = BriefStatus.DRAFT,
        brief_id: str | None = None,
    ) -> Brief:
        if status not in (BriefStatus.DRAFT, BriefStatus.PUBLISHED):
            raise BriefLocked(f"Briefs can only be registered as draft or published, not {status.value}")

        async with self._session_factory() as db:
            brief = Brief(
                brand_id=brand_id,
                title=title,
                reward_total=to_money(reward_total),
                status=status.value,
            )
            if brief_id:
                brief.id = brief_id
            db.add(brief)
            await db.commit()

        logger.info(f"Registered brief {brief.id} for brand {brand_id} (${brief.reward_total})")
        return brief

    async def get_brief(self, brief_id: str) -> Brief:
        async with self._session_factory() as db:
            return await load_brief(db, brief_id)

    async def get_state(self, brief_id: str) -> BriefState:
        async with self._session_factory() as db:
            brief = await load_brief(db, brief_id)
            tiers = await db.execute(
                select(RewardTier)
                .where(RewardTier.brief_id == brief_id)
                .order_by(RewardTier.position)
            )
            assignments = await db.execute(
                select(WinnerAssignment)
                .where(WinnerAssignment.brief_id == brief_id)
                .order_by(WinnerAssignment.assigned_at)
            )
            refund = await db.execute(
                select(BriefRefund).where(BriefRefund.brief_id == brief_id)
            )
            return BriefState(
                brief=brief,
                tiers=list(tiers.scalars().all()),
                assignments=list(assignments.scalars().all()),
                refund=refund.scalar_one_or_none(),
            )

    async def delete_brief(self, brief_id: str) -> None:
        """Delete an unfunded brief. Funded briefs are closed, never deleted."""
        async with self._session_factory() as db:
            brief = await load_brief(db, brief_id)
            if brief.is_funded:
                raise BriefLocked(f"Brief {brief_id} is funded and cannot be deleted")

            paid_sessions = await db.execute(
                select(FundingSession.id).where(
                    FundingSession.brief_id == brief_id,
                    FundingSession.status.in_(("completed", "mismatch")),
                )
            )
            if paid_sessions.first() is not None:
                raise BriefLocked(f"Brief {brief_id} has a collected funding payment")

            # SQLite does not enforce ON DELETE CASCADE without a pragma
            for model in (WinnerAssignment, RewardTier, FundingSession):
                await db.execute(delete(model).where(model.brief_id == brief_id))
            await db.delete(brief)
            await db.commit()

        logger.info(f"Deleted unfunded brief {brief_id}")
