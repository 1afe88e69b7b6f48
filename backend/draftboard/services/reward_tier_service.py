"""Reward tier configuration."""

import logging
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from draftboard.exceptions import BriefLocked, InvalidAmount, TierValidationError, TiersLocked
from draftboard.models import BriefStatus, RewardTier, WinnerAssignment
from draftboard.services.brief_service import load_brief
from draftboard.services.fee_policy import CENT, to_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TierSpec:
    position: int
    amount: Decimal
    description: str | None = None
    is_active: bool = True


def split_equally(net: Decimal, winner_count: int) -> list[Decimal]:
    """
    Split ``net`` into ``winner_count`` cent amounts summing exactly to ``net``.

    Every tier gets floor(net / N) cents; the leftover cents go one each to
    positions 1, 2, ... in order.

    Example: 950.00 over 3 -> [316.67, 316.67, 316.66]
    """
    if winner_count < 1:
        raise TierValidationError("winner_count must be at least 1")

    base = (net / winner_count).quantize(CENT, rounding=ROUND_DOWN)
    leftover_cents = int((net - base * winner_count) / CENT)
    if base <= 0:
        raise TierValidationError(
            f"Net amount ${net} is too small to split between {winner_count} winners"
        )

    return [base + (CENT if i < leftover_cents else Decimal("0")) for i in range(winner_count)]


def ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


class RewardTierService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @staticmethod
    def validate(tiers: list[TierSpec], net_funded_amount: Decimal) -> list[TierSpec]:
        """Check positions, amounts and the active total. Returns normalized specs."""
        if not tiers:
            raise TierValidationError("At least one reward tier is required")

        positions = [t.position for t in tiers]
        if len(set(positions)) != len(positions):
            raise TierValidationError("Tier positions must be unique")
        if sorted(positions) != list(range(1, len(tiers) + 1)):
            raise TierValidationError(
                f"Tier positions must be contiguous from 1 to {len(tiers)}, got {sorted(positions)}"
            )

        normalized = []
        for tier in tiers:
            try:
                amount = to_money(tier.amount)
            except InvalidAmount as e:
                raise TierValidationError(f"Tier {tier.position}: {e.message}")
            if amount <= 0:
                raise TierValidationError(f"Tier {tier.position} amount must be positive")
            normalized.append(
                TierSpec(tier.position, amount, tier.description, tier.is_active)
            )

        active_total = sum((t.amount for t in normalized if t.is_active), Decimal("0.00"))
        if active_total > net_funded_amount:
            raise TierValidationError(
                f"Active tiers total ${active_total} exceeds net funded amount ${net_funded_amount}"
            )

        return sorted(normalized, key=lambda t: t.position)

    async def set_tiers(self, brief_id: str, tiers: list[TierSpec]) -> list[RewardTier]:
        """Replace all tiers of a funded brief (all-or-nothing)."""
        async with self._session_factory() as db:
            brief = await load_brief(db, brief_id)
            if not brief.is_funded:
                raise TierValidationError(f"Brief {brief_id} must be funded before tiers are set")
            if brief.status == BriefStatus.CLOSED.value:
                raise BriefLocked(f"Brief {brief_id} is closed")

            specs = self.validate(tiers, brief.net_funded_amount)

            assigned = await db.execute(
                select(WinnerAssignment.id).where(WinnerAssignment.brief_id == brief_id).limit(1)
            )
            if assigned.first() is not None:
                raise TiersLocked(f"Brief {brief_id} already has winners assigned")

            await db.execute(delete(RewardTier).where(RewardTier.brief_id == brief_id))
            created = [
                RewardTier(
                    brief_id=brief_id,
                    position=spec.position,
                    amount=spec.amount,
                    description=spec.description,
                    is_active=spec.is_active,
                )
                for spec in specs
            ]
            db.add_all(created)
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                raise TiersLocked(f"Tiers of brief {brief_id} changed concurrently or are referenced")

        logger.info(
            f"Set {len(created)} tiers on brief {brief_id} "
            f"(${sum(s.amount for s in specs if s.is_active)} of ${brief.net_funded_amount})"
        )
        return created

    async def equal_split(self, brief_id: str, winner_count: int) -> list[RewardTier]:
        brief = await self._get_funded_brief(brief_id)
        amounts = split_equally(brief.net_funded_amount, winner_count)
        specs = [
            TierSpec(position=i, amount=amount, description=f"{ordinal(i)} place")
            for i, amount in enumerate(amounts, start=1)
        ]
        return await self.set_tiers(brief_id, specs)

    async def list_tiers(self, brief_id: str) -> list[RewardTier]:
        async with self._session_factory() as db:
            await load_brief(db, brief_id)
            result = await db.execute(
                select(RewardTier)
                .where(RewardTier.brief_id == brief_id)
                .order_by(RewardTier.position)
            )
            return list(result.scalars().all())

    async def _get_funded_brief(self, brief_id: str):
        async with self._session_factory() as db:
            brief = await load_brief(db, brief_id)
        if not brief.is_funded:
            raise TierValidationError(f"Brief {brief_id} must be funded before tiers are set")
        return brief
