"""Winner assignment engine."""

import logging
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from draftboard.exceptions import (
    AssignmentLocked,
    AssignmentNotFound,
    BriefLocked,
    BriefNotFunded,
    SubmissionAlreadyAssigned,
    TierAlreadyAssigned,
    TierNotFound,
    TierValidationError,
)
from draftboard.models import (
    AssignmentEvent,
    Brief,
    BriefStatus,
    PayoutStatus,
    RewardTier,
    WinnerAssignment,
)
from draftboard.models.base import new_id
from draftboard.services.brief_service import load_brief
from draftboard.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

UNASSIGNABLE_STATUSES = (PayoutStatus.PENDING.value, PayoutStatus.FAILED.value)


def record_assignment_event(
    db: AsyncSession,
    assignment: WinnerAssignment,
    event_type: str,
    **detail: Any,
) -> None:
    db.add(
        AssignmentEvent(
            assignment_id=assignment.id,
            brief_id=assignment.brief_id,
            event_type=event_type,
            detail={k: str(v) if v is not None else None for k, v in detail.items()} or None,
        )
    )


async def load_assignment(db: AsyncSession, assignment_id: str) -> WinnerAssignment:
    result = await db.execute(
        select(WinnerAssignment)
        .where(WinnerAssignment.id == assignment_id)
        .execution_options(populate_existing=True)
    )
    assignment = result.scalar_one_or_none()
    if assignment is None:
        raise AssignmentNotFound(f"Assignment {assignment_id} not found")
    return assignment


async def refresh_brief_completion(db: AsyncSession, brief_id: str) -> bool:
    """
    Move a brief to payouts_completed when every active tier has a paid assignment.

    Runs inside the caller's transaction. Returns True when the brief moved.
    """
    tiers = await db.execute(
        select(RewardTier.id).where(RewardTier.brief_id == brief_id, RewardTier.is_active.is_(True))
    )
    active_tier_ids = set(tiers.scalars().all())
    if not active_tier_ids:
        return False

    paid = await db.execute(
        select(WinnerAssignment.tier_id).where(
            WinnerAssignment.brief_id == brief_id,
            WinnerAssignment.payout_status == PayoutStatus.PAID.value,
        )
    )
    if not active_tier_ids.issubset(set(paid.scalars().all())):
        return False

    result = await db.execute(
        update(Brief)
        .where(Brief.id == brief_id, Brief.status == BriefStatus.WINNERS_SELECTED.value)
        .values(status=BriefStatus.PAYOUTS_COMPLETED.value)
    )
    if result.rowcount:
        logger.info(f"Brief {brief_id} payouts completed")
    return bool(result.rowcount)


class WinnerAssignmentService:
    """Binds submissions to reward tiers, one submission per tier and one tier per submission."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        notifications: NotificationService,
    ):
        self._session_factory = session_factory
        self._notifications = notifications

    async def assign(
        self,
        brief_id: str,
        tier_id: str,
        submission_id: str,
        creator_id: str,
    ) -> WinnerAssignment:
        async with self._session_factory() as db:
            brief = await load_brief(db, brief_id)
            if not brief.is_funded:
                raise BriefNotFunded(f"Brief {brief_id} must be funded before winners are assigned")
            if brief.status in (BriefStatus.CLOSED.value, BriefStatus.PAYOUTS_COMPLETED.value):
                raise BriefLocked(f"Brief {brief_id} is {brief.status}")

            tier = await self._load_tier(db, brief_id, tier_id)
            if not tier.is_active:
                raise TierValidationError(f"Tier {tier_id} is not active")

            await self._check_unassigned(db, brief_id, tier_id, submission_id)

            assignment = WinnerAssignment(
                id=new_id(),
                brief_id=brief_id,
                tier_id=tier_id,
                submission_id=submission_id,
                creator_id=creator_id,
                payout_status=PayoutStatus.PENDING.value,
            )
            db.add(assignment)
            record_assignment_event(
                db, assignment, "assigned",
                tier_position=tier.position, amount=tier.amount, submission_id=submission_id,
            )

            await db.execute(
                update(Brief)
                .where(
                    Brief.id == brief_id,
                    Brief.status.in_((BriefStatus.PUBLISHED.value, BriefStatus.ACTIVE.value)),
                )
                .values(status=BriefStatus.WINNERS_SELECTED.value)
            )

            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                # Lost a race against a concurrent assignment; report which uniqueness rule
                await self._check_unassigned(db, brief_id, tier_id, submission_id)
                raise

        logger.info(
            f"Assigned submission {submission_id} (creator {creator_id}) to tier "
            f"#{tier.position} (${tier.amount}) of brief {brief_id}"
        )

        await self._notifications.publish(
            recipient_id=creator_id,
            recipient_type="creator",
            title="You won a reward",
            body=f"Your submission won {tier.description or f'tier {tier.position}'} (${tier.amount}).",
            category="reward_assigned",
            data={"brief_id": brief_id, "assignment_id": assignment.id, "amount": str(tier.amount)},
        )
        return assignment

    async def unassign(self, assignment_id: str) -> None:
        async with self._session_factory() as db:
            assignment = await load_assignment(db, assignment_id)
            if assignment.payout_status not in UNASSIGNABLE_STATUSES:
                raise AssignmentLocked(
                    f"Assignment {assignment_id} is {assignment.payout_status} and cannot be removed"
                )

            result = await db.execute(
                delete(WinnerAssignment).where(
                    WinnerAssignment.id == assignment_id,
                    WinnerAssignment.payout_status.in_(UNASSIGNABLE_STATUSES),
                )
            )
            if result.rowcount != 1:
                await db.rollback()
                raise AssignmentLocked(f"Assignment {assignment_id} changed state concurrently")

            record_assignment_event(
                db, assignment, "unassigned", previous_status=assignment.payout_status
            )

            remaining = await db.execute(
                select(func.count(WinnerAssignment.id)).where(
                    WinnerAssignment.brief_id == assignment.brief_id
                )
            )
            if remaining.scalar_one() == 0:
                await db.execute(
                    update(Brief)
                    .where(
                        Brief.id == assignment.brief_id,
                        Brief.status == BriefStatus.WINNERS_SELECTED.value,
                    )
                    .values(status=BriefStatus.ACTIVE.value)
                )
            await db.commit()

        logger.info(f"Removed assignment {assignment_id} from brief {assignment.brief_id}")

    async def get_assignment(self, assignment_id: str) -> WinnerAssignment:
        async with self._session_factory() as db:
            return await load_assignment(db, assignment_id)

    async def list_assignments(self, brief_id: str) -> list[WinnerAssignment]:
        async with self._session_factory() as db:
            await load_brief(db, brief_id)
            result = await db.execute(
                select(WinnerAssignment)
                .where(WinnerAssignment.brief_id == brief_id)
                .order_by(WinnerAssignment.assigned_at)
            )
            return list(result.scalars().all())

    async def list_events(self, assignment_id: str) -> list[AssignmentEvent]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(AssignmentEvent)
                .where(AssignmentEvent.assignment_id == assignment_id)
                .order_by(AssignmentEvent.created_at)
            )
            return list(result.scalars().all())

    @staticmethod
    async def _load_tier(db: AsyncSession, brief_id: str, tier_id: str) -> RewardTier:
        result = await db.execute(
            select(RewardTier).where(RewardTier.id == tier_id, RewardTier.brief_id == brief_id)
        )
        tier = result.scalar_one_or_none()
        if tier is None:
            raise TierNotFound(f"Tier {tier_id} not found on brief {brief_id}")
        return tier

    @staticmethod
    async def _check_unassigned(
        db: AsyncSession, brief_id: str, tier_id: str, submission_id: str
    ) -> None:
        by_tier = await db.execute(
            select(WinnerAssignment.submission_id).where(WinnerAssignment.tier_id == tier_id)
        )
        if by_tier.first() is not None:
            raise TierAlreadyAssigned(f"Tier {tier_id} already has a winner")

        by_submission = await db.execute(
            select(WinnerAssignment.tier_id).where(
                WinnerAssignment.brief_id == brief_id,
                WinnerAssignment.submission_id == submission_id,
            )
        )
        if by_submission.first() is not None:
            raise SubmissionAlreadyAssigned(
                f"Submission {submission_id} is already assigned on brief {brief_id}"
            )
