"""Reward tier database model."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from draftboard.database.base import Base
from draftboard.models.base import Money, TimestampMixin, UUIDMixin


class RewardTier(Base, UUIDMixin, TimestampMixin):
    """Ranked payout slot of a brief."""

    __tablename__ = "reward_tiers"

    brief_id = Column(
        String(36),
        ForeignKey("briefs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False)
    amount = Money()
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("brief_id", "position", name="uq_reward_tier_position"),
        CheckConstraint("position >= 1", name="positive_tier_position"),
        CheckConstraint("amount > 0", name="positive_tier_amount"),
    )

    def __repr__(self) -> str:
        return f"<RewardTier #{self.position} ${self.amount} brief={self.brief_id}>"
