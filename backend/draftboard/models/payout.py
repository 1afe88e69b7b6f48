"""Payout database model."""

from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Index,
    String,
    Text,
)

from draftboard.database.base import Base
from draftboard.models.base import Money, TimestampMixin, UUIDMixin


class PayoutKind(str, Enum):
    REWARD = "reward"
    REDEMPTION = "redemption"
    CREDIT = "credit"  # Settled into the creator wallet, no transfer


class Payout(Base, UUIDMixin, TimestampMixin):
    """One transfer attempt (or non-cash settlement) to a creator."""

    __tablename__ = "payouts"

    assignment_id = Column(String(36), nullable=True, index=True)
    creator_id = Column(String(64), nullable=False, index=True)
    kind = Column(String(20), nullable=False, default=PayoutKind.REWARD.value)

    amount = Money()
    fee = Money()
    net_amount = Money()

    status = Column(String(20), nullable=False, default="pending")
    idempotency_key = Column(String(128), nullable=False, unique=True)
    external_transfer_id = Column(String(255), nullable=True, index=True)
    destination_account_id = Column(String(255), nullable=True)
    # Credit transaction that funded a redemption
    reference_id = Column(String(36), nullable=True)

    paid_at = Column(DateTime(timezone=True), nullable=True)
    failure_reason = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'paid', 'failed')",
            name="valid_payout_record_status",
        ),
        CheckConstraint(
            "kind IN ('reward', 'redemption', 'credit')",
            name="valid_payout_kind",
        ),
        Index("idx_payouts_creator_created", "creator_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Payout {self.kind} ${self.net_amount} {self.status} creator={self.creator_id}>"
