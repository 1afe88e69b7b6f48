"""Funding session and refund models."""

from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    text,
)

from draftboard.database.base import Base
from draftboard.models.base import Money, TimestampMixin, UUIDMixin


class FundingSessionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    EXPIRED = "expired"
    MISMATCH = "mismatch"  # Held for manual review


class RefundStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class FundingSession(Base, UUIDMixin, TimestampMixin):
    """A checkout session opened with the processor to fund a brief."""

    __tablename__ = "funding_sessions"

    brief_id = Column(
        String(36),
        ForeignKey("briefs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Filled in once the processor has created the checkout session
    checkout_session_id = Column(String(255), nullable=True, unique=True)
    checkout_url = Column(Text, nullable=True)

    amount = Money()
    platform_fee = Money()
    net_amount = Money()
    currency = Column(String(3), nullable=False, default="usd")

    status = Column(String(20), nullable=False, default=FundingSessionStatus.PENDING.value)
    payment_intent_id = Column(String(255), nullable=True)
    confirmed_amount = Money(nullable=True, default=None)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'completed', 'expired', 'mismatch')",
            name="valid_funding_session_status",
        ),
        CheckConstraint("amount > 0", name="positive_funding_amount"),
        Index("idx_funding_sessions_brief_status", "brief_id", "status"),
        Index(
            "uq_funding_sessions_one_pending",
            "brief_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<FundingSession {self.checkout_session_id} {self.status} ${self.amount}>"


class BriefRefund(Base, UUIDMixin, TimestampMixin):
    """Refund of escrowed funds when a brief is closed."""

    __tablename__ = "brief_refunds"

    brief_id = Column(
        String(36),
        ForeignKey("briefs.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    amount = Money()
    reason = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=RefundStatus.PENDING.value)
    idempotency_key = Column(String(128), nullable=False, unique=True)
    external_refund_id = Column(String(255), nullable=True, index=True)
    failure_reason = Column(Text, nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'succeeded', 'failed')",
            name="valid_refund_status",
        ),
        CheckConstraint("amount > 0", name="positive_refund_amount"),
    )

    def __repr__(self) -> str:
        return f"<BriefRefund {self.brief_id} {self.status} ${self.amount}>"
