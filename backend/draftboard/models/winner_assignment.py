"""Winner assignment and assignment audit models."""

from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from draftboard.database.base import Base
from draftboard.models.base import JSONType, TimestampMixin, UUIDMixin, utcnow


class PayoutStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"
    FAILED = "failed"


class WinnerAssignment(Base, UUIDMixin, TimestampMixin):
    """Binding of one submission (and its creator) to one reward tier."""

    __tablename__ = "winner_assignments"

    brief_id = Column(
        String(36),
        ForeignKey("briefs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tier_id = Column(
        String(36),
        ForeignKey("reward_tiers.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    submission_id = Column(String(64), nullable=False)
    creator_id = Column(String(64), nullable=False, index=True)
    assigned_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Payout tracking
    payout_status = Column(String(20), nullable=False, default=PayoutStatus.PENDING.value)
    payout_attempt = Column(Integer, nullable=False, default=1)
    external_transfer_id = Column(String(255), nullable=True, index=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    failure_reason = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("brief_id", "submission_id", name="uq_assignment_submission"),
        CheckConstraint(
            "payout_status IN ('pending', 'processing', 'paid', 'failed')",
            name="valid_payout_status",
        ),
        Index("idx_assignments_payout_status", "payout_status"),
    )

    @property
    def payout_idempotency_key(self) -> str:
        return f"payout-{self.id}-{self.payout_attempt}"

    def __repr__(self) -> str:
        return f"<WinnerAssignment {self.id} tier={self.tier_id} {self.payout_status}>"


class AssignmentEvent(Base, UUIDMixin):
    """Append-only audit trail of assignment and payout transitions."""

    __tablename__ = "assignment_events"

    # No foreign key: events outlive unassigned rows
    assignment_id = Column(String(36), nullable=False, index=True)
    brief_id = Column(String(36), nullable=False, index=True)
    event_type = Column(String(40), nullable=False)
    detail = Column(JSONType, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<AssignmentEvent {self.event_type} assignment={self.assignment_id}>"
