"""Brief database model."""

from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    String,
    Text,
)

from draftboard.database.base import Base
from draftboard.models.base import Money, TimestampMixin, UUIDMixin


class BriefStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ACTIVE = "active"
    WINNERS_SELECTED = "winners_selected"
    PAYOUTS_COMPLETED = "payouts_completed"
    CLOSED = "closed"


class Brief(Base, UUIDMixin, TimestampMixin):
    """Escrow and payout state of a brief. Content lives elsewhere."""

    __tablename__ = "briefs"

    brand_id = Column(String(64), nullable=False, index=True)
    title = Column(String(255), nullable=True)

    # Funding
    reward_total = Money()
    funded_amount = Money()
    platform_fee = Money()
    net_funded_amount = Money()
    is_funded = Column(Boolean, nullable=False, default=False)
    funded_at = Column(DateTime(timezone=True), nullable=True)

    status = Column(String(20), nullable=False, default=BriefStatus.DRAFT.value)
    closed_reason = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'published', 'active', 'winners_selected', "
            "'payouts_completed', 'closed')",
            name="valid_brief_status",
        ),
        CheckConstraint("funded_amount >= 0", name="non_negative_funded_amount"),
        CheckConstraint("is_funded = (funded_amount > 0)", name="funded_flag_consistent"),
        Index("idx_briefs_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Brief {self.id} ({self.status}, funded={self.is_funded})>"
