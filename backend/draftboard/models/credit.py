"""Creator wallet models."""

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
from draftboard.models.base import Money, UUIDMixin, utcnow


class CreditTransactionType(str, Enum):
    CREDIT = "credit"
    REDEMPTION = "redemption"
    REVERSAL = "reversal"


class CreditBalance(Base):
    """Derived wallet balance of a creator."""

    __tablename__ = "credit_balances"

    creator_id = Column(String(64), primary_key=True)
    balance = Money()
    total_earned = Money()
    total_redeemed = Money()
    last_updated = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    __table_args__ = (
        CheckConstraint("balance >= 0", name="non_negative_credit_balance"),
    )

    def __repr__(self) -> str:
        return f"<CreditBalance {self.creator_id} ${self.balance}>"


class CreditTransaction(Base, UUIDMixin):
    """Append-only wallet movement."""

    __tablename__ = "credit_transactions"

    creator_id = Column(String(64), nullable=False)
    type = Column(String(20), nullable=False)
    amount = Money()
    balance_before = Money()
    balance_after = Money()
    description = Column(Text, nullable=True)
    reference_id = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint(
            "type IN ('credit', 'redemption', 'reversal')",
            name="valid_credit_transaction_type",
        ),
        CheckConstraint("amount > 0", name="positive_credit_amount"),
        Index("idx_credit_transactions_creator", "creator_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<CreditTransaction {self.type} ${self.amount} creator={self.creator_id}>"
