"""Creator payment account model."""

from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    String,
)

from draftboard.database.base import Base
from draftboard.models.base import JSONType, TimestampMixin, UUIDMixin


class AccountStatus(str, Enum):
    NOT_CONNECTED = "not_connected"
    PENDING = "pending"
    ACTIVE = "active"
    RESTRICTED = "restricted"


def derive_account_status(
    charges_enabled: bool,
    payouts_enabled: bool,
    details_submitted: bool = False,
    requirements_due: list[str] | None = None,
    disabled_reason: str | None = None,
) -> AccountStatus:
    """Active when both capabilities are on; restricted when the processor
    disabled the account or still wants information after onboarding."""
    if charges_enabled and payouts_enabled:
        return AccountStatus.ACTIVE
    if disabled_reason or (details_submitted and requirements_due):
        return AccountStatus.RESTRICTED
    return AccountStatus.PENDING


class PaymentAccount(Base, UUIDMixin, TimestampMixin):
    """External processor account of a creator and its capability flags."""

    __tablename__ = "payment_accounts"

    # Nullable: an account.updated event can arrive before the creator is known
    creator_id = Column(String(64), nullable=True, unique=True)
    external_account_id = Column(String(255), nullable=False, unique=True)

    charges_enabled = Column(Boolean, nullable=False, default=False)
    payouts_enabled = Column(Boolean, nullable=False, default=False)
    details_submitted = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default=AccountStatus.PENDING.value)

    country = Column(String(2), nullable=True)
    requirements_due = Column(JSONType, nullable=True)
    disabled_reason = Column(String(255), nullable=True)
    status_synced_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('not_connected', 'pending', 'active', 'restricted')",
            name="valid_account_status",
        ),
    )

    @property
    def payouts_allowed(self) -> bool:
        return bool(self.payouts_enabled)

    def __repr__(self) -> str:
        return f"<PaymentAccount {self.external_account_id} creator={self.creator_id} {self.status}>"
