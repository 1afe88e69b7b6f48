"""SQLAlchemy models."""

from draftboard.models.brief import Brief, BriefStatus
from draftboard.models.credit import CreditBalance, CreditTransaction, CreditTransactionType
from draftboard.models.funding import (
    BriefRefund,
    FundingSession,
    FundingSessionStatus,
    RefundStatus,
)
from draftboard.models.notification import Notification
from draftboard.models.payment_account import (
    AccountStatus,
    PaymentAccount,
    derive_account_status,
)
from draftboard.models.payout import Payout, PayoutKind
from draftboard.models.reward_tier import RewardTier
from draftboard.models.webhook_event import ProcessedWebhookEvent
from draftboard.models.winner_assignment import (
    AssignmentEvent,
    PayoutStatus,
    WinnerAssignment,
)

__all__ = [
    "Brief",
    "BriefStatus",
    "BriefRefund",
    "FundingSession",
    "FundingSessionStatus",
    "RefundStatus",
    "RewardTier",
    "WinnerAssignment",
    "AssignmentEvent",
    "PayoutStatus",
    "Payout",
    "PayoutKind",
    "PaymentAccount",
    "AccountStatus",
    "derive_account_status",
    "CreditBalance",
    "CreditTransaction",
    "CreditTransactionType",
    "ProcessedWebhookEvent",
    "Notification",
]
