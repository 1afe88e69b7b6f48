"""Pydantic schemas for API requests and responses."""

from draftboard.schemas.brief import (
    BriefCloseRequest,
    BriefCloseResponse,
    BriefCreate,
    BriefResponse,
    BriefStateResponse,
    InitialBriefStatus,
    RefundResponse,
)
from draftboard.schemas.common import ActionResponse, BaseSchema, ErrorResponse
from draftboard.schemas.creator import (
    AccountStatusResponse,
    CreditTransactionResponse,
    OnboardLinkRequest,
    OnboardLinkResponse,
    OnboardRequest,
    OnboardResponse,
    RedeemRequest,
    RedeemResponse,
    WalletResponse,
)
from draftboard.schemas.funding import (
    FeeQuoteResponse,
    FundingRefreshRequest,
    FundingRequest,
    FundingResponse,
    FundingSessionResponse,
)
from draftboard.schemas.payout import (
    BulkPaymentRequest,
    BulkPayoutResponse,
    PayoutResponse,
    PayoutResultResponse,
)
from draftboard.schemas.reward import (
    AssignmentEventResponse,
    AssignmentResponse,
    AssignRewardRequest,
    EqualSplitRequest,
    RewardTierInput,
    RewardTierResponse,
    RewardTiersRequest,
)

__all__ = [
    # Common
    "BaseSchema",
    "ErrorResponse",
    "ActionResponse",
    # Brief
    "BriefCreate",
    "BriefResponse",
    "BriefStateResponse",
    "BriefCloseRequest",
    "BriefCloseResponse",
    "InitialBriefStatus",
    "RefundResponse",
    # Funding
    "FundingRequest",
    "FundingResponse",
    "FundingRefreshRequest",
    "FundingSessionResponse",
    "FeeQuoteResponse",
    # Rewards
    "RewardTierInput",
    "RewardTiersRequest",
    "EqualSplitRequest",
    "RewardTierResponse",
    "AssignRewardRequest",
    "AssignmentResponse",
    "AssignmentEventResponse",
    # Payouts
    "PayoutResultResponse",
    "BulkPaymentRequest",
    "BulkPayoutResponse",
    "PayoutResponse",
    # Creators
    "OnboardRequest",
    "OnboardResponse",
    "OnboardLinkRequest",
    "OnboardLinkResponse",
    "AccountStatusResponse",
    "CreditTransactionResponse",
    "WalletResponse",
    "RedeemRequest",
    "RedeemResponse",
]
