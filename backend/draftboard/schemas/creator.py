"""Creator payment account and wallet Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from draftboard.schemas.common import BaseSchema


class OnboardRequest(BaseSchema):
    country: str = Field(default="US", min_length=2, max_length=2)


class OnboardResponse(BaseSchema):
    account_id: str


class OnboardLinkRequest(BaseSchema):
    return_url: str
    refresh_url: str


class OnboardLinkResponse(BaseSchema):
    url: str


class AccountStatusResponse(BaseSchema):
    """Locally cached capability state of a creator's payment account."""

    creator_id: Optional[str]
    external_account_id: str
    status: str
    charges_enabled: bool
    payouts_enabled: bool
    details_submitted: bool
    requirements_due: Optional[List[str]]
    disabled_reason: Optional[str]
    status_synced_at: Optional[datetime]


class CreditTransactionResponse(BaseSchema):
    id: str
    type: str
    amount: Decimal
    balance_before: Decimal
    balance_after: Decimal
    description: Optional[str]
    reference_id: Optional[str]
    created_at: datetime


class WalletResponse(BaseSchema):
    creator_id: str
    balance: Decimal
    total_earned: Decimal
    total_redeemed: Decimal
    can_redeem: bool
    transactions: List[CreditTransactionResponse]


class RedeemRequest(BaseSchema):
    amount: Decimal = Field(gt=0)


class RedeemResponse(BaseSchema):
    transaction_id: str
    payout_id: str
    payout_status: str
    balance: Decimal
    failure_reason: Optional[str] = None
