"""Escrow funding Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field

from draftboard.schemas.common import BaseSchema


class FundingRequest(BaseSchema):
    """Brand request to fund a brief."""

    amount: Decimal = Field(gt=0)
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None


class FundingResponse(BaseSchema):
    """Checkout session the brand completes to fund the brief."""

    checkout_url: Optional[str]
    session_id: Optional[str]
    funding_session_id: str
    amount: Decimal
    platform_fee: Decimal
    net_amount: Decimal


class FundingRefreshRequest(BaseSchema):
    session_id: str


class FundingSessionResponse(BaseSchema):
    id: str
    brief_id: str
    checkout_session_id: Optional[str]
    status: str
    amount: Decimal
    platform_fee: Decimal
    net_amount: Decimal
    confirmed_amount: Optional[Decimal]
    completed_at: Optional[datetime]


class FeeQuoteResponse(BaseSchema):
    """Fee breakdown for a gross funding amount."""

    gross: Decimal
    fee: Decimal
    net: Decimal
    rate: Decimal
    minimum_fee: Decimal
