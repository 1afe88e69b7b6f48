"""Brief Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import Field

from draftboard.schemas.common import BaseSchema
from draftboard.schemas.reward import AssignmentResponse, RewardTierResponse


class InitialBriefStatus(str, Enum):
    """Statuses a brief may be registered with."""

    DRAFT = "draft"
    PUBLISHED = "published"


class BriefCreate(BaseSchema):
    """Registration of a brief created by the content service."""

    id: Optional[str] = Field(default=None, max_length=36)
    brand_id: str = Field(min_length=1, max_length=64)
    reward_total: Decimal = Field(gt=0)
    title: Optional[str] = Field(default=None, max_length=255)
    status: InitialBriefStatus = InitialBriefStatus.DRAFT


class BriefResponse(BaseSchema):
    """Escrow and payout state of a brief."""

    id: str
    brand_id: str
    title: Optional[str]
    reward_total: Decimal
    funded_amount: Decimal
    platform_fee: Decimal
    net_funded_amount: Decimal
    is_funded: bool
    funded_at: Optional[datetime]
    status: str
    closed_reason: Optional[str]
    created_at: datetime


class RefundResponse(BaseSchema):
    """Escrow refund issued when a funded brief closes."""

    id: str
    brief_id: str
    amount: Decimal
    reason: Optional[str]
    status: str
    external_refund_id: Optional[str]
    failure_reason: Optional[str]
    completed_at: Optional[datetime]


class BriefStateResponse(BaseSchema):
    """Brief with its tiers, winners and refund."""

    brief: BriefResponse
    tiers: List[RewardTierResponse]
    assignments: List[AssignmentResponse]
    allocated_amount: Decimal
    paid_amount: Decimal
    refund: Optional[RefundResponse]


class BriefCloseRequest(BaseSchema):
    reason: Optional[str] = None


class BriefCloseResponse(BaseSchema):
    brief_id: str
    status: str
    refund: Optional[RefundResponse]
