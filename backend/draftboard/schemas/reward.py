"""Reward tier and winner assignment Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import Field

from draftboard.schemas.common import BaseSchema


class RewardTierInput(BaseSchema):
    """One tier in a tier configuration request."""

    position: int
    amount: Decimal
    description: Optional[str] = None
    is_active: bool = True


class RewardTiersRequest(BaseSchema):
    tiers: List[RewardTierInput] = Field(min_length=1)


class EqualSplitRequest(BaseSchema):
    winner_count: int = Field(ge=1)


class RewardTierResponse(BaseSchema):
    id: str
    brief_id: str
    position: int
    amount: Decimal
    description: Optional[str]
    is_active: bool


class AssignRewardRequest(BaseSchema):
    """Bind a submission to a reward tier."""

    tier_id: str
    submission_id: str = Field(min_length=1, max_length=64)
    creator_id: str = Field(min_length=1, max_length=64)


class AssignmentResponse(BaseSchema):
    id: str
    brief_id: str
    tier_id: str
    submission_id: str
    creator_id: str
    assigned_at: datetime
    payout_status: str
    payout_attempt: int
    external_transfer_id: Optional[str]
    paid_at: Optional[datetime]
    failure_reason: Optional[str]


class AssignmentEventResponse(BaseSchema):
    """Entry in an assignment's audit trail."""

    id: str
    assignment_id: str
    brief_id: str
    event_type: str
    detail: Optional[Dict[str, Any]]
    created_at: datetime
