"""Payout Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from draftboard.schemas.common import BaseSchema


class PayoutResultResponse(BaseSchema):
    """Outcome of one payout attempt.

    ``outcome_unknown`` is set when the processor could not be reached; the
    payout stays processing until a webhook or refresh settles it.
    """

    assignment_id: Optional[str]
    status: str
    payout_id: Optional[str] = None
    amount: Optional[Decimal] = None
    external_transfer_id: Optional[str] = None
    error: Optional[str] = None
    detail: Optional[str] = None
    outcome_unknown: bool = False


class BulkPaymentRequest(BaseSchema):
    winner_ids: List[str] = Field(min_length=1)


class BulkPayoutResponse(BaseSchema):
    results: List[PayoutResultResponse]
    total_amount: Decimal
    succeeded: int
    failed: int


class PayoutResponse(BaseSchema):
    id: str
    assignment_id: Optional[str]
    creator_id: str
    kind: str
    amount: Decimal
    fee: Decimal
    net_amount: Decimal
    status: str
    idempotency_key: str
    external_transfer_id: Optional[str]
    paid_at: Optional[datetime]
    failure_reason: Optional[str]
    created_at: datetime
