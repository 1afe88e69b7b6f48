"""Operator payout API routes."""

from fastapi import APIRouter, Depends

from draftboard.api.dependencies import get_services
from draftboard.container import Services
from draftboard.schemas import PayoutResultResponse

router = APIRouter(prefix="/payouts", tags=["Payouts"])


@router.post("/{assignment_id}", response_model=PayoutResultResponse)
async def process_payout(assignment_id: str, services: Services = Depends(get_services)):
    """Pay a single winner."""
    result = await services.payouts.process_single_payout(assignment_id)
    return PayoutResultResponse.model_validate(result)


@router.post("/{assignment_id}/retry", response_model=PayoutResultResponse)
async def retry_payout(assignment_id: str, services: Services = Depends(get_services)):
    """Reset a failed payout and submit it again under a new attempt."""
    result = await services.payouts.retry_payout(assignment_id)
    return PayoutResultResponse.model_validate(result)


@router.post("/{assignment_id}/refresh", response_model=PayoutResultResponse)
async def refresh_payout(assignment_id: str, services: Services = Depends(get_services)):
    """Re-read the transfer from the processor and apply its outcome."""
    result = await services.payouts.refresh_payout(assignment_id)
    return PayoutResultResponse.model_validate(result)


@router.post("/{assignment_id}/settle-credit", response_model=PayoutResultResponse)
async def settle_to_credit(assignment_id: str, services: Services = Depends(get_services)):
    """Settle a pending reward into the creator's wallet instead of cash."""
    result = await services.payouts.settle_to_credit(assignment_id)
    return PayoutResultResponse.model_validate(result)
