"""Brand API routes."""

from fastapi import APIRouter, Depends

from draftboard.api.dependencies import get_services
from draftboard.container import Services
from draftboard.schemas import BulkPaymentRequest, BulkPayoutResponse

router = APIRouter(prefix="/brands", tags=["Brands"])


@router.post("/bulk-payment", response_model=BulkPayoutResponse)
async def bulk_payment(
    request: BulkPaymentRequest,
    services: Services = Depends(get_services),
):
    """
    Pay several winners at once.

    Rejected with 402 before any transfer when the platform balance cannot
    cover every listed pending payout.
    """
    result = await services.payouts.process_bulk_payout(request.winner_ids)
    return BulkPayoutResponse.model_validate(result)
