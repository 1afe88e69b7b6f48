"""Fee quote API route."""

from decimal import Decimal

from fastapi import APIRouter, Depends, Query

from draftboard.api.dependencies import get_services
from draftboard.container import Services
from draftboard.schemas import FeeQuoteResponse

router = APIRouter(prefix="/fees", tags=["Fees"])


@router.get("/quote", response_model=FeeQuoteResponse)
async def quote_fee(
    amount: Decimal = Query(gt=0),
    services: Services = Depends(get_services),
):
    """Fee breakdown for a gross funding amount."""
    breakdown = services.fees.compute_fee(amount)
    return FeeQuoteResponse(
        gross=breakdown.gross,
        fee=breakdown.fee,
        net=breakdown.net,
        rate=services.fees.rate,
        minimum_fee=services.fees.minimum,
    )
