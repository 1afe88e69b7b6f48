"""Brief funding, reward tier and winner API routes."""

from typing import List

from fastapi import APIRouter, Depends

from draftboard.api.dependencies import get_services
from draftboard.container import Services
from draftboard.models import BriefStatus
from draftboard.schemas import (
    ActionResponse,
    AssignmentResponse,
    AssignRewardRequest,
    BriefCloseRequest,
    BriefCloseResponse,
    BriefCreate,
    BriefResponse,
    BriefStateResponse,
    BulkPayoutResponse,
    EqualSplitRequest,
    FundingRefreshRequest,
    FundingRequest,
    FundingResponse,
    FundingSessionResponse,
    RefundResponse,
    RewardTierResponse,
    RewardTiersRequest,
)
from draftboard.services.reward_tier_service import TierSpec

router = APIRouter(prefix="/briefs", tags=["Briefs"])


@router.post("", response_model=BriefResponse, status_code=201)
async def register_brief(
    request: BriefCreate,
    services: Services = Depends(get_services),
):
    """Register a brief created by the content service."""
    return await services.briefs.register_brief(
        brand_id=request.brand_id,
        reward_total=request.reward_total,
        title=request.title,
        status=BriefStatus(request.status.value),
        brief_id=request.id,
    )


@router.get("/{brief_id}", response_model=BriefStateResponse)
async def get_brief(brief_id: str, services: Services = Depends(get_services)):
    """Funding and payout state of a brief."""
    state = await services.briefs.get_state(brief_id)
    return BriefStateResponse.model_validate(state)


@router.delete("/{brief_id}", response_model=ActionResponse)
async def delete_brief(brief_id: str, services: Services = Depends(get_services)):
    """Delete an unfunded brief."""
    await services.briefs.delete_brief(brief_id)
    return ActionResponse(success=True, message=f"Deleted brief {brief_id}")


# ============================================================================
# Funding
# ============================================================================


@router.post("/{brief_id}/fund", response_model=FundingResponse)
async def fund_brief(
    brief_id: str,
    request: FundingRequest,
    services: Services = Depends(get_services),
):
    """Open a checkout session for the brand to fund the brief."""
    start = await services.funding.start_funding(
        brief_id,
        request.amount,
        success_url=request.success_url,
        cancel_url=request.cancel_url,
    )
    return FundingResponse(
        checkout_url=start.session.checkout_url,
        session_id=start.session.checkout_session_id,
        funding_session_id=start.session.id,
        amount=start.fees.gross,
        platform_fee=start.fees.fee,
        net_amount=start.fees.net,
    )


@router.post("/{brief_id}/funding/refresh", response_model=FundingSessionResponse)
async def refresh_funding(
    brief_id: str,
    request: FundingRefreshRequest,
    services: Services = Depends(get_services),
):
    """Re-read a checkout session from the processor and apply it."""
    return await services.funding.refresh_funding(brief_id, request.session_id)


@router.post("/{brief_id}/close", response_model=BriefCloseResponse)
async def close_brief(
    brief_id: str,
    request: BriefCloseRequest,
    services: Services = Depends(get_services),
):
    """Close a brief, refunding escrow that will not be paid out."""
    refund = await services.funding.close_brief(brief_id, request.reason)
    return BriefCloseResponse(
        brief_id=brief_id,
        status=BriefStatus.CLOSED.value,
        refund=RefundResponse.model_validate(refund) if refund else None,
    )


# ============================================================================
# Reward tiers
# ============================================================================


@router.post("/{brief_id}/reward-tiers", response_model=List[RewardTierResponse])
async def set_reward_tiers(
    brief_id: str,
    request: RewardTiersRequest,
    services: Services = Depends(get_services),
):
    """Replace the brief's reward tiers."""
    specs = [
        TierSpec(
            position=t.position,
            amount=t.amount,
            description=t.description,
            is_active=t.is_active,
        )
        for t in request.tiers
    ]
    return await services.tiers.set_tiers(brief_id, specs)


@router.post("/{brief_id}/reward-tiers/equal-split", response_model=List[RewardTierResponse])
async def equal_split_tiers(
    brief_id: str,
    request: EqualSplitRequest,
    services: Services = Depends(get_services),
):
    """Split the net funded amount equally between N winners."""
    return await services.tiers.equal_split(brief_id, request.winner_count)


@router.get("/{brief_id}/reward-tiers", response_model=List[RewardTierResponse])
async def list_reward_tiers(brief_id: str, services: Services = Depends(get_services)):
    return await services.tiers.list_tiers(brief_id)


# ============================================================================
# Winners
# ============================================================================


@router.post("/{brief_id}/assign-reward", response_model=AssignmentResponse)
async def assign_reward(
    brief_id: str,
    request: AssignRewardRequest,
    services: Services = Depends(get_services),
):
    """Bind a submission to a reward tier."""
    return await services.assignments.assign(
        brief_id,
        tier_id=request.tier_id,
        submission_id=request.submission_id,
        creator_id=request.creator_id,
    )


@router.get("/{brief_id}/reward-assignments", response_model=List[AssignmentResponse])
async def list_reward_assignments(brief_id: str, services: Services = Depends(get_services)):
    return await services.assignments.list_assignments(brief_id)


@router.post("/{brief_id}/process-payouts", response_model=BulkPayoutResponse)
async def process_brief_payouts(brief_id: str, services: Services = Depends(get_services)):
    """Pay every pending winner of the brief."""
    result = await services.payouts.process_brief_payouts(brief_id)
    return BulkPayoutResponse.model_validate(result)
