"""Creator onboarding, payout history and wallet API routes."""

from typing import List

from fastapi import APIRouter, Depends

from draftboard.api.dependencies import get_services
from draftboard.container import Services
from draftboard.exceptions import AccountNotFound
from draftboard.schemas import (
    AccountStatusResponse,
    CreditTransactionResponse,
    OnboardLinkRequest,
    OnboardLinkResponse,
    OnboardRequest,
    OnboardResponse,
    PayoutResponse,
    RedeemRequest,
    RedeemResponse,
    WalletResponse,
)

router = APIRouter(prefix="/creators", tags=["Creators"])


@router.post("/{creator_id}/onboard", response_model=OnboardResponse)
async def onboard_creator(
    creator_id: str,
    request: OnboardRequest,
    services: Services = Depends(get_services),
):
    """Create (or reuse) the creator's connected payment account."""
    account_id = await services.accounts.request_onboarding(creator_id, request.country)
    return OnboardResponse(account_id=account_id)


@router.post("/{creator_id}/onboard/link", response_model=OnboardLinkResponse)
async def onboarding_link(
    creator_id: str,
    request: OnboardLinkRequest,
    services: Services = Depends(get_services),
):
    url = await services.accounts.create_onboarding_link(
        creator_id,
        return_url=request.return_url,
        refresh_url=request.refresh_url,
    )
    return OnboardLinkResponse(url=url)


@router.get("/{creator_id}/onboard/status", response_model=AccountStatusResponse)
async def onboarding_status(
    creator_id: str,
    refresh: bool = False,
    services: Services = Depends(get_services),
):
    """Cached account status; ``refresh=true`` re-reads it from the processor first."""
    if refresh:
        return await services.accounts.refresh_creator_status(creator_id)

    account = await services.accounts.get_account(creator_id)
    if account is None:
        raise AccountNotFound(f"Creator {creator_id} has no payment account")
    return account


@router.get("/{creator_id}/payouts", response_model=List[PayoutResponse])
async def creator_payouts(
    creator_id: str,
    limit: int = 100,
    services: Services = Depends(get_services),
):
    return await services.payouts.list_creator_payouts(creator_id, limit=limit)


@router.get("/{creator_id}/wallet", response_model=WalletResponse)
async def creator_wallet(creator_id: str, services: Services = Depends(get_services)):
    balance = await services.credit.get_balance(creator_id)
    transactions = await services.credit.list_transactions(creator_id)
    return WalletResponse(
        creator_id=creator_id,
        balance=balance.balance,
        total_earned=balance.total_earned,
        total_redeemed=balance.total_redeemed,
        can_redeem=await services.accounts.payouts_allowed(creator_id),
        transactions=[CreditTransactionResponse.model_validate(t) for t in transactions],
    )


@router.post("/{creator_id}/wallet/redeem", response_model=RedeemResponse)
async def redeem_credit(
    creator_id: str,
    request: RedeemRequest,
    services: Services = Depends(get_services),
):
    """Convert wallet credit into a cash payout."""
    result = await services.credit.redeem(creator_id, request.amount)
    return RedeemResponse(
        transaction_id=result.transaction.id,
        payout_id=result.payout_id,
        payout_status=result.payout_status,
        balance=result.balance,
        failure_reason=result.failure_reason,
    )
