"""Payment processor webhook endpoint."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from draftboard.api.dependencies import get_services
from draftboard.container import Services

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/payments")
async def payments_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None),
    services: Services = Depends(get_services),
):
    """
    Receive a processor event.

    Bad signatures get a 400. Everything else, including redeliveries and
    event types we do not handle, is acknowledged with a 200.
    """
    payload = await request.body()
    outcome = await services.webhooks.handle(payload, stripe_signature)
    return {"received": True, "outcome": outcome}
