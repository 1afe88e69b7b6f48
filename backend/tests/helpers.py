"""Scenario builders shared by the integration tests."""

import json
import time
from decimal import Decimal
from typing import Any

from draftboard.container import Services
from draftboard.models import Brief, BriefStatus, RewardTier, WinnerAssignment
from draftboard.services.processor import ProcessorClient, ProcessorUnavailable, build_signature_header
from draftboard.services.reward_tier_service import TierSpec

WEBHOOK_SECRET = "whsec_test_secret"


class RecordingProcessor(ProcessorClient):
    """Sandbox processor that records every transfer request."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.transfer_calls: list[str] = []

    async def create_transfer(self, amount, destination, idempotency_key, metadata=None, currency=None):
        self.transfer_calls.append(idempotency_key)
        return await super().create_transfer(amount, destination, idempotency_key, metadata, currency)


class UnreachableProcessor(RecordingProcessor):
    """Transfers time out; the outcome is unknown to the caller."""

    async def create_transfer(self, amount, destination, idempotency_key, metadata=None, currency=None):
        self.transfer_calls.append(idempotency_key)
        raise ProcessorUnavailable("POST transfers outcome unknown after 3 attempts: timed out")


async def funded_brief(
    services: Services,
    amount: str = "1000.00",
    status: BriefStatus = BriefStatus.PUBLISHED,
    brand_id: str = "brand-1",
    collect: bool = True,
) -> Brief:
    """Register, fund and confirm a brief. ``collect`` credits the sandbox balance."""
    brief = await services.briefs.register_brief(
        brand_id=brand_id, reward_total=amount, title="Spring launch", status=status
    )
    start = await services.funding.start_funding(brief.id, amount)
    if collect:
        services.processor.sandbox_complete_checkout(start.session.checkout_session_id)
    return await services.funding.confirm_funding(
        start.session.checkout_session_id, Decimal(amount)
    )


async def onboarded_creator(
    services: Services, creator_id: str, payouts_enabled: bool = True
) -> str:
    account_id = await services.accounts.request_onboarding(creator_id, "US")
    services.processor.sandbox_update_account(
        account_id,
        charges_enabled=payouts_enabled,
        payouts_enabled=payouts_enabled,
        details_submitted=True,
        requirements_due=[],
    )
    await services.accounts.refresh_status(account_id)
    return account_id


async def tiers(services: Services, brief_id: str, *amounts: str) -> list[RewardTier]:
    specs = [TierSpec(position=i, amount=Decimal(a)) for i, a in enumerate(amounts, start=1)]
    return await services.tiers.set_tiers(brief_id, specs)


async def winner(
    services: Services,
    brief_id: str,
    tier: RewardTier,
    creator_id: str,
    submission_id: str | None = None,
) -> WinnerAssignment:
    return await services.assignments.assign(
        brief_id,
        tier_id=tier.id,
        submission_id=submission_id or f"sub-{creator_id}",
        creator_id=creator_id,
    )


def signed_event(
    event_id: str,
    event_type: str,
    obj: dict[str, Any],
    created: int | None = None,
    secret: str = WEBHOOK_SECRET,
) -> tuple[bytes, str]:
    """Build a webhook body and its signature header."""
    payload = json.dumps(
        {
            "id": event_id,
            "type": event_type,
            "created": created or int(time.time()),
            "data": {"object": obj},
        }
    ).encode()
    return payload, build_signature_header(secret, payload)
