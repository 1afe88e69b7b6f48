"""
Integration Test: Closing briefs and refunding escrow
"""

from decimal import Decimal

import pytest

from draftboard.exceptions import BriefLocked, BriefNotFound
from draftboard.models import BriefStatus, FundingSession

from tests.helpers import (
    RecordingProcessor,
    funded_brief,
    onboarded_creator,
    signed_event,
    tiers,
    winner,
)


def test_close_without_winners_refunds_net(harness):
    async def scenario(services):
        brief = await funded_brief(services)
        refund = await services.funding.close_brief(brief.id, "campaign cancelled")
        again = await services.funding.close_brief(brief.id, "campaign cancelled")
        return refund, again, await services.briefs.get_brief(brief.id)

    refund, again, brief = harness.run(scenario)

    assert refund.amount == Decimal("950.00")
    assert refund.status == "succeeded"
    assert refund.idempotency_key == f"refund-{brief.id}"
    assert again.id == refund.id
    assert brief.status == "closed"
    assert brief.closed_reason == "campaign cancelled"


def test_close_refunds_unpaid_remainder(harness):
    async def scenario(services):
        brief = await funded_brief(services)
        created = await tiers(services, brief.id, "500.00")
        await onboarded_creator(services, "creator-1")
        assignment = await winner(services, brief.id, created[0], "creator-1")
        await services.payouts.process_single_payout(assignment.id)
        return await services.funding.close_brief(brief.id, "done")

    refund = harness.run(scenario)
    assert refund.amount == Decimal("450.00")


def test_unpaid_assignment_blocks_close(harness):
    async def scenario(services):
        brief = await funded_brief(services)
        created = await tiers(services, brief.id, "500.00")
        await winner(services, brief.id, created[0], "creator-1")
        with pytest.raises(BriefLocked):
            await services.funding.close_brief(brief.id, "cancelled")
        return await services.briefs.get_brief(brief.id)

    assert harness.run(scenario).status == "winners_selected"


def test_close_unfunded_brief_has_no_refund(harness):
    async def scenario(services):
        brief = await services.briefs.register_brief("brand-1", "1000.00")
        return await services.funding.close_brief(brief.id, "abandoned")

    assert harness.run(scenario) is None


def test_fully_paid_brief_closes_without_refund(harness):
    async def scenario(services):
        brief = await funded_brief(services)
        created = await tiers(services, brief.id, "950.00")
        await onboarded_creator(services, "creator-1")
        assignment = await winner(services, brief.id, created[0], "creator-1")
        await services.payouts.process_single_payout(assignment.id)
        refund = await services.funding.close_brief(brief.id, "done")
        return refund, await services.briefs.get_brief(brief.id)

    refund, brief = harness.run(scenario, processor_class=RecordingProcessor)
    assert refund is None
    assert brief.status == "closed"


def test_delete_brief(harness):
    async def scenario(services):
        funded = await funded_brief(services)
        with pytest.raises(BriefLocked):
            await services.briefs.delete_brief(funded.id)

        draft = await services.briefs.register_brief("brand-1", "100.00")
        await services.briefs.delete_brief(draft.id)
        with pytest.raises(BriefNotFound):
            await services.briefs.get_brief(draft.id)

    harness.run(scenario)


def test_refund_events_do_not_undo_success(harness):
    async def scenario(services):
        brief = await funded_brief(services)
        refund = await services.funding.close_brief(brief.id, "cancelled")
        obj = {
            "id": refund.external_refund_id,
            "object": "refund",
            "status": "failed",
            "failure_reason": "expired_or_canceled_card",
            "metadata": {"brief_id": brief.id},
        }
        failed = await services.webhooks.handle(*signed_event("evt_refund", "refund.failed", obj))
        unknown = await services.webhooks.handle(
            *signed_event("evt_other", "refund.succeeded", {"id": "re_nobody", "metadata": {}})
        )
        return failed, unknown, (await services.briefs.get_state(brief.id)).refund

    failed, unknown, refund = harness.run(scenario)
    assert failed == "refund_succeeded"
    assert unknown == "unknown_refund"
    assert refund.status == "succeeded"


def test_payment_after_close_is_refunded(harness):
    async def scenario(services):
        brief = await services.briefs.register_brief("brand-1", "1000.00", status=BriefStatus.PUBLISHED)
        start = await services.funding.start_funding(brief.id, "1000.00")
        closed = await services.funding.close_brief(brief.id, "withdrawn")

        async with services.session_factory() as db:
            session = await db.get(FundingSession, start.session.id)
        status_after_close = session.status

        checkout_id = start.session.checkout_session_id
        services.processor.sandbox_complete_checkout(checkout_id)
        await services.funding.confirm_funding(checkout_id, Decimal("1000.00"))
        await services.funding.confirm_funding(checkout_id, Decimal("1000.00"))
        return closed, status_after_close, await services.briefs.get_state(brief.id)

    closed, status_after_close, state = harness.run(scenario)

    assert closed is None
    assert status_after_close == "expired"
    assert state.brief.status == "closed"
    assert state.brief.net_funded_amount == Decimal("950.00")
    assert state.refund.amount == Decimal("950.00")
    assert state.refund.status == "succeeded"
