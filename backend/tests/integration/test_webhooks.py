"""
Integration Test: Webhook reconciliation

Test cases:
- Signature verification
- Redelivered events are no-ops
- Paid is terminal; failures never override it
- Account events upsert unknown accounts and ignore stale snapshots
- Checkout events fund briefs
"""

import time

import pytest

from draftboard.exceptions import InvalidSignature
from draftboard.models import BriefStatus, FundingSession

from tests.helpers import (
    UnreachableProcessor,
    funded_brief,
    onboarded_creator,
    signed_event,
    tiers,
    winner,
)


async def _processing_payout(services):
    brief = await funded_brief(services)
    created = await tiers(services, brief.id, "500.00")
    await onboarded_creator(services, "creator-1")
    assignment = await winner(services, brief.id, created[0], "creator-1")
    result = await services.payouts.process_single_payout(assignment.id)
    return assignment, result


def _transfer(result, **extra):
    obj = {
        "id": result.external_transfer_id,
        "object": "transfer",
        "amount": 50000,
        "metadata": {"payout_id": result.payout_id},
    }
    obj.update(extra)
    return obj


def test_bad_signature_rejected(harness):
    async def scenario(services):
        payload, header = signed_event("evt_1", "transfer.paid", {"id": "tr_1"}, secret="whsec_other")
        with pytest.raises(InvalidSignature):
            await services.webhooks.handle(payload, header)
        with pytest.raises(InvalidSignature):
            await services.webhooks.handle(payload, None)

    harness.run(scenario)


def test_transfer_paid_and_redelivery(harness):
    async def scenario(services):
        assignment, result = await _processing_payout(services)
        payload, header = signed_event("evt_paid", "transfer.paid", _transfer(result))

        first = await services.webhooks.handle(payload, header)
        replay = await services.webhooks.handle(payload, header)

        payload, header = signed_event("evt_paid_again", "transfer.paid", _transfer(result))
        other = await services.webhooks.handle(payload, header)

        notes = await services.notifications.list_for("creator-1")
        return first, replay, other, await services.assignments.get_assignment(assignment.id), notes

    first, replay, other, stored, notes = harness.run(scenario, transfers_settle_synchronously=False)

    assert (first, replay, other) == ("payout_paid", "duplicate", "no_change")
    assert stored.payout_status == "paid"
    assert [n.category for n in notes].count("payout_paid") == 1


def test_failure_never_overrides_paid(harness):
    async def scenario(services):
        assignment, result = await _processing_payout(services)
        paid = signed_event("evt_paid", "transfer.paid", _transfer(result))
        failed = signed_event("evt_failed", "transfer.failed", _transfer(result, failure_message="bank closed"))

        outcomes = [
            await services.webhooks.handle(*paid),
            await services.webhooks.handle(*failed),
        ]
        return outcomes, await services.assignments.get_assignment(assignment.id)

    outcomes, stored = harness.run(scenario, transfers_settle_synchronously=False)
    assert outcomes == ["payout_paid", "no_change"]
    assert stored.payout_status == "paid"


def test_paid_after_failure_is_applied(harness):
    async def scenario(services):
        assignment, result = await _processing_payout(services)
        failed = signed_event("evt_failed", "transfer.failed", _transfer(result, failure_message="bank closed"))
        paid = signed_event("evt_paid", "transfer.paid", _transfer(result))

        outcomes = [
            await services.webhooks.handle(*failed),
            await services.webhooks.handle(*paid),
        ]
        return outcomes, await services.assignments.get_assignment(assignment.id)

    outcomes, stored = harness.run(scenario, transfers_settle_synchronously=False)
    assert outcomes == ["payout_failed", "payout_paid"]
    assert stored.payout_status == "paid"


def test_unknown_outcome_settled_by_webhook(harness):
    async def scenario(services):
        assignment, result = await _processing_payout(services)
        assert result.outcome_unknown

        # The transfer id was never learned; the payout id in metadata matches it
        obj = {"id": "tr_late", "object": "transfer", "metadata": {"payout_id": result.payout_id}}
        outcome = await services.webhooks.handle(*signed_event("evt_late", "transfer.paid", obj))
        return outcome, await services.assignments.get_assignment(assignment.id)

    outcome, stored = harness.run(scenario, processor_class=UnreachableProcessor)
    assert outcome == "payout_paid"
    assert stored.payout_status == "paid"
    assert stored.external_transfer_id == "tr_late"


def test_unknown_transfer(harness):
    async def scenario(services):
        obj = {"id": "tr_nobody", "object": "transfer", "metadata": {}}
        return await services.webhooks.handle(*signed_event("evt_x", "transfer.paid", obj))

    assert harness.run(scenario) == "unknown_transfer"


def test_account_updated_registers_unknown_account(harness):
    async def scenario(services):
        obj = {
            "id": "acct_external",
            "object": "account",
            "country": "US",
            "charges_enabled": True,
            "payouts_enabled": True,
            "details_submitted": True,
            "metadata": {"creator_id": "creator-9"},
            "requirements": {"currently_due": []},
        }
        outcome = await services.webhooks.handle(*signed_event("evt_acct", "account.updated", obj))
        return outcome, await services.accounts.get_account("creator-9")

    outcome, account = harness.run(scenario)
    assert outcome == "account_updated"
    assert account.external_account_id == "acct_external"
    assert account.payouts_allowed


def test_stale_account_snapshot_ignored(harness):
    async def scenario(services):
        account_id = await onboarded_creator(services, "creator-1")
        obj = {
            "id": account_id,
            "object": "account",
            "charges_enabled": False,
            "payouts_enabled": False,
            "details_submitted": True,
            "metadata": {"creator_id": "creator-1"},
        }
        stale = signed_event("evt_old", "account.updated", obj, created=int(time.time()) - 3600)
        await services.webhooks.handle(*stale)
        after_stale = await services.accounts.get_account("creator-1")

        fresh = signed_event("evt_new", "account.updated", obj, created=int(time.time()) + 5)
        await services.webhooks.handle(*fresh)
        return after_stale, await services.accounts.get_account("creator-1")

    after_stale, after_fresh = harness.run(scenario)
    assert after_stale.payouts_allowed
    assert not after_fresh.payouts_allowed


def test_checkout_completed_funds_brief(harness):
    async def scenario(services):
        brief = await services.briefs.register_brief("brand-1", "1000.00", status=BriefStatus.PUBLISHED)
        start = await services.funding.start_funding(brief.id, "1000.00")
        obj = {
            "id": start.session.checkout_session_id,
            "object": "checkout.session",
            "amount_total": 100000,
            "payment_status": "paid",
            "payment_intent": "pi_123",
            "metadata": {"brief_id": brief.id, "funding_session_id": start.session.id},
        }
        outcome = await services.webhooks.handle(
            *signed_event("evt_checkout", "checkout.session.completed", obj)
        )
        async with services.session_factory() as db:
            session = await db.get(FundingSession, start.session.id)
        return outcome, await services.briefs.get_brief(brief.id), session

    outcome, brief, session = harness.run(scenario)
    assert outcome == "brief_funded"
    assert brief.is_funded
    assert brief.status == "active"
    assert session.payment_intent_id == "pi_123"


def test_checkout_amount_mismatch_reported(harness):
    async def scenario(services):
        brief = await services.briefs.register_brief("brand-1", "1000.00")
        start = await services.funding.start_funding(brief.id, "1000.00")
        obj = {
            "id": start.session.checkout_session_id,
            "object": "checkout.session",
            "amount_total": 10000,
            "payment_status": "paid",
            "metadata": {},
        }
        outcome = await services.webhooks.handle(
            *signed_event("evt_checkout", "checkout.session.completed", obj)
        )
        return outcome, await services.briefs.get_brief(brief.id)

    outcome, brief = harness.run(scenario)
    assert outcome == "amount_mismatch"
    assert not brief.is_funded


def test_unhandled_event_acknowledged(harness):
    async def scenario(services):
        return await services.webhooks.handle(
            *signed_event("evt_misc", "customer.created", {"id": "cus_1"})
        )

    assert harness.run(scenario) == "ignored"


def test_paid_after_failed_assignment_removed(harness):
    async def scenario(services):
        assignment, result = await _processing_payout(services)
        failed = signed_event("evt_failed", "transfer.failed", _transfer(result, failure_message="bank closed"))
        paid = signed_event("evt_paid", "transfer.paid", _transfer(result))

        outcomes = [await services.webhooks.handle(*failed)]
        await services.assignments.unassign(assignment.id)
        outcomes.append(await services.webhooks.handle(*paid))
        outcomes.append(await services.webhooks.handle(*paid))

        payouts = await services.payouts.list_creator_payouts("creator-1")
        return outcomes, payouts

    outcomes, payouts = harness.run(scenario, transfers_settle_synchronously=False)
    assert outcomes == ["payout_failed", "payout_paid", "duplicate"]
    assert [p.status for p in payouts] == ["paid"]
    assert payouts[0].paid_at is not None
