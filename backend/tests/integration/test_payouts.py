"""
Integration Test: Payout execution

Test cases:
- Single payout pays the winner and completes the brief
- Account readiness is checked before any transfer
- Concurrent triggers submit exactly one transfer
- Bulk payouts check the processor balance up front
- Unknown outcomes stay processing; definitive failures can be retried
- Wallet credit settlement
"""

import asyncio
from decimal import Decimal

import pytest

from draftboard.exceptions import (
    AccountNotReady,
    AlreadyProcessing,
    InsufficientBalance,
    PayoutNotPending,
)
from draftboard.models import PayoutKind

from tests.helpers import (
    RecordingProcessor,
    UnreachableProcessor,
    funded_brief,
    onboarded_creator,
    tiers,
    winner,
)


def test_single_payout_paid(harness):
    async def scenario(services):
        brief = await funded_brief(services)
        created = await tiers(services, brief.id, "500.00")
        await onboarded_creator(services, "creator-1")
        assignment = await winner(services, brief.id, created[0], "creator-1")

        result = await services.payouts.process_single_payout(assignment.id)
        with pytest.raises(PayoutNotPending):
            await services.payouts.process_single_payout(assignment.id)

        return (
            assignment,
            result,
            await services.assignments.get_assignment(assignment.id),
            services.processor.transfer_calls,
        )

    assignment, result, stored, calls = harness.run(scenario, processor_class=RecordingProcessor)

    assert result.status == "paid"
    assert result.amount == Decimal("500.00")
    assert result.external_transfer_id.startswith("tr_sandbox_")
    assert stored.payout_status == "paid"
    assert stored.paid_at is not None
    assert calls == [f"payout-{assignment.id}-1"]


def test_all_tiers_paid_completes_brief(harness):
    async def scenario(services):
        brief = await funded_brief(services)
        first, second = await tiers(services, brief.id, "500.00", "450.00")
        for creator_id, tier in (("creator-1", first), ("creator-2", second)):
            await onboarded_creator(services, creator_id)
            await winner(services, brief.id, tier, creator_id)

        bulk = await services.payouts.process_brief_payouts(brief.id)
        return bulk, await services.briefs.get_state(brief.id)

    bulk, state = harness.run(scenario)

    assert bulk.succeeded == 2
    assert bulk.total_amount == Decimal("950.00")
    assert state.brief.status == "payouts_completed"
    assert state.paid_amount == Decimal("950.00")


def test_account_not_ready(harness):
    async def scenario(services):
        brief = await funded_brief(services)
        first, second = await tiers(services, brief.id, "500.00", "300.00")
        missing = await winner(services, brief.id, first, "creator-1")
        await onboarded_creator(services, "creator-2", payouts_enabled=False)
        restricted = await winner(services, brief.id, second, "creator-2")

        for assignment in (missing, restricted):
            with pytest.raises(AccountNotReady):
                await services.payouts.process_single_payout(assignment.id)

        return (
            [await services.assignments.get_assignment(a.id) for a in (missing, restricted)],
            services.processor.transfer_calls,
        )

    stored, calls = harness.run(scenario, processor_class=RecordingProcessor)
    assert [a.payout_status for a in stored] == ["pending", "pending"]
    assert calls == []


def test_concurrent_triggers_submit_one_transfer(harness):
    async def scenario(services):
        brief = await funded_brief(services)
        created = await tiers(services, brief.id, "500.00")
        await onboarded_creator(services, "creator-1")
        assignment = await winner(services, brief.id, created[0], "creator-1")

        outcomes = await asyncio.gather(
            services.payouts.process_single_payout(assignment.id),
            services.payouts.process_single_payout(assignment.id),
            return_exceptions=True,
        )
        return outcomes, services.processor.transfer_calls

    outcomes, calls = harness.run(scenario, processor_class=RecordingProcessor)

    errors = [o for o in outcomes if isinstance(o, Exception)]
    results = [o for o in outcomes if not isinstance(o, Exception)]
    assert len(results) == 1
    assert len(errors) == 1
    assert isinstance(errors[0], AlreadyProcessing)
    assert len(calls) == 1


def test_bulk_rejected_when_balance_short(harness):
    async def scenario(services):
        brief = await funded_brief(services, collect=False)
        first, second = await tiers(services, brief.id, "150.00", "150.00")
        ids = []
        for creator_id, tier in (("creator-1", first), ("creator-2", second)):
            await onboarded_creator(services, creator_id)
            ids.append((await winner(services, brief.id, tier, creator_id)).id)

        with pytest.raises(InsufficientBalance):
            await services.payouts.process_bulk_payout(ids)

        return (
            [await services.assignments.get_assignment(i) for i in ids],
            services.processor.transfer_calls,
        )

    stored, calls = harness.run(
        scenario, processor_class=RecordingProcessor, sandbox_balance="250.00"
    )
    assert calls == []
    assert all(a.payout_status == "pending" for a in stored)


def test_bulk_reports_each_assignment(harness):
    async def scenario(services):
        brief = await funded_brief(services)
        first, second = await tiers(services, brief.id, "300.00", "200.00")
        await onboarded_creator(services, "creator-1")
        ready = await winner(services, brief.id, first, "creator-1")
        not_ready = await winner(services, brief.id, second, "creator-2")
        return ready, not_ready, await services.payouts.process_bulk_payout([ready.id, not_ready.id])

    ready, not_ready, bulk = harness.run(scenario)

    by_id = {r.assignment_id: r for r in bulk.results}
    assert by_id[ready.id].status == "paid"
    assert by_id[not_ready.id].error == "account_not_ready"
    assert by_id[not_ready.id].status == "pending"
    assert bulk.succeeded == 1
    assert bulk.failed == 1


def test_unknown_outcome_stays_processing(harness):
    async def scenario(services):
        brief = await funded_brief(services)
        created = await tiers(services, brief.id, "500.00")
        await onboarded_creator(services, "creator-1")
        assignment = await winner(services, brief.id, created[0], "creator-1")

        result = await services.payouts.process_single_payout(assignment.id)
        with pytest.raises(PayoutNotPending):
            await services.payouts.retry_payout(assignment.id)
        refreshed = await services.payouts.refresh_payout(assignment.id)

        return (
            assignment,
            result,
            refreshed,
            await services.assignments.get_assignment(assignment.id),
            services.processor.transfer_calls,
        )

    assignment, result, refreshed, stored, calls = harness.run(
        scenario, processor_class=UnreachableProcessor
    )

    assert result.status == "processing"
    assert result.outcome_unknown
    assert refreshed.outcome_unknown
    assert stored.payout_status == "processing"
    # Resubmission reuses the key, so the processor can deduplicate it
    assert calls == [f"payout-{assignment.id}-1"] * 2


def test_rejected_transfer_fails_and_retries_with_new_key(harness):
    async def scenario(services):
        brief = await funded_brief(services)
        created = await tiers(services, brief.id, "500.00")
        account_id = await onboarded_creator(services, "creator-1")
        assignment = await winner(services, brief.id, created[0], "creator-1")

        # Processor-side restriction not yet reflected locally
        services.processor.sandbox_update_account(account_id, payouts_enabled=False)
        failed = await services.payouts.process_single_payout(assignment.id)
        after_failure = await services.assignments.get_assignment(assignment.id)

        services.processor.sandbox_update_account(account_id, payouts_enabled=True)
        retried = await services.payouts.retry_payout(assignment.id)

        return (
            assignment,
            failed,
            after_failure,
            retried,
            await services.assignments.get_assignment(assignment.id),
            services.processor.transfer_calls,
        )

    assignment, failed, after_failure, retried, stored, calls = harness.run(
        scenario, processor_class=RecordingProcessor
    )

    assert failed.status == "failed"
    assert failed.error == "processor_rejected"
    assert after_failure.payout_status == "failed"
    assert "cannot receive transfers" in after_failure.failure_reason
    assert retried.status == "paid"
    assert stored.payout_attempt == 2
    assert calls == [f"payout-{assignment.id}-1", f"payout-{assignment.id}-2"]


def test_processing_payout_refreshed_from_processor(harness):
    async def scenario(services):
        brief = await funded_brief(services)
        created = await tiers(services, brief.id, "500.00")
        await onboarded_creator(services, "creator-1")
        assignment = await winner(services, brief.id, created[0], "creator-1")

        submitted = await services.payouts.process_single_payout(assignment.id)
        refreshed = await services.payouts.refresh_payout(assignment.id)
        return submitted, refreshed, await services.assignments.get_assignment(assignment.id)

    submitted, refreshed, stored = harness.run(
        scenario, transfers_settle_synchronously=False
    )

    assert submitted.status == "processing"
    assert not submitted.outcome_unknown
    assert refreshed.status == "paid"
    assert stored.payout_status == "paid"


def test_stale_processing_payouts_are_rechecked(harness):
    async def scenario(services):
        brief = await funded_brief(services)
        created = await tiers(services, brief.id, "500.00")
        await onboarded_creator(services, "creator-1")
        assignment = await winner(services, brief.id, created[0], "creator-1")
        await services.payouts.process_single_payout(assignment.id)

        checked = await services.payouts.refresh_stale_payouts(older_than_minutes=0)
        return checked, await services.assignments.get_assignment(assignment.id)

    checked, stored = harness.run(scenario, transfers_settle_synchronously=False)
    assert checked == 1
    assert stored.payout_status == "paid"


def test_settle_to_credit(harness):
    async def scenario(services):
        brief = await funded_brief(services)
        created = await tiers(services, brief.id, "200.00")
        assignment = await winner(services, brief.id, created[0], "creator-1")

        result = await services.payouts.settle_to_credit(assignment.id)
        return (
            result,
            await services.credit.get_balance("creator-1"),
            await services.payouts.list_creator_payouts("creator-1"),
            services.processor.transfer_calls,
        )

    result, balance, payouts, calls = harness.run(scenario, processor_class=RecordingProcessor)

    assert result.status == "paid"
    assert balance.balance == Decimal("200.00")
    assert balance.total_earned == Decimal("200.00")
    assert [p.kind for p in payouts] == [PayoutKind.CREDIT.value]
    assert calls == []
