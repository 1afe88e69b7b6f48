"""
Integration Test: Creator wallet credit and redemption
"""

from decimal import Decimal

import pytest

from draftboard.exceptions import AccountNotReady, InsufficientCredit, InvalidAmount

from tests.helpers import RecordingProcessor, onboarded_creator, signed_event


def test_redeem_credit(harness):
    async def scenario(services):
        await onboarded_creator(services, "creator-1")
        await services.credit.credit_reward("creator-1", "120.00", "Bonus")
        result = await services.credit.redeem("creator-1", "50.00")
        return (
            result,
            await services.credit.get_balance("creator-1"),
            await services.credit.list_transactions("creator-1"),
            services.processor.transfer_calls,
        )

    result, balance, transactions, calls = harness.run(scenario, processor_class=RecordingProcessor)

    assert result.payout_status == "paid"
    assert result.balance == Decimal("70.00")
    assert balance.total_earned == Decimal("120.00")
    assert balance.total_redeemed == Decimal("50.00")
    assert sorted(t.type for t in transactions) == ["credit", "redemption"]
    assert calls == [f"redeem-{result.transaction.id}"]


@pytest.mark.parametrize("amount", ["0.00", "5.00"])
def test_redemption_below_minimum(harness, amount):
    async def scenario(services):
        await onboarded_creator(services, "creator-1")
        await services.credit.credit_reward("creator-1", "120.00", "Bonus")
        with pytest.raises(InvalidAmount):
            await services.credit.redeem("creator-1", amount)
        return await services.credit.get_balance("creator-1")

    assert harness.run(scenario).balance == Decimal("120.00")


def test_insufficient_credit(harness):
    async def scenario(services):
        await onboarded_creator(services, "creator-1")
        await services.credit.credit_reward("creator-1", "40.00", "Bonus")
        with pytest.raises(InsufficientCredit):
            await services.credit.redeem("creator-1", "40.01")
        return await services.credit.get_balance("creator-1")

    assert harness.run(scenario).balance == Decimal("40.00")


def test_redeem_requires_ready_account(harness):
    async def scenario(services):
        await services.credit.credit_reward("creator-1", "40.00", "Bonus")
        with pytest.raises(AccountNotReady):
            await services.credit.redeem("creator-1", "20.00")
        return await services.credit.get_balance("creator-1")

    assert harness.run(scenario).balance == Decimal("40.00")


def test_failed_redemption_restores_balance_once(harness):
    async def scenario(services):
        account_id = await onboarded_creator(services, "creator-1")
        await services.credit.credit_reward("creator-1", "100.00", "Bonus")

        services.processor.sandbox_update_account(account_id, payouts_enabled=False)
        result = await services.credit.redeem("creator-1", "60.00")

        # A late failure event for the same payout must not restore it again
        obj = {"id": "tr_unknown", "object": "transfer", "metadata": {"payout_id": result.payout_id}}
        outcome = await services.webhooks.handle(*signed_event("evt_fail", "transfer.failed", obj))

        return (
            result,
            outcome,
            await services.credit.get_balance("creator-1"),
            await services.credit.list_transactions("creator-1"),
        )

    result, outcome, balance, transactions = harness.run(scenario)

    assert result.payout_status == "failed"
    assert result.failure_reason
    assert result.balance == Decimal("100.00")
    assert outcome == "no_change"
    assert balance.balance == Decimal("100.00")
    assert balance.total_redeemed == Decimal("0.00")
    assert sorted(t.type for t in transactions) == ["credit", "redemption", "reversal"]
