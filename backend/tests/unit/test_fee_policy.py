"""
Unit Tests: Fee Policy

Test cases:
- Percentage fee above the minimum
- Minimum fee floor
- Half-up rounding to cents
- fee + net == gross
- Non-positive amounts rejected
"""

from decimal import Decimal

import pytest

from draftboard.config import FeeConfig
from draftboard.exceptions import InvalidAmount
from draftboard.services.fee_policy import FeePolicy, to_money


def test_percentage_fee():
    breakdown = FeePolicy().compute_fee(Decimal("1000.00"))
    assert breakdown.fee == Decimal("50.00")
    assert breakdown.net == Decimal("950.00")


def test_minimum_fee_applies_to_small_amounts():
    breakdown = FeePolicy().compute_fee("5.00")
    assert breakdown.fee == Decimal("0.50")
    assert breakdown.net == Decimal("4.50")


def test_fee_rounds_half_up():
    # 5% of 10.10 is 0.505
    breakdown = FeePolicy().compute_fee("10.10")
    assert breakdown.fee == Decimal("0.51")


@pytest.mark.parametrize("gross", ["1.00", "9.99", "10.01", "333.33", "1234567.89"])
def test_fee_and_net_sum_to_gross(gross):
    breakdown = FeePolicy().compute_fee(gross)
    assert breakdown.fee + breakdown.net == breakdown.gross
    assert breakdown.fee >= Decimal("0.50")


@pytest.mark.parametrize("gross", ["0", "-1.00"])
def test_non_positive_amount_rejected(gross):
    with pytest.raises(InvalidAmount):
        FeePolicy().compute_fee(gross)


def test_from_config():
    policy = FeePolicy.from_config(FeeConfig(rate=Decimal("0.10"), minimum=Decimal("2.00")))
    assert policy.compute_fee("100.00").fee == Decimal("10.00")
    assert policy.compute_fee("10.00").fee == Decimal("2.00")


def test_to_money_rejects_garbage():
    with pytest.raises(InvalidAmount):
        to_money("ten dollars")
    assert to_money("1.005") == Decimal("1.01")
