"""
Integration Test: Reward tier configuration
"""

from decimal import Decimal

import pytest

from draftboard.exceptions import BriefLocked, TiersLocked, TierValidationError
from draftboard.services.reward_tier_service import TierSpec

from tests.helpers import funded_brief, onboarded_creator, tiers, winner


def test_tiers_require_funding(harness):
    async def scenario(services):
        brief = await services.briefs.register_brief("brand-1", "1000.00")
        with pytest.raises(TierValidationError):
            await tiers(services, brief.id, "100.00")

    harness.run(scenario)


def test_equal_split(harness):
    async def scenario(services):
        brief = await funded_brief(services)
        return await services.tiers.equal_split(brief.id, 3)

    created = harness.run(scenario)
    assert [t.amount for t in created] == [
        Decimal("316.67"),
        Decimal("316.67"),
        Decimal("316.66"),
    ]
    assert [t.description for t in created] == ["1st place", "2nd place", "3rd place"]


def test_invalid_configuration_leaves_previous_tiers(harness):
    async def scenario(services):
        brief = await funded_brief(services)
        await tiers(services, brief.id, "500.00", "300.00")
        with pytest.raises(TierValidationError):
            await tiers(services, brief.id, "600.00", "400.00")
        return await services.tiers.list_tiers(brief.id)

    current = harness.run(scenario)
    assert [t.amount for t in current] == [Decimal("500.00"), Decimal("300.00")]


def test_tiers_replaced_before_winners(harness):
    async def scenario(services):
        brief = await funded_brief(services)
        await tiers(services, brief.id, "500.00", "300.00")
        await tiers(services, brief.id, "950.00")
        return await services.tiers.list_tiers(brief.id)

    current = harness.run(scenario)
    assert [(t.position, t.amount) for t in current] == [(1, Decimal("950.00"))]


def test_tiers_locked_once_winners_assigned(harness):
    async def scenario(services):
        brief = await funded_brief(services)
        created = await tiers(services, brief.id, "500.00", "300.00")
        await winner(services, brief.id, created[0], "creator-1")
        with pytest.raises(TiersLocked):
            await tiers(services, brief.id, "100.00")

    harness.run(scenario)


def test_closed_brief_tiers_locked(harness):
    async def scenario(services):
        brief = await funded_brief(services)
        await services.funding.close_brief(brief.id, "cancelled")
        with pytest.raises(BriefLocked):
            await services.tiers.set_tiers(brief.id, [TierSpec(1, Decimal("10.00"))])

    harness.run(scenario)
