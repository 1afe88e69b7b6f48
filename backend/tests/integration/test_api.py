"""
Integration Test: HTTP API

Drives the FastAPI app over ASGITransport with injected services and checks
the error payload shape and status mapping.
"""

import httpx

from draftboard.main import create_app

from tests.conftest import make_settings
from tests.helpers import funded_brief, onboarded_creator, signed_event, tiers, winner


def _client(settings, services) -> httpx.AsyncClient:
    app = create_app(settings, services=services)
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


def test_fund_assign_and_pay_over_http(harness, settings):
    async def scenario(services):
        async with _client(settings, services) as client:
            response = await client.post(
                "/api/briefs",
                json={"brand_id": "brand-1", "reward_total": "1000.00", "status": "published"},
            )
            assert response.status_code == 201
            brief_id = response.json()["id"]

            response = await client.post(f"/api/briefs/{brief_id}/fund", json={"amount": "1000.00"})
            assert response.status_code == 200
            funding = response.json()
            assert funding["platform_fee"] == "50.00"
            assert funding["net_amount"] == "950.00"

            services.processor.sandbox_complete_checkout(funding["session_id"])
            response = await client.post(
                f"/api/briefs/{brief_id}/funding/refresh",
                json={"session_id": funding["session_id"]},
            )
            assert response.json()["status"] == "completed"

            response = await client.post(f"/api/briefs/{brief_id}/fund", json={"amount": "1000.00"})
            assert response.status_code == 409
            assert response.json()["error"] == "brief_already_funded"

            response = await client.post(
                f"/api/briefs/{brief_id}/reward-tiers/equal-split", json={"winner_count": 2}
            )
            tiers = response.json()
            assert [t["amount"] for t in tiers] == ["475.00", "475.00"]

            response = await client.post("/api/creators/creator-1/onboard", json={"country": "US"})
            account_id = response.json()["account_id"]
            services.processor.sandbox_update_account(
                account_id, payouts_enabled=True, charges_enabled=True, details_submitted=True
            )
            response = await client.get(
                "/api/creators/creator-1/onboard/status", params={"refresh": "true"}
            )
            assert response.json()["payouts_enabled"] is True

            assign = {"tier_id": tiers[0]["id"], "submission_id": "sub-1", "creator_id": "creator-1"}
            response = await client.post(f"/api/briefs/{brief_id}/assign-reward", json=assign)
            assert response.status_code == 200
            assignment_id = response.json()["id"]

            response = await client.post(
                f"/api/briefs/{brief_id}/assign-reward", json={**assign, "submission_id": "sub-2"}
            )
            assert response.status_code == 409
            assert response.json()["error"] == "tier_already_assigned"

            response = await client.post(f"/api/payouts/{assignment_id}")
            assert response.json()["status"] == "paid"

            response = await client.get(f"/api/briefs/{brief_id}")
            state = response.json()
            assert state["paid_amount"] == "475.00"
            assert state["allocated_amount"] == "950.00"

            response = await client.get(f"/api/reward-assignments/{assignment_id}/events")
            assert [e["event_type"] for e in response.json()] == [
                "assigned",
                "payout_started",
                "payout_paid",
            ]

    harness.run(scenario)


def test_error_payloads(harness, settings):
    async def scenario(services):
        async with _client(settings, services) as client:
            response = await client.get("/api/briefs/missing")
            assert response.status_code == 404
            assert response.json() == {
                "error": "brief_not_found",
                "detail": "Brief missing not found",
            }

            response = await client.post(
                "/api/briefs", json={"brand_id": "brand-1", "reward_total": "100.00"}
            )
            brief_id = response.json()["id"]
            response = await client.post(
                f"/api/briefs/{brief_id}/reward-tiers",
                json={"tiers": [{"position": 1, "amount": "10.00"}]},
            )
            assert response.status_code == 422
            assert response.json()["error"] == "tier_validation_error"

            response = await client.post(
                "/api/webhooks/payments",
                content=b'{"id": "evt_1"}',
                headers={"Stripe-Signature": "t=1,v1=bad"},
            )
            assert response.status_code == 400
            assert response.json()["error"] == "invalid_signature"

    harness.run(scenario)


def test_bulk_payment_insufficient_balance(harness, tmp_path):
    settings = make_settings(tmp_path, sandbox_balance="100.00")

    async def scenario(services):
        brief = await funded_brief(services, collect=False)
        created = await tiers(services, brief.id, "300.00")
        await onboarded_creator(services, "creator-1")
        assignment = await winner(services, brief.id, created[0], "creator-1")

        async with _client(settings, services) as client:
            response = await client.post(
                "/api/brands/bulk-payment", json={"winner_ids": [assignment.id]}
            )
        assert response.status_code == 402
        assert response.json()["error"] == "insufficient_balance"

    harness.run(scenario, sandbox_balance="100.00")


def test_webhook_acknowledged(harness, settings):
    async def scenario(services):
        payload, header = signed_event("evt_misc", "customer.created", {"id": "cus_1"})
        async with _client(settings, services) as client:
            response = await client.post(
                "/api/webhooks/payments",
                content=payload,
                headers={"Stripe-Signature": header, "Content-Type": "application/json"},
            )
        assert response.status_code == 200
        assert response.json() == {"received": True, "outcome": "ignored"}

    harness.run(scenario)


def test_fee_quote_and_health(harness, settings):
    async def scenario(services):
        async with _client(settings, services) as client:
            quote = (await client.get("/api/fees/quote", params={"amount": "1000"})).json()
            health = (await client.get("/health")).json()
        return quote, health

    quote, health = harness.run(scenario)
    assert quote["fee"] == "50.00"
    assert quote["net"] == "950.00"
    assert health["status"] == "healthy"
    assert health["service"] == "draftboard-api"


def test_wallet_reports_redemption_readiness(harness, settings):
    async def scenario(services):
        async with _client(settings, services) as client:
            before = (await client.get("/api/creators/creator-1/wallet")).json()
            await onboarded_creator(services, "creator-1", payouts_enabled=False)
            restricted = (await client.get("/api/creators/creator-1/wallet")).json()
            await onboarded_creator(services, "creator-2")
            ready = (await client.get("/api/creators/creator-2/wallet")).json()
        return before, restricted, ready

    before, restricted, ready = harness.run(scenario)
    assert before["can_redeem"] is False
    assert before["balance"] == "0.00"
    assert restricted["can_redeem"] is False
    assert ready["can_redeem"] is True
