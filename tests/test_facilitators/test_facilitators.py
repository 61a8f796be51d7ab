"""
Tests for the facilitator HTTP surface, the remote facilitator client and
per-requirement routing.
"""

from decimal import Decimal

import httpx
import pytest

from x402_vara.facilitators import FacilitatorHub, LedgerFacilitator, RemoteFacilitator
from x402_vara.schemas.bases import VerificationOutcome, VerificationStatus
from x402_vara.schemas.https import FacilitatorVerifyRequest, PaymentRequirement, Price

FACILITATOR_URL = "http://facilitator.local/api/facilitator"


def requirement_for(pay_to: str, facilitator=None) -> PaymentRequirement:
    return PaymentRequirement(
        network="vara-testnet",
        price=Price(amount=Decimal("0.10"), asset="VARA"),
        resource="/api/pay/hello",
        pay_to=pay_to,
        facilitator=facilitator,
    )


def asgi_client(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")


@pytest.mark.asyncio
async def test_supported_lists_vara_networks(app):
    async with asgi_client(app) as client:
        body = (await client.get("/api/facilitator/supported")).json()

    networks = {n["network"]: n for n in body["networks"]}
    assert set(networks) == {"vara", "vara-testnet"}
    assert networks["vara-testnet"]["assets"] == [{"symbol": "VARA", "decimals": 12}]


@pytest.mark.asyncio
async def test_verify_endpoint_settles(app, client_hub, bob):
    requirement = requirement_for(bob.ss58_address)
    evidence = await client_hub.signature(requirement)
    body = FacilitatorVerifyRequest(evidence=evidence, requirement=requirement).to_dict()

    async with asgi_client(app) as client:
        first = await client.post("/api/facilitator/verify", json=body)
        replay = await client.post("/api/facilitator/verify", json=body)

    assert first.status_code == 200
    assert first.json()["success"] is True
    assert first.json()["status"] == "success"
    assert first.json()["txHash"].startswith("0x")
    assert replay.json()["status"] == "rejected"


@pytest.mark.asyncio
async def test_verify_endpoint_validates_body(app):
    async with asgi_client(app) as client:
        response = await client.post("/api/facilitator/verify", json={"evidence": {}})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_remote_facilitator_round_trip(app, client_hub, server_hub, bob):
    """A server whose requirement names a facilitator verifies through it."""
    requirement = requirement_for(bob.ss58_address, facilitator=FACILITATOR_URL)
    evidence = await client_hub.signature(requirement)

    async with asgi_client(app) as http:
        hub = FacilitatorHub(LedgerFacilitator(server_hub), client=http)
        assert isinstance(hub.for_requirement(requirement), RemoteFacilitator)
        assert hub.for_requirement(requirement) is hub.for_requirement(requirement)

        outcome = await hub.verify(evidence, requirement)

    assert outcome.is_success()
    assert outcome.payer == evidence.signer


@pytest.mark.asyncio
async def test_requirements_without_facilitator_stay_local(server_hub, bob):
    local = LedgerFacilitator(server_hub)
    assert FacilitatorHub(local).for_requirement(requirement_for(bob.ss58_address)) is local


@pytest.mark.asyncio
async def test_unreachable_facilitator(client_hub, bob):
    requirement = requirement_for(bob.ss58_address, facilitator=FACILITATOR_URL)
    evidence = await client_hub.signature(requirement)

    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        outcome = await RemoteFacilitator(FACILITATOR_URL, client=http).verify(evidence, requirement)

    assert outcome.status == VerificationStatus.CHAIN_UNAVAILABLE
    assert outcome.reason.startswith("Facilitator unreachable")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [httpx.Response(500, text="oops"), httpx.Response(200, json={"unexpected": True})],
)
async def test_unusable_facilitator_answer(client_hub, bob, response):
    requirement = requirement_for(bob.ss58_address, facilitator=FACILITATOR_URL)
    evidence = await client_hub.signature(requirement)

    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda request: response)) as http:
        outcome = await RemoteFacilitator(FACILITATOR_URL, client=http).verify(evidence, requirement)

    assert outcome.status == VerificationStatus.UNKNOWN_ERROR
    assert not outcome.success


@pytest.mark.asyncio
async def test_remote_outcome_is_passed_through(client_hub, bob):
    requirement = requirement_for(bob.ss58_address, facilitator=FACILITATOR_URL)
    evidence = await client_hub.signature(requirement)
    answer = VerificationOutcome.failure(VerificationStatus.EXPIRED, "Transaction expired", payer=evidence.signer)
    seen = []

    def handler(request):
        seen.append(request.url)
        return httpx.Response(200, json=answer.to_dict())

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        outcome = await RemoteFacilitator(FACILITATOR_URL + "/", client=http).verify(evidence, requirement)

    assert outcome == answer
    assert str(seen[0]) == FACILITATOR_URL + "/verify"


@pytest.mark.asyncio
async def test_hub_close_closes_local(server_hub):
    await server_hub.pool.acquire("vara-testnet")
    await FacilitatorHub(LedgerFacilitator(server_hub)).close()
    assert server_hub.pool.closed
