from unittest.mock import AsyncMock, patch

import pytest

from pilance.integrations.pi_network import PiNetworkClient


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["service"] == "pilance"
    assert response.json()["payment_rail"] == "ok"
    assert "X-Request-Duration-Ms" in response.headers


@pytest.mark.asyncio
async def test_health_reports_unreachable_rail(client):
    with patch.object(PiNetworkClient, "health_check", new_callable=AsyncMock, return_value=False):
        response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "degraded"
    assert response.json()["payment_rail"] == "unreachable"


@pytest.mark.asyncio
async def test_errors_use_error_envelope(client, client_headers):
    response = await client.get("/api/v1/contracts/not-a-uuid", headers=client_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Validation failed"

    response = await client.get("/api/v1/nowhere")
    assert response.status_code == 404
    assert response.json() == {"error": "Not Found"}


@pytest.mark.asyncio
async def test_mock_pi_rail_reports_settlement():
    pi = PiNetworkClient()
    assert await pi.health_check() is True

    payment = await pi.get_payment("pi_pay_7")
    assert payment["identifier"] == "pi_pay_7"
    assert payment["transaction"]["verified"] is True
    assert len(payment["transaction"]["txid"]) == 64
