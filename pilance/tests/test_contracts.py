from decimal import Decimal

import pytest


async def _add_milestone(client, contract_id, headers, title="Design mockups", amount=1000):
    response = await client.post(
        f"/api/v1/contracts/{contract_id}/milestones",
        headers=headers,
        json={"title": title, "amount": amount, "due_date": "2026-12-01"},
    )
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_get_contract_with_milestones(client, active_contract, client_headers):
    await _add_milestone(client, active_contract["id"], client_headers)

    response = await client.get(f"/api/v1/contracts/{active_contract['id']}", headers=client_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "active"
    assert len(data["milestones"]) == 1
    assert data["milestones"][0]["is_completed"] is False


@pytest.mark.asyncio
async def test_outsider_cannot_read_contract(client, active_contract, outsider_headers):
    response = await client.get(f"/api/v1/contracts/{active_contract['id']}", headers=outsider_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_list_contracts_for_both_parties(
    client, active_contract, client_headers, freelancer_headers, outsider_headers
):
    for headers in (client_headers, freelancer_headers):
        response = await client.get("/api/v1/contracts", headers=headers)
        assert response.status_code == 200
        assert [c["id"] for c in response.json()["items"]] == [active_contract["id"]]

    response = await client.get("/api/v1/contracts", headers=outsider_headers)
    assert response.json()["total"] == 0


@pytest.mark.asyncio
async def test_milestone_payment_requires_completion(
    client, active_contract, client_headers, freelancer_headers
):
    milestone = await _add_milestone(client, active_contract["id"], client_headers)

    early = await client.post(f"/api/v1/milestones/{milestone['id']}/pay", headers=client_headers)
    assert early.status_code == 400
    assert early.json() == {"error": "Milestone must be completed before payment"}

    wrong_party = await client.post(
        f"/api/v1/milestones/{milestone['id']}/complete", headers=client_headers
    )
    assert wrong_party.status_code == 403

    done = await client.post(
        f"/api/v1/milestones/{milestone['id']}/complete", headers=freelancer_headers
    )
    assert done.status_code == 200
    assert done.json()["is_completed"] is True

    paid = await client.post(f"/api/v1/milestones/{milestone['id']}/pay", headers=client_headers)
    assert paid.status_code == 200
    assert paid.json()["is_paid"] is True

    twice = await client.post(f"/api/v1/milestones/{milestone['id']}/pay", headers=client_headers)
    assert twice.status_code == 400


@pytest.mark.asyncio
async def test_unknown_milestone(client, client_headers):
    response = await client.post(
        "/api/v1/milestones/00000000-0000-0000-0000-000000000000/complete", headers=client_headers
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_milestones(client, active_contract, client_headers, freelancer_headers):
    await _add_milestone(client, active_contract["id"], client_headers, "First", 100)
    await _add_milestone(client, active_contract["id"], freelancer_headers, "Second", 200)

    response = await client.get(
        f"/api/v1/contracts/{active_contract['id']}/milestones", headers=freelancer_headers
    )
    assert response.status_code == 200
    amounts = [Decimal(m["amount"]) for m in response.json()]
    assert sorted(amounts) == [Decimal("100"), Decimal("200")]


@pytest.mark.asyncio
async def test_delete_active_contract_rejected(client, active_contract, client_headers):
    response = await client.delete(f"/api/v1/contracts/{active_contract['id']}", headers=client_headers)
    assert response.status_code == 400
    assert response.json() == {"error": "Cannot delete active or completed contracts"}

    still_there = await client.get(f"/api/v1/contracts/{active_contract['id']}", headers=client_headers)
    assert still_there.status_code == 200


@pytest.mark.asyncio
async def test_delete_cancelled_contract(client, active_contract, client_headers):
    cancel = await client.patch(
        f"/api/v1/contracts/{active_contract['id']}",
        headers=client_headers,
        json={"status": "cancelled", "end_date": "2026-11-30"},
    )
    assert cancel.status_code == 200
    assert cancel.json()["status"] == "cancelled"
    assert cancel.json()["end_date"] == "2026-11-30"

    deleted = await client.delete(f"/api/v1/contracts/{active_contract['id']}", headers=client_headers)
    assert deleted.status_code == 200

    gone = await client.get(f"/api/v1/contracts/{active_contract['id']}", headers=client_headers)
    assert gone.status_code == 404


@pytest.mark.asyncio
async def test_invalid_contract_transition(client, active_contract, client_headers):
    await client.patch(
        f"/api/v1/contracts/{active_contract['id']}",
        headers=client_headers,
        json={"status": "completed"},
    )
    response = await client.patch(
        f"/api/v1/contracts/{active_contract['id']}",
        headers=client_headers,
        json={"status": "active"},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_milestone_on_cancelled_contract(client, active_contract, client_headers):
    await client.patch(
        f"/api/v1/contracts/{active_contract['id']}",
        headers=client_headers,
        json={"status": "cancelled"},
    )
    response = await client.post(
        f"/api/v1/contracts/{active_contract['id']}/milestones",
        headers=client_headers,
        json={"title": "Late", "amount": 10},
    )
    assert response.status_code == 400
