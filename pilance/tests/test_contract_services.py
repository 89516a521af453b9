from decimal import Decimal

import pytest

from pilance.common.enums import ContractStatus, UserRole
from pilance.common.exceptions import InvalidStateError, PermissionDeniedError, ValidationFailedError
from pilance.core.contracts.service import ContractService
from pilance.core.milestones.service import MilestoneService
from pilance.core.proposals.service import ProposalService
from pilance.core.reviews.service import ReviewService
from pilance.tests.fakes import FakeLedger, seed_user


@pytest.fixture
async def contract_setup():
    ledger = FakeLedger()
    _, client = await seed_user(ledger, UserRole.CLIENT, "client")
    _, freelancer = await seed_user(ledger, UserRole.FREELANCER, "freelancer")
    proposals = ProposalService(ledger)
    job = await proposals.create_job("Mobile app", "Pi wallet UI", Decimal("900"), client)
    proposal = await proposals.submit_proposal(job.id, "Ready", Decimal("900"), freelancer)
    award = await proposals.accept_proposal(proposal.id, client)
    return ledger, award.contract, client, freelancer


# ---------- Milestones ----------


@pytest.mark.asyncio
async def test_milestone_pay_before_complete_fails(contract_setup):
    ledger, contract, client, freelancer = contract_setup
    gate = MilestoneService(ledger)
    milestone = await gate.create_milestone(contract.id, "Wireframes", Decimal("300"), client)

    with pytest.raises(InvalidStateError, match="must be completed before payment"):
        await gate.pay_milestone(milestone.id, client)
    assert milestone.is_paid is False


@pytest.mark.asyncio
async def test_milestone_complete_then_pay(contract_setup):
    ledger, contract, client, freelancer = contract_setup
    gate = MilestoneService(ledger)
    milestone = await gate.create_milestone(contract.id, "Wireframes", Decimal("300"), freelancer)

    with pytest.raises(PermissionDeniedError):
        await gate.complete_milestone(milestone.id, client)

    await gate.complete_milestone(milestone.id, freelancer)
    with pytest.raises(InvalidStateError, match="already completed"):
        await gate.complete_milestone(milestone.id, freelancer)

    with pytest.raises(PermissionDeniedError):
        await gate.pay_milestone(milestone.id, freelancer)

    paid = await gate.pay_milestone(milestone.id, client)
    assert paid.is_completed and paid.is_paid

    with pytest.raises(InvalidStateError, match="already paid"):
        await gate.pay_milestone(milestone.id, client)


@pytest.mark.asyncio
async def test_milestones_only_on_active_contracts(contract_setup):
    ledger, contract, client, _ = contract_setup
    gate = MilestoneService(ledger)
    with pytest.raises(ValidationFailedError):
        await gate.create_milestone(contract.id, "Free", Decimal("0"), client)

    await ContractService(ledger).update_contract(contract.id, client, status=ContractStatus.CANCELLED)
    with pytest.raises(InvalidStateError):
        await gate.create_milestone(contract.id, "Late", Decimal("10"), client)


@pytest.mark.asyncio
async def test_list_milestones_oldest_first(contract_setup):
    ledger, contract, client, freelancer = contract_setup
    gate = MilestoneService(ledger)
    first = await gate.create_milestone(contract.id, "One", Decimal("100"), client)
    second = await gate.create_milestone(contract.id, "Two", Decimal("200"), client)

    listed = await gate.list_milestones(contract.id, freelancer)
    assert [m.id for m in listed] == [first.id, second.id]


# ---------- Contracts ----------


@pytest.mark.asyncio
async def test_contract_status_moves(contract_setup):
    ledger, contract, client, freelancer = contract_setup
    contracts = ContractService(ledger)

    updated = await contracts.update_contract(contract.id, freelancer, status=ContractStatus.COMPLETED)
    assert updated.status == ContractStatus.COMPLETED.value

    with pytest.raises(InvalidStateError, match="Cannot transition"):
        await contracts.update_contract(contract.id, client, status=ContractStatus.CANCELLED)


@pytest.mark.asyncio
async def test_active_contract_cannot_be_deleted(contract_setup):
    ledger, contract, client, _ = contract_setup
    with pytest.raises(InvalidStateError, match="Cannot delete active or completed contracts"):
        await ContractService(ledger).delete_contract(contract.id, client)
    assert await ledger.contracts.get(contract.id) is contract


@pytest.mark.asyncio
async def test_cancelled_contract_delete_cascades(contract_setup):
    ledger, contract, client, _ = contract_setup
    milestone = await MilestoneService(ledger).create_milestone(
        contract.id, "Wireframes", Decimal("50"), client
    )
    contracts = ContractService(ledger)
    await contracts.update_contract(contract.id, client, status=ContractStatus.CANCELLED)

    await contracts.delete_contract(contract.id, client)

    assert await ledger.contracts.get(contract.id) is None
    assert await ledger.milestones.get(milestone.id) is None


@pytest.mark.asyncio
async def test_outsider_cannot_view_contract(contract_setup):
    ledger, contract, _, _ = contract_setup
    _, outsider = await seed_user(ledger, UserRole.CLIENT, "outsider")
    with pytest.raises(PermissionDeniedError):
        await ContractService(ledger).get_contract(contract.id, outsider)


# ---------- Reviews ----------


@pytest.mark.asyncio
async def test_review_requires_completed_contract(contract_setup):
    ledger, contract, client, freelancer = contract_setup
    reviews = ReviewService(ledger)

    with pytest.raises(InvalidStateError):
        await reviews.create_review(contract.id, 5, client)

    await ContractService(ledger).update_contract(contract.id, client, status=ContractStatus.COMPLETED)
    review = await reviews.create_review(contract.id, 5, client, comment="Great work")

    assert review.giver_id == client.user_id
    assert review.receiver_id == freelancer.user_id

    with pytest.raises(InvalidStateError, match="already reviewed"):
        await reviews.create_review(contract.id, 4, client)

    back = await reviews.create_review(contract.id, 4, freelancer)
    assert back.receiver_id == client.user_id


@pytest.mark.asyncio
async def test_review_rating_range(contract_setup):
    ledger, contract, client, _ = contract_setup
    await ContractService(ledger).update_contract(contract.id, client, status=ContractStatus.COMPLETED)
    with pytest.raises(ValidationFailedError):
        await ReviewService(ledger).create_review(contract.id, 6, client)
