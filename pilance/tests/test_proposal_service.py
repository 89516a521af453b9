import uuid
from decimal import Decimal

import pytest

from pilance.common.enums import ContractStatus, JobStatus, ProposalStatus, UserRole
from pilance.common.exceptions import (
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationFailedError,
)
from pilance.core.proposals.service import ProposalService
from pilance.tests.fakes import FakeLedger, seed_user


@pytest.fixture
async def market():
    ledger = FakeLedger()
    _, client = await seed_user(ledger, UserRole.CLIENT, "client")
    _, alice = await seed_user(ledger, UserRole.FREELANCER, "alice")
    _, bob = await seed_user(ledger, UserRole.FREELANCER, "bob")
    service = ProposalService(ledger)
    job = await service.create_job("Landing page", "One page site", Decimal("4000"), client)
    return ledger, service, job, client, alice, bob


async def _bid(service, job, who, rate="4200"):
    return await service.submit_proposal(job.id, "Pick me", Decimal(rate), who)


@pytest.mark.asyncio
async def test_only_clients_post_jobs(market):
    _, service, _, _, alice, _ = market
    with pytest.raises(PermissionDeniedError):
        await service.create_job("Nope", "Freelancers cannot post", Decimal("10"), alice)


@pytest.mark.asyncio
async def test_job_budget_must_be_positive(market):
    _, service, _, client, _, _ = market
    with pytest.raises(ValidationFailedError):
        await service.create_job("Free work", "Zero budget", Decimal("0"), client)


@pytest.mark.asyncio
async def test_freelancer_cannot_bid_twice(market):
    _, service, job, _, alice, _ = market
    await _bid(service, job, alice)
    with pytest.raises(InvalidStateError):
        await _bid(service, job, alice, "3900")


@pytest.mark.asyncio
async def test_client_cannot_bid(market):
    _, service, job, client, _, _ = market
    with pytest.raises(PermissionDeniedError):
        await _bid(service, job, client)


@pytest.mark.asyncio
async def test_accept_opens_contract_and_rejects_siblings(market):
    ledger, service, job, client, alice, bob = market
    winner = await _bid(service, job, alice)
    loser = await _bid(service, job, bob, "3000")

    award = await service.accept_proposal(winner.id, client)

    assert winner.status == ProposalStatus.ACCEPTED.value
    assert loser.status == ProposalStatus.REJECTED.value
    assert job.status == JobStatus.IN_PROGRESS.value

    contract = award.contract
    assert contract.status == ContractStatus.ACTIVE.value
    assert contract.client_id == client.user_id
    assert contract.freelancer_id == alice.user_id
    assert contract.amount == Decimal("4200")
    assert contract.title == job.title
    assert award.freelancer.id == alice.user_id
    assert ledger.operations == ["Proposal submission", "Proposal submission", "Proposal acceptance"]


@pytest.mark.asyncio
async def test_second_accept_on_same_job_fails(market):
    ledger, service, job, client, alice, bob = market
    first = await _bid(service, job, alice)
    second = await _bid(service, job, bob)

    await service.accept_proposal(first.id, client)
    with pytest.raises(InvalidStateError):
        await service.accept_proposal(second.id, client)

    assert len(ledger.contracts.live()) == 1


@pytest.mark.asyncio
async def test_reaccepting_accepted_proposal_fails(market):
    ledger, service, job, client, alice, _ = market
    proposal = await _bid(service, job, alice)
    await service.accept_proposal(proposal.id, client)

    with pytest.raises(InvalidStateError):
        await service.accept_proposal(proposal.id, client)
    assert len(ledger.contracts.live()) == 1


@pytest.mark.asyncio
async def test_accept_requires_job_owner(market):
    ledger, service, job, _, alice, _ = market
    _, stranger = await seed_user(ledger, UserRole.CLIENT, "stranger")
    proposal = await _bid(service, job, alice)

    with pytest.raises(PermissionDeniedError):
        await service.accept_proposal(proposal.id, stranger)
    assert proposal.status == ProposalStatus.PENDING.value


@pytest.mark.asyncio
async def test_accept_unknown_proposal_is_not_found(market):
    _, service, _, client, _, _ = market
    with pytest.raises(NotFoundError):
        await service.accept_proposal(uuid.uuid4(), client)


@pytest.mark.asyncio
async def test_failed_contract_creation_leaves_no_partial_writes(market):
    ledger, service, job, client, alice, bob = market
    winner = await _bid(service, job, alice)
    sibling = await _bid(service, job, bob)
    ledger.contracts.fail_on_add = RuntimeError("disk full")

    with pytest.raises(RuntimeError):
        await service.accept_proposal(winner.id, client)

    assert winner.status == ProposalStatus.PENDING.value
    assert sibling.status == ProposalStatus.PENDING.value
    assert job.status == JobStatus.OPEN.value
    assert ledger.contracts.live() == []


@pytest.mark.asyncio
async def test_reject_pending_proposal(market):
    _, service, job, client, alice, _ = market
    proposal = await _bid(service, job, alice)

    rejected = await service.reject_proposal(proposal.id, client)
    assert rejected.status == ProposalStatus.REJECTED.value

    with pytest.raises(InvalidStateError, match="already rejected"):
        await service.reject_proposal(proposal.id, client)


@pytest.mark.asyncio
async def test_cannot_reject_accepted_proposal(market):
    _, service, job, client, alice, _ = market
    proposal = await _bid(service, job, alice)
    await service.accept_proposal(proposal.id, client)

    with pytest.raises(InvalidStateError, match="accepted"):
        await service.reject_proposal(proposal.id, client)
    assert proposal.status == ProposalStatus.ACCEPTED.value


@pytest.mark.asyncio
async def test_no_bids_after_job_leaves_open(market):
    ledger, service, job, client, alice, _ = market
    _, carol = await seed_user(ledger, UserRole.FREELANCER, "carol")
    proposal = await _bid(service, job, alice)
    await service.accept_proposal(proposal.id, client)

    with pytest.raises(InvalidStateError, match="no longer open"):
        await _bid(service, job, carol)


@pytest.mark.asyncio
async def test_proposal_visible_to_owner_and_author_only(market):
    ledger, service, job, client, alice, bob = market
    proposal = await _bid(service, job, alice)

    assert (await service.get_proposal(proposal.id, client)).id == proposal.id
    assert (await service.get_proposal(proposal.id, alice)).id == proposal.id
    with pytest.raises(PermissionDeniedError):
        await service.get_proposal(proposal.id, bob)


@pytest.mark.asyncio
async def test_edit_pending_proposal(market):
    _, service, job, _, alice, bob = market
    proposal = await _bid(service, job, alice)

    edited = await service.update_proposal(proposal.id, alice, proposed_rate=Decimal("3800"))
    assert edited.proposed_rate == Decimal("3800")
    assert edited.cover_letter == "Pick me"

    with pytest.raises(PermissionDeniedError):
        await service.update_proposal(proposal.id, bob, cover_letter="Mine now")
    with pytest.raises(ValidationFailedError):
        await service.update_proposal(proposal.id, alice, proposed_rate=Decimal("-1"))


@pytest.mark.asyncio
async def test_withdrawn_bid_is_skipped_on_accept(market):
    ledger, service, job, client, alice, bob = market
    chosen = await _bid(service, job, alice)
    withdrawn = await _bid(service, job, bob, "3900")

    await service.withdraw_proposal(withdrawn.id, bob)
    assert await ledger.proposals.get(withdrawn.id) is None
    with pytest.raises(InvalidStateError, match="already submitted"):
        await _bid(service, job, bob, "3500")

    await service.accept_proposal(chosen.id, client)
    assert withdrawn.status == ProposalStatus.PENDING.value
    assert withdrawn.is_deleted is True


@pytest.mark.asyncio
async def test_only_pending_proposals_can_be_withdrawn(market):
    _, service, job, client, alice, _ = market
    proposal = await _bid(service, job, alice)
    await service.reject_proposal(proposal.id, client)

    with pytest.raises(InvalidStateError):
        await service.withdraw_proposal(proposal.id, alice)
    with pytest.raises(InvalidStateError):
        await service.update_proposal(proposal.id, alice, duration="1 week")
