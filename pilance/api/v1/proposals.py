import uuid
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from pilance.api.deps import get_ledger, get_principal
from pilance.core.access.policy import Principal
from pilance.core.ledger import Ledger
from pilance.core.proposals.service import ContractAward, ProposalService
from pilance.db.models import Proposal

router = APIRouter(prefix="/proposals", tags=["Proposals"])


# ---------- Schemas ----------


class ProposalCreateRequest(BaseModel):
    job_id: uuid.UUID
    cover_letter: str = Field(..., min_length=1)
    proposed_rate: Decimal = Field(..., gt=0)
    duration: str | None = Field(None, max_length=100)


class ProposalUpdateRequest(BaseModel):
    cover_letter: str | None = Field(None, min_length=1)
    proposed_rate: Decimal | None = Field(None, gt=0)
    duration: str | None = Field(None, max_length=100)


class ProposalResponse(BaseModel):
    id: uuid.UUID
    job_id: uuid.UUID
    freelancer_id: uuid.UUID
    cover_letter: str
    proposed_rate: Decimal
    duration: str | None
    status: str
    created_at: str

    @classmethod
    def from_orm_instance(cls, proposal: Proposal) -> "ProposalResponse":
        return cls(
            id=proposal.id,
            job_id=proposal.job_id,
            freelancer_id=proposal.freelancer_id,
            cover_letter=proposal.cover_letter,
            proposed_rate=proposal.proposed_rate,
            duration=proposal.duration,
            status=proposal.status,
            created_at=proposal.created_at.isoformat(),
        )


class FreelancerSummary(BaseModel):
    id: uuid.UUID
    username: str
    full_name: str


class AcceptedContractResponse(BaseModel):
    id: uuid.UUID
    job_id: uuid.UUID
    proposal_id: uuid.UUID
    client_id: uuid.UUID
    freelancer_id: uuid.UUID
    title: str
    amount: Decimal
    status: str
    start_date: str
    freelancer: FreelancerSummary | None

    @classmethod
    def from_award(cls, award: ContractAward) -> "AcceptedContractResponse":
        contract = award.contract
        freelancer = award.freelancer
        return cls(
            id=contract.id,
            job_id=contract.job_id,
            proposal_id=contract.proposal_id,
            client_id=contract.client_id,
            freelancer_id=contract.freelancer_id,
            title=contract.title,
            amount=contract.amount,
            status=contract.status,
            start_date=contract.start_date.isoformat(),
            freelancer=FreelancerSummary(
                id=freelancer.id, username=freelancer.username, full_name=freelancer.full_name
            )
            if freelancer
            else None,
        )


class ProposalActionResponse(BaseModel):
    message: str
    proposal: ProposalResponse


# ---------- Endpoints ----------


@router.post("", response_model=ProposalResponse, status_code=201)
async def submit_proposal(
    body: ProposalCreateRequest,
    principal: Principal = Depends(get_principal),
    ledger: Ledger = Depends(get_ledger),
):
    proposal = await ProposalService(ledger).submit_proposal(
        job_id=body.job_id,
        cover_letter=body.cover_letter,
        proposed_rate=body.proposed_rate,
        principal=principal,
        duration=body.duration,
    )
    return ProposalResponse.from_orm_instance(proposal)


@router.get("/{proposal_id}", response_model=ProposalResponse)
async def get_proposal(
    proposal_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    ledger: Ledger = Depends(get_ledger),
):
    proposal = await ProposalService(ledger).get_proposal(proposal_id, principal)
    return ProposalResponse.from_orm_instance(proposal)


@router.patch("/{proposal_id}", response_model=ProposalResponse)
async def update_proposal(
    proposal_id: uuid.UUID,
    body: ProposalUpdateRequest,
    principal: Principal = Depends(get_principal),
    ledger: Ledger = Depends(get_ledger),
):
    proposal = await ProposalService(ledger).update_proposal(
        proposal_id,
        principal,
        cover_letter=body.cover_letter,
        proposed_rate=body.proposed_rate,
        duration=body.duration,
    )
    return ProposalResponse.from_orm_instance(proposal)


@router.delete("/{proposal_id}")
async def withdraw_proposal(
    proposal_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    ledger: Ledger = Depends(get_ledger),
):
    await ProposalService(ledger).withdraw_proposal(proposal_id, principal)
    return {"message": "Proposal withdrawn successfully"}


@router.post("/{proposal_id}/accept", response_model=AcceptedContractResponse)
async def accept_proposal(
    proposal_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    ledger: Ledger = Depends(get_ledger),
):
    award = await ProposalService(ledger).accept_proposal(proposal_id, principal)
    return AcceptedContractResponse.from_award(award)


@router.post("/{proposal_id}/reject", response_model=ProposalActionResponse)
async def reject_proposal(
    proposal_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    ledger: Ledger = Depends(get_ledger),
):
    proposal = await ProposalService(ledger).reject_proposal(proposal_id, principal)
    return ProposalActionResponse(
        message="Proposal rejected", proposal=ProposalResponse.from_orm_instance(proposal)
    )
