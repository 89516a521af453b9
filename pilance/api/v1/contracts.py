import uuid
from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from pilance.api.deps import get_current_user, get_db, get_ledger, get_principal
from pilance.api.v1.milestones import MilestoneResponse
from pilance.common.enums import ContractStatus
from pilance.common.pagination import PaginatedResponse, PaginationParams, paginate, total_pages
from pilance.core.access.policy import Principal
from pilance.core.contracts.service import ContractService
from pilance.core.ledger import Ledger
from pilance.core.milestones.service import MilestoneService
from pilance.db.models import Contract, User

router = APIRouter(prefix="/contracts", tags=["Contracts"])


# ---------- Schemas ----------


class ContractUpdateRequest(BaseModel):
    status: ContractStatus | None = None
    end_date: date | None = None


class MilestoneCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    amount: Decimal = Field(..., gt=0)
    description: str | None = None
    due_date: date | None = None


class ContractResponse(BaseModel):
    id: uuid.UUID
    job_id: uuid.UUID
    proposal_id: uuid.UUID
    client_id: uuid.UUID
    freelancer_id: uuid.UUID
    title: str
    description: str
    amount: Decimal
    status: str
    start_date: date
    end_date: date | None
    created_at: str

    @classmethod
    def from_orm_instance(cls, contract: Contract) -> "ContractResponse":
        return cls(
            id=contract.id,
            job_id=contract.job_id,
            proposal_id=contract.proposal_id,
            client_id=contract.client_id,
            freelancer_id=contract.freelancer_id,
            title=contract.title,
            description=contract.description,
            amount=contract.amount,
            status=contract.status,
            start_date=contract.start_date,
            end_date=contract.end_date,
            created_at=contract.created_at.isoformat(),
        )


class ContractDetailResponse(ContractResponse):
    milestones: list[MilestoneResponse] = []


# ---------- Endpoints ----------


@router.get("", response_model=PaginatedResponse[ContractResponse])
async def list_contracts(
    status: ContractStatus | None = None,
    pagination: PaginationParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    query = select(Contract).where(
        Contract.is_deleted.is_(False),
        or_(Contract.client_id == current_user.id, Contract.freelancer_id == current_user.id),
    )
    if status:
        query = query.where(Contract.status == status.value)
    query = query.order_by(Contract.created_at.desc())

    contracts, total = await paginate(db, query, pagination, Contract)
    return PaginatedResponse(
        items=[ContractResponse.from_orm_instance(c) for c in contracts],
        total=total,
        page=pagination.page,
        page_size=pagination.page_size,
        total_pages=total_pages(total, pagination),
    )


@router.get("/{contract_id}", response_model=ContractDetailResponse)
async def get_contract(
    contract_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    ledger: Ledger = Depends(get_ledger),
):
    contract = await ContractService(ledger).get_contract(contract_id, principal)
    milestones = await ledger.milestones.list_for_contract(contract.id)
    return ContractDetailResponse(
        **ContractResponse.from_orm_instance(contract).model_dump(),
        milestones=[MilestoneResponse.from_orm_instance(m) for m in milestones],
    )


@router.patch("/{contract_id}", response_model=ContractResponse)
async def update_contract(
    contract_id: uuid.UUID,
    body: ContractUpdateRequest,
    principal: Principal = Depends(get_principal),
    ledger: Ledger = Depends(get_ledger),
):
    contract = await ContractService(ledger).update_contract(
        contract_id, principal, status=body.status, end_date=body.end_date
    )
    return ContractResponse.from_orm_instance(contract)


@router.delete("/{contract_id}")
async def delete_contract(
    contract_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    ledger: Ledger = Depends(get_ledger),
):
    await ContractService(ledger).delete_contract(contract_id, principal)
    return {"message": "Contract deleted successfully"}


@router.post("/{contract_id}/milestones", response_model=MilestoneResponse, status_code=201)
async def create_milestone(
    contract_id: uuid.UUID,
    body: MilestoneCreateRequest,
    principal: Principal = Depends(get_principal),
    ledger: Ledger = Depends(get_ledger),
):
    milestone = await MilestoneService(ledger).create_milestone(
        contract_id=contract_id,
        title=body.title,
        amount=body.amount,
        principal=principal,
        description=body.description,
        due_date=body.due_date,
    )
    return MilestoneResponse.from_orm_instance(milestone)


@router.get("/{contract_id}/milestones", response_model=list[MilestoneResponse])
async def list_milestones(
    contract_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    ledger: Ledger = Depends(get_ledger),
):
    milestones = await MilestoneService(ledger).list_milestones(contract_id, principal)
    return [MilestoneResponse.from_orm_instance(m) for m in milestones]
