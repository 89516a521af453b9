import uuid
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pilance.api.deps import get_current_user, get_db, get_ledger, get_principal
from pilance.api.v1.proposals import ProposalResponse
from pilance.common.enums import JobStatus
from pilance.common.exceptions import NotFoundError
from pilance.common.pagination import PaginatedResponse, PaginationParams, paginate, total_pages
from pilance.core.access.policy import Principal
from pilance.core.ledger import Ledger
from pilance.core.proposals.service import ProposalService
from pilance.db.models import Job, Proposal, User

router = APIRouter(prefix="/jobs", tags=["Jobs"])


# ---------- Schemas ----------


class JobCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: str = Field(..., min_length=1)
    budget: Decimal = Field(..., gt=0)
    is_hourly: bool = False


class JobResponse(BaseModel):
    id: uuid.UUID
    client_id: uuid.UUID
    title: str
    description: str
    budget: Decimal
    is_hourly: bool
    status: str
    created_at: str

    @classmethod
    def from_orm_instance(cls, job: Job) -> "JobResponse":
        return cls(
            id=job.id,
            client_id=job.client_id,
            title=job.title,
            description=job.description,
            budget=job.budget,
            is_hourly=job.is_hourly,
            status=job.status,
            created_at=job.created_at.isoformat(),
        )


# ---------- Endpoints ----------


@router.post("", response_model=JobResponse, status_code=201)
async def create_job(
    body: JobCreateRequest,
    principal: Principal = Depends(get_principal),
    ledger: Ledger = Depends(get_ledger),
):
    job = await ProposalService(ledger).create_job(
        title=body.title,
        description=body.description,
        budget=body.budget,
        principal=principal,
        is_hourly=body.is_hourly,
    )
    return JobResponse.from_orm_instance(job)


@router.get("", response_model=PaginatedResponse[JobResponse])
async def list_jobs(
    status: JobStatus | None = None,
    pagination: PaginationParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    query = select(Job).where(Job.is_deleted.is_(False))
    if status:
        query = query.where(Job.status == status.value)
    query = query.order_by(Job.created_at.desc())

    jobs, total = await paginate(db, query, pagination, Job)
    return PaginatedResponse(
        items=[JobResponse.from_orm_instance(j) for j in jobs],
        total=total,
        page=pagination.page,
        page_size=pagination.page_size,
        total_pages=total_pages(total, pagination),
    )


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(
    job_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    ledger: Ledger = Depends(get_ledger),
):
    job = await ledger.jobs.get(job_id)
    if not job:
        raise NotFoundError("Job", str(job_id))
    return JobResponse.from_orm_instance(job)


@router.get("/{job_id}/proposals", response_model=list[ProposalResponse])
async def list_job_proposals(
    job_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    ledger: Ledger = Depends(get_ledger),
    db: AsyncSession = Depends(get_db),
):
    job = await ledger.jobs.get(job_id)
    if not job:
        raise NotFoundError("Job", str(job_id))

    query = select(Proposal).where(Proposal.job_id == job_id, Proposal.is_deleted.is_(False))
    # Only the job owner sees competing bids
    if job.client_id != current_user.id:
        query = query.where(Proposal.freelancer_id == current_user.id)

    result = await db.execute(query.order_by(Proposal.created_at.asc()))
    return [ProposalResponse.from_orm_instance(p) for p in result.scalars().all()]
