import uuid
from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from pilance.api.deps import get_ledger, get_principal
from pilance.core.access.policy import Principal
from pilance.core.ledger import Ledger
from pilance.core.milestones.service import MilestoneService
from pilance.db.models import Milestone

router = APIRouter(prefix="/milestones", tags=["Milestones"])


# ---------- Schemas ----------


class MilestoneResponse(BaseModel):
    id: uuid.UUID
    contract_id: uuid.UUID
    title: str
    description: str | None
    amount: Decimal
    due_date: date | None
    is_completed: bool
    is_paid: bool
    created_at: str

    @classmethod
    def from_orm_instance(cls, milestone: Milestone) -> "MilestoneResponse":
        return cls(
            id=milestone.id,
            contract_id=milestone.contract_id,
            title=milestone.title,
            description=milestone.description,
            amount=milestone.amount,
            due_date=milestone.due_date,
            is_completed=milestone.is_completed,
            is_paid=milestone.is_paid,
            created_at=milestone.created_at.isoformat(),
        )


# ---------- Endpoints ----------


@router.post("/{milestone_id}/complete", response_model=MilestoneResponse)
async def complete_milestone(
    milestone_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    ledger: Ledger = Depends(get_ledger),
):
    milestone = await MilestoneService(ledger).complete_milestone(milestone_id, principal)
    return MilestoneResponse.from_orm_instance(milestone)


@router.post("/{milestone_id}/pay", response_model=MilestoneResponse)
async def pay_milestone(
    milestone_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    ledger: Ledger = Depends(get_ledger),
):
    milestone = await MilestoneService(ledger).pay_milestone(milestone_id, principal)
    return MilestoneResponse.from_orm_instance(milestone)
