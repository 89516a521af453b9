import uuid
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from pilance.api.deps import get_current_user, get_db, get_ledger, get_principal
from pilance.common.enums import TransactionStatus
from pilance.common.logging import get_logger
from pilance.core.access.policy import Principal
from pilance.core.escrow.service import EscrowService
from pilance.core.ledger import Ledger
from pilance.db.models import Transaction, User
from pilance.integrations.pi_network import PiNetworkClient

logger = get_logger("api.payments")

router = APIRouter(prefix="/payments", tags=["Payments"])


# ---------- Schemas ----------


class CreateEscrowRequest(BaseModel):
    job_id: uuid.UUID
    amount: Decimal = Field(..., gt=0)
    pi_payment_id: str | None = Field(None, max_length=255)


class PaymentReferenceRequest(BaseModel):
    payment_id: str = Field(..., min_length=1, max_length=255)


class CompleteEscrowRequest(BaseModel):
    txid: str = Field(..., min_length=1, max_length=255)


class TransactionResponse(BaseModel):
    id: uuid.UUID
    job_id: uuid.UUID
    contract_id: uuid.UUID | None
    client_id: uuid.UUID
    freelancer_id: uuid.UUID
    amount: Decimal
    platform_fee: Decimal
    net_amount: Decimal
    external_tx_hash: str | None
    status: str
    created_at: str

    @classmethod
    def from_orm_instance(cls, tx: Transaction) -> "TransactionResponse":
        return cls(
            id=tx.id,
            job_id=tx.job_id,
            contract_id=tx.contract_id,
            client_id=tx.client_id,
            freelancer_id=tx.freelancer_id,
            amount=tx.amount,
            platform_fee=tx.platform_fee,
            net_amount=tx.net_amount,
            external_tx_hash=tx.external_tx_hash,
            status=tx.status,
            created_at=tx.created_at.isoformat(),
        )


class FeeBreakdown(BaseModel):
    total: Decimal
    platform_fee: Decimal
    freelancer_receives: Decimal
    fee_percentage: str


class EscrowCreatedResponse(BaseModel):
    transaction: TransactionResponse
    fee_breakdown: FeeBreakdown


class EscrowCompletedResponse(BaseModel):
    message: str
    transaction: TransactionResponse
    reward_points: int


# ---------- Endpoints ----------


@router.post("", response_model=EscrowCreatedResponse)
async def create_escrow(
    body: CreateEscrowRequest,
    principal: Principal = Depends(get_principal),
    ledger: Ledger = Depends(get_ledger),
):
    hold = await EscrowService(ledger).create_escrow(
        job_id=body.job_id,
        amount=body.amount,
        principal=principal,
        external_ref=body.pi_payment_id,
    )
    return EscrowCreatedResponse(
        transaction=TransactionResponse.from_orm_instance(hold.transaction),
        fee_breakdown=FeeBreakdown(**hold.split.breakdown()),
    )


@router.get("", response_model=list[TransactionResponse])
async def list_transactions(
    status: TransactionStatus | None = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    query = select(Transaction).where(
        Transaction.is_deleted.is_(False),
        or_(Transaction.client_id == current_user.id, Transaction.freelancer_id == current_user.id),
    )
    if status:
        query = query.where(Transaction.status == status.value)

    result = await db.execute(query.order_by(Transaction.created_at.desc()))
    return [TransactionResponse.from_orm_instance(t) for t in result.scalars().all()]


@router.get("/{transaction_id}", response_model=TransactionResponse)
async def get_transaction(
    transaction_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    ledger: Ledger = Depends(get_ledger),
):
    transaction = await EscrowService(ledger).get_transaction(transaction_id, principal)
    return TransactionResponse.from_orm_instance(transaction)


@router.put("/{transaction_id}/approve", response_model=TransactionResponse)
async def approve_escrow(
    transaction_id: uuid.UUID,
    body: PaymentReferenceRequest,
    principal: Principal = Depends(get_principal),
    ledger: Ledger = Depends(get_ledger),
):
    transaction = await EscrowService(ledger).approve_escrow(
        transaction_id, body.payment_id, principal
    )

    # Server-side approval lets the Pi SDK proceed to blockchain submission
    pi = PiNetworkClient()
    await pi.approve_payment(body.payment_id)

    return TransactionResponse.from_orm_instance(transaction)


@router.put("/{transaction_id}/complete", response_model=EscrowCompletedResponse)
async def complete_escrow(
    transaction_id: uuid.UUID,
    body: CompleteEscrowRequest,
    principal: Principal = Depends(get_principal),
    ledger: Ledger = Depends(get_ledger),
):
    release = await EscrowService(ledger).complete_escrow(transaction_id, body.txid, principal)
    return EscrowCompletedResponse(
        message="Payment released to freelancer",
        transaction=TransactionResponse.from_orm_instance(release.transaction),
        reward_points=release.reward_points,
    )


@router.put("/{transaction_id}/refund", response_model=TransactionResponse)
async def refund_escrow(
    transaction_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    ledger: Ledger = Depends(get_ledger),
):
    transaction = await EscrowService(ledger).refund_escrow(transaction_id, principal)
    return TransactionResponse.from_orm_instance(transaction)
