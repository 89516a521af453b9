import uuid
from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from pilance.api.deps import get_principal
from pilance.common.enums import WalletPaymentType
from pilance.core.access.policy import Principal
from pilance.core.escrow.service import quote_wallet_payment

router = APIRouter(prefix="/wallet", tags=["Wallet"])


# ---------- Schemas ----------


class WalletPaymentRequest(BaseModel):
    amount: Decimal = Field(..., ge=Decimal("0.01"))
    memo: str = Field(..., min_length=1, max_length=255)
    type: WalletPaymentType
    job_id: uuid.UUID | None = None


class WalletFeeBreakdown(BaseModel):
    user_amount: Decimal
    platform_fee: Decimal
    pi_network_fee: Decimal
    total_amount: Decimal


class WalletPaymentMetadata(BaseModel):
    fee_breakdown: WalletFeeBreakdown


class WalletPaymentResponse(BaseModel):
    id: str
    amount: Decimal
    original_amount: Decimal
    platform_fee: Decimal
    pi_network_fee: Decimal
    memo: str
    type: str
    job_id: uuid.UUID | None
    user_id: uuid.UUID
    status: str
    created_at: datetime
    metadata: WalletPaymentMetadata


# ---------- Endpoints ----------


@router.post("/payments", response_model=WalletPaymentResponse)
async def create_wallet_payment(
    body: WalletPaymentRequest,
    principal: Principal = Depends(get_principal),
):
    """Quote a wallet payment; the client SDK submits it to the Pi network."""
    return quote_wallet_payment(
        amount=body.amount,
        memo=body.memo,
        payment_type=body.type,
        principal=principal,
        job_id=body.job_id,
    )
