import uuid

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pilance.api.deps import get_current_user, get_db, get_ledger, get_principal
from pilance.core.access.policy import Principal
from pilance.core.ledger import Ledger
from pilance.core.reviews.service import ReviewService
from pilance.db.models import Review, User

router = APIRouter(tags=["Reviews"])


# ---------- Schemas ----------


class ReviewCreateRequest(BaseModel):
    contract_id: uuid.UUID
    rating: int = Field(..., ge=1, le=5)
    comment: str | None = None


class ReviewResponse(BaseModel):
    id: uuid.UUID
    contract_id: uuid.UUID
    giver_id: uuid.UUID
    receiver_id: uuid.UUID
    rating: int
    comment: str | None
    created_at: str

    @classmethod
    def from_orm_instance(cls, review: Review) -> "ReviewResponse":
        return cls(
            id=review.id,
            contract_id=review.contract_id,
            giver_id=review.giver_id,
            receiver_id=review.receiver_id,
            rating=review.rating,
            comment=review.comment,
            created_at=review.created_at.isoformat(),
        )


class ReviewListResponse(BaseModel):
    reviews: list[ReviewResponse]
    total: int
    average_rating: float | None


# ---------- Endpoints ----------


@router.post("/reviews", response_model=ReviewResponse, status_code=201)
async def create_review(
    body: ReviewCreateRequest,
    principal: Principal = Depends(get_principal),
    ledger: Ledger = Depends(get_ledger),
):
    review = await ReviewService(ledger).create_review(
        contract_id=body.contract_id,
        rating=body.rating,
        principal=principal,
        comment=body.comment,
    )
    return ReviewResponse.from_orm_instance(review)


@router.get("/users/{user_id}/reviews", response_model=ReviewListResponse)
async def list_reviews(
    user_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Review)
        .where(Review.receiver_id == user_id, Review.is_deleted.is_(False))
        .order_by(Review.created_at.desc())
    )
    reviews = result.scalars().all()
    average = (
        await db.execute(
            select(func.avg(Review.rating)).where(
                Review.receiver_id == user_id, Review.is_deleted.is_(False)
            )
        )
    ).scalar()
    return ReviewListResponse(
        reviews=[ReviewResponse.from_orm_instance(r) for r in reviews],
        total=len(reviews),
        average_rating=round(float(average), 2) if average is not None else None,
    )
