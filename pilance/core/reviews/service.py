import uuid

from pilance.common.enums import ContractStatus
from pilance.common.exceptions import InvalidStateError, NotFoundError, ValidationFailedError
from pilance.core.access.policy import Action, Principal, ensure_allowed
from pilance.core.ledger import Ledger
from pilance.db.models import Review


class ReviewService:
    def __init__(self, ledger: Ledger):
        self.ledger = ledger

    async def create_review(
        self,
        contract_id: uuid.UUID,
        rating: int,
        principal: Principal,
        comment: str | None = None,
    ) -> Review:
        contract = await self.ledger.contracts.get(contract_id)
        if not contract:
            raise NotFoundError("Contract", str(contract_id))
        ensure_allowed(Action.REVIEW_CONTRACT, contract, principal)

        if not 1 <= rating <= 5:
            raise ValidationFailedError("rating must be between 1 and 5")
        if contract.status != ContractStatus.COMPLETED.value:
            raise InvalidStateError("Can only review completed contracts")
        if await self.ledger.reviews.find(contract.id, principal.user_id):
            raise InvalidStateError("You have already reviewed this contract")

        # The receiver is always the other party
        receiver_id = (
            contract.freelancer_id if principal.user_id == contract.client_id else contract.client_id
        )
        async with self.ledger.atomic("Review creation"):
            review = await self.ledger.reviews.add(
                Review(
                    contract_id=contract.id,
                    giver_id=principal.user_id,
                    receiver_id=receiver_id,
                    rating=rating,
                    comment=comment,
                )
            )
        return review
