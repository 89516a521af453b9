import uuid
from datetime import date
from decimal import Decimal

from pilance.common.enums import ContractStatus
from pilance.common.exceptions import InvalidStateError, NotFoundError, ValidationFailedError
from pilance.common.logging import get_logger
from pilance.core.access.policy import Action, Principal, ensure_allowed
from pilance.core.ledger import Ledger
from pilance.db.models import Contract, Milestone

logger = get_logger("milestones.service")


class MilestoneService:
    """Completion and payment gates for contract milestones.

    Only the freelancer marks delivery and only the client marks payment;
    payment is refused until delivery is marked. Marking a milestone paid is
    a payment instruction, it does not move funds by itself.
    """

    def __init__(self, ledger: Ledger):
        self.ledger = ledger

    async def create_milestone(
        self,
        contract_id: uuid.UUID,
        title: str,
        amount: Decimal,
        principal: Principal,
        description: str | None = None,
        due_date: date | None = None,
    ) -> Milestone:
        contract = await self._load_contract(contract_id)
        ensure_allowed(Action.ADD_MILESTONE, contract, principal)

        if contract.status != ContractStatus.ACTIVE.value:
            raise InvalidStateError("Can only add milestones to active contracts")
        if amount <= 0:
            raise ValidationFailedError("amount must be positive")

        milestone = await self.ledger.milestones.add(
            Milestone(
                contract_id=contract.id,
                title=title,
                description=description,
                amount=amount,
                due_date=due_date,
                is_completed=False,
                is_paid=False,
            )
        )
        logger.info("Milestone %s added to contract %s", milestone.id, contract.id)
        return milestone

    async def list_milestones(self, contract_id: uuid.UUID, principal: Principal) -> list[Milestone]:
        contract = await self._load_contract(contract_id)
        ensure_allowed(Action.VIEW_CONTRACT, contract, principal)
        return await self.ledger.milestones.list_for_contract(contract.id)

    async def complete_milestone(self, milestone_id: uuid.UUID, principal: Principal) -> Milestone:
        milestone, contract = await self._load(milestone_id)
        ensure_allowed(Action.COMPLETE_MILESTONE, contract, principal)

        if milestone.is_completed:
            raise InvalidStateError("Milestone already completed")
        if not await self.ledger.milestones.mark_completed(milestone.id):
            raise InvalidStateError("Milestone already completed")

        await self.ledger.refresh(milestone)
        logger.info("Milestone %s marked completed", milestone.id)
        return milestone

    async def pay_milestone(self, milestone_id: uuid.UUID, principal: Principal) -> Milestone:
        milestone, contract = await self._load(milestone_id)
        ensure_allowed(Action.PAY_MILESTONE, contract, principal)

        if not milestone.is_completed:
            raise InvalidStateError("Milestone must be completed before payment")
        if milestone.is_paid:
            raise InvalidStateError("Milestone already paid")
        if not await self.ledger.milestones.mark_paid(milestone.id):
            raise InvalidStateError("Milestone already paid")

        await self.ledger.refresh(milestone)
        logger.info("Milestone %s marked paid (%s)", milestone.id, milestone.amount)
        return milestone

    async def _load_contract(self, contract_id: uuid.UUID) -> Contract:
        contract = await self.ledger.contracts.get(contract_id)
        if not contract:
            raise NotFoundError("Contract", str(contract_id))
        return contract

    async def _load(self, milestone_id: uuid.UUID) -> tuple[Milestone, Contract]:
        milestone = await self.ledger.milestones.get(milestone_id)
        if not milestone:
            raise NotFoundError("Milestone", str(milestone_id))
        contract = await self._load_contract(milestone.contract_id)
        return milestone, contract
