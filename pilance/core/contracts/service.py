import uuid
from datetime import date

from pilance.common.enums import ContractStatus
from pilance.common.exceptions import InvalidStateError, NotFoundError
from pilance.common.logging import get_logger
from pilance.core.access.policy import Action, Principal, ensure_allowed
from pilance.core.ledger import Ledger
from pilance.db.models import Contract

logger = get_logger("contracts.service")

VALID_TRANSITIONS = {
    ContractStatus.ACTIVE.value: [ContractStatus.COMPLETED.value, ContractStatus.CANCELLED.value],
    ContractStatus.COMPLETED.value: [],
    ContractStatus.CANCELLED.value: [],
}

UNDELETABLE = {ContractStatus.ACTIVE.value, ContractStatus.COMPLETED.value}


class ContractService:
    def __init__(self, ledger: Ledger):
        self.ledger = ledger

    async def get_contract(self, contract_id: uuid.UUID, principal: Principal) -> Contract:
        contract = await self._load(contract_id)
        ensure_allowed(Action.VIEW_CONTRACT, contract, principal)
        return contract

    async def update_contract(
        self,
        contract_id: uuid.UUID,
        principal: Principal,
        status: ContractStatus | None = None,
        end_date: date | None = None,
    ) -> Contract:
        contract = await self._load(contract_id)
        ensure_allowed(Action.UPDATE_CONTRACT, contract, principal)

        async with self.ledger.atomic("Contract update"):
            if status and status.value != contract.status:
                if status.value not in VALID_TRANSITIONS.get(contract.status, []):
                    raise InvalidStateError(
                        f"Cannot transition from '{contract.status}' to '{status.value}'"
                    )
                if not await self.ledger.contracts.transition(contract.id, contract.status, status.value):
                    raise InvalidStateError("Contract was changed by another request")
                logger.info("Contract %s moved to %s by %s", contract.id, status.value, principal.user_id)

            if end_date:
                contract.end_date = end_date
            contract = await self.ledger.contracts.save(contract)

        return contract

    async def delete_contract(self, contract_id: uuid.UUID, principal: Principal) -> None:
        contract = await self._load(contract_id)
        ensure_allowed(Action.DELETE_CONTRACT, contract, principal)

        if contract.status in UNDELETABLE:
            raise InvalidStateError("Cannot delete active or completed contracts")
        if await self.ledger.transactions.get_held_for_contract(contract.id):
            raise InvalidStateError("Refund the escrow held for this contract before deleting it")

        async with self.ledger.atomic("Contract deletion"):
            await self.ledger.contracts.delete(contract)
        logger.info("Contract %s deleted by %s", contract.id, principal.user_id)

    async def _load(self, contract_id: uuid.UUID) -> Contract:
        contract = await self.ledger.contracts.get(contract_id)
        if not contract:
            raise NotFoundError("Contract", str(contract_id))
        return contract
