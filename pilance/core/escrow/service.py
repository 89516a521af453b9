import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from pilance.common.enums import ContractStatus, JobStatus, TransactionStatus, WalletPaymentType
from pilance.common.exceptions import (
    ExternalServiceError,
    InvalidStateError,
    NotFoundError,
    ValidationFailedError,
)
from pilance.common.logging import get_logger
from pilance.core.access.policy import Action, Principal, ensure_allowed
from pilance.core.escrow.fees import EscrowSplit, charge_wallet, reward_points, split_escrow
from pilance.core.ledger import Ledger
from pilance.db.models import Transaction
from pilance.integrations.pi_network import PiNetworkClient

logger = get_logger("escrow.service")


@dataclass
class EscrowHold:
    transaction: Transaction
    split: EscrowSplit


@dataclass
class EscrowRelease:
    transaction: Transaction
    reward_points: int


class EscrowService:
    """Escrow holds against a job: ESCROW_HELD -> COMPLETED | REFUNDED."""

    def __init__(self, ledger: Ledger):
        self.ledger = ledger

    async def create_escrow(
        self,
        job_id: uuid.UUID,
        amount: Decimal,
        principal: Principal,
        external_ref: str | None = None,
    ) -> EscrowHold:
        job = await self.ledger.jobs.get(job_id)
        if not job:
            raise NotFoundError("Job", str(job_id))
        ensure_allowed(Action.FUND_ESCROW, job, principal)

        accepted = await self.ledger.proposals.get_accepted(job_id)
        if not accepted:
            raise InvalidStateError("No accepted proposal for this job")
        if job.status == JobStatus.COMPLETED.value:
            raise InvalidStateError("Job is already completed")
        if await self.ledger.transactions.get_held_for_job(job_id):
            raise InvalidStateError("Job already has funds held in escrow")

        contract = await self.ledger.contracts.get_for_proposal(accepted.id)
        if not contract or contract.status != ContractStatus.ACTIVE.value:
            raise InvalidStateError("Escrow can only be funded for an active contract")
        split = split_escrow(amount)

        async with self.ledger.atomic("Escrow creation"):
            transaction = await self.ledger.transactions.add(
                Transaction(
                    job_id=job_id,
                    contract_id=contract.id,
                    client_id=principal.user_id,
                    freelancer_id=accepted.freelancer_id,
                    amount=split.amount,
                    platform_fee=split.platform_fee,
                    net_amount=split.net_amount,
                    external_tx_hash=external_ref,
                    status=TransactionStatus.ESCROW_HELD.value,
                )
            )

        logger.info(
            "Escrow %s held for job %s: %s gross, %s fee, %s net",
            transaction.id,
            job_id,
            split.amount,
            split.platform_fee,
            split.net_amount,
        )
        return EscrowHold(transaction=transaction, split=split)

    async def approve_escrow(
        self, transaction_id: uuid.UUID, external_ref: str, principal: Principal
    ) -> Transaction:
        """Record the rail's payment reference; the hold stays open."""
        transaction = await self._load(transaction_id)
        ensure_allowed(Action.APPROVE_ESCROW, transaction, principal)

        if transaction.status != TransactionStatus.ESCROW_HELD.value:
            raise InvalidStateError(f"Transaction is already {transaction.status}")
        if not await self.ledger.transactions.record_reference(transaction.id, external_ref):
            raise InvalidStateError("Transaction is no longer held in escrow")

        await self.ledger.refresh(transaction)
        logger.info("Escrow %s approved with reference %s", transaction.id, external_ref)
        return transaction

    async def complete_escrow(
        self, transaction_id: uuid.UUID, external_ref: str, principal: Principal
    ) -> EscrowRelease:
        transaction = await self._load(transaction_id)
        ensure_allowed(Action.COMPLETE_ESCROW, transaction, principal)

        if transaction.status != TransactionStatus.ESCROW_HELD.value:
            raise InvalidStateError("Transaction is not held in escrow")

        async with self.ledger.atomic("Escrow completion"):
            if not await self.ledger.transactions.transition(
                transaction.id,
                TransactionStatus.ESCROW_HELD.value,
                TransactionStatus.COMPLETED.value,
                external_ref=external_ref,
            ):
                raise InvalidStateError("Transaction is not held in escrow")

            if transaction.job_id and not await self.ledger.jobs.transition(
                transaction.job_id, JobStatus.IN_PROGRESS.value, JobStatus.COMPLETED.value
            ):
                logger.warning(
                    "Job %s was not in progress when escrow %s completed",
                    transaction.job_id,
                    transaction.id,
                )

        await self.ledger.refresh(transaction)
        points = reward_points(transaction.amount)
        logger.info("Escrow %s released, %s net to freelancer", transaction.id, transaction.net_amount)
        return EscrowRelease(transaction=transaction, reward_points=points)

    async def refund_escrow(self, transaction_id: uuid.UUID, principal: Principal) -> Transaction:
        transaction = await self._load(transaction_id)
        ensure_allowed(Action.REFUND_ESCROW, transaction, principal)

        if transaction.status != TransactionStatus.ESCROW_HELD.value:
            raise InvalidStateError("Transaction is not held in escrow")
        contract = (
            await self.ledger.contracts.get(transaction.contract_id)
            if transaction.contract_id
            else None
        )
        if not contract or contract.status != ContractStatus.CANCELLED.value:
            raise InvalidStateError("Escrow can only be refunded once the contract is cancelled")

        if not await self.ledger.transactions.transition(
            transaction.id, TransactionStatus.ESCROW_HELD.value, TransactionStatus.REFUNDED.value
        ):
            raise InvalidStateError("Transaction is not held in escrow")

        await self.ledger.refresh(transaction)
        logger.info("Escrow %s refunded to client %s", transaction.id, transaction.client_id)
        return transaction

    async def get_transaction(self, transaction_id: uuid.UUID, principal: Principal) -> Transaction:
        transaction = await self._load(transaction_id)
        ensure_allowed(Action.VIEW_TRANSACTION, transaction, principal)
        return transaction

    async def reconcile_held(self, rail: PiNetworkClient) -> list[str]:
        """Complete holds whose rail payment has settled on chain.

        Runs on behalf of the paying client. A rail failure leaves the hold
        untouched for the next run.
        """
        completed = []
        for transaction in await self.ledger.transactions.list_held_with_reference():
            try:
                payment = await rail.get_payment(transaction.external_tx_hash)
            except ExternalServiceError as e:
                logger.warning("Could not reconcile escrow %s: %s", transaction.id, e.detail)
                continue

            chain_tx = payment.get("transaction") or {}
            if not chain_tx.get("verified") or not chain_tx.get("txid"):
                continue

            client = await self.ledger.users.get(transaction.client_id)
            if not client:
                logger.error("Escrow %s references missing client %s", transaction.id, transaction.client_id)
                continue

            try:
                await self.complete_escrow(
                    transaction.id, chain_tx["txid"], Principal.from_user(client)
                )
            except InvalidStateError:
                # Completed by one of the parties since the listing
                continue
            completed.append(str(transaction.id))

        return completed

    async def _load(self, transaction_id: uuid.UUID) -> Transaction:
        transaction = await self.ledger.transactions.get(transaction_id)
        if not transaction:
            raise NotFoundError("Transaction", str(transaction_id))
        return transaction


def quote_wallet_payment(
    amount: Decimal,
    memo: str,
    payment_type: WalletPaymentType,
    principal: Principal,
    job_id: uuid.UUID | None = None,
) -> dict:
    """Pending wallet payment record for the Pi SDK; nothing is persisted."""
    if not memo.strip():
        raise ValidationFailedError("memo must not be empty")
    charge = charge_wallet(amount)
    breakdown = charge.breakdown()
    return {
        "id": f"wallet_{uuid.uuid4().hex[:16]}",
        "amount": charge.total_amount,
        "original_amount": charge.user_amount,
        "platform_fee": charge.platform_fee,
        "pi_network_fee": charge.pi_network_fee,
        "memo": memo,
        "type": payment_type.value,
        "job_id": job_id,
        "user_id": principal.user_id,
        "status": "pending",
        "created_at": datetime.now(timezone.utc),
        "metadata": {"fee_breakdown": breakdown},
    }
