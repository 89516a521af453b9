"""SQLAlchemy implementation of the core ledger interfaces."""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pilance.common.enums import ProposalStatus, TransactionStatus
from pilance.common.exceptions import InvalidStateError, ServiceTimeoutError
from pilance.common.logging import get_logger
from pilance.config import settings
from pilance.core.ledger import (
    ContractRepository,
    JobRepository,
    Ledger,
    MilestoneRepository,
    ProposalRepository,
    ReviewRepository,
    TransactionRepository,
    UserRepository,
)
from pilance.db.models import Contract, Job, Milestone, Proposal, Review, Transaction, User

logger = get_logger("db.repositories")


class _SqlRepository:
    model: Any = None

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, entity_id: uuid.UUID):
        result = await self.session.execute(
            select(self.model).where(self.model.id == entity_id, self.model.is_deleted.is_(False))
        )
        return result.scalar_one_or_none()

    async def add(self, entity):
        self.session.add(entity)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def _conditional_update(self, entity_id: uuid.UUID, *criteria, **values) -> bool:
        # Count returned ids; aiosqlite reports rowcount -1 once RETURNING is involved
        result = await self.session.execute(
            update(self.model)
            .where(self.model.id == entity_id, self.model.is_deleted.is_(False), *criteria)
            .values(**values)
            .returning(self.model.id)
            .execution_options(synchronize_session="fetch")
        )
        return len(result.all()) == 1


class SqlUserRepository(_SqlRepository, UserRepository):
    model = User


class SqlJobRepository(_SqlRepository, JobRepository):
    model = Job

    async def transition(self, job_id: uuid.UUID, from_status: str, to_status: str) -> bool:
        return await self._conditional_update(job_id, Job.status == from_status, status=to_status)


class SqlProposalRepository(_SqlRepository, ProposalRepository):
    model = Proposal

    async def find_by_freelancer(
        self, job_id: uuid.UUID, freelancer_id: uuid.UUID
    ) -> Proposal | None:
        result = await self.session.execute(
            select(Proposal).where(
                Proposal.job_id == job_id, Proposal.freelancer_id == freelancer_id
            )
        )
        return result.scalar_one_or_none()

    async def get_accepted(self, job_id: uuid.UUID) -> Proposal | None:
        result = await self.session.execute(
            select(Proposal).where(
                Proposal.job_id == job_id,
                Proposal.status == ProposalStatus.ACCEPTED.value,
                Proposal.is_deleted.is_(False),
            )
        )
        return result.scalar_one_or_none()

    async def transition(
        self, proposal_id: uuid.UUID, from_status: str, to_status: str
    ) -> bool:
        return await self._conditional_update(
            proposal_id, Proposal.status == from_status, status=to_status
        )

    async def reject_pending_except(self, job_id: uuid.UUID, keep_id: uuid.UUID) -> int:
        result = await self.session.execute(
            update(Proposal)
            .where(
                Proposal.job_id == job_id,
                Proposal.id != keep_id,
                Proposal.status == ProposalStatus.PENDING.value,
                Proposal.is_deleted.is_(False),
            )
            .values(status=ProposalStatus.REJECTED.value)
            .returning(Proposal.id)
            .execution_options(synchronize_session="fetch")
        )
        return len(result.all())

    async def update_pending(self, proposal_id: uuid.UUID, **values: Any) -> bool:
        return await self._conditional_update(
            proposal_id, Proposal.status == ProposalStatus.PENDING.value, **values
        )

    async def withdraw(self, proposal_id: uuid.UUID) -> bool:
        return await self._conditional_update(
            proposal_id,
            Proposal.status == ProposalStatus.PENDING.value,
            is_deleted=True,
            deleted_at=datetime.now(timezone.utc),
        )


class SqlContractRepository(_SqlRepository, ContractRepository):
    model = Contract

    async def get_for_proposal(self, proposal_id: uuid.UUID) -> Contract | None:
        result = await self.session.execute(
            select(Contract).where(
                Contract.proposal_id == proposal_id, Contract.is_deleted.is_(False)
            )
        )
        return result.scalar_one_or_none()

    async def transition(
        self, contract_id: uuid.UUID, from_status: str, to_status: str
    ) -> bool:
        return await self._conditional_update(
            contract_id, Contract.status == from_status, status=to_status
        )

    async def save(self, contract: Contract) -> Contract:
        await self.session.flush()
        await self.session.refresh(contract)
        return contract

    async def delete(self, contract: Contract) -> None:
        result = await self.session.execute(
            select(Milestone).where(
                Milestone.contract_id == contract.id, Milestone.is_deleted.is_(False)
            )
        )
        for milestone in result.scalars().all():
            milestone.mark_deleted()
        contract.mark_deleted()
        await self.session.flush()


class SqlMilestoneRepository(_SqlRepository, MilestoneRepository):
    model = Milestone

    async def list_for_contract(self, contract_id: uuid.UUID) -> list[Milestone]:
        result = await self.session.execute(
            select(Milestone)
            .where(Milestone.contract_id == contract_id, Milestone.is_deleted.is_(False))
            .order_by(Milestone.created_at.asc())
        )
        return list(result.scalars().all())

    async def mark_completed(self, milestone_id: uuid.UUID) -> bool:
        return await self._conditional_update(
            milestone_id, Milestone.is_completed.is_(False), is_completed=True
        )

    async def mark_paid(self, milestone_id: uuid.UUID) -> bool:
        return await self._conditional_update(
            milestone_id,
            Milestone.is_completed.is_(True),
            Milestone.is_paid.is_(False),
            is_paid=True,
        )


class SqlTransactionRepository(_SqlRepository, TransactionRepository):
    model = Transaction

    async def get_held_for_job(self, job_id: uuid.UUID) -> Transaction | None:
        result = await self.session.execute(
            select(Transaction).where(
                Transaction.job_id == job_id,
                Transaction.status == TransactionStatus.ESCROW_HELD.value,
                Transaction.is_deleted.is_(False),
            )
        )
        return result.scalar_one_or_none()

    async def get_held_for_contract(self, contract_id: uuid.UUID) -> Transaction | None:
        result = await self.session.execute(
            select(Transaction).where(
                Transaction.contract_id == contract_id,
                Transaction.status == TransactionStatus.ESCROW_HELD.value,
                Transaction.is_deleted.is_(False),
            )
        )
        return result.scalars().first()

    async def list_held_with_reference(self) -> list[Transaction]:
        result = await self.session.execute(
            select(Transaction)
            .where(
                Transaction.status == TransactionStatus.ESCROW_HELD.value,
                Transaction.external_tx_hash.is_not(None),
                Transaction.is_deleted.is_(False),
            )
            .order_by(Transaction.created_at.asc())
        )
        return list(result.scalars().all())

    async def record_reference(self, transaction_id: uuid.UUID, external_ref: str) -> bool:
        return await self._conditional_update(
            transaction_id,
            Transaction.status == TransactionStatus.ESCROW_HELD.value,
            external_tx_hash=external_ref,
        )

    async def transition(
        self,
        transaction_id: uuid.UUID,
        from_status: str,
        to_status: str,
        external_ref: str | None = None,
    ) -> bool:
        values: dict[str, Any] = {"status": to_status}
        if external_ref is not None:
            values["external_tx_hash"] = external_ref
        return await self._conditional_update(
            transaction_id, Transaction.status == from_status, **values
        )


class SqlReviewRepository(_SqlRepository, ReviewRepository):
    model = Review

    async def find(self, contract_id: uuid.UUID, giver_id: uuid.UUID) -> Review | None:
        result = await self.session.execute(
            select(Review).where(
                Review.contract_id == contract_id,
                Review.giver_id == giver_id,
                Review.is_deleted.is_(False),
            )
        )
        return result.scalar_one_or_none()


class SqlLedger(Ledger):
    def __init__(self, session: AsyncSession):
        self.session = session
        self.users = SqlUserRepository(session)
        self.jobs = SqlJobRepository(session)
        self.proposals = SqlProposalRepository(session)
        self.contracts = SqlContractRepository(session)
        self.milestones = SqlMilestoneRepository(session)
        self.transactions = SqlTransactionRepository(session)
        self.reviews = SqlReviewRepository(session)

    @asynccontextmanager
    async def atomic(self, operation: str) -> AsyncIterator[None]:
        try:
            async with asyncio.timeout(settings.TRANSACTION_TIMEOUT_SECONDS):
                async with self.session.begin_nested():
                    yield
        except TimeoutError as e:
            logger.warning("%s exceeded %.1fs and was rolled back", operation, settings.TRANSACTION_TIMEOUT_SECONDS)
            raise ServiceTimeoutError(operation) from e
        except IntegrityError as e:
            logger.warning("%s rejected by a unique constraint: %s", operation, e.orig)
            raise InvalidStateError(f"{operation} conflicts with a concurrent change") from e

    async def refresh(self, entity: Any) -> None:
        await self.session.refresh(entity)
