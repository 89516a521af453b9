"""Storage interfaces used by the core services.

Services never touch a session directly; they receive a ``Ledger`` that
bundles one repository per entity plus an ``atomic()`` unit-of-work scope.
``pilance.db.repositories.SqlLedger`` is the production implementation.

Status transitions are expressed as conditional moves (``transition`` returns
False when the row was not in the expected state) so that two concurrent
requests can never both win the same transition.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Any

from pilance.db.models import Contract, Job, Milestone, Proposal, Review, Transaction, User


class UserRepository(ABC):
    @abstractmethod
    async def get(self, user_id: uuid.UUID) -> User | None: ...


class JobRepository(ABC):
    @abstractmethod
    async def get(self, job_id: uuid.UUID) -> Job | None: ...

    @abstractmethod
    async def add(self, job: Job) -> Job: ...

    @abstractmethod
    async def transition(self, job_id: uuid.UUID, from_status: str, to_status: str) -> bool: ...


class ProposalRepository(ABC):
    @abstractmethod
    async def get(self, proposal_id: uuid.UUID) -> Proposal | None: ...

    @abstractmethod
    async def add(self, proposal: Proposal) -> Proposal: ...

    @abstractmethod
    async def find_by_freelancer(
        self, job_id: uuid.UUID, freelancer_id: uuid.UUID
    ) -> Proposal | None:
        """Includes withdrawn proposals; a freelancer bids once per job."""

    @abstractmethod
    async def get_accepted(self, job_id: uuid.UUID) -> Proposal | None: ...

    @abstractmethod
    async def transition(
        self, proposal_id: uuid.UUID, from_status: str, to_status: str
    ) -> bool: ...

    @abstractmethod
    async def reject_pending_except(self, job_id: uuid.UUID, keep_id: uuid.UUID) -> int:
        """Reject every other pending proposal on the job; return how many."""

    @abstractmethod
    async def update_pending(self, proposal_id: uuid.UUID, **values: Any) -> bool:
        """Apply the edits only while the proposal is still pending."""

    @abstractmethod
    async def withdraw(self, proposal_id: uuid.UUID) -> bool:
        """Soft-delete the proposal only while it is still pending."""


class ContractRepository(ABC):
    @abstractmethod
    async def get(self, contract_id: uuid.UUID) -> Contract | None: ...

    @abstractmethod
    async def get_for_proposal(self, proposal_id: uuid.UUID) -> Contract | None: ...

    @abstractmethod
    async def add(self, contract: Contract) -> Contract: ...

    @abstractmethod
    async def transition(
        self, contract_id: uuid.UUID, from_status: str, to_status: str
    ) -> bool: ...

    @abstractmethod
    async def save(self, contract: Contract) -> Contract: ...

    @abstractmethod
    async def delete(self, contract: Contract) -> None:
        """Soft-delete the contract together with its milestones."""


class MilestoneRepository(ABC):
    @abstractmethod
    async def get(self, milestone_id: uuid.UUID) -> Milestone | None: ...

    @abstractmethod
    async def add(self, milestone: Milestone) -> Milestone: ...

    @abstractmethod
    async def list_for_contract(self, contract_id: uuid.UUID) -> list[Milestone]: ...

    @abstractmethod
    async def mark_completed(self, milestone_id: uuid.UUID) -> bool:
        """Set is_completed only if it is currently false."""

    @abstractmethod
    async def mark_paid(self, milestone_id: uuid.UUID) -> bool:
        """Set is_paid only if the milestone is completed and not yet paid."""


class TransactionRepository(ABC):
    @abstractmethod
    async def get(self, transaction_id: uuid.UUID) -> Transaction | None: ...

    @abstractmethod
    async def add(self, transaction: Transaction) -> Transaction: ...

    @abstractmethod
    async def get_held_for_job(self, job_id: uuid.UUID) -> Transaction | None: ...

    @abstractmethod
    async def get_held_for_contract(self, contract_id: uuid.UUID) -> Transaction | None: ...

    @abstractmethod
    async def list_held_with_reference(self) -> list[Transaction]: ...

    @abstractmethod
    async def record_reference(self, transaction_id: uuid.UUID, external_ref: str) -> bool:
        """Attach the rail reference while the hold is still open."""

    @abstractmethod
    async def transition(
        self,
        transaction_id: uuid.UUID,
        from_status: str,
        to_status: str,
        external_ref: str | None = None,
    ) -> bool: ...


class ReviewRepository(ABC):
    @abstractmethod
    async def find(self, contract_id: uuid.UUID, giver_id: uuid.UUID) -> Review | None: ...

    @abstractmethod
    async def add(self, review: Review) -> Review: ...


class Ledger(ABC):
    users: UserRepository
    jobs: JobRepository
    proposals: ProposalRepository
    contracts: ContractRepository
    milestones: MilestoneRepository
    transactions: TransactionRepository
    reviews: ReviewRepository

    @abstractmethod
    def atomic(self, operation: str) -> AbstractAsyncContextManager[None]:
        """All-or-nothing scope for a multi-row change, bounded in time."""

    @abstractmethod
    async def refresh(self, entity: Any) -> None:
        """Reload an entity's state after conditional updates."""
