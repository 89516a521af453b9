"""Job intake and proposal resolution."""

import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from pilance.common.enums import ContractStatus, JobStatus, ProposalStatus
from pilance.common.exceptions import InvalidStateError, NotFoundError, ValidationFailedError
from pilance.common.logging import get_logger
from pilance.core.access.policy import Action, Principal, ensure_allowed
from pilance.core.ledger import Ledger
from pilance.db.models import Contract, Job, Proposal, User

logger = get_logger("proposals.service")


@dataclass
class ContractAward:
    contract: Contract
    freelancer: User | None


class ProposalService:
    def __init__(self, ledger: Ledger):
        self.ledger = ledger

    async def create_job(
        self,
        title: str,
        description: str,
        budget: Decimal,
        principal: Principal,
        is_hourly: bool = False,
    ) -> Job:
        ensure_allowed(Action.POST_JOB, None, principal)
        if budget <= 0:
            raise ValidationFailedError("budget must be positive")

        job = await self.ledger.jobs.add(
            Job(
                client_id=principal.user_id,
                title=title,
                description=description,
                budget=budget,
                is_hourly=is_hourly,
                status=JobStatus.OPEN.value,
            )
        )
        logger.info("Job %s posted by %s", job.id, principal.user_id)
        return job

    async def submit_proposal(
        self,
        job_id: uuid.UUID,
        cover_letter: str,
        proposed_rate: Decimal,
        principal: Principal,
        duration: str | None = None,
    ) -> Proposal:
        job = await self.ledger.jobs.get(job_id)
        if not job:
            raise NotFoundError("Job", str(job_id))
        ensure_allowed(Action.SUBMIT_PROPOSAL, job, principal)

        if proposed_rate <= 0:
            raise ValidationFailedError("proposed_rate must be positive")
        if job.status != JobStatus.OPEN.value:
            raise InvalidStateError("Job is no longer open")
        if await self.ledger.proposals.find_by_freelancer(job_id, principal.user_id):
            raise InvalidStateError("You have already submitted a proposal for this job")

        async with self.ledger.atomic("Proposal submission"):
            proposal = await self.ledger.proposals.add(
                Proposal(
                    job_id=job_id,
                    freelancer_id=principal.user_id,
                    cover_letter=cover_letter,
                    proposed_rate=proposed_rate,
                    duration=duration,
                    status=ProposalStatus.PENDING.value,
                )
            )
        return proposal

    async def get_proposal(self, proposal_id: uuid.UUID, principal: Principal) -> Proposal:
        proposal, job = await self._load(proposal_id)
        ensure_allowed(Action.VIEW_PROPOSAL, (proposal, job), principal)
        return proposal

    async def update_proposal(
        self,
        proposal_id: uuid.UUID,
        principal: Principal,
        cover_letter: str | None = None,
        proposed_rate: Decimal | None = None,
        duration: str | None = None,
    ) -> Proposal:
        proposal, _ = await self._load(proposal_id)
        ensure_allowed(Action.EDIT_PROPOSAL, proposal, principal)

        if proposal.status != ProposalStatus.PENDING.value:
            raise InvalidStateError(f"Cannot edit a proposal that is already {proposal.status}")
        if proposed_rate is not None and proposed_rate <= 0:
            raise ValidationFailedError("proposed_rate must be positive")

        changes = {
            key: value
            for key, value in (
                ("cover_letter", cover_letter),
                ("proposed_rate", proposed_rate),
                ("duration", duration),
            )
            if value is not None
        }
        if changes and not await self.ledger.proposals.update_pending(proposal.id, **changes):
            raise InvalidStateError("Proposal is no longer pending")

        await self.ledger.refresh(proposal)
        return proposal

    async def withdraw_proposal(self, proposal_id: uuid.UUID, principal: Principal) -> None:
        """Pull a pending bid; the freelancer cannot bid on the same job again."""
        proposal, job = await self._load(proposal_id)
        ensure_allowed(Action.WITHDRAW_PROPOSAL, proposal, principal)

        if proposal.status != ProposalStatus.PENDING.value:
            raise InvalidStateError("Only pending proposals can be withdrawn")
        if not await self.ledger.proposals.withdraw(proposal.id):
            raise InvalidStateError("Proposal is no longer pending")
        logger.info("Proposal %s on job %s withdrawn by %s", proposal.id, job.id, principal.user_id)

    async def accept_proposal(self, proposal_id: uuid.UUID, principal: Principal) -> ContractAward:
        """Accept one proposal, reject its siblings and open the contract.

        The four writes share one unit of work; the proposal and job moves are
        conditional, so a concurrent acceptance on the same job fails with
        InvalidStateError instead of producing a second contract.
        """
        proposal, job = await self._load(proposal_id)
        ensure_allowed(Action.ACCEPT_PROPOSAL, job, principal)

        if proposal.status != ProposalStatus.PENDING.value:
            raise InvalidStateError(f"Proposal is already {proposal.status}")
        if job.status != JobStatus.OPEN.value:
            raise InvalidStateError("Job is no longer open")

        async with self.ledger.atomic("Proposal acceptance"):
            if not await self.ledger.proposals.transition(
                proposal.id, ProposalStatus.PENDING.value, ProposalStatus.ACCEPTED.value
            ):
                raise InvalidStateError("Proposal is no longer pending")

            rejected = await self.ledger.proposals.reject_pending_except(job.id, proposal.id)

            if not await self.ledger.jobs.transition(
                job.id, JobStatus.OPEN.value, JobStatus.IN_PROGRESS.value
            ):
                raise InvalidStateError("Job is no longer open")

            contract = await self.ledger.contracts.add(
                Contract(
                    job_id=job.id,
                    proposal_id=proposal.id,
                    client_id=job.client_id,
                    freelancer_id=proposal.freelancer_id,
                    title=job.title,
                    description=job.description,
                    amount=proposal.proposed_rate,
                    start_date=date.today(),
                    status=ContractStatus.ACTIVE.value,
                )
            )

        await self.ledger.refresh(proposal)
        await self.ledger.refresh(job)
        logger.info(
            "Proposal %s accepted for job %s (%d competing proposals rejected), contract %s opened",
            proposal.id,
            job.id,
            rejected,
            contract.id,
        )
        freelancer = await self.ledger.users.get(proposal.freelancer_id)
        return ContractAward(contract=contract, freelancer=freelancer)

    async def reject_proposal(self, proposal_id: uuid.UUID, principal: Principal) -> Proposal:
        proposal, job = await self._load(proposal_id)
        ensure_allowed(Action.REJECT_PROPOSAL, job, principal)

        if proposal.status == ProposalStatus.REJECTED.value:
            raise InvalidStateError("Proposal is already rejected")
        if proposal.status == ProposalStatus.ACCEPTED.value:
            raise InvalidStateError("Cannot reject an accepted proposal")

        if not await self.ledger.proposals.transition(
            proposal.id, ProposalStatus.PENDING.value, ProposalStatus.REJECTED.value
        ):
            raise InvalidStateError("Proposal is no longer pending")

        await self.ledger.refresh(proposal)
        logger.info("Proposal %s rejected by %s", proposal.id, principal.user_id)
        return proposal

    async def _load(self, proposal_id: uuid.UUID) -> tuple[Proposal, Job]:
        proposal = await self.ledger.proposals.get(proposal_id)
        if not proposal:
            raise NotFoundError("Proposal", str(proposal_id))
        job = await self.ledger.jobs.get(proposal.job_id)
        if not job:
            raise NotFoundError("Job", str(proposal.job_id))
        return proposal, job
