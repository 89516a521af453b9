"""
Seed script for the PiLance marketplace.

Populates the database with demo users, jobs and proposals, then walks one
job through acceptance, escrow funding and a first milestone using the same
services the API calls. Prints a bearer token per demo user.

Usage:
    python -m pilance.scripts.seed
"""

import asyncio
import uuid
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import select

from pilance.common.enums import UserRole
from pilance.common.security import create_access_token
from pilance.core.access.policy import Principal
from pilance.core.escrow.service import EscrowService
from pilance.core.milestones.service import MilestoneService
from pilance.core.proposals.service import ProposalService
from pilance.db.models import User
from pilance.db.repositories import SqlLedger
from pilance.db.session import async_session_factory


async def main() -> None:
    async with async_session_factory() as session:
        # Guard: skip if already seeded
        result = await session.execute(select(User).where(User.email == "amara@example.com"))
        if result.scalar_one_or_none() is not None:
            print("Database already seeded -- skipping.")
            return

        # ==================================================================
        # USERS
        # ==================================================================
        amara = User(
            id=uuid.uuid4(),
            email="amara@example.com",
            username="amara",
            full_name="Amara Okafor",
            role=UserRole.CLIENT.value,
            is_active=True,
        )
        dev = User(
            id=uuid.uuid4(),
            email="dev.lim@example.com",
            username="devlim",
            full_name="Dev Lim",
            role=UserRole.FREELANCER.value,
            is_active=True,
        )
        rosa = User(
            id=uuid.uuid4(),
            email="rosa@example.com",
            username="rosa_designs",
            full_name="Rosa Alvarez",
            role=UserRole.FREELANCER.value,
            is_active=True,
        )
        users = [amara, dev, rosa]
        session.add_all(users)
        await session.flush()

        ledger = SqlLedger(session)
        proposals = ProposalService(ledger)
        client = Principal.from_user(amara)

        # ==================================================================
        # JOBS & PROPOSALS
        # ==================================================================
        storefront = await proposals.create_job(
            title="Pi-enabled storefront for a coffee roaster",
            description="Small catalogue site that takes payments through the Pi SDK.",
            budget=Decimal("4000"),
            principal=client,
        )
        await proposals.create_job(
            title="Logo refresh",
            description="Modernise an existing logo and deliver an SVG kit.",
            budget=Decimal("350"),
            principal=client,
        )

        winning = await proposals.submit_proposal(
            job_id=storefront.id,
            cover_letter="I have shipped three Pi SDK integrations this year.",
            proposed_rate=Decimal("4200"),
            principal=Principal.from_user(dev),
            duration="6 weeks",
        )
        await proposals.submit_proposal(
            job_id=storefront.id,
            cover_letter="Design-first approach, happy to pair with a developer.",
            proposed_rate=Decimal("3800"),
            principal=Principal.from_user(rosa),
            duration="8 weeks",
        )

        # ==================================================================
        # CONTRACT, ESCROW, MILESTONE
        # ==================================================================
        award = await proposals.accept_proposal(winning.id, client)
        hold = await EscrowService(ledger).create_escrow(storefront.id, Decimal("4200"), client)
        await MilestoneService(ledger).create_milestone(
            contract_id=award.contract.id,
            title="Catalogue and checkout prototype",
            amount=Decimal("1500"),
            principal=client,
            due_date=date.today() + timedelta(weeks=3),
        )

        await session.commit()

        # ==================================================================
        # SUMMARY
        # ==================================================================
        print(
            f"Seeded: {len(users)} users, 2 jobs, 2 proposals, 1 contract, "
            f"escrow {hold.transaction.id} ({hold.split.platform_fee} fee)"
        )
        for user in users:
            token = create_access_token({"sub": str(user.id)}, expires_minutes=60 * 24)
            print(f"  {user.username:<14} {user.role:<11} Bearer {token}")


if __name__ == "__main__":
    asyncio.run(main())
