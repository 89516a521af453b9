import uuid
from decimal import Decimal

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from pilance.common.enums import ProposalStatus
from pilance.db.base import BaseModel, Money


class Proposal(BaseModel):
    __tablename__ = "proposals"
    __table_args__ = (
        UniqueConstraint("job_id", "freelancer_id", name="uq_proposals_job_freelancer"),
        # At most one accepted proposal per job
        Index(
            "uq_proposals_job_accepted",
            "job_id",
            unique=True,
            postgresql_where=text("status = 'accepted'"),
            sqlite_where=text("status = 'accepted'"),
        ),
    )

    job_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("jobs.id"), nullable=False, index=True
    )
    freelancer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    cover_letter: Mapped[str] = mapped_column(Text, nullable=False)
    proposed_rate: Mapped[Decimal] = mapped_column(Money, nullable=False)
    duration: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[ProposalStatus] = mapped_column(
        String(20), nullable=False, default=ProposalStatus.PENDING
    )
