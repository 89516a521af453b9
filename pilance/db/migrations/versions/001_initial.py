"""Initial schema - marketplace, contracts and escrow

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

MONEY = sa.Numeric(20, 7)


def _common_columns() -> list[sa.Column]:
    return [
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("is_deleted", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def _fk(column: str, target: str, **kwargs) -> sa.Column:
    ondelete = kwargs.pop("ondelete", None)
    return sa.Column(
        column,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey(target, ondelete=ondelete),
        **kwargs,
    )


def upgrade() -> None:
    # Users (provisioned by the identity provider)
    op.create_table(
        "users",
        *_common_columns(),
        sa.Column("email", sa.String(255), unique=True, nullable=False, index=True),
        sa.Column("username", sa.String(100), unique=True, nullable=False, index=True),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="client"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("true")),
    )

    # Jobs
    op.create_table(
        "jobs",
        *_common_columns(),
        _fk("client_id", "users.id", nullable=False, index=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("budget", MONEY, nullable=False),
        sa.Column("is_hourly", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("status", sa.String(20), nullable=False, server_default="open", index=True),
    )

    # Proposals
    op.create_table(
        "proposals",
        *_common_columns(),
        _fk("job_id", "jobs.id", nullable=False, index=True),
        _fk("freelancer_id", "users.id", nullable=False, index=True),
        sa.Column("cover_letter", sa.Text, nullable=False),
        sa.Column("proposed_rate", MONEY, nullable=False),
        sa.Column("duration", sa.String(100), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.UniqueConstraint("job_id", "freelancer_id", name="uq_proposals_job_freelancer"),
    )
    op.create_index(
        "uq_proposals_job_accepted",
        "proposals",
        ["job_id"],
        unique=True,
        postgresql_where=sa.text("status = 'accepted'"),
    )

    # Contracts
    op.create_table(
        "contracts",
        *_common_columns(),
        _fk("job_id", "jobs.id", nullable=False, index=True),
        _fk("proposal_id", "proposals.id", nullable=False, unique=True),
        _fk("client_id", "users.id", nullable=False, index=True),
        _fk("freelancer_id", "users.id", nullable=False, index=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("start_date", sa.Date, nullable=False),
        sa.Column("end_date", sa.Date, nullable=True),
    )

    # Milestones
    op.create_table(
        "milestones",
        *_common_columns(),
        _fk("contract_id", "contracts.id", nullable=False, index=True, ondelete="CASCADE"),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("due_date", sa.Date, nullable=True),
        sa.Column("is_completed", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("is_paid", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.CheckConstraint("NOT is_paid OR is_completed", name="ck_milestones_paid_after_completed"),
    )

    # Escrow transactions
    op.create_table(
        "transactions",
        *_common_columns(),
        _fk("job_id", "jobs.id", nullable=False, index=True),
        _fk("contract_id", "contracts.id", nullable=True),
        _fk("client_id", "users.id", nullable=False, index=True),
        _fk("freelancer_id", "users.id", nullable=False, index=True),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("platform_fee", MONEY, nullable=False),
        sa.Column("net_amount", MONEY, nullable=False),
        sa.Column("external_tx_hash", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="escrow_held"),
    )
    op.create_index(
        "uq_transactions_job_held",
        "transactions",
        ["job_id"],
        unique=True,
        postgresql_where=sa.text("status = 'escrow_held'"),
    )

    # Reviews
    op.create_table(
        "reviews",
        *_common_columns(),
        _fk("contract_id", "contracts.id", nullable=False, index=True),
        _fk("giver_id", "users.id", nullable=False),
        _fk("receiver_id", "users.id", nullable=False, index=True),
        sa.Column("rating", sa.Integer, nullable=False),
        sa.Column("comment", sa.Text, nullable=True),
        sa.UniqueConstraint("contract_id", "giver_id", name="uq_reviews_contract_giver"),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating_range"),
    )


def downgrade() -> None:
    op.drop_table("reviews")
    op.drop_index("uq_transactions_job_held", table_name="transactions")
    op.drop_table("transactions")
    op.drop_table("milestones")
    op.drop_table("contracts")
    op.drop_index("uq_proposals_job_accepted", table_name="proposals")
    op.drop_table("proposals")
    op.drop_table("jobs")
    op.drop_table("users")
