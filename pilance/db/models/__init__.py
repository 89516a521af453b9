from pilance.db.models.contract import Contract
from pilance.db.models.job import Job
from pilance.db.models.milestone import Milestone
from pilance.db.models.proposal import Proposal
from pilance.db.models.review import Review
from pilance.db.models.transaction import Transaction
from pilance.db.models.user import User

__all__ = [
    "Contract",
    "Job",
    "Milestone",
    "Proposal",
    "Review",
    "Transaction",
    "User",
]
