import enum


class UserRole(str, enum.Enum):
    CLIENT = "client"
    FREELANCER = "freelancer"


class JobStatus(str, enum.Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ProposalStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ContractStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TransactionStatus(str, enum.Enum):
    ESCROW_HELD = "escrow_held"
    COMPLETED = "completed"
    REFUNDED = "refunded"


class PaymentChannel(str, enum.Enum):
    JOB_ESCROW = "job_escrow"
    WALLET = "wallet"


class WalletPaymentType(str, enum.Enum):
    JOB_PAYMENT = "job_payment"
    MILESTONE_PAYMENT = "milestone_payment"
    BONUS = "bonus"
    TIP = "tip"
    FEE = "fee"
