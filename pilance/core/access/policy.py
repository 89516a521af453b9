"""Who may perform which lifecycle action on which resource.

Every mutating service call runs ``ensure_allowed`` after loading the
resource and before looking at its status, so a caller without access only
ever learns that the resource exists.
"""

from __future__ import annotations

import enum
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pilance.common.enums import UserRole
from pilance.common.exceptions import PermissionDeniedError


@dataclass(frozen=True)
class Principal:
    user_id: uuid.UUID
    role: str

    @classmethod
    def from_user(cls, user: Any) -> Principal:
        return cls(user_id=user.id, role=UserRole(user.role).value)


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.allowed


class Action(str, enum.Enum):
    POST_JOB = "post_job"
    SUBMIT_PROPOSAL = "submit_proposal"
    VIEW_PROPOSAL = "view_proposal"
    EDIT_PROPOSAL = "edit_proposal"
    WITHDRAW_PROPOSAL = "withdraw_proposal"
    ACCEPT_PROPOSAL = "accept_proposal"
    REJECT_PROPOSAL = "reject_proposal"
    FUND_ESCROW = "fund_escrow"
    APPROVE_ESCROW = "approve_escrow"
    COMPLETE_ESCROW = "complete_escrow"
    REFUND_ESCROW = "refund_escrow"
    VIEW_TRANSACTION = "view_transaction"
    VIEW_CONTRACT = "view_contract"
    UPDATE_CONTRACT = "update_contract"
    DELETE_CONTRACT = "delete_contract"
    ADD_MILESTONE = "add_milestone"
    COMPLETE_MILESTONE = "complete_milestone"
    PAY_MILESTONE = "pay_milestone"
    REVIEW_CONTRACT = "review_contract"


ALLOW = Decision(True)


def _has_role(role: UserRole, reason: str) -> Callable[[Any, Principal], Decision]:
    def rule(resource: Any, principal: Principal) -> Decision:
        if principal.role != role.value:
            return Decision(False, reason)
        return ALLOW

    return rule


def _owned_via(attr: str, reason: str) -> Callable[[Any, Principal], Decision]:
    def rule(resource: Any, principal: Principal) -> Decision:
        if getattr(resource, attr) != principal.user_id:
            return Decision(False, reason)
        return ALLOW

    return rule


def _is_party(reason: str) -> Callable[[Any, Principal], Decision]:
    def rule(resource: Any, principal: Principal) -> Decision:
        if principal.user_id not in (resource.client_id, resource.freelancer_id):
            return Decision(False, reason)
        return ALLOW

    return rule


def _can_bid(job: Any, principal: Principal) -> Decision:
    if principal.role != UserRole.FREELANCER.value:
        return Decision(False, "Only freelancers can submit proposals")
    if job.client_id == principal.user_id:
        return Decision(False, "You cannot bid on your own job")
    return ALLOW


def _can_view_proposal(resource: tuple[Any, Any], principal: Principal) -> Decision:
    proposal, job = resource
    if principal.user_id in (proposal.freelancer_id, job.client_id):
        return ALLOW
    return Decision(False, "You do not have access to this proposal")


_RULES: dict[Action, Callable[[Any, Principal], Decision]] = {
    Action.POST_JOB: _has_role(UserRole.CLIENT, "Only clients can post jobs"),
    Action.SUBMIT_PROPOSAL: _can_bid,
    Action.VIEW_PROPOSAL: _can_view_proposal,
    Action.EDIT_PROPOSAL: _owned_via("freelancer_id", "Only the proposal author can edit it"),
    Action.WITHDRAW_PROPOSAL: _owned_via("freelancer_id", "Only the proposal author can withdraw it"),
    Action.ACCEPT_PROPOSAL: _owned_via("client_id", "Only the job owner can accept proposals"),
    Action.REJECT_PROPOSAL: _owned_via("client_id", "Only the job owner can reject proposals"),
    Action.FUND_ESCROW: _owned_via("client_id", "Only the job client can create a payment"),
    Action.APPROVE_ESCROW: _is_party("You are not a party to this transaction"),
    Action.COMPLETE_ESCROW: _is_party("You are not a party to this transaction"),
    Action.REFUND_ESCROW: _owned_via("client_id", "Only the paying client can request a refund"),
    Action.VIEW_TRANSACTION: _is_party("You are not a party to this transaction"),
    Action.VIEW_CONTRACT: _is_party("You are not a party to this contract"),
    Action.UPDATE_CONTRACT: _is_party("You are not a party to this contract"),
    Action.DELETE_CONTRACT: _is_party("You are not a party to this contract"),
    Action.ADD_MILESTONE: _is_party("You are not a party to this contract"),
    Action.COMPLETE_MILESTONE: _owned_via("freelancer_id", "Only the freelancer can complete milestones"),
    Action.PAY_MILESTONE: _owned_via("client_id", "Only the client can pay milestones"),
    Action.REVIEW_CONTRACT: _is_party("You are not part of this contract"),
}


def authorize(action: Action, resource: Any, principal: Principal) -> Decision:
    return _RULES[action](resource, principal)


def ensure_allowed(action: Action, resource: Any, principal: Principal) -> None:
    decision = authorize(action, resource, principal)
    if not decision:
        raise PermissionDeniedError(decision.reason)
