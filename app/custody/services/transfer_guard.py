"""Authorization and eligibility checks for transfer operations.

Everything here is a pure function of the transfer, the actor and the
supplied evidence: no database access and no mutation. The HTTP layer and
any client-side permission tables derive from these rules.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Protocol

from app.custody.db.models import TransferStatus
from app.custody.services.transfer_rules import Transition, rule_for


class TransferView(Protocol):
    status: TransferStatus
    from_office_id: str
    to_office_id: str


@dataclass(frozen=True)
class Actor:
    user_id: str
    role: str | None
    office_id: str | None
    is_org_admin: bool = False
    is_store_operator: bool = False

    def in_office(self, office_id: str | None) -> bool:
        return bool(self.office_id) and self.office_id == office_id


class DenialReason(str, enum.Enum):
    NOT_AUTHORIZED = "NOT_AUTHORIZED"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    MISSING_EVIDENCE = "MISSING_EVIDENCE"


@dataclass(frozen=True)
class GuardDecision:
    allowed: bool
    reason: DenialReason | None = None
    message: str | None = None


ALLOWED = GuardDecision(allowed=True)


def _deny(reason: DenialReason, message: str) -> GuardDecision:
    return GuardDecision(allowed=False, reason=reason, message=message)


def is_authorized(transfer: TransferView, transition: Transition, actor: Actor) -> bool:
    if actor.is_org_admin:
        return True
    if transition in (Transition.APPROVE, Transition.REJECT, Transition.RECEIVE_AT_DEST):
        return actor.in_office(transfer.to_office_id)
    if transition in (Transition.DISPATCH_TO_STORE, Transition.CANCEL):
        return actor.in_office(transfer.from_office_id) or actor.is_store_operator
    if transition in (Transition.RECEIVE_AT_STORE, Transition.DISPATCH_TO_DEST):
        return actor.is_store_operator
    return False


def allow(
    transfer: TransferView,
    transition: Transition | str,
    actor: Actor,
    evidence: str | None = None,
) -> GuardDecision:
    transition = Transition(transition)
    if not is_authorized(transfer, transition, actor):
        return _deny(DenialReason.NOT_AUTHORIZED, f"actor may not {transition.value} this transfer")
    rule = rule_for(transition)
    if transfer.status not in rule.sources:
        return _deny(
            DenialReason.INVALID_TRANSITION,
            f"cannot {transition.value} a transfer in status {transfer.status.value}",
        )
    if rule.requires_evidence and not evidence:
        return _deny(DenialReason.MISSING_EVIDENCE, f"{rule.evidence_field} is required")
    return ALLOWED


def can_read(transfer: TransferView, actor: Actor) -> bool:
    if actor.is_org_admin or actor.is_store_operator:
        return True
    return actor.in_office(transfer.from_office_id) or actor.in_office(transfer.to_office_id)


def can_read_office(office_id: str, actor: Actor) -> bool:
    return actor.is_org_admin or actor.is_store_operator or actor.in_office(office_id)


def can_create(from_office_id: str, to_office_id: str, actor: Actor) -> bool:
    return actor.is_org_admin or actor.in_office(from_office_id) or actor.in_office(to_office_id)


def can_delete(transfer: TransferView, actor: Actor) -> bool:
    return actor.is_org_admin or actor.in_office(transfer.from_office_id)
