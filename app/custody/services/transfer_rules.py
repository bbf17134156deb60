"""Transfer lifecycle table.

Every status change a transfer can undergo is listed in ``TRANSITION_RULES``;
nothing else in the service is allowed to move ``Transfer.status``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from app.custody.db.models import TransferStatus


class Transition(str, enum.Enum):
    APPROVE = "approve"
    DISPATCH_TO_STORE = "dispatch_to_store"
    RECEIVE_AT_STORE = "receive_at_store"
    DISPATCH_TO_DEST = "dispatch_to_dest"
    RECEIVE_AT_DEST = "receive_at_dest"
    REJECT = "reject"
    CANCEL = "cancel"


class HolderEffect(str, enum.Enum):
    NONE = "NONE"
    SNAPSHOT = "SNAPSHOT"
    TO_STORE = "TO_STORE"
    TO_DESTINATION = "TO_DESTINATION"
    RESTORE = "RESTORE"


@dataclass(frozen=True)
class TransitionRule:
    transition: Transition
    sources: frozenset[TransferStatus]
    target: TransferStatus
    stamp: str
    evidence_field: str | None = None
    evidence_office_field: str | None = None
    holder_effect: HolderEffect = HolderEffect.NONE

    @property
    def requires_evidence(self) -> bool:
        return self.evidence_field is not None


TERMINAL_STATUSES = frozenset(
    {TransferStatus.RECEIVED_AT_DEST, TransferStatus.REJECTED, TransferStatus.CANCELLED}
)
OPEN_STATUSES = frozenset(set(TransferStatus) - TERMINAL_STATUSES)
# Statuses in which the transfer has moved the item's holder pointer to the store.
STORE_HELD_STATUSES = frozenset({TransferStatus.RECEIVED_AT_STORE, TransferStatus.DISPATCHED_TO_DEST})


TRANSITION_RULES: dict[Transition, TransitionRule] = {
    Transition.APPROVE: TransitionRule(
        transition=Transition.APPROVE,
        sources=frozenset({TransferStatus.REQUESTED}),
        target=TransferStatus.APPROVED,
        stamp="approved",
        holder_effect=HolderEffect.SNAPSHOT,
    ),
    Transition.DISPATCH_TO_STORE: TransitionRule(
        transition=Transition.DISPATCH_TO_STORE,
        sources=frozenset({TransferStatus.APPROVED}),
        target=TransferStatus.DISPATCHED_TO_STORE,
        stamp="dispatched",
        evidence_field="handover_document_id",
        evidence_office_field="from_office_id",
    ),
    Transition.RECEIVE_AT_STORE: TransitionRule(
        transition=Transition.RECEIVE_AT_STORE,
        sources=frozenset({TransferStatus.DISPATCHED_TO_STORE}),
        target=TransferStatus.RECEIVED_AT_STORE,
        stamp="store_received",
        holder_effect=HolderEffect.TO_STORE,
    ),
    Transition.DISPATCH_TO_DEST: TransitionRule(
        transition=Transition.DISPATCH_TO_DEST,
        sources=frozenset({TransferStatus.RECEIVED_AT_STORE}),
        target=TransferStatus.DISPATCHED_TO_DEST,
        stamp="store_dispatched",
    ),
    Transition.RECEIVE_AT_DEST: TransitionRule(
        transition=Transition.RECEIVE_AT_DEST,
        sources=frozenset({TransferStatus.DISPATCHED_TO_DEST}),
        target=TransferStatus.RECEIVED_AT_DEST,
        stamp="received",
        evidence_field="takeover_document_id",
        evidence_office_field="to_office_id",
        holder_effect=HolderEffect.TO_DESTINATION,
    ),
    Transition.REJECT: TransitionRule(
        transition=Transition.REJECT,
        sources=frozenset({TransferStatus.REQUESTED, TransferStatus.APPROVED}),
        target=TransferStatus.REJECTED,
        stamp="rejected",
    ),
    Transition.CANCEL: TransitionRule(
        transition=Transition.CANCEL,
        sources=OPEN_STATUSES,
        target=TransferStatus.CANCELLED,
        stamp="cancelled",
        holder_effect=HolderEffect.RESTORE,
    ),
}


def rule_for(transition: Transition | str) -> TransitionRule:
    return TRANSITION_RULES[Transition(transition)]


def is_terminal(status: TransferStatus) -> bool:
    return status in TERMINAL_STATUSES


def next_status(status: TransferStatus, transition: Transition | str) -> TransferStatus | None:
    """Target status of ``transition`` from ``status``, or None when it is not allowed."""
    rule = rule_for(transition)
    if status not in rule.sources:
        return None
    return rule.target


def allowed_transitions(status: TransferStatus) -> list[Transition]:
    return [rule.transition for rule in TRANSITION_RULES.values() if status in rule.sources]
