import pytest

from app.custody.db.models import TransferStatus
from app.custody.services.transfer_rules import (
    OPEN_STATUSES,
    TERMINAL_STATUSES,
    TRANSITION_RULES,
    Transition,
    allowed_transitions,
    is_terminal,
    next_status,
    rule_for,
)

HAPPY_PATH = [
    (TransferStatus.REQUESTED, Transition.APPROVE, TransferStatus.APPROVED),
    (TransferStatus.APPROVED, Transition.DISPATCH_TO_STORE, TransferStatus.DISPATCHED_TO_STORE),
    (TransferStatus.DISPATCHED_TO_STORE, Transition.RECEIVE_AT_STORE, TransferStatus.RECEIVED_AT_STORE),
    (TransferStatus.RECEIVED_AT_STORE, Transition.DISPATCH_TO_DEST, TransferStatus.DISPATCHED_TO_DEST),
    (TransferStatus.DISPATCHED_TO_DEST, Transition.RECEIVE_AT_DEST, TransferStatus.RECEIVED_AT_DEST),
]


def test_every_transition_has_a_rule():
    assert set(TRANSITION_RULES) == set(Transition)


@pytest.mark.parametrize("status,transition,target", HAPPY_PATH)
def test_happy_path_steps(status, transition, target):
    assert next_status(status, transition) == target


def test_terminal_statuses_have_no_outgoing_transitions():
    assert TERMINAL_STATUSES == {
        TransferStatus.RECEIVED_AT_DEST,
        TransferStatus.REJECTED,
        TransferStatus.CANCELLED,
    }
    for status in TERMINAL_STATUSES:
        assert is_terminal(status)
        assert allowed_transitions(status) == []


def test_reject_only_before_dispatch():
    assert next_status(TransferStatus.REQUESTED, Transition.REJECT) == TransferStatus.REJECTED
    assert next_status(TransferStatus.APPROVED, Transition.REJECT) == TransferStatus.REJECTED
    assert next_status(TransferStatus.DISPATCHED_TO_STORE, Transition.REJECT) is None
    assert next_status(TransferStatus.RECEIVED_AT_STORE, Transition.REJECT) is None


def test_cancel_allowed_from_every_open_status():
    for status in OPEN_STATUSES:
        assert next_status(status, Transition.CANCEL) == TransferStatus.CANCELLED
        assert Transition.CANCEL in allowed_transitions(status)


def test_steps_cannot_be_skipped():
    assert next_status(TransferStatus.REQUESTED, Transition.DISPATCH_TO_STORE) is None
    assert next_status(TransferStatus.APPROVED, Transition.RECEIVE_AT_STORE) is None
    assert next_status(TransferStatus.DISPATCHED_TO_STORE, Transition.RECEIVE_AT_DEST) is None


def test_only_custody_steps_require_evidence():
    requiring = {rule.transition for rule in TRANSITION_RULES.values() if rule.requires_evidence}
    assert requiring == {Transition.DISPATCH_TO_STORE, Transition.RECEIVE_AT_DEST}
    assert rule_for("dispatch_to_store").evidence_office_field == "from_office_id"
    assert rule_for("receive_at_dest").evidence_office_field == "to_office_id"


def test_unknown_transition_name_is_rejected():
    with pytest.raises(ValueError):
        rule_for("teleport")
