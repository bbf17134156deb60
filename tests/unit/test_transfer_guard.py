from types import SimpleNamespace

import pytest

from app.custody.db.models import TransferStatus
from app.custody.services import transfer_guard
from app.custody.services.transfer_guard import Actor, DenialReason
from app.custody.services.transfer_rules import Transition

ADMIN = Actor(user_id="admin", role="org_admin", office_id=None, is_org_admin=True)
FROM_HEAD = Actor(user_id="a", role="office_head", office_id="OFF-A")
TO_HEAD = Actor(user_id="b", role="office_head", office_id="OFF-B")
OUTSIDER = Actor(user_id="c", role="office_head", office_id="OFF-C")
STORE = Actor(user_id="s", role="store_keeper", office_id=None, is_store_operator=True)


def _transfer(status=TransferStatus.REQUESTED):
    return SimpleNamespace(status=status, from_office_id="OFF-A", to_office_id="OFF-B")


@pytest.mark.parametrize(
    "transition,status,allowed_actors",
    [
        (Transition.APPROVE, TransferStatus.REQUESTED, {"admin", "b"}),
        (Transition.REJECT, TransferStatus.REQUESTED, {"admin", "b"}),
        (Transition.DISPATCH_TO_STORE, TransferStatus.APPROVED, {"admin", "a", "s"}),
        (Transition.RECEIVE_AT_STORE, TransferStatus.DISPATCHED_TO_STORE, {"admin", "s"}),
        (Transition.DISPATCH_TO_DEST, TransferStatus.RECEIVED_AT_STORE, {"admin", "s"}),
        (Transition.RECEIVE_AT_DEST, TransferStatus.DISPATCHED_TO_DEST, {"admin", "b"}),
        (Transition.CANCEL, TransferStatus.APPROVED, {"admin", "a", "s"}),
    ],
)
def test_authority_per_transition(transition, status, allowed_actors):
    transfer = _transfer(status)
    for actor in (ADMIN, FROM_HEAD, TO_HEAD, OUTSIDER, STORE):
        expected = actor.user_id in allowed_actors
        assert transfer_guard.is_authorized(transfer, transition, actor) is expected, actor.user_id


def test_origin_office_cannot_approve():
    decision = transfer_guard.allow(_transfer(), Transition.APPROVE, FROM_HEAD)
    assert decision.allowed is False
    assert decision.reason is DenialReason.NOT_AUTHORIZED


def test_authority_is_checked_before_state():
    decision = transfer_guard.allow(_transfer(TransferStatus.CANCELLED), Transition.APPROVE, OUTSIDER)
    assert decision.reason is DenialReason.NOT_AUTHORIZED


def test_state_is_checked_before_evidence():
    decision = transfer_guard.allow(_transfer(TransferStatus.REQUESTED), Transition.DISPATCH_TO_STORE, FROM_HEAD)
    assert decision.reason is DenialReason.INVALID_TRANSITION


def test_missing_evidence_is_denied():
    decision = transfer_guard.allow(_transfer(TransferStatus.APPROVED), Transition.DISPATCH_TO_STORE, FROM_HEAD)
    assert decision.reason is DenialReason.MISSING_EVIDENCE

    decision = transfer_guard.allow(
        _transfer(TransferStatus.APPROVED), Transition.DISPATCH_TO_STORE, FROM_HEAD, "DOC-1"
    )
    assert decision.allowed is True


def test_admin_still_bound_by_state():
    decision = transfer_guard.allow(_transfer(TransferStatus.RECEIVED_AT_DEST), Transition.CANCEL, ADMIN)
    assert decision.reason is DenialReason.INVALID_TRANSITION


def test_read_scope():
    transfer = _transfer()
    assert transfer_guard.can_read(transfer, ADMIN)
    assert transfer_guard.can_read(transfer, STORE)
    assert transfer_guard.can_read(transfer, FROM_HEAD)
    assert transfer_guard.can_read(transfer, TO_HEAD)
    assert not transfer_guard.can_read(transfer, OUTSIDER)
    assert transfer_guard.can_read_office("OFF-C", OUTSIDER)
    assert not transfer_guard.can_read_office("OFF-A", OUTSIDER)


def test_create_and_delete_scope():
    assert transfer_guard.can_create("OFF-A", "OFF-B", FROM_HEAD)
    assert transfer_guard.can_create("OFF-A", "OFF-B", TO_HEAD)
    assert not transfer_guard.can_create("OFF-A", "OFF-B", OUTSIDER)
    assert not transfer_guard.can_create("OFF-A", "OFF-B", STORE)
    assert transfer_guard.can_delete(_transfer(), FROM_HEAD)
    assert not transfer_guard.can_delete(_transfer(), TO_HEAD)


def test_actor_without_office_matches_nothing():
    nobody = Actor(user_id="n", role="viewer", office_id=None)
    assert not nobody.in_office(None)
    assert not transfer_guard.can_read(_transfer(), nobody)
