import threading

from sqlalchemy import func, select

from app.custody.core.error_catalog import AppError
from app.custody.db.models import Transfer, TransferLine, TransferStatus
from app.custody.repos.transfers import TransferLineInput
from app.custody.services.transfer_workflow import TransferWorkflowService
from tests.transfer_helpers import (
    OFFICE_A,
    OFFICE_A_HEAD,
    OFFICE_B,
    OFFICE_B_HEAD,
    OFFICE_C,
    seed_item,
)


def _race(session_factory, operation, workers=2):
    barrier = threading.Barrier(workers)
    outcomes = []
    lock = threading.Lock()

    def _run(index):
        db = session_factory()
        try:
            service = TransferWorkflowService(db, trace_id=f"race-{index}")
            barrier.wait()
            try:
                operation(service, index)
                result = "ok"
            except AppError as exc:
                result = exc.error.code
            with lock:
                outcomes.append(result)
        finally:
            db.close()

    threads = [threading.Thread(target=_run, args=(index,)) for index in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return outcomes


def test_concurrent_approvals_apply_once(session_factory, db_session):
    seed_item(db_session, "IT-1")
    transfer = TransferWorkflowService(db_session).create(
        OFFICE_A_HEAD,
        from_office_id=OFFICE_A,
        to_office_id=OFFICE_B,
        lines=[TransferLineInput(asset_item_id="IT-1")],
    )
    transfer_id = str(transfer.id)

    outcomes = _race(session_factory, lambda service, _: service.approve(OFFICE_B_HEAD, transfer_id))

    assert len(outcomes) == 2
    assert outcomes.count("ok") == 1
    assert set(outcomes) - {"ok"} <= {"CONFLICT", "INVALID_TRANSITION"}

    db_session.expire_all()
    stored = db_session.get(Transfer, transfer.id)
    assert stored.status == TransferStatus.APPROVED
    assert [event.to_status for event in stored.history] == [TransferStatus.REQUESTED, TransferStatus.APPROVED]


def test_concurrent_requests_for_same_item_reserve_once(session_factory, db_session):
    seed_item(db_session, "IT-1")
    destinations = [OFFICE_B, OFFICE_C]

    def _create(service, index):
        service.create(
            OFFICE_A_HEAD,
            from_office_id=OFFICE_A,
            to_office_id=destinations[index],
            lines=[TransferLineInput(asset_item_id="IT-1")],
        )

    outcomes = _race(session_factory, _create)

    assert outcomes.count("ok") == 1
    assert outcomes.count("CONFLICT") == 1

    db_session.expire_all()
    reserved = db_session.execute(
        select(func.count()).select_from(TransferLine).where(TransferLine.reserved_asset_item_id == "IT-1")
    ).scalar_one()
    assert reserved == 1
