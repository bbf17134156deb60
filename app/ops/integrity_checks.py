from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select

from app.custody.core.metrics import metrics
from app.custody.db.models import AssetItem, HolderType, Transfer, TransferLine, TransferStatus
from app.custody.services.transfer_rules import OPEN_STATUSES, STORE_HELD_STATUSES


SEVERITY_CRITICAL = "CRITICAL"
SEVERITY_WARN = "WARN"

_FORWARD_STAMPS = ["approved", "dispatched", "store_received", "store_dispatched", "received"]
_FORWARD_STATUSES = [
    TransferStatus.REQUESTED,
    TransferStatus.APPROVED,
    TransferStatus.DISPATCHED_TO_STORE,
    TransferStatus.RECEIVED_AT_STORE,
    TransferStatus.DISPATCHED_TO_DEST,
    TransferStatus.RECEIVED_AT_DEST,
]


@dataclass(frozen=True)
class IntegrityFinding:
    check_id: str
    severity: str
    message: str
    entity: str
    entity_id: str | None
    details: dict


def _expected_stamps(status: TransferStatus) -> set[str] | None:
    if status in _FORWARD_STATUSES:
        return set(_FORWARD_STAMPS[: _FORWARD_STATUSES.index(status)])
    return None


def check_transfer_fsm(db) -> list[IntegrityFinding]:
    findings = []
    for transfer in db.execute(select(Transfer)).scalars().all():
        present = {stamp for stamp in _FORWARD_STAMPS if getattr(transfer, f"{stamp}_at") is not None}
        expected = _expected_stamps(transfer.status)
        if expected is not None:
            invalid = present != expected or transfer.rejected_at is not None or transfer.cancelled_at is not None
        elif transfer.status == TransferStatus.REJECTED:
            invalid = transfer.rejected_at is None or transfer.cancelled_at is not None
        else:
            invalid = transfer.cancelled_at is None or transfer.rejected_at is not None
        if transfer.status == TransferStatus.RECEIVED_AT_DEST:
            invalid = invalid or not transfer.handover_document_id or not transfer.takeover_document_id
        if invalid:
            findings.append(
                IntegrityFinding(
                    check_id="transfer_fsm",
                    severity=SEVERITY_CRITICAL,
                    message="Transfer status and workflow stamps are inconsistent.",
                    entity="transfers",
                    entity_id=str(transfer.id),
                    details={"status": transfer.status.value, "stamps": sorted(present)},
                )
            )
    if findings:
        metrics.increment_invariant_violation("transfer_fsm", len(findings))
    return findings


def check_transfer_history(db) -> list[IntegrityFinding]:
    findings = []
    for transfer in db.execute(select(Transfer)).scalars().all():
        sequences = [event.sequence for event in transfer.history]
        last_status = transfer.history[-1].to_status if transfer.history else None
        if sequences != list(range(1, len(sequences) + 1)) or last_status != transfer.status:
            findings.append(
                IntegrityFinding(
                    check_id="transfer_history",
                    severity=SEVERITY_CRITICAL,
                    message="Transfer status history does not end at the current status.",
                    entity="transfers",
                    entity_id=str(transfer.id),
                    details={
                        "status": transfer.status.value,
                        "last_history_status": last_status.value if last_status else None,
                        "sequences": sequences,
                    },
                )
            )
    if findings:
        metrics.increment_invariant_violation("transfer_history", len(findings))
    return findings


def check_open_reservations(db) -> list[IntegrityFinding]:
    rows = db.execute(
        select(TransferLine.id, TransferLine.asset_item_id, TransferLine.reserved_asset_item_id, Transfer.status)
        .join(Transfer, Transfer.id == TransferLine.transfer_id)
    ).all()
    findings = []
    for row in rows:
        expected = row.asset_item_id if row.status in OPEN_STATUSES else None
        if row.reserved_asset_item_id != expected:
            findings.append(
                IntegrityFinding(
                    check_id="open_reservations",
                    severity=SEVERITY_CRITICAL,
                    message="Transfer line reservation does not match transfer status.",
                    entity="transfer_lines",
                    entity_id=str(row.id),
                    details={
                        "status": row.status.value,
                        "asset_item_id": row.asset_item_id,
                        "reserved_asset_item_id": row.reserved_asset_item_id,
                    },
                )
            )
    if findings:
        metrics.increment_invariant_violation("open_reservations", len(findings))
    return findings


def check_store_custody(db) -> list[IntegrityFinding]:
    rows = db.execute(
        select(TransferLine.asset_item_id, Transfer.id, Transfer.status)
        .join(Transfer, Transfer.id == TransferLine.transfer_id)
        .where(Transfer.status.in_(STORE_HELD_STATUSES))
    ).all()
    store_held = {row.asset_item_id: row for row in rows}
    findings = []
    for item in db.execute(select(AssetItem)).scalars().all():
        at_store = item.holder_type == HolderType.STORE
        if at_store == (item.id in store_held):
            continue
        transfer_row = store_held.get(item.id)
        findings.append(
            IntegrityFinding(
                check_id="store_custody",
                severity=SEVERITY_WARN if at_store else SEVERITY_CRITICAL,
                message=(
                    "Asset item is held by the store without a store-held transfer."
                    if at_store
                    else "Store-held transfer item is not held by the store."
                ),
                entity="asset_items",
                entity_id=item.id,
                details={
                    "holder_type": item.holder_type.value,
                    "holder_id": item.holder_id,
                    "transfer_id": str(transfer_row.id) if transfer_row else None,
                },
            )
        )
    if findings:
        metrics.increment_invariant_violation("store_custody", len(findings))
    return findings


def run_integrity_checks(db) -> list[IntegrityFinding]:
    findings: list[IntegrityFinding] = []
    findings.extend(check_transfer_fsm(db))
    findings.extend(check_transfer_history(db))
    findings.extend(check_open_reservations(db))
    findings.extend(check_store_custody(db))
    return findings
