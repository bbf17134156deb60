from __future__ import annotations

import logging
from datetime import datetime

from app.custody.core.config import settings
from app.custody.core.error_catalog import AppError, ErrorCatalog
from app.custody.core.logging import log_json
from app.custody.db.models import AssetItem, HolderType, Transfer, TransferStatusEvent, utcnow
from app.custody.services.transfer_guard import Actor
from app.custody.services.transfer_rules import (
    STORE_HELD_STATUSES,
    HolderEffect,
    Transition,
    TransitionRule,
    is_terminal,
    rule_for,
)

logger = logging.getLogger(__name__)


class TransferStateMachine:
    """Applies one transition to a loaded transfer and the items it carries.

    ``apply`` validates everything first and only then mutates, so a raised
    ``AppError`` leaves the transfer and its items untouched. Persisting the
    result is the caller's job.
    """

    def __init__(self, store_code: str | None = None):
        self.store_code = store_code or settings.STORE_CODE

    def apply(
        self,
        transfer: Transfer,
        transition: Transition | str,
        items: dict[str, AssetItem],
        *,
        actor: Actor,
        evidence: str | None = None,
        notes: str | None = None,
        now: datetime | None = None,
    ) -> TransferStatusEvent:
        rule = rule_for(transition)
        if transfer.status not in rule.sources:
            raise AppError(
                ErrorCatalog.INVALID_TRANSITION,
                details={
                    "message": f"cannot {rule.transition.value} a transfer in status {transfer.status.value}",
                    "status": transfer.status.value,
                    "transition": rule.transition.value,
                },
            )
        if rule.requires_evidence and not evidence:
            raise AppError(
                ErrorCatalog.MISSING_EVIDENCE,
                details={"message": f"{rule.evidence_field} is required", "field": rule.evidence_field},
            )
        if evidence and not rule.requires_evidence:
            log_json(
                logger,
                {
                    "event": "transfer_evidence_ignored",
                    "transfer_id": str(transfer.id),
                    "transition": rule.transition.value,
                    "document_id": evidence,
                },
                level=logging.WARNING,
            )
            evidence = None
        if rule.holder_effect is not HolderEffect.NONE:
            missing = [line.asset_item_id for line in transfer.lines if line.asset_item_id not in items]
            if missing:
                raise AppError(
                    ErrorCatalog.NOT_FOUND,
                    details={"message": "transfer asset items not found", "asset_item_ids": missing},
                )
        if rule.holder_effect is HolderEffect.RESTORE and transfer.status in STORE_HELD_STATUSES:
            unsnapshotted = [line.asset_item_id for line in transfer.lines if line.prior_holder_type is None]
            if unsnapshotted:
                raise AppError(
                    ErrorCatalog.CONFLICT,
                    details={"message": "no holder snapshot to restore", "asset_item_ids": unsnapshotted},
                )

        now = now or utcnow()
        previous_status = transfer.status
        self._apply_holder_effect(rule, transfer, items, previous_status, now)
        if rule.evidence_field:
            setattr(transfer, rule.evidence_field, evidence)
        transfer.status = rule.target
        setattr(transfer, f"{rule.stamp}_by_user_id", actor.user_id)
        setattr(transfer, f"{rule.stamp}_at", now)
        transfer.updated_at = now
        if is_terminal(rule.target):
            for line in transfer.lines:
                line.reserved_asset_item_id = None

        event = TransferStatusEvent(
            sequence=len(transfer.history) + 1,
            transition=rule.transition.value,
            from_status=previous_status,
            to_status=rule.target,
            actor_user_id=actor.user_id,
            actor_office_id=actor.office_id,
            document_id=evidence,
            notes=notes,
            created_at=now,
        )
        transfer.history.append(event)
        return event

    def _apply_holder_effect(
        self,
        rule: TransitionRule,
        transfer: Transfer,
        items: dict[str, AssetItem],
        previous_status,
        now: datetime,
    ) -> None:
        effect = rule.holder_effect
        if effect is HolderEffect.NONE:
            return
        for line in transfer.lines:
            item = items[line.asset_item_id]
            if effect is HolderEffect.SNAPSHOT:
                line.prior_holder_type = item.holder_type
                line.prior_holder_id = item.holder_id
            elif effect is HolderEffect.TO_STORE:
                self._move(item, HolderType.STORE, self.store_code, now)
            elif effect is HolderEffect.TO_DESTINATION:
                self._move(item, HolderType.OFFICE, transfer.to_office_id, now)
            elif effect is HolderEffect.RESTORE and previous_status in STORE_HELD_STATUSES:
                self._move(item, line.prior_holder_type, line.prior_holder_id, now)

    @staticmethod
    def _move(item: AssetItem, holder_type: HolderType, holder_id: str, now: datetime) -> None:
        item.holder_type = holder_type
        item.holder_id = holder_id
        item.updated_at = now
