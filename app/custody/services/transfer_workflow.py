from __future__ import annotations

import logging

from app.custody.core.config import settings
from app.custody.core.error_catalog import AppError, ErrorCatalog
from app.custody.core.logging import log_json
from app.custody.core.metrics import metrics
from app.custody.db.models import Transfer, TransferStatus
from app.custody.repos.transfers import TransferLineInput, TransferQueryFilters, TransferRepository
from app.custody.services import transfer_guard
from app.custody.services.audit import AuditEventPayload, AuditService
from app.custody.services.documents import DocumentReferenceValidator
from app.custody.services.transfer_guard import Actor, DenialReason
from app.custody.services.transfer_rules import Transition, rule_for

logger = logging.getLogger(__name__)

_DENIAL_ERRORS = {
    DenialReason.NOT_AUTHORIZED: ErrorCatalog.NOT_AUTHORIZED,
    DenialReason.INVALID_TRANSITION: ErrorCatalog.INVALID_TRANSITION,
    DenialReason.MISSING_EVIDENCE: ErrorCatalog.MISSING_EVIDENCE,
}


class TransferWorkflowService:
    """Entry point for every transfer operation.

    Each transition runs guard, evidence validation and the state machine
    against the locked transfer inside one repository transaction, and
    returns the committed record.
    """

    def __init__(
        self,
        db,
        *,
        repo: TransferRepository | None = None,
        validator: DocumentReferenceValidator | None = None,
        trace_id: str | None = None,
    ):
        self.db = db
        self.repo = repo or TransferRepository(db)
        self.validator = validator or DocumentReferenceValidator(db)
        self.audit = AuditService(db)
        self.trace_id = trace_id

    def create(
        self,
        actor: Actor,
        *,
        from_office_id: str,
        to_office_id: str,
        lines: list[TransferLineInput],
        notes: str | None = None,
        requisition_id: str | None = None,
    ) -> Transfer:
        if not transfer_guard.can_create(from_office_id, to_office_id, actor):
            raise AppError(
                ErrorCatalog.NOT_AUTHORIZED,
                details={"message": "actor may not create transfers between these offices"},
            )
        transfer = self.repo.create(
            lines,
            from_office_id,
            to_office_id,
            notes=notes,
            requisition_id=requisition_id,
            actor=actor,
        )
        transfer_id = str(transfer.id)
        log_json(
            logger,
            {
                "event": "transfer_created",
                "trace_id": self.trace_id,
                "transfer_id": transfer_id,
                "from_office_id": from_office_id,
                "to_office_id": to_office_id,
                "asset_item_ids": [line.asset_item_id for line in transfer.lines],
            },
        )
        self._audit(actor, "transfer.create", transfer_id, None, TransferStatus.REQUESTED)
        return transfer

    def get(self, actor: Actor, transfer_id: str) -> Transfer:
        transfer = self.repo.get(transfer_id)
        if not transfer_guard.can_read(transfer, actor):
            raise AppError(
                ErrorCatalog.NOT_AUTHORIZED,
                details={"message": "transfer is outside the actor's scope"},
            )
        return transfer

    def list_transfers(
        self,
        actor: Actor,
        *,
        status: TransferStatus | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[Transfer]:
        limit = min(max(limit or settings.TRANSFERS_LIST_DEFAULT_LIMIT, 1), settings.TRANSFERS_LIST_MAX_LIMIT)
        offset = max(offset or 0, 0)
        if actor.is_org_admin or actor.is_store_operator:
            filters = TransferQueryFilters(status=status, limit=limit, offset=offset)
        elif actor.office_id:
            filters = TransferQueryFilters(office_id=actor.office_id, status=status, limit=limit, offset=offset)
        else:
            return []
        return self.repo.list_transfers(filters)

    def list_by_office(self, actor: Actor, office_id: str) -> list[Transfer]:
        if not transfer_guard.can_read_office(office_id, actor):
            raise AppError(
                ErrorCatalog.NOT_AUTHORIZED,
                details={"message": "office is outside the actor's scope", "office_id": office_id},
            )
        return self.repo.list_by_office(office_id)

    def list_by_asset_item(self, actor: Actor, asset_item_id: str) -> list[Transfer]:
        return [
            transfer
            for transfer in self.repo.list_by_asset_item(asset_item_id)
            if transfer_guard.can_read(transfer, actor)
        ]

    def delete(self, actor: Actor, transfer_id: str) -> None:
        def precheck(transfer: Transfer) -> None:
            if not transfer_guard.can_delete(transfer, actor):
                raise AppError(
                    ErrorCatalog.NOT_AUTHORIZED,
                    details={"message": "actor may not delete this transfer"},
                )

        self.repo.delete(transfer_id, precheck=precheck)
        log_json(logger, {"event": "transfer_deleted", "trace_id": self.trace_id, "transfer_id": str(transfer_id)})
        self._audit(actor, "transfer.delete", str(transfer_id), TransferStatus.REQUESTED, None)

    def approve(self, actor: Actor, transfer_id: str, *, evidence: str | None = None, notes: str | None = None):
        return self.transition(actor, transfer_id, Transition.APPROVE, evidence=evidence, notes=notes)

    def reject(self, actor: Actor, transfer_id: str, *, evidence: str | None = None, notes: str | None = None):
        return self.transition(actor, transfer_id, Transition.REJECT, evidence=evidence, notes=notes)

    def cancel(self, actor: Actor, transfer_id: str, *, evidence: str | None = None, notes: str | None = None):
        return self.transition(actor, transfer_id, Transition.CANCEL, evidence=evidence, notes=notes)

    def dispatch_to_store(
        self,
        actor: Actor,
        transfer_id: str,
        *,
        handover_document_id: str | None,
        notes: str | None = None,
    ):
        return self.transition(
            actor, transfer_id, Transition.DISPATCH_TO_STORE, evidence=handover_document_id, notes=notes
        )

    def receive_at_store(self, actor: Actor, transfer_id: str, *, evidence: str | None = None, notes: str | None = None):
        return self.transition(actor, transfer_id, Transition.RECEIVE_AT_STORE, evidence=evidence, notes=notes)

    def dispatch_to_dest(self, actor: Actor, transfer_id: str, *, evidence: str | None = None, notes: str | None = None):
        return self.transition(actor, transfer_id, Transition.DISPATCH_TO_DEST, evidence=evidence, notes=notes)

    def receive_at_dest(
        self,
        actor: Actor,
        transfer_id: str,
        *,
        takeover_document_id: str | None,
        notes: str | None = None,
    ):
        return self.transition(
            actor, transfer_id, Transition.RECEIVE_AT_DEST, evidence=takeover_document_id, notes=notes
        )

    def transition(
        self,
        actor: Actor,
        transfer_id: str,
        transition: Transition | str,
        *,
        evidence: str | None = None,
        notes: str | None = None,
    ) -> Transfer:
        rule = rule_for(transition)
        before: dict = {}

        def precheck(transfer: Transfer) -> None:
            before["status"] = transfer.status
            decision = transfer_guard.allow(transfer, rule.transition, actor, evidence)
            if not decision.allowed:
                raise AppError(
                    _DENIAL_ERRORS[decision.reason],
                    details={
                        "message": decision.message,
                        "status": transfer.status.value,
                        "transition": rule.transition.value,
                    },
                )
            if rule.requires_evidence:
                self.validator.check(
                    evidence,
                    office_id=getattr(transfer, rule.evidence_office_field),
                    field_name=rule.evidence_field,
                )

        try:
            transfer = self.repo.apply_transition(
                transfer_id,
                rule.transition,
                evidence,
                actor=actor,
                notes=notes,
                precheck=precheck,
            )
        except AppError as exc:
            metrics.record_transition(transition=rule.transition.value, result=exc.error.code)
            log_json(
                logger,
                {
                    "event": "transfer_transition_rejected",
                    "trace_id": self.trace_id,
                    "transfer_id": str(transfer_id),
                    "transition": rule.transition.value,
                    "user_id": actor.user_id,
                    "error_code": exc.error.code,
                },
                level=logging.WARNING,
            )
            raise

        metrics.record_transition(transition=rule.transition.value, result="success")
        log_json(
            logger,
            {
                "event": "transfer_transition_applied",
                "trace_id": self.trace_id,
                "transfer_id": str(transfer.id),
                "transition": rule.transition.value,
                "from_status": before["status"].value,
                "to_status": transfer.status.value,
                "user_id": actor.user_id,
            },
        )
        self._audit(actor, f"transfer.{rule.transition.value}", str(transfer.id), before["status"], transfer.status)
        return transfer

    def _audit(
        self,
        actor: Actor,
        action: str,
        transfer_id: str,
        before: TransferStatus | None,
        after: TransferStatus | None,
    ) -> None:
        self.audit.record_event(
            AuditEventPayload(
                user_id=actor.user_id,
                trace_id=self.trace_id,
                action=action,
                entity_type="transfer",
                entity_id=transfer_id,
                before={"status": before.value} if before else None,
                after={"status": after.value} if after else None,
                metadata=None,
                result="success",
                actor_role=actor.role,
                actor_office_id=actor.office_id,
            )
        )
