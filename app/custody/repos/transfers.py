from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from app.custody.core.error_catalog import AppError, ErrorCatalog
from app.custody.db.models import (
    HolderType,
    Transfer,
    TransferLine,
    TransferStatus,
    TransferStatusEvent,
    utcnow,
)
from app.custody.repos.asset_items import AssetItemRepository
from app.custody.services.transfer_guard import Actor
from app.custody.services.transfer_rules import Transition
from app.custody.services.transfer_state_machine import TransferStateMachine


@dataclass(frozen=True)
class TransferLineInput:
    asset_item_id: str
    notes: str | None = None


@dataclass(frozen=True)
class TransferQueryFilters:
    office_id: str | None = None
    asset_item_id: str | None = None
    status: TransferStatus | None = None
    limit: int | None = None
    offset: int | None = None


def _parse_id(transfer_id: str | uuid.UUID) -> uuid.UUID | None:
    if isinstance(transfer_id, uuid.UUID):
        return transfer_id
    try:
        return uuid.UUID(str(transfer_id))
    except ValueError:
        return None


def _not_found(transfer_id) -> AppError:
    return AppError(
        ErrorCatalog.NOT_FOUND,
        details={"message": "transfer not found", "transfer_id": str(transfer_id)},
    )


def normalize_lines(lines: Iterable[TransferLineInput]) -> list[TransferLineInput]:
    normalized: list[TransferLineInput] = []
    seen: set[str] = set()
    for index, line in enumerate(lines):
        asset_item_id = (line.asset_item_id or "").strip()
        if not asset_item_id:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={"message": f"lines[{index}].asset_item_id is required"},
            )
        if asset_item_id in seen:
            continue
        seen.add(asset_item_id)
        normalized.append(TransferLineInput(asset_item_id=asset_item_id, notes=line.notes))
    if not normalized:
        raise AppError(
            ErrorCatalog.VALIDATION_ERROR,
            details={"message": "at least one transfer line is required"},
        )
    return normalized


class TransferRepository:
    """Persistence boundary for transfers.

    ``create``, ``apply_transition`` and ``delete`` each run as one database
    transaction. The transfer row is read with ``FOR UPDATE`` and written
    under an optimistic ``version`` check, so two writers racing on the same
    transfer cannot both commit; the loser gets ``CONFLICT``. Open-transfer
    item reservations are backed by a unique index on
    ``transfer_lines.reserved_asset_item_id``.
    """

    def __init__(self, db, state_machine: TransferStateMachine | None = None):
        self.db = db
        self.items = AssetItemRepository(db)
        self.state_machine = state_machine or TransferStateMachine()

    def create(
        self,
        lines: Iterable[TransferLineInput],
        from_office_id: str,
        to_office_id: str,
        notes: str | None = None,
        requisition_id: str | None = None,
        *,
        actor: Actor | None = None,
    ) -> Transfer:
        if not from_office_id or not to_office_id:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={"message": "from_office_id and to_office_id are required"},
            )
        if from_office_id == to_office_id:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={"message": "from_office_id and to_office_id must differ"},
            )
        normalized = normalize_lines(lines)
        asset_item_ids = [line.asset_item_id for line in normalized]

        try:
            items = self.items.lock_many(asset_item_ids)
            missing = [asset_item_id for asset_item_id in asset_item_ids if asset_item_id not in items]
            if missing:
                raise AppError(
                    ErrorCatalog.NOT_FOUND,
                    details={"message": "asset items not found", "asset_item_ids": missing},
                )
            not_held = [
                asset_item_id
                for asset_item_id in asset_item_ids
                if items[asset_item_id].holder_type != HolderType.OFFICE
                or items[asset_item_id].holder_id != from_office_id
            ]
            if not_held:
                raise AppError(
                    ErrorCatalog.VALIDATION_ERROR,
                    details={
                        "message": "asset items are not held by from_office_id",
                        "asset_item_ids": not_held,
                    },
                )
            reserved = self._reserved_item_ids(asset_item_ids)
            if reserved:
                raise self._reserved_conflict(reserved)

            now = utcnow()
            actor_user_id = actor.user_id if actor else None
            transfer = Transfer(
                id=uuid.uuid4(),
                from_office_id=from_office_id,
                to_office_id=to_office_id,
                status=TransferStatus.REQUESTED,
                notes=notes,
                requisition_id=requisition_id,
                requested_by_user_id=actor_user_id,
                created_at=now,
                updated_at=now,
            )
            transfer.lines = [
                TransferLine(
                    position=position,
                    asset_item_id=line.asset_item_id,
                    notes=line.notes,
                    reserved_asset_item_id=line.asset_item_id,
                    created_at=now,
                )
                for position, line in enumerate(normalized, start=1)
            ]
            transfer.history = [
                TransferStatusEvent(
                    sequence=1,
                    transition=None,
                    from_status=None,
                    to_status=TransferStatus.REQUESTED,
                    actor_user_id=actor_user_id,
                    actor_office_id=actor.office_id if actor else None,
                    notes=notes,
                    created_at=now,
                )
            ]
            self.db.add(transfer)
            self.db.commit()
        except AppError:
            self.db.rollback()
            raise
        except IntegrityError as exc:
            self.db.rollback()
            raise self._reserved_conflict(asset_item_ids) from exc
        return transfer

    def find(self, transfer_id: str | uuid.UUID) -> Transfer | None:
        parsed = _parse_id(transfer_id)
        if parsed is None:
            return None
        return self.db.get(Transfer, parsed)

    def get(self, transfer_id: str | uuid.UUID) -> Transfer:
        transfer = self.find(transfer_id)
        if transfer is None:
            raise _not_found(transfer_id)
        return transfer

    def apply_transition(
        self,
        transfer_id: str | uuid.UUID,
        transition: Transition | str,
        evidence: str | None = None,
        *,
        actor: Actor,
        notes: str | None = None,
        precheck: Callable[[Transfer], None] | None = None,
    ) -> Transfer:
        """Lock, check, transition and commit one transfer.

        ``precheck`` runs against the locked, freshly loaded transfer before
        anything is modified; any error it raises aborts the transaction.
        """
        try:
            transfer = self._lock(transfer_id)
            if precheck is not None:
                precheck(transfer)
            items = self.items.lock_many([line.asset_item_id for line in transfer.lines])
            self.state_machine.apply(
                transfer,
                transition,
                items,
                actor=actor,
                evidence=evidence,
                notes=notes,
            )
            self.db.commit()
        except AppError:
            self.db.rollback()
            raise
        except (StaleDataError, IntegrityError) as exc:
            self.db.rollback()
            raise AppError(
                ErrorCatalog.CONFLICT,
                details={
                    "message": "transfer was modified concurrently",
                    "transfer_id": str(transfer_id),
                },
            ) from exc
        return transfer

    def delete(
        self,
        transfer_id: str | uuid.UUID,
        *,
        precheck: Callable[[Transfer], None] | None = None,
    ) -> Transfer:
        try:
            transfer = self._lock(transfer_id)
            if precheck is not None:
                precheck(transfer)
            if transfer.status != TransferStatus.REQUESTED:
                raise AppError(
                    ErrorCatalog.CONFLICT,
                    details={
                        "message": "only REQUESTED transfers can be deleted",
                        "status": transfer.status.value,
                    },
                )
            self.db.delete(transfer)
            self.db.commit()
        except AppError:
            self.db.rollback()
            raise
        except StaleDataError as exc:
            self.db.rollback()
            raise AppError(
                ErrorCatalog.CONFLICT,
                details={"message": "transfer was modified concurrently", "transfer_id": str(transfer_id)},
            ) from exc
        return transfer

    def list_transfers(self, filters: TransferQueryFilters) -> list[Transfer]:
        query = select(Transfer)
        if filters.office_id:
            query = query.where(
                or_(Transfer.from_office_id == filters.office_id, Transfer.to_office_id == filters.office_id)
            )
        if filters.asset_item_id:
            query = query.where(
                Transfer.id.in_(
                    select(TransferLine.transfer_id).where(TransferLine.asset_item_id == filters.asset_item_id)
                )
            )
        if filters.status is not None:
            query = query.where(Transfer.status == filters.status)
        query = query.order_by(Transfer.created_at.desc(), Transfer.id)
        if filters.offset:
            query = query.offset(filters.offset)
        if filters.limit:
            query = query.limit(filters.limit)
        return self.db.execute(query).scalars().all()

    def list_by_office(self, office_id: str) -> list[Transfer]:
        return self.list_transfers(TransferQueryFilters(office_id=office_id))

    def list_by_asset_item(self, asset_item_id: str) -> list[Transfer]:
        return self.list_transfers(TransferQueryFilters(asset_item_id=asset_item_id))

    def _lock(self, transfer_id: str | uuid.UUID) -> Transfer:
        parsed = _parse_id(transfer_id)
        if parsed is None:
            raise _not_found(transfer_id)
        transfer = self.db.get(Transfer, parsed, with_for_update=True, populate_existing=True)
        if transfer is None:
            raise _not_found(transfer_id)
        return transfer

    def _reserved_item_ids(self, asset_item_ids: list[str]) -> list[str]:
        return (
            self.db.execute(
                select(TransferLine.reserved_asset_item_id).where(
                    TransferLine.reserved_asset_item_id.in_(asset_item_ids)
                )
            )
            .scalars()
            .all()
        )

    @staticmethod
    def _reserved_conflict(asset_item_ids: list[str]) -> AppError:
        return AppError(
            ErrorCatalog.CONFLICT,
            details={
                "message": "asset items are already reserved by an open transfer",
                "asset_item_ids": sorted(asset_item_ids),
            },
        )
