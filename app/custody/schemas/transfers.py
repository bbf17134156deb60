from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.custody.db.models import HolderType, TransferStatus


class _RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TransferLineCreate(_RequestModel):
    asset_item_id: str
    notes: str | None = None


class TransferCreateRequest(_RequestModel):
    from_office_id: str = Field(min_length=1)
    to_office_id: str = Field(min_length=1)
    lines: list[TransferLineCreate]
    notes: str | None = None
    requisition_id: str | None = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "from_office_id": "OFF-A",
                "to_office_id": "OFF-B",
                "lines": [{"asset_item_id": "IT-1", "notes": "laptop with charger"}],
                "notes": "quarterly rebalancing",
                "requisition_id": None,
            }
        },
    )


class TransferActionRequest(_RequestModel):
    notes: str | None = None
    handover_document_id: str | None = None
    takeover_document_id: str | None = None


class TransferDispatchToStoreRequest(_RequestModel):
    handover_document_id: str | None = None
    notes: str | None = None


class TransferReceiveAtDestRequest(_RequestModel):
    takeover_document_id: str | None = None
    notes: str | None = None


class TransferLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    position: int
    asset_item_id: str
    notes: str | None
    prior_holder_type: HolderType | None
    prior_holder_id: str | None


class TransferStatusEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    sequence: int
    transition: str | None
    from_status: TransferStatus | None
    to_status: TransferStatus
    actor_user_id: str | None
    actor_office_id: str | None
    document_id: str | None
    notes: str | None
    created_at: datetime


class TransferResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    asset_item_id: str | None
    from_office_id: str
    to_office_id: str
    status: TransferStatus
    lines: list[TransferLineResponse]
    handover_document_id: str | None
    takeover_document_id: str | None
    requisition_id: str | None
    notes: str | None
    requested_by_user_id: str | None
    approved_by_user_id: str | None
    approved_at: datetime | None
    dispatched_by_user_id: str | None
    dispatched_at: datetime | None
    store_received_by_user_id: str | None
    store_received_at: datetime | None
    store_dispatched_by_user_id: str | None
    store_dispatched_at: datetime | None
    received_by_user_id: str | None
    received_at: datetime | None
    rejected_by_user_id: str | None
    rejected_at: datetime | None
    cancelled_by_user_id: str | None
    cancelled_at: datetime | None
    history: list[TransferStatusEventResponse]
    created_at: datetime
    updated_at: datetime


class TransferListResponse(BaseModel):
    rows: list[TransferResponse]
