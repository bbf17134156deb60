from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status

from app.custody.core.deps import get_workflow_service, require_actor
from app.custody.db.models import TransferStatus
from app.custody.repos.transfers import TransferLineInput
from app.custody.schemas.errors import ApiErrorResponse, ApiValidationErrorResponse
from app.custody.schemas.transfers import (
    TransferActionRequest,
    TransferCreateRequest,
    TransferDispatchToStoreRequest,
    TransferListResponse,
    TransferReceiveAtDestRequest,
    TransferResponse,
)
from app.custody.services.transfer_guard import Actor
from app.custody.services.transfer_workflow import TransferWorkflowService


router = APIRouter()

_ERROR_RESPONSES = {
    401: {"model": ApiErrorResponse},
    403: {"model": ApiErrorResponse},
    404: {"model": ApiErrorResponse},
    409: {"model": ApiErrorResponse},
    422: {"model": ApiValidationErrorResponse},
}
_EVIDENCE_ERROR_RESPONSES = {**_ERROR_RESPONSES, 400: {"model": ApiErrorResponse}}


def _transfer_response(transfer) -> TransferResponse:
    return TransferResponse.model_validate(transfer)


def _list_response(transfers) -> TransferListResponse:
    return TransferListResponse(rows=[_transfer_response(transfer) for transfer in transfers])


def _action_fields(payload: TransferActionRequest | None) -> tuple[str | None, str | None]:
    if payload is None:
        return None, None
    return payload.handover_document_id or payload.takeover_document_id, payload.notes


@router.get("/transfers", response_model=TransferListResponse, responses=_ERROR_RESPONSES)
def list_transfers(
    status_filter: TransferStatus | None = Query(default=None, alias="status"),
    limit: int | None = Query(default=None, ge=1),
    offset: int | None = Query(default=None, ge=0),
    actor: Actor = Depends(require_actor),
    service: TransferWorkflowService = Depends(get_workflow_service),
):
    return _list_response(service.list_transfers(actor, status=status_filter, limit=limit, offset=offset))


@router.get(
    "/transfers/asset-item/{asset_item_id}",
    response_model=TransferListResponse,
    responses=_ERROR_RESPONSES,
)
def list_transfers_by_asset_item(
    asset_item_id: str,
    actor: Actor = Depends(require_actor),
    service: TransferWorkflowService = Depends(get_workflow_service),
):
    return _list_response(service.list_by_asset_item(actor, asset_item_id))


@router.get("/transfers/office/{office_id}", response_model=TransferListResponse, responses=_ERROR_RESPONSES)
def list_transfers_by_office(
    office_id: str,
    actor: Actor = Depends(require_actor),
    service: TransferWorkflowService = Depends(get_workflow_service),
):
    return _list_response(service.list_by_office(actor, office_id))


@router.get("/transfers/{transfer_id}", response_model=TransferResponse, responses=_ERROR_RESPONSES)
def get_transfer(
    transfer_id: str,
    actor: Actor = Depends(require_actor),
    service: TransferWorkflowService = Depends(get_workflow_service),
):
    return _transfer_response(service.get(actor, transfer_id))


@router.post("/transfers", response_model=TransferResponse, status_code=201, responses=_ERROR_RESPONSES)
def create_transfer(
    payload: TransferCreateRequest,
    actor: Actor = Depends(require_actor),
    service: TransferWorkflowService = Depends(get_workflow_service),
):
    transfer = service.create(
        actor,
        from_office_id=payload.from_office_id,
        to_office_id=payload.to_office_id,
        lines=[TransferLineInput(asset_item_id=line.asset_item_id, notes=line.notes) for line in payload.lines],
        notes=payload.notes,
        requisition_id=payload.requisition_id,
    )
    return _transfer_response(transfer)


@router.post("/transfers/{transfer_id}/approve", response_model=TransferResponse, responses=_ERROR_RESPONSES)
def approve_transfer(
    transfer_id: str,
    payload: TransferActionRequest | None = None,
    actor: Actor = Depends(require_actor),
    service: TransferWorkflowService = Depends(get_workflow_service),
):
    evidence, notes = _action_fields(payload)
    return _transfer_response(service.approve(actor, transfer_id, evidence=evidence, notes=notes))


@router.post("/transfers/{transfer_id}/reject", response_model=TransferResponse, responses=_ERROR_RESPONSES)
def reject_transfer(
    transfer_id: str,
    payload: TransferActionRequest | None = None,
    actor: Actor = Depends(require_actor),
    service: TransferWorkflowService = Depends(get_workflow_service),
):
    evidence, notes = _action_fields(payload)
    return _transfer_response(service.reject(actor, transfer_id, evidence=evidence, notes=notes))


@router.post("/transfers/{transfer_id}/cancel", response_model=TransferResponse, responses=_ERROR_RESPONSES)
def cancel_transfer(
    transfer_id: str,
    payload: TransferActionRequest | None = None,
    actor: Actor = Depends(require_actor),
    service: TransferWorkflowService = Depends(get_workflow_service),
):
    evidence, notes = _action_fields(payload)
    return _transfer_response(service.cancel(actor, transfer_id, evidence=evidence, notes=notes))


@router.post(
    "/transfers/{transfer_id}/dispatch-to-store",
    response_model=TransferResponse,
    responses=_EVIDENCE_ERROR_RESPONSES,
)
def dispatch_transfer_to_store(
    transfer_id: str,
    payload: TransferDispatchToStoreRequest | None = None,
    actor: Actor = Depends(require_actor),
    service: TransferWorkflowService = Depends(get_workflow_service),
):
    payload = payload or TransferDispatchToStoreRequest()
    transfer = service.dispatch_to_store(
        actor,
        transfer_id,
        handover_document_id=payload.handover_document_id,
        notes=payload.notes,
    )
    return _transfer_response(transfer)


@router.post(
    "/transfers/{transfer_id}/receive-at-store",
    response_model=TransferResponse,
    responses=_ERROR_RESPONSES,
)
def receive_transfer_at_store(
    transfer_id: str,
    payload: TransferActionRequest | None = None,
    actor: Actor = Depends(require_actor),
    service: TransferWorkflowService = Depends(get_workflow_service),
):
    evidence, notes = _action_fields(payload)
    return _transfer_response(service.receive_at_store(actor, transfer_id, evidence=evidence, notes=notes))


@router.post(
    "/transfers/{transfer_id}/dispatch-to-dest",
    response_model=TransferResponse,
    responses=_ERROR_RESPONSES,
)
def dispatch_transfer_to_dest(
    transfer_id: str,
    payload: TransferActionRequest | None = None,
    actor: Actor = Depends(require_actor),
    service: TransferWorkflowService = Depends(get_workflow_service),
):
    evidence, notes = _action_fields(payload)
    return _transfer_response(service.dispatch_to_dest(actor, transfer_id, evidence=evidence, notes=notes))


@router.post(
    "/transfers/{transfer_id}/receive-at-dest",
    response_model=TransferResponse,
    responses=_EVIDENCE_ERROR_RESPONSES,
)
def receive_transfer_at_dest(
    transfer_id: str,
    payload: TransferReceiveAtDestRequest | None = None,
    actor: Actor = Depends(require_actor),
    service: TransferWorkflowService = Depends(get_workflow_service),
):
    payload = payload or TransferReceiveAtDestRequest()
    transfer = service.receive_at_dest(
        actor,
        transfer_id,
        takeover_document_id=payload.takeover_document_id,
        notes=payload.notes,
    )
    return _transfer_response(transfer)


@router.delete("/transfers/{transfer_id}", status_code=status.HTTP_204_NO_CONTENT, responses=_ERROR_RESPONSES)
def delete_transfer(
    transfer_id: str,
    actor: Actor = Depends(require_actor),
    service: TransferWorkflowService = Depends(get_workflow_service),
):
    service.delete(actor, transfer_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
