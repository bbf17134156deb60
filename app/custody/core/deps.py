from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from jose import JWTError
from pydantic import ValidationError

from app.custody.core.context import RequestContext, build_request_context
from app.custody.core.error_catalog import AppError, ErrorCatalog
from app.custody.core.security import TokenData, bearer_scheme, decode_token
from app.custody.db.session import get_db
from app.custody.services.transfer_guard import Actor
from app.custody.services.transfer_workflow import TransferWorkflowService


def get_current_token_data(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> TokenData:
    if credentials is None or not credentials.credentials:
        raise AppError(ErrorCatalog.INVALID_TOKEN)
    try:
        payload = decode_token(credentials.credentials)
        return TokenData(**payload)
    except (JWTError, ValidationError, TypeError) as exc:
        raise AppError(ErrorCatalog.INVALID_TOKEN) from exc


def require_request_context(
    request: Request,
    token_data: TokenData = Depends(get_current_token_data),
) -> RequestContext:
    context = build_request_context(
        user_id=token_data.sub,
        office_id=token_data.office_id,
        role=token_data.role,
        trace_id=getattr(request.state, "trace_id", ""),
    )
    request.state.context = context
    request.state.user_id = token_data.sub
    return context


def require_actor(
    token_data: TokenData = Depends(get_current_token_data),
    _context: RequestContext = Depends(require_request_context),
) -> Actor:
    return Actor(
        user_id=token_data.sub,
        role=token_data.role,
        office_id=token_data.office_id,
        is_org_admin=token_data.is_org_admin,
        is_store_operator=token_data.store_operator,
    )


def get_workflow_service(request: Request, db=Depends(get_db)) -> TransferWorkflowService:
    return TransferWorkflowService(db, trace_id=getattr(request.state, "trace_id", "") or None)


__all__ = [
    "get_current_token_data",
    "require_request_context",
    "require_actor",
    "get_workflow_service",
]
