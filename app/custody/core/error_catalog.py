from dataclasses import dataclass
from fastapi import status


@dataclass(frozen=True)
class ErrorDefinition:
    code: str
    message: str
    status_code: int


class ErrorCatalog:
    INVALID_TOKEN = ErrorDefinition("INVALID_TOKEN", "Invalid token", status.HTTP_401_UNAUTHORIZED)
    NOT_FOUND = ErrorDefinition("NOT_FOUND", "Resource not found", status.HTTP_404_NOT_FOUND)
    NOT_AUTHORIZED = ErrorDefinition(
        "NOT_AUTHORIZED",
        "Actor is not authorized for this operation",
        status.HTTP_403_FORBIDDEN,
    )
    INVALID_TRANSITION = ErrorDefinition(
        "INVALID_TRANSITION",
        "Transition is not allowed from the current status",
        status.HTTP_409_CONFLICT,
    )
    MISSING_EVIDENCE = ErrorDefinition(
        "MISSING_EVIDENCE",
        "Required document evidence is missing",
        status.HTTP_400_BAD_REQUEST,
    )
    INVALID_EVIDENCE = ErrorDefinition(
        "INVALID_EVIDENCE",
        "Document cannot be used as evidence",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    CONFLICT = ErrorDefinition("CONFLICT", "Conflict", status.HTTP_409_CONFLICT)
    DB_UNAVAILABLE = ErrorDefinition(
        "DB_UNAVAILABLE",
        "Database unavailable",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    LOCK_TIMEOUT = ErrorDefinition(
        "LOCK_TIMEOUT",
        "Lock wait timeout",
        status.HTTP_409_CONFLICT,
    )
    VALIDATION_ERROR = ErrorDefinition(
        "VALIDATION_ERROR",
        "Validation error",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    INTERNAL_ERROR = ErrorDefinition(
        "INTERNAL_ERROR",
        "Internal server error",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


class AppError(Exception):
    def __init__(self, error: ErrorDefinition, details: object | None = None):
        self.error = error
        self.details = details
        super().__init__(error.message)
