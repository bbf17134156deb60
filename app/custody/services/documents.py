from __future__ import annotations

from app.custody.core.config import settings
from app.custody.core.error_catalog import AppError, ErrorCatalog
from app.custody.db.models import Document
from app.custody.repos.documents import DocumentRepository


class DocumentReferenceValidator:
    """Checks that a stored document can back a custody-changing transition."""

    def __init__(
        self,
        db,
        *,
        accepted_types: list[str] | None = None,
        rejected_statuses: list[str] | None = None,
    ):
        self.repo = DocumentRepository(db)
        self.accepted_types = set(accepted_types or settings.TRANSFER_EVIDENCE_DOC_TYPES)
        self.rejected_statuses = set(rejected_statuses or settings.DOCUMENT_REJECTED_STATUSES)

    def check(self, document_id: str, *, office_id: str, field_name: str) -> Document:
        document = self.repo.get_by_id(document_id)
        if document is None:
            raise self._invalid(field_name, document_id, "document not found")
        if document.office_id != office_id:
            raise self._invalid(field_name, document_id, "document belongs to a different office")
        if document.doc_type not in self.accepted_types:
            raise self._invalid(
                field_name,
                document_id,
                f"document type {document.doc_type} is not accepted",
            )
        if document.status in self.rejected_statuses:
            raise self._invalid(field_name, document_id, f"document status {document.status} is not accepted")
        return document

    @staticmethod
    def _invalid(field_name: str, document_id: str, message: str) -> AppError:
        return AppError(
            ErrorCatalog.INVALID_EVIDENCE,
            details={"message": message, "field": field_name, field_name: document_id},
        )
