from app.custody.db.models import Document


class DocumentRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, document_id: str) -> Document | None:
        return self.db.get(Document, document_id)
