"""
Payment and document upload lookups used by the progress engine.
"""
from typing import Optional
from sqlalchemy.orm import Session, selectinload

from repositories.base_repository import BaseRepository
from models.payment import Payment
from models.document_upload import DocumentUpload


class PaymentRepository(BaseRepository[Payment]):
    """Repository for Payment entity operations."""

    def __init__(self):
        """Initialize PaymentRepository."""
        super().__init__(Payment)

    def get_by_application_id(self, session: Session, application_id: int) -> Optional[Payment]:
        return self.find_one_by(session, application_id=application_id)


class DocumentUploadRepository(BaseRepository[DocumentUpload]):
    """Repository for DocumentUpload entity operations."""

    def __init__(self):
        """Initialize DocumentUploadRepository."""
        super().__init__(DocumentUpload)

    def get_by_application_id(self, session: Session, application_id: int) -> Optional[DocumentUpload]:
        return session.query(DocumentUpload).options(
            selectinload(DocumentUpload.documents)
        ).filter(DocumentUpload.application_id == application_id).first()
