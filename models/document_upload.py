"""
Document upload models consumed by the progress engine.
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from database import Base

EVIDENCE_MIME_PREFIXES = ('image/', 'video/')


class DocumentUpload(Base):
    """Container for all files uploaded against an application."""
    __tablename__ = 'document_uploads'

    id = Column(Integer, primary_key=True)
    application_id = Column(Integer, ForeignKey('applications.id'), nullable=False, unique=True)
    status = Column(String(50), default='pending')
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    documents = relationship('UploadedDocument', back_populates='upload', order_by='UploadedDocument.id')

    def __repr__(self):
        return f'<DocumentUpload {self.id}: {len(self.documents)} files>'

    @property
    def supporting_documents(self):
        """Uploaded files that are not images or videos."""
        return [doc for doc in self.documents if not doc.is_evidence]

    @property
    def image_count(self) -> int:
        return sum(1 for doc in self.documents if (doc.mime_type or '').startswith('image/'))

    @property
    def video_count(self) -> int:
        return sum(1 for doc in self.documents if (doc.mime_type or '').startswith('video/'))


class UploadedDocument(Base):
    """A single stored file. Storage itself is handled elsewhere."""
    __tablename__ = 'uploaded_documents'

    id = Column(Integer, primary_key=True)
    upload_id = Column(Integer, ForeignKey('document_uploads.id'), nullable=False)
    document_type = Column(String(100), nullable=False)
    original_name = Column(String(500))
    s3_key = Column(String(1000))
    mime_type = Column(String(100), nullable=False)
    verification_status = Column(String(50), default='pending')
    uploaded_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    upload = relationship('DocumentUpload', back_populates='documents')

    @property
    def is_evidence(self) -> bool:
        return (self.mime_type or '').startswith(EVIDENCE_MIME_PREFIXES)
