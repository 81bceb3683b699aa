"""
Form submission model: one per (application, form template, filler).
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from database import Base
from models.enums import SubmissionStatus, AssessedStatus


class FormSubmission(Base):
    """Model for a filled form, including its version history."""
    __tablename__ = 'form_submissions'

    id = Column(Integer, primary_key=True)
    application_id = Column(Integer, ForeignKey('applications.id'), nullable=False)
    form_template_id = Column(Integer, ForeignKey('form_templates.id'), nullable=False)
    filled_by = Column(String(50), nullable=False)
    form_data = Column(JSON, default=dict)
    status = Column(String(50), default=SubmissionStatus.DRAFT.value)  # draft, submitted, assessed
    assessed = Column(String(50), default=AssessedStatus.PENDING.value)  # pending, approved, requires_changes
    assessor_feedback = Column(Text)
    assessed_at = Column(DateTime)
    version = Column(Integer, default=1)
    previous_versions = Column(JSON, default=list)
    submission_metadata = Column(JSON, default=dict)
    submitted_at = Column(DateTime)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    application = relationship('Application')
    form_template = relationship('FormTemplate')

    def __repr__(self):
        return f'<FormSubmission {self.id}: {self.status} v{self.version}>'

    @property
    def requires_resubmission(self) -> bool:
        return self.assessed == AssessedStatus.REQUIRES_CHANGES.value

    def to_dict(self):
        """Convert submission to dictionary for API responses."""
        return {
            'id': self.id,
            'application_id': self.application_id,
            'form_template_id': self.form_template_id,
            'filled_by': self.filled_by,
            'form_data': self.form_data or {},
            'status': self.status,
            'assessed': self.assessed,
            'assessor_feedback': self.assessor_feedback,
            'resubmission_required': self.requires_resubmission,
            'version': self.version,
            'submitted_at': self.submitted_at.isoformat() if self.submitted_at else None
        }
