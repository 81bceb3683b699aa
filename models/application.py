"""
Application model: aggregate root of a student's certification progress.
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from database import Base
from models.enums import OverallStatus


class Application(Base):
    """Model for a certification application."""
    __tablename__ = 'applications'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('students.id'))
    certification_id = Column(Integer, ForeignKey('certifications.id'), nullable=False)
    overall_status = Column(String(50), default=OverallStatus.INITIAL_SCREENING.value)
    current_step = Column(Integer, default=1)
    assigned_assessor_id = Column(String(100))
    is_archived = Column(Boolean, default=False)

    # Final certificate artifact
    final_certificate_s3_key = Column(String(1000))
    final_certificate_number = Column(String(100))
    final_certificate_issued_at = Column(DateTime)
    final_certificate_expiry_date = Column(DateTime)

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    student = relationship('Student', back_populates='applications')
    certification = relationship('Certification')

    def __repr__(self):
        return f'<Application {self.id}: {self.overall_status}>'

    @property
    def has_final_certificate(self) -> bool:
        return bool(self.final_certificate_s3_key)

    def to_dict(self):
        """Convert application to dictionary for API responses."""
        return {
            'id': self.id,
            'user_id': self.user_id,
            'certification_id': self.certification_id,
            'overall_status': self.overall_status,
            'current_step': self.current_step,
            'assigned_assessor_id': self.assigned_assessor_id,
            'is_archived': self.is_archived,
            'final_certificate': {
                'certificate_number': self.final_certificate_number,
                'issued_at': self.final_certificate_issued_at.isoformat() if self.final_certificate_issued_at else None,
                'expiry_date': self.final_certificate_expiry_date.isoformat() if self.final_certificate_expiry_date else None
            } if self.has_final_certificate else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }
