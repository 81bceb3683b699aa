"""
Certification pipeline definition: certifications, their form slots and form templates.
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from database import Base


class FormTemplate(Base):
    """Model for a fillable form definition."""
    __tablename__ = 'form_templates'

    id = Column(Integer, primary_key=True)
    name = Column(String(500), nullable=False)
    filled_by = Column(String(50), nullable=False)  # user, assessor, third-party, mapping
    step_number = Column(Integer)
    fields = Column(JSON, default=list)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f'<FormTemplate {self.id}: {self.name}>'

    def to_dict(self):
        """Convert form template to dictionary for API responses."""
        return {
            'id': self.id,
            'name': self.name,
            'filled_by': self.filled_by,
            'step_number': self.step_number,
            'fields': self.fields or [],
            'is_active': self.is_active
        }


class Certification(Base):
    """Model for a certification program and its ordered form slots."""
    __tablename__ = 'certifications'

    id = Column(Integer, primary_key=True)
    name = Column(String(500), unique=True, nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    # Slots keep insertion order so that "first occurrence" is well defined
    form_slots = relationship(
        'CertificationForm',
        back_populates='certification',
        order_by='CertificationForm.id'
    )

    def __repr__(self):
        return f'<Certification {self.id}: {self.name}>'


class CertificationForm(Base):
    """A form slot in a certification pipeline."""
    __tablename__ = 'certification_forms'

    id = Column(Integer, primary_key=True)
    certification_id = Column(Integer, ForeignKey('certifications.id'), nullable=False)
    form_template_id = Column(Integer, ForeignKey('form_templates.id'), nullable=False)
    step_number = Column(Integer)
    filled_by = Column(String(50), nullable=False)
    title = Column(String(500))
    is_required = Column(Boolean, default=True)

    certification = relationship('Certification', back_populates='form_slots')
    form_template = relationship('FormTemplate')

    def __repr__(self):
        return f'<CertificationForm {self.certification_id}:{self.form_template_id}>'
