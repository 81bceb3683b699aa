"""
Certification and form template repositories.
"""
from typing import List
from sqlalchemy.orm import Session, joinedload

from repositories.base_repository import BaseRepository
from models.certification import Certification, CertificationForm, FormTemplate


class CertificationRepository(BaseRepository[Certification]):
    """Repository for Certification entity operations."""

    def __init__(self):
        """Initialize CertificationRepository."""
        super().__init__(Certification)

    def get_form_slots(self, session: Session, certification_id: int) -> List[CertificationForm]:
        """
        Get a certification's form slots in their configured order.

        Args:
            session: Database session
            certification_id: Certification ID

        Returns:
            Slots with their templates loaded, in insertion order
        """
        return session.query(CertificationForm).options(
            joinedload(CertificationForm.form_template)
        ).filter(
            CertificationForm.certification_id == certification_id
        ).order_by(CertificationForm.id).all()


class FormTemplateRepository(BaseRepository[FormTemplate]):
    """Repository for FormTemplate entity operations."""

    def __init__(self):
        """Initialize FormTemplateRepository."""
        super().__init__(FormTemplate)
