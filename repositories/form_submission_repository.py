"""
Form submission repository for database operations.
"""
from typing import List, Optional
from sqlalchemy.orm import Session

from repositories.base_repository import BaseRepository
from models.form_submission import FormSubmission


class FormSubmissionRepository(BaseRepository[FormSubmission]):
    """Repository for FormSubmission entity operations."""

    def __init__(self):
        """Initialize FormSubmissionRepository."""
        super().__init__(FormSubmission)

    def get_by_application_id(self, session: Session, application_id: int) -> List[FormSubmission]:
        """
        Get every submission of an application.

        Args:
            session: Database session
            application_id: Application ID

        Returns:
            Submissions ordered by ID
        """
        return session.query(FormSubmission).filter_by(
            application_id=application_id
        ).order_by(FormSubmission.id).all()

    def find_for_filler(
        self,
        session: Session,
        application_id: int,
        form_template_id: int,
        filled_by: str
    ) -> Optional[FormSubmission]:
        """
        Get the submission for an (application, template, filler) triple.

        Args:
            session: Database session
            application_id: Application ID
            form_template_id: Form template ID
            filled_by: Filler role value

        Returns:
            Submission instance or None if not found
        """
        return self.find_one_by(
            session,
            application_id=application_id,
            form_template_id=form_template_id,
            filled_by=filled_by
        )
