"""
Third-party form request repository for database operations.
"""
from typing import List, Optional, Tuple
from datetime import datetime
from sqlalchemy.orm import Session
from sqlalchemy import and_, or_

from repositories.base_repository import BaseRepository
from models.enums import Party
from models.third_party_form_submission import ThirdPartyFormSubmission


class ThirdPartyFormRepository(BaseRepository[ThirdPartyFormSubmission]):
    """Repository for ThirdPartyFormSubmission entity operations."""

    def __init__(self):
        """Initialize ThirdPartyFormRepository."""
        super().__init__(ThirdPartyFormSubmission)

    def find_active(
        self,
        session: Session,
        application_id: int,
        form_template_id: int,
        now: datetime
    ) -> Optional[ThirdPartyFormSubmission]:
        """
        Get the live (active, unexpired) request for an application and template.

        Args:
            session: Database session
            application_id: Application ID
            form_template_id: Form template ID
            now: Reference time for expiry

        Returns:
            Request instance or None if no live request exists
        """
        return session.query(ThirdPartyFormSubmission).filter(
            ThirdPartyFormSubmission.application_id == application_id,
            ThirdPartyFormSubmission.form_template_id == form_template_id,
            ThirdPartyFormSubmission.is_active.is_(True),
            ThirdPartyFormSubmission.expires_at > now
        ).order_by(ThirdPartyFormSubmission.id.desc()).first()

    def find_latest(
        self,
        session: Session,
        application_id: int,
        form_template_id: Optional[int] = None
    ) -> Optional[ThirdPartyFormSubmission]:
        """Get the most recent request for an application, expired or not."""
        query = session.query(ThirdPartyFormSubmission).filter_by(application_id=application_id)
        if form_template_id is not None:
            query = query.filter_by(form_template_id=form_template_id)
        return query.order_by(ThirdPartyFormSubmission.id.desc()).first()

    def get_by_application_id(self, session: Session, application_id: int) -> List[ThirdPartyFormSubmission]:
        """Get every request of an application, newest last."""
        return session.query(ThirdPartyFormSubmission).filter_by(
            application_id=application_id
        ).order_by(ThirdPartyFormSubmission.id).all()

    def find_by_access_token(
        self,
        session: Session,
        token: str,
        now: datetime
    ) -> Tuple[Optional[ThirdPartyFormSubmission], Optional[Party]]:
        """
        Resolve an access token to its live request and slot.

        Individual employer/reference tokens of a same-email request are
        not reachable; only its combined token resolves.

        Args:
            session: Database session
            token: Access token from the form URL
            now: Reference time for expiry

        Returns:
            Tuple of (request, party), or (None, None) if nothing live matches
        """
        if not token:
            return None, None

        tpr = session.query(ThirdPartyFormSubmission).filter(
            or_(
                ThirdPartyFormSubmission.combined_token == token,
                and_(
                    ThirdPartyFormSubmission.is_same_email.is_(False),
                    or_(
                        ThirdPartyFormSubmission.employer_token == token,
                        ThirdPartyFormSubmission.reference_token == token
                    )
                )
            ),
            ThirdPartyFormSubmission.is_active.is_(True),
            ThirdPartyFormSubmission.expires_at > now
        ).first()

        if not tpr:
            return None, None
        if tpr.combined_token == token:
            return tpr, Party.COMBINED
        if tpr.employer_token == token:
            return tpr, Party.EMPLOYER
        return tpr, Party.REFERENCE
