"""
Verification sub-record repository for database operations.
"""
from typing import Iterable, Optional
from sqlalchemy.orm import Session

from repositories.base_repository import BaseRepository
from models.tpr_verification import TPRVerification


class TPRVerificationRepository(BaseRepository[TPRVerification]):
    """Repository for TPRVerification entity operations."""

    def __init__(self):
        """Initialize TPRVerificationRepository."""
        super().__init__(TPRVerification)

    def find_by_token(self, session: Session, token: str) -> Optional[TPRVerification]:
        """Get the party record whose verification token equals the given one."""
        if not token:
            return None
        return self.find_one_by(session, token=token)

    def find_by_sent_message_id(
        self,
        session: Session,
        message_ids: Iterable[str]
    ) -> Optional[TPRVerification]:
        """
        Get the party record whose last outbound Message-ID is among the candidates.

        Args:
            session: Database session
            message_ids: Identifier spellings to try (bracketed and bare)

        Returns:
            Verification instance or None if not found
        """
        candidates = [mid for mid in message_ids if mid]
        if not candidates:
            return None
        return session.query(TPRVerification).filter(
            TPRVerification.last_sent_message_id.in_(candidates)
        ).order_by(TPRVerification.id).first()
