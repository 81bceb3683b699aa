"""
Application repository for database operations.
"""
from datetime import datetime, timezone
from sqlalchemy.orm import Session

from repositories.base_repository import BaseRepository
from models.application import Application


class ApplicationRepository(BaseRepository[Application]):
    """Repository for Application entity operations."""

    def __init__(self):
        """Initialize ApplicationRepository."""
        super().__init__(Application)

    def save_progress(
        self,
        session: Session,
        application: Application,
        current_step: int,
        overall_status: str
    ) -> Application:
        """
        Write the recomputed step and status.

        Args:
            session: Database session
            application: Application to update
            current_step: Current step number
            overall_status: Derived overall status

        Returns:
            Updated application instance
        """
        application.current_step = current_step
        application.overall_status = overall_status
        application.updated_at = datetime.now(timezone.utc)
        session.flush()
        return application
