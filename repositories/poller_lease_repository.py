"""
Lease repository backing the reconciler's cross-process guard.
"""
from datetime import datetime, timedelta
from sqlalchemy import or_
from sqlalchemy.orm import Session

from repositories.base_repository import BaseRepository
from models.poller_lease import PollerLease


class PollerLeaseRepository(BaseRepository[PollerLease]):
    """Repository for PollerLease entity operations."""

    def __init__(self):
        """Initialize PollerLeaseRepository."""
        super().__init__(PollerLease)

    def try_acquire(
        self,
        session: Session,
        name: str,
        holder: str,
        now: datetime,
        ttl_seconds: int
    ) -> bool:
        """
        Take the named lease if it is free, expired, or already ours.

        A concurrent insert of the same name raises IntegrityError on flush;
        callers treat that as "not acquired".

        Returns:
            True if the caller now holds the lease
        """
        expires_at = now + timedelta(seconds=ttl_seconds)
        updated = session.query(PollerLease).filter(
            PollerLease.name == name,
            or_(PollerLease.expires_at < now, PollerLease.holder == holder)
        ).update({'holder': holder, 'expires_at': expires_at}, synchronize_session=False)
        if updated:
            return True

        if session.get(PollerLease, name) is not None:
            return False

        session.add(PollerLease(name=name, holder=holder, expires_at=expires_at))
        session.flush()
        return True

    def release(self, session: Session, name: str, holder: str) -> None:
        """Drop the lease if the caller still holds it."""
        session.query(PollerLease).filter(
            PollerLease.name == name,
            PollerLease.holder == holder
        ).delete(synchronize_session=False)
