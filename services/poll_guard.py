"""
Mutual exclusion for inbox reconciliation runs.

An in-process lock stops overlapping runs inside one worker, and a lease
row in the shared database stops them across workers. A lease left behind
by a crashed holder expires after TPR_POLL_LEASE_SECONDS.
"""
import logging
import os
import socket
import threading
import uuid
from datetime import datetime, timezone
from injector import inject
from sqlalchemy.exc import IntegrityError

from database.connection import get_db_session
from repositories.poller_lease_repository import PollerLeaseRepository
import config.settings as settings

logger = logging.getLogger(__name__)

LEASE_NAME = 'tpr-inbox'


class PollGuard:
    """Non-blocking lock plus a shared lease; acquire() never waits."""

    @inject
    def __init__(self, lease_repository: PollerLeaseRepository):
        self.lease_repository = lease_repository
        self.name = LEASE_NAME
        self.holder = f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"
        self._lock = threading.Lock()

    def acquire(self) -> bool:
        """
        Try to take the guard.

        Returns:
            True if this caller now owns the run
        """
        if not self._lock.acquire(blocking=False):
            return False

        try:
            with get_db_session() as session:
                acquired = self.lease_repository.try_acquire(
                    session,
                    self.name,
                    self.holder,
                    datetime.now(timezone.utc),
                    settings.TPR_POLL_LEASE_SECONDS
                )
        except IntegrityError:
            # Another worker inserted the lease first
            acquired = False
        except Exception:
            self._lock.release()
            raise

        if not acquired:
            self._lock.release()
        return acquired

    def release(self) -> None:
        """Give the guard back; the in-process lock is released even if the lease update fails."""
        try:
            with get_db_session() as session:
                self.lease_repository.release(session, self.name, self.holder)
        finally:
            self._lock.release()

    def is_held(self) -> bool:
        return self._lock.locked()
