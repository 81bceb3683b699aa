"""
Lease record guarding the inbox reconciler across processes.
"""
from sqlalchemy import Column, String, DateTime
from database import Base


class PollerLease(Base):
    """Named lease; whoever holds an unexpired row owns the run."""
    __tablename__ = 'poller_leases'

    name = Column(String(100), primary_key=True)
    holder = Column(String(200), nullable=False)
    expires_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f'<PollerLease {self.name}: {self.holder}>'
