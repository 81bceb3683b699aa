"""
Payment model consumed by the progress engine.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric
from datetime import datetime, timezone
from database import Base
from models.enums import PaymentStatus


class Payment(Base):
    """Model for an application's payment (one-off or payment plan)."""
    __tablename__ = 'payments'

    id = Column(Integer, primary_key=True)
    application_id = Column(Integer, ForeignKey('applications.id'), nullable=False, unique=True)
    payment_type = Column(String(50), default='one_time')  # one_time, payment_plan
    status = Column(String(50), default=PaymentStatus.PENDING.value)
    total_amount = Column(Numeric(10, 2), default=0)
    remaining_amount = Column(Numeric(10, 2), default=0)
    paid_at = Column(DateTime)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f'<Payment {self.id}: {self.status}>'

    def is_fully_paid(self) -> bool:
        """A positive remaining balance means not fully paid, whatever the status."""
        if self.status != PaymentStatus.COMPLETED.value:
            return False
        return (self.remaining_amount or 0) <= 0
