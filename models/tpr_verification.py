"""
Verification sub-record of a third-party request, one row per party.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from database import Base
from models.enums import VerificationStatus


class TPRVerification(Base):
    """Tracks the out-of-band verification email sent to one party."""
    __tablename__ = 'tpr_verifications'

    id = Column(Integer, primary_key=True)
    submission_id = Column(Integer, ForeignKey('third_party_form_submissions.id'), nullable=False, index=True)
    party = Column(String(20), nullable=False)  # employer, reference, combined
    status = Column(String(20), default=VerificationStatus.NOT_SENT.value)
    token = Column(String(128), unique=True)
    short_code = Column(String(6))
    sent_at = Column(DateTime)
    last_sent_subject = Column(String(500))
    last_sent_message_id = Column(String(500), index=True)
    response_content = Column(Text)
    verified_at = Column(DateTime)

    submission = relationship('ThirdPartyFormSubmission', back_populates='verifications')

    def __repr__(self):
        return f'<TPRVerification {self.submission_id}:{self.party} {self.status}>'

    def to_dict(self):
        """Convert verification to dictionary for API responses."""
        return {
            'party': self.party,
            'status': self.status,
            'short_code': self.short_code,
            'sent_at': self.sent_at.isoformat() if self.sent_at else None,
            'last_sent_subject': self.last_sent_subject,
            'last_sent_message_id': self.last_sent_message_id,
            'response_content': self.response_content,
            'verified_at': self.verified_at.isoformat() if self.verified_at else None
        }
