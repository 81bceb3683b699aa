"""
Third-party form request: employer and reference corroboration of an application.
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from database import Base
from models.enums import Party, ThirdPartyStatus, AggregateVerificationStatus


def empty_slot() -> dict:
    return {
        'form_data': {},
        'submitted_at': None,
        'ip_address': None,
        'user_agent': None,
        'is_submitted': False
    }


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes read back from the database as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ThirdPartyFormSubmission(Base):
    """Model for a token-scoped request sent to an employer and a reference."""
    __tablename__ = 'third_party_form_submissions'

    id = Column(Integer, primary_key=True)
    application_id = Column(Integer, ForeignKey('applications.id'), nullable=False, index=True)
    form_template_id = Column(Integer, ForeignKey('form_templates.id'), nullable=False)
    user_id = Column(Integer, ForeignKey('students.id'))

    # Third party details (emails stored lower-case)
    employer_name = Column(String(500), nullable=False)
    employer_email = Column(String(255), nullable=False)
    reference_name = Column(String(500), nullable=False)
    reference_email = Column(String(255), nullable=False)
    is_same_email = Column(Boolean, default=False, nullable=False)

    # Access tokens
    employer_token = Column(String(128), unique=True, nullable=False)
    reference_token = Column(String(128), unique=True, nullable=False)
    combined_token = Column(String(128), unique=True)

    # Slot submissions: form_data, submitted_at, ip_address, user_agent, is_submitted
    employer_submission = Column(JSON, default=empty_slot)
    reference_submission = Column(JSON, default=empty_slot)
    combined_submission = Column(JSON)

    status = Column(String(50), default=ThirdPartyStatus.PENDING.value)
    employer_email_sent = Column(Boolean, default=False)
    reference_email_sent = Column(Boolean, default=False)
    combined_email_sent = Column(Boolean, default=False)

    verification_status = Column(String(50), default=AggregateVerificationStatus.NONE.value)

    step_number = Column(Integer)
    is_active = Column(Boolean, default=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    application = relationship('Application')
    form_template = relationship('FormTemplate')
    student = relationship('Student')
    verifications = relationship(
        'TPRVerification',
        back_populates='submission',
        order_by='TPRVerification.id'
    )

    def __repr__(self):
        return f'<ThirdPartyFormSubmission {self.id}: {self.status}>'

    @property
    def parties(self) -> list:
        """Slots reachable from outside: the combined one alone when emails match."""
        if self.is_same_email:
            return [Party.COMBINED]
        return [Party.EMPLOYER, Party.REFERENCE]

    def get_slot(self, party: Party) -> dict:
        value = getattr(self, f'{Party(party).value}_submission')
        return dict(value) if value else empty_slot()

    def set_slot(self, party: Party, slot: dict) -> None:
        # Assign a fresh dict so the JSON column is flagged as modified
        setattr(self, f'{Party(party).value}_submission', dict(slot))

    def token_for(self, party: Party) -> str:
        return getattr(self, f'{Party(party).value}_token')

    @property
    def is_fully_completed(self) -> bool:
        if self.is_same_email:
            return bool(self.get_slot(Party.COMBINED)['is_submitted'])
        return bool(
            self.get_slot(Party.EMPLOYER)['is_submitted']
            and self.get_slot(Party.REFERENCE)['is_submitted']
        )

    @property
    def is_partially_submitted(self) -> bool:
        return any(self.get_slot(party)['is_submitted'] for party in self.parties)

    def is_expired(self, now: datetime) -> bool:
        return as_utc(self.expires_at) <= as_utc(now)

    def verification_for(self, party: Party):
        for verification in self.verifications:
            if verification.party == Party(party).value:
                return verification
        return None

    def to_status_dict(self):
        """Convert request to the status view shown to the student; only reachable slots appear."""
        status = {
            'id': self.id,
            'status': self.status,
            'employer_name': self.employer_name,
            'reference_name': self.reference_name,
            'is_same_email': self.is_same_email,
            'is_fully_completed': self.is_fully_completed,
            'verification_status': self.verification_status,
            'expires_at': self.expires_at.isoformat() if self.expires_at else None
        }
        for party in self.parties:
            status[f'{party.value}_submitted'] = bool(self.get_slot(party)['is_submitted'])
            status[f'{party.value}_email_sent'] = bool(getattr(self, f'{party.value}_email_sent'))
        return status
