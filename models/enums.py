"""
Closed value sets shared by models and services.
"""
from enum import Enum


class FilledBy(str, Enum):
    """Role that fills a certification form slot."""
    USER = 'user'
    ASSESSOR = 'assessor'
    THIRD_PARTY = 'third-party'
    MAPPING = 'mapping'


class OverallStatus(str, Enum):
    INITIAL_SCREENING = 'initial_screening'
    PAYMENT_PENDING = 'payment_pending'
    PAYMENT_COMPLETED = 'payment_completed'
    IN_PROGRESS = 'in_progress'
    UNDER_REVIEW = 'under_review'
    ASSESSMENT_PENDING = 'assessment_pending'
    ASSESSMENT_COMPLETED = 'assessment_completed'
    CERTIFICATE_ISSUED = 'certificate_issued'
    COMPLETED = 'completed'
    REJECTED = 'rejected'


# Statuses at or beyond the end of assessment
ASSESSMENT_DONE_STATUSES = frozenset({
    OverallStatus.ASSESSMENT_COMPLETED.value,
    OverallStatus.CERTIFICATE_ISSUED.value,
    OverallStatus.COMPLETED.value,
})


class StepType(str, Enum):
    PAYMENT = 'payment'
    FORM = 'form'
    DOCUMENT_UPLOAD = 'document_upload'
    EVIDENCE_UPLOAD = 'evidence_upload'
    ASSESSMENT = 'assessment'
    CERTIFICATE = 'certificate'


class SubmissionStatus(str, Enum):
    DRAFT = 'draft'
    SUBMITTED = 'submitted'
    ASSESSED = 'assessed'


class AssessedStatus(str, Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    REQUIRES_CHANGES = 'requires_changes'


class ThirdPartyStatus(str, Enum):
    PENDING = 'pending'
    PARTIALLY_COMPLETED = 'partially_completed'
    COMPLETED = 'completed'


class Party(str, Enum):
    """Third-party slot addressed by a token."""
    EMPLOYER = 'employer'
    REFERENCE = 'reference'
    COMBINED = 'combined'


class VerificationStatus(str, Enum):
    """Per-party verification state."""
    NOT_SENT = 'not_sent'
    PENDING = 'pending'
    VERIFIED = 'verified'
    REJECTED = 'rejected'


class AggregateVerificationStatus(str, Enum):
    NONE = 'none'
    PENDING = 'pending'
    VERIFIED = 'verified'
    REJECTED = 'rejected'


class PaymentStatus(str, Enum):
    PENDING = 'pending'
    PROCESSING = 'processing'
    COMPLETED = 'completed'
    FAILED = 'failed'
    REFUNDED = 'refunded'
