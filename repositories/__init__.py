"""
Repository pattern implementation for database operations.
"""

from .base_repository import BaseRepository
from .application_repository import ApplicationRepository
from .certification_repository import CertificationRepository, FormTemplateRepository
from .payment_repository import PaymentRepository, DocumentUploadRepository
from .form_submission_repository import FormSubmissionRepository
from .third_party_form_repository import ThirdPartyFormRepository
from .tpr_verification_repository import TPRVerificationRepository
from .poller_lease_repository import PollerLeaseRepository

__all__ = [
    'BaseRepository',
    'ApplicationRepository',
    'CertificationRepository',
    'FormTemplateRepository',
    'PaymentRepository',
    'DocumentUploadRepository',
    'FormSubmissionRepository',
    'ThirdPartyFormRepository',
    'TPRVerificationRepository',
    'PollerLeaseRepository'
]
