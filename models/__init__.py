"""
Database models package.
"""
# Import all models for easy access
from .student import Student
from .certification import Certification, CertificationForm, FormTemplate
from .application import Application
from .payment import Payment
from .document_upload import DocumentUpload, UploadedDocument
from .form_submission import FormSubmission
from .third_party_form_submission import ThirdPartyFormSubmission
from .tpr_verification import TPRVerification
from .poller_lease import PollerLease

# Import Base for table creation
from database import Base

# Export all models
__all__ = [
    'Student',
    'Certification',
    'CertificationForm',
    'FormTemplate',
    'Application',
    'Payment',
    'DocumentUpload',
    'UploadedDocument',
    'FormSubmission',
    'ThirdPartyFormSubmission',
    'TPRVerification',
    'PollerLease',
    'Base'
]
