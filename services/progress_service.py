"""
Progress Service: loads an application's records and runs the step calculator.
"""
import logging
from typing import Dict, Any
from injector import inject
from sqlalchemy.orm import Session

from repositories.application_repository import ApplicationRepository
from repositories.certification_repository import CertificationRepository
from repositories.payment_repository import PaymentRepository, DocumentUploadRepository
from repositories.form_submission_repository import FormSubmissionRepository
from repositories.third_party_form_repository import ThirdPartyFormRepository
from services.exceptions import NotFoundError, ValidationError
from services.step_calculator import ProgressSnapshot, StepCalculator

logger = logging.getLogger(__name__)

VIEWS = ('student', 'assessor', 'admin')


class ProgressService:
    """Service computing and persisting application progress."""

    @inject
    def __init__(
        self,
        application_repository: ApplicationRepository,
        certification_repository: CertificationRepository,
        payment_repository: PaymentRepository,
        document_upload_repository: DocumentUploadRepository,
        form_submission_repository: FormSubmissionRepository,
        third_party_form_repository: ThirdPartyFormRepository
    ):
        """Initialize progress service."""
        self.application_repository = application_repository
        self.certification_repository = certification_repository
        self.payment_repository = payment_repository
        self.document_upload_repository = document_upload_repository
        self.form_submission_repository = form_submission_repository
        self.third_party_form_repository = third_party_form_repository

    def load_snapshot(self, session: Session, application_id: int) -> ProgressSnapshot:
        """
        Read every record the calculation depends on.

        Args:
            session: Database session
            application_id: Application ID

        Returns:
            Snapshot of the application's dependent records

        Raises:
            NotFoundError: If the application does not exist
        """
        application = self.application_repository.get_by_id(session, application_id)
        if not application:
            raise NotFoundError(f"Application {application_id} not found")

        return ProgressSnapshot(
            application=application,
            form_slots=self.certification_repository.get_form_slots(session, application.certification_id),
            payment=self.payment_repository.get_by_application_id(session, application_id),
            form_submissions=self.form_submission_repository.get_by_application_id(session, application_id),
            third_party_submissions=self.third_party_form_repository.get_by_application_id(session, application_id),
            document_upload=self.document_upload_repository.get_by_application_id(session, application_id)
        )

    def compute_progress(self, session: Session, application_id: int, view: str = 'admin') -> Dict[str, Any]:
        """
        Compute the progress read model without writing anything.

        Args:
            session: Database session
            application_id: Application ID
            view: student, assessor or admin; the student view hides
                steps that are not user-visible

        Returns:
            Progress read model
        """
        if view not in VIEWS:
            raise ValidationError(f"Unknown view '{view}', expected one of {', '.join(VIEWS)}")

        progress = StepCalculator(self.load_snapshot(session, application_id)).calculate()
        progress['view'] = view

        if view == 'student':
            user_view = progress['user_view']
            progress['steps'] = [step for step in progress['steps'] if step['is_user_visible']]
            progress['current_step'] = user_view['current_step']
            progress['total_steps'] = user_view['total_steps']
            progress['completed_steps'] = user_view['completed_steps']
            progress['progress_percentage'] = user_view['progress_percentage']

        return progress

    def update_application_progress(self, session: Session, application_id: int) -> Dict[str, Any]:
        """
        Recompute progress and write current step and overall status.

        The write is the only side effect; every input is read within this call.

        Args:
            session: Database session
            application_id: Application ID

        Returns:
            Full progress read model
        """
        snapshot = self.load_snapshot(session, application_id)
        progress = StepCalculator(snapshot).calculate()

        application = snapshot.application
        previous_status = application.overall_status
        self.application_repository.save_progress(
            session,
            application,
            current_step=progress['current_step'],
            overall_status=progress['overall_status']
        )

        if previous_status != progress['overall_status']:
            logger.info(
                f"Application {application_id} status {previous_status} -> "
                f"{progress['overall_status']} (step {progress['current_step']}/{progress['total_steps']})"
            )
        return progress
