"""
Form Submission Service for user, assessor and merged third-party forms.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from injector import inject
from sqlalchemy.orm import Session

from models.enums import FilledBy, SubmissionStatus, AssessedStatus
from models.form_submission import FormSubmission
from repositories.application_repository import ApplicationRepository
from repositories.certification_repository import FormTemplateRepository
from repositories.form_submission_repository import FormSubmissionRepository
from services.exceptions import NotFoundError, AlreadySubmittedError, ValidationError
from services.progress_service import ProgressService

logger = logging.getLogger(__name__)

ASSESSMENT_OUTCOMES = (AssessedStatus.APPROVED.value, AssessedStatus.REQUIRES_CHANGES.value)


class FormSubmissionService:
    """Service for saving, submitting and assessing form submissions."""

    @inject
    def __init__(
        self,
        submission_repository: FormSubmissionRepository,
        application_repository: ApplicationRepository,
        template_repository: FormTemplateRepository,
        progress_service: ProgressService
    ):
        """Initialize form submission service."""
        self.submission_repository = submission_repository
        self.application_repository = application_repository
        self.template_repository = template_repository
        self.progress_service = progress_service

    def save_form(
        self,
        session: Session,
        application_id: int,
        form_template_id: int,
        filled_by: str,
        form_data: Dict[str, Any],
        submit: bool = False
    ) -> FormSubmission:
        """
        Save a draft or submit a user, assessor or mapping form.

        Args:
            session: Database session
            application_id: Application ID
            form_template_id: Form template ID
            filled_by: Filler role (third-party forms go through their tokens)
            form_data: Field values
            submit: Submit instead of saving a draft

        Returns:
            The saved submission

        Raises:
            NotFoundError: If the application or template does not exist
            AlreadySubmittedError: If the form was submitted and not sent back
        """
        try:
            role = FilledBy(filled_by)
        except ValueError:
            raise ValidationError(f"Unknown filler role '{filled_by}'")
        if role == FilledBy.THIRD_PARTY:
            raise ValidationError("Third-party forms are submitted through their access tokens")

        if not self.application_repository.get_by_id(session, application_id):
            raise NotFoundError(f"Application {application_id} not found")
        if not self.template_repository.get_by_id(session, form_template_id):
            raise NotFoundError(f"Form template {form_template_id} not found")

        existing = self.submission_repository.find_for_filler(
            session, application_id, form_template_id, role.value
        )
        if existing and existing.status != SubmissionStatus.DRAFT.value and not existing.requires_resubmission:
            raise AlreadySubmittedError(
                f"Form {form_template_id} was already submitted for application {application_id}"
            )

        if submit:
            submission = self.record_submission(
                session, application_id, form_template_id, role, form_data
            )
            self.progress_service.update_application_progress(session, application_id)
            return submission

        # Draft edits of a sent-back form stay on the current version until resubmitted
        if existing:
            return self.submission_repository.update(session, existing, form_data=dict(form_data or {}))

        return self.submission_repository.create(
            session,
            application_id=application_id,
            form_template_id=form_template_id,
            filled_by=role.value,
            form_data=dict(form_data or {}),
            status=SubmissionStatus.DRAFT.value,
            previous_versions=[],
            submission_metadata={}
        )

    def record_submission(
        self,
        session: Session,
        application_id: int,
        form_template_id: int,
        filled_by: FilledBy,
        form_data: Dict[str, Any],
        metadata: Optional[Dict[str, Any]] = None
    ) -> FormSubmission:
        """
        Write a submitted form, versioning it when it had been sent back.

        Args:
            session: Database session
            application_id: Application ID
            form_template_id: Form template ID
            filled_by: Filler role
            form_data: Final field values
            metadata: Extra submission metadata

        Returns:
            The submitted record
        """
        now = datetime.now(timezone.utc)
        submission = self.submission_repository.find_for_filler(
            session, application_id, form_template_id, filled_by.value
        )

        if submission is None:
            submission = self.submission_repository.create(
                session,
                application_id=application_id,
                form_template_id=form_template_id,
                filled_by=filled_by.value,
                form_data=dict(form_data),
                status=SubmissionStatus.SUBMITTED.value,
                assessed=AssessedStatus.PENDING.value,
                version=1,
                previous_versions=[],
                submission_metadata=dict(metadata or {}),
                submitted_at=now
            )
            logger.info(f"Created {filled_by.value} submission {submission.id} for application {application_id}")
            return submission

        if submission.requires_resubmission:
            history = list(submission.previous_versions or [])
            history.append({
                'version': submission.version or 1,
                'form_data': submission.form_data or {},
                'submitted_at': submission.submitted_at.isoformat() if submission.submitted_at else None,
                'assessor_feedback': submission.assessor_feedback,
            })
            submission.previous_versions = history
            submission.version = (submission.version or 1) + 1
            submission.assessed = AssessedStatus.PENDING.value
            submission.assessor_feedback = None
            submission.assessed_at = None
            logger.info(f"Submission {submission.id} resubmitted as version {submission.version}")

        submission.form_data = dict(form_data)
        submission.status = SubmissionStatus.SUBMITTED.value
        submission.submitted_at = now
        if metadata:
            submission.submission_metadata = {**(submission.submission_metadata or {}), **metadata}
        session.flush()
        return submission

    def assess(
        self,
        session: Session,
        submission_id: int,
        outcome: str,
        feedback: Optional[str] = None
    ) -> FormSubmission:
        """
        Record an assessor's decision on a submitted form.

        Args:
            session: Database session
            submission_id: Submission ID
            outcome: approved or requires_changes
            feedback: Optional assessor feedback

        Returns:
            The assessed submission
        """
        if outcome not in ASSESSMENT_OUTCOMES:
            raise ValidationError(f"Assessment outcome must be one of {', '.join(ASSESSMENT_OUTCOMES)}")

        submission = self.submission_repository.get_by_id(session, submission_id)
        if not submission:
            raise NotFoundError(f"Form submission {submission_id} not found")
        if submission.status == SubmissionStatus.DRAFT.value:
            raise ValidationError("Draft submissions cannot be assessed")

        submission.assessed = outcome
        submission.status = SubmissionStatus.ASSESSED.value
        submission.assessor_feedback = feedback
        submission.assessed_at = datetime.now(timezone.utc)
        session.flush()

        logger.info(f"Submission {submission_id} assessed as {outcome}")
        self.progress_service.update_application_progress(session, submission.application_id)
        return submission
