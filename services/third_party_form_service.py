"""
Third-Party Form Service: token-scoped requests to employers and references.

A request holds an employer slot and a reference slot, each with its own
access token. When both parties share one address (case-insensitively) a
combined token is minted as well, and only the combined slot is reachable
from outside.
"""
import logging
import secrets
from datetime import datetime, timezone, timedelta
from typing import Dict, Any, Optional
from injector import inject
from sqlalchemy.orm import Session

from models.enums import FilledBy, Party, ThirdPartyStatus, VerificationStatus
from models.third_party_form_submission import ThirdPartyFormSubmission, empty_slot
from repositories.application_repository import ApplicationRepository
from repositories.certification_repository import FormTemplateRepository
from repositories.form_submission_repository import FormSubmissionRepository
from repositories.third_party_form_repository import ThirdPartyFormRepository
from repositories.tpr_verification_repository import TPRVerificationRepository
from services.exceptions import NotFoundError, AlreadyExistsError, AlreadySubmittedError, ValidationError
from services.form_data_keys import encode_form_data, decode_form_data
from services.form_submission_service import FormSubmissionService
from services.kafka_service import KafkaService
from services.notification_service import NotificationService
from services.progress_service import ProgressService
import config.settings as settings

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


def new_access_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def _validate_party(label: str, party: Optional[Dict[str, Any]]) -> Dict[str, str]:
    party = party or {}
    name = (party.get('name') or '').strip()
    email = (party.get('email') or '').strip()
    if not name:
        raise ValidationError(f"{label} name is required")
    if not email or '@' not in email:
        raise ValidationError(f"{label} email is invalid")
    return {'name': name, 'email': email.lower()}


class ThirdPartyFormService:
    """Service managing third-party requests, submissions and completion."""

    @inject
    def __init__(
        self,
        request_repository: ThirdPartyFormRepository,
        verification_repository: TPRVerificationRepository,
        application_repository: ApplicationRepository,
        template_repository: FormTemplateRepository,
        submission_repository: FormSubmissionRepository,
        form_submission_service: FormSubmissionService,
        progress_service: ProgressService,
        notification_service: NotificationService,
        kafka_service: KafkaService
    ):
        """Initialize third-party form service."""
        self.request_repository = request_repository
        self.verification_repository = verification_repository
        self.application_repository = application_repository
        self.template_repository = template_repository
        self.submission_repository = submission_repository
        self.form_submission_service = form_submission_service
        self.progress_service = progress_service
        self.notification_service = notification_service
        self.kafka_service = kafka_service

    def initiate(
        self,
        session: Session,
        application_id: int,
        form_template_id: int,
        employer: Dict[str, Any],
        reference: Dict[str, Any]
    ) -> ThirdPartyFormSubmission:
        """
        Create a request and send the access links.

        Args:
            session: Database session
            application_id: Application ID
            form_template_id: Third-party form template ID
            employer: Dictionary with name and email
            reference: Dictionary with name and email

        Returns:
            The created request

        Raises:
            NotFoundError: If the application or third-party template does not exist
            AlreadyExistsError: If a live request exists for the pair
        """
        employer = _validate_party('Employer', employer)
        reference = _validate_party('Reference', reference)

        application = self.application_repository.get_by_id(session, application_id)
        if not application:
            raise NotFoundError(f"Application {application_id} not found")

        template = self.template_repository.get_by_id(session, form_template_id)
        if not template or template.filled_by != FilledBy.THIRD_PARTY.value:
            raise NotFoundError(f"Third-party form template {form_template_id} not found")

        now = datetime.now(timezone.utc)
        if self.request_repository.find_active(session, application_id, form_template_id, now):
            raise AlreadyExistsError(
                f"Third-party form already initiated for application {application_id}, template {form_template_id}"
            )

        is_same_email = employer['email'] == reference['email']
        tpr = self.request_repository.create(
            session,
            application_id=application_id,
            form_template_id=form_template_id,
            user_id=application.user_id,
            employer_name=employer['name'],
            employer_email=employer['email'],
            reference_name=reference['name'],
            reference_email=reference['email'],
            is_same_email=is_same_email,
            employer_token=new_access_token(),
            reference_token=new_access_token(),
            combined_token=new_access_token() if is_same_email else None,
            employer_submission=empty_slot(),
            reference_submission=empty_slot(),
            combined_submission=empty_slot() if is_same_email else None,
            status=ThirdPartyStatus.PENDING.value,
            step_number=template.step_number,
            is_active=True,
            expires_at=now + timedelta(days=settings.TPR_EXPIRY_DAYS),
            created_at=now,
            updated_at=now
        )

        for party in tpr.parties:
            self.verification_repository.create(
                session,
                submission_id=tpr.id,
                party=party.value,
                status=VerificationStatus.NOT_SENT.value
            )

        self._deliver(tpr, template, application)
        session.flush()

        logger.info(
            f"Initiated third-party request {tpr.id} for application {application_id} "
            f"({'combined' if is_same_email else 'employer + reference'})"
        )
        return tpr

    def _deliver(self, tpr: ThirdPartyFormSubmission, template, application) -> None:
        """Send the combined link, or the employer and reference links separately."""
        student_name = application.student.full_name if application.student else 'the applicant'

        if tpr.is_same_email:
            tpr.combined_email_sent = self.notification_service.send_third_party_request(
                Party.COMBINED,
                to=tpr.employer_email,
                recipient_name=tpr.employer_name,
                student_name=student_name,
                form_name=template.name,
                token=tpr.combined_token,
                other_name=tpr.reference_name
            )
            return

        tpr.employer_email_sent = self.notification_service.send_third_party_request(
            Party.EMPLOYER,
            to=tpr.employer_email,
            recipient_name=tpr.employer_name,
            student_name=student_name,
            form_name=template.name,
            token=tpr.employer_token
        )
        tpr.reference_email_sent = self.notification_service.send_third_party_request(
            Party.REFERENCE,
            to=tpr.reference_email,
            recipient_name=tpr.reference_name,
            student_name=student_name,
            form_name=template.name,
            token=tpr.reference_token
        )

    def get_form(self, session: Session, token: str) -> Dict[str, Any]:
        """
        Scoped read of the form behind an access token.

        Returns:
            Template, access type, party names, decoded slot data and expiry
        """
        tpr, party = self.request_repository.find_by_access_token(
            session, token, datetime.now(timezone.utc)
        )
        if not tpr:
            raise NotFoundError("Form not found or expired")

        slot = tpr.get_slot(party)
        student = tpr.application.student if tpr.application else None
        return {
            'form_template': tpr.form_template.to_dict() if tpr.form_template else None,
            'student': {'first_name': student.first_name, 'last_name': student.last_name} if student else None,
            'access_type': party.value,
            'employer_name': tpr.employer_name,
            'reference_name': tpr.reference_name,
            'existing_data': decode_form_data(slot['form_data']),
            'is_submitted': bool(slot['is_submitted']),
            'expires_at': tpr.expires_at.isoformat(),
            'is_same_email': tpr.is_same_email
        }

    def submit(
        self,
        session: Session,
        token: str,
        form_data: Dict[str, Any],
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Record a party's submission and merge the request once complete.

        A submitted slot is closed. When the merged form is sent back for
        changes every slot reopens; the next full completion becomes a new
        version of the merged submission.

        Args:
            session: Database session
            token: Access token from the form URL
            form_data: Submitted field values
            ip_address: Source address of the submission
            user_agent: Browser user agent

        Returns:
            Dictionary with the slot, request status and merged submission ID

        Raises:
            NotFoundError: If the token resolves to no live request
            AlreadySubmittedError: If the slot was already submitted and not reopened
        """
        if not isinstance(form_data, dict):
            raise ValidationError("form_data must be an object")

        now = datetime.now(timezone.utc)
        tpr, party = self.request_repository.find_by_access_token(session, token, now)
        if not tpr:
            raise NotFoundError("Form not found or expired")

        merged = self.submission_repository.find_for_filler(
            session, tpr.application_id, tpr.form_template_id, FilledBy.THIRD_PARTY.value
        )
        reopened = merged is not None and merged.requires_resubmission

        if reopened and tpr.status == ThirdPartyStatus.COMPLETED.value:
            # First submission after a send-back: every slot starts over
            for reachable in tpr.parties:
                slot = tpr.get_slot(reachable)
                slot['is_submitted'] = False
                tpr.set_slot(reachable, slot)
            tpr.status = ThirdPartyStatus.PENDING.value

        if tpr.get_slot(party)['is_submitted']:
            raise AlreadySubmittedError(f"The {party.value} form has already been submitted")

        tpr.set_slot(party, {
            'form_data': encode_form_data(form_data),
            'submitted_at': now.isoformat(),
            'ip_address': ip_address,
            'user_agent': user_agent,
            'is_submitted': True
        })

        completed = tpr.is_fully_completed
        tpr.status = ThirdPartyStatus.COMPLETED.value if completed else ThirdPartyStatus.PARTIALLY_COMPLETED.value
        tpr.updated_at = now
        session.flush()

        logger.info(f"Third-party request {tpr.id}: {party.value} slot submitted, status {tpr.status}")

        submission = None
        if completed:
            submission = self._complete(session, tpr, now)

        return {
            'id': tpr.id,
            'access_type': party.value,
            'status': tpr.status,
            'is_fully_completed': completed,
            'form_submission_id': submission.id if submission else None
        }

    def _complete(self, session: Session, tpr: ThirdPartyFormSubmission, now: datetime):
        """Merge slot data into the canonical third-party submission and recompute progress."""
        if tpr.is_same_email:
            merged_data = decode_form_data(tpr.get_slot(Party.COMBINED)['form_data'])
        else:
            merged_data = {
                **decode_form_data(tpr.get_slot(Party.EMPLOYER)['form_data']),
                **decode_form_data(tpr.get_slot(Party.REFERENCE)['form_data'])
            }

        submission = self.form_submission_service.record_submission(
            session,
            tpr.application_id,
            tpr.form_template_id,
            FilledBy.THIRD_PARTY,
            merged_data,
            metadata={
                'third_party_request_id': tpr.id,
                'is_same_email': tpr.is_same_email,
                'completed_at': now.isoformat()
            }
        )
        logger.info(f"Third-party request {tpr.id} completed, merged into submission {submission.id}")

        self.progress_service.update_application_progress(session, tpr.application_id)
        # Progress is already current when the event goes out; a consumer recompute is a no-op
        self.kafka_service.publish_progress_recompute(tpr.application_id, 'third_party_completed')
        return submission

    def get_status(self, session: Session, application_id: int, form_template_id: int) -> Dict[str, Any]:
        """Status view of the latest request for an application and template."""
        tpr = self.request_repository.find_latest(session, application_id, form_template_id)
        if not tpr:
            raise NotFoundError(
                f"No third-party form for application {application_id}, template {form_template_id}"
            )

        status = tpr.to_status_dict()
        status['is_expired'] = tpr.is_expired(datetime.now(timezone.utc))
        status['verifications'] = [v.to_dict() for v in tpr.verifications]
        return status

    def resend(self, session: Session, application_id: int, form_template_id: int) -> Dict[str, Any]:
        """Send the access links of the live request again."""
        tpr = self.request_repository.find_active(
            session, application_id, form_template_id, datetime.now(timezone.utc)
        )
        if not tpr:
            raise NotFoundError(
                f"No active third-party form for application {application_id}, template {form_template_id}"
            )

        self._deliver(tpr, tpr.form_template, tpr.application)
        session.flush()
        logger.info(f"Resent third-party emails for request {tpr.id}")
        return tpr.to_status_dict()
