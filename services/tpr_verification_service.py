"""
Verification Service: out-of-band employment verification of third parties.
"""
import logging
import secrets
from datetime import datetime, timezone
from typing import Dict, Any, Iterable, List, Optional
from injector import inject
from sqlalchemy.orm import Session

from models.enums import Party, VerificationStatus, AggregateVerificationStatus
from models.third_party_form_submission import ThirdPartyFormSubmission
from models.tpr_verification import TPRVerification
from repositories.third_party_form_repository import ThirdPartyFormRepository
from repositories.tpr_verification_repository import TPRVerificationRepository
from services.exceptions import NotFoundError, ValidationError
from services.notification_service import NotificationService

logger = logging.getLogger(__name__)

VERIFICATION_TOKEN_BYTES = 24
TARGETS = ('employer', 'reference', 'combined', 'both')
DECISIONS = (VerificationStatus.VERIFIED.value, VerificationStatus.REJECTED.value)


def compute_aggregate_status(statuses: Iterable[str]) -> AggregateVerificationStatus:
    """
    Fold per-party statuses into the request's verification status.

    Any verified party makes the request verified, even if another party
    rejected it. Otherwise any rejection wins, nothing sent means none,
    and everything else is pending.
    """
    statuses = list(statuses)
    if VerificationStatus.VERIFIED.value in statuses:
        return AggregateVerificationStatus.VERIFIED
    if VerificationStatus.REJECTED.value in statuses:
        return AggregateVerificationStatus.REJECTED
    if all(status == VerificationStatus.NOT_SENT.value for status in statuses):
        return AggregateVerificationStatus.NONE
    return AggregateVerificationStatus.PENDING


def new_short_code() -> str:
    return str(100000 + secrets.randbelow(900000))


class TPRVerificationService:
    """Service for sending, resolving and reporting party verifications."""

    @inject
    def __init__(
        self,
        request_repository: ThirdPartyFormRepository,
        verification_repository: TPRVerificationRepository,
        notification_service: NotificationService
    ):
        """Initialize verification service."""
        self.request_repository = request_repository
        self.verification_repository = verification_repository
        self.notification_service = notification_service

    def _get_request(self, session: Session, tpr_id: int) -> ThirdPartyFormSubmission:
        tpr = self.request_repository.get_by_id(session, tpr_id)
        if not tpr:
            raise NotFoundError(f"Third-party request {tpr_id} not found")
        return tpr

    def _verification(self, session: Session, tpr: ThirdPartyFormSubmission, party: Party) -> TPRVerification:
        verification = tpr.verification_for(party)
        if verification is None:
            verification = self.verification_repository.create(
                session,
                submission_id=tpr.id,
                party=party.value,
                status=VerificationStatus.NOT_SENT.value
            )
            session.refresh(tpr, ['verifications'])
        return verification

    def recompute_aggregate(self, tpr: ThirdPartyFormSubmission) -> str:
        """Recompute and store the aggregate over the request's reachable parties."""
        parties = {party.value for party in tpr.parties}
        statuses = [v.status for v in tpr.verifications if v.party in parties]
        tpr.verification_status = compute_aggregate_status(statuses).value
        return tpr.verification_status

    def _resolve_targets(self, tpr: ThirdPartyFormSubmission, target: str) -> List[Party]:
        if target not in TARGETS:
            raise ValidationError(f"Target must be one of {', '.join(TARGETS)}")
        if tpr.is_same_email:
            return [Party.COMBINED]
        if target == 'both':
            return [Party.EMPLOYER, Party.REFERENCE]
        if target == Party.COMBINED.value:
            raise ValidationError("Combined verification applies only when both parties share an email")
        return [Party(target)]

    def send_verification(self, session: Session, tpr_id: int, target: str = 'both') -> Dict[str, Any]:
        """
        Send verification requests to the targeted parties.

        Every send mints a fresh verification token and short code, so an
        older request stops resolving once it is re-sent.

        Args:
            session: Database session
            tpr_id: Third-party request ID
            target: employer, reference or both; collapses to combined for a shared email

        Returns:
            Verification view of the request
        """
        tpr = self._get_request(session, tpr_id)
        parties = self._resolve_targets(tpr, target)

        application = tpr.application
        student = application.student if application else None
        student_name = student.full_name if student else 'the applicant'
        qualification_name = application.certification.name if application and application.certification else ''

        for party in parties:
            verification = self._verification(session, tpr, party)
            if party == Party.REFERENCE:
                recipient_email, recipient_name = tpr.reference_email, tpr.reference_name
            else:
                recipient_email, recipient_name = tpr.employer_email, tpr.employer_name

            token = secrets.token_hex(VERIFICATION_TOKEN_BYTES)
            short_code = new_short_code()
            sent = self.notification_service.send_verification_request(
                to=recipient_email,
                recipient_name=recipient_name,
                student_name=student_name,
                qualification_name=qualification_name,
                token=token,
                short_code=short_code
            )

            verification.token = token
            verification.short_code = short_code
            verification.status = VerificationStatus.PENDING.value
            verification.sent_at = datetime.now(timezone.utc)
            verification.last_sent_subject = sent['subject']
            verification.last_sent_message_id = sent['message_id']
            logger.info(f"Verification request for request {tpr.id} sent to {party.value} ({recipient_email})")

        self.recompute_aggregate(tpr)
        session.flush()
        return self.get_verification(session, tpr_id)

    def mark_verified(
        self,
        session: Session,
        verification: TPRVerification,
        response_content: Optional[str] = None
    ) -> str:
        """
        Mark one party verified from a matched reply.

        Returns:
            The request's recomputed aggregate status
        """
        if verification.status != VerificationStatus.VERIFIED.value or not verification.verified_at:
            verification.verified_at = datetime.now(timezone.utc)
        verification.status = VerificationStatus.VERIFIED.value
        if response_content is not None:
            verification.response_content = response_content

        aggregate = self.recompute_aggregate(verification.submission)
        session.flush()
        return aggregate

    def record_response(
        self,
        session: Session,
        tpr_id: int,
        party: str,
        response_content: Optional[str] = None,
        decision: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Store a party's response and optionally decide it.

        Args:
            session: Database session
            tpr_id: Third-party request ID
            party: employer, reference or combined
            response_content: Free-text response to keep
            decision: verified, rejected or pending

        Returns:
            Dictionary with the aggregate verification status
        """
        try:
            party = Party(party)
        except ValueError:
            raise ValidationError(f"Invalid party '{party}'")
        if decision is not None and decision not in DECISIONS + (VerificationStatus.PENDING.value,):
            raise ValidationError(f"Invalid decision '{decision}'")

        tpr = self._get_request(session, tpr_id)
        if party not in tpr.parties:
            raise ValidationError(f"Party '{party.value}' is not reachable on request {tpr_id}")

        verification = self._verification(session, tpr, party)
        if response_content:
            verification.response_content = response_content
        if decision:
            verification.status = decision
            if decision in DECISIONS:
                verification.verified_at = datetime.now(timezone.utc)

        aggregate = self.recompute_aggregate(tpr)
        session.flush()
        logger.info(f"Recorded {party.value} response on request {tpr_id}, aggregate {aggregate}")
        return {'verification_status': aggregate}

    def verify_by_token(self, session: Session, token: str, decision: str) -> Dict[str, Any]:
        """Decide a party's verification from the link in the verification email."""
        if decision not in DECISIONS:
            raise ValidationError(f"Decision must be one of {', '.join(DECISIONS)}")

        verification = self.verification_repository.find_by_token(session, token)
        if not verification:
            raise NotFoundError("Invalid or expired token")

        verification.status = decision
        verification.verified_at = datetime.now(timezone.utc)
        aggregate = self.recompute_aggregate(verification.submission)
        session.flush()
        logger.info(f"Request {verification.submission_id} {verification.party} {decision} by token")
        return {'verification_status': aggregate}

    def get_verification(self, session: Session, tpr_id: int) -> Dict[str, Any]:
        tpr = self._get_request(session, tpr_id)
        return {
            'tpr_id': tpr.id,
            'application_id': tpr.application_id,
            'verification_status': tpr.verification_status,
            'parties': {v.party: v.to_dict() for v in tpr.verifications}
        }
