"""
Outbound notification requests for third parties.

Composition and delivery belong to the external mailer; this service
decides recipients, links, subjects and correlation headers, then hands
the request over through Kafka.
"""
import logging
from email.utils import make_msgid
from typing import Dict, Any, Optional
from injector import inject

from models.enums import Party
from services.kafka_service import KafkaService
import config.settings as settings

logger = logging.getLogger(__name__)

THIRD_PARTY_TEMPLATES = {
    Party.EMPLOYER: 'third_party_employer',
    Party.REFERENCE: 'third_party_reference',
    Party.COMBINED: 'third_party_combined',
}


def access_url(token: str) -> str:
    """Public URL a third party uses to open their form."""
    return f"{settings.FRONTEND_URL.rstrip('/')}/thirdpartyform/{token}"


def plus_address(token: str) -> str:
    """Reply address carrying the verification token in its local part."""
    local, _, domain = settings.TPR_REPLY_ADDRESS.partition('@')
    local = local.split('+', 1)[0]
    return f"{local}+tpr-{token}@{domain}"


def reference_code(token: str) -> str:
    return f"TPR-{token}"


class NotificationService:
    """Service for requesting third-party emails."""

    @inject
    def __init__(self, kafka_service: KafkaService):
        """Initialize notification service."""
        self.kafka_service = kafka_service

    def new_message_id(self) -> str:
        return make_msgid(domain=settings.MAIL_DOMAIN)

    def send_third_party_request(
        self,
        party: Party,
        to: str,
        recipient_name: str,
        student_name: str,
        form_name: str,
        token: str,
        other_name: Optional[str] = None
    ) -> bool:
        """
        Request the email that gives a third party their form link.

        Args:
            party: Slot the token opens
            to: Recipient address
            recipient_name: Name of the recipient
            student_name: Applicant the form is about
            form_name: Name of the form template
            token: Access token for the slot
            other_name: Reference name when employer and reference share one address

        Returns:
            True if the request was handed to the mailer
        """
        context = {
            'recipient_name': recipient_name,
            'student_name': student_name,
            'form_name': form_name,
            'form_url': access_url(token),
        }
        if party == Party.COMBINED:
            context['reference_name'] = other_name

        sent = self.kafka_service.publish_email(
            template=THIRD_PARTY_TEMPLATES[Party(party)],
            to=to,
            subject=f"Action required: {form_name} for {student_name}",
            message_id=self.new_message_id(),
            context=context
        )
        if not sent:
            logger.warning(f"Third-party {Party(party).value} email for {to} was not queued")
        return sent

    def send_verification_request(
        self,
        to: str,
        recipient_name: str,
        student_name: str,
        qualification_name: str,
        token: str,
        short_code: str
    ) -> Dict[str, Any]:
        """
        Request an employment verification email whose replies can be correlated.

        The reply address embeds the token, the body carries the reference
        code, and the short code goes in the subject.

        Returns:
            Dictionary with subject, message_id and sent flag
        """
        subject = f"Employment Verification Request [{short_code}]"
        message_id = self.new_message_id()
        reply_to = plus_address(token)
        context = {
            'recipient_name': recipient_name,
            'student_name': student_name,
            'qualification_name': qualification_name,
            'rto_number': f"{settings.RTO_NAME} {settings.RTO_CODE}".strip(),
            'reference_code': reference_code(token),
            'short_code': short_code,
        }

        sent = self.kafka_service.publish_email(
            template='tpr_verification',
            to=to,
            subject=subject,
            message_id=message_id,
            context=context,
            reply_to=reply_to,
            from_address=reply_to
        )
        if not sent:
            logger.warning(f"Verification email for {to} was not queued")

        return {'subject': subject, 'message_id': message_id, 'sent': sent}
