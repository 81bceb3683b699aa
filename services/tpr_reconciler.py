"""
Verification Reconciler: correlates inbox replies with pending verifications.

Each scanned message is tried against three strategies, strongest first,
stopping at the first hit:

1. plus   - a "+tpr-<token>" recipient on To, Delivered-To or Cc
2. thread - In-Reply-To/References naming the Message-ID we last sent
3. token  - a "TPR-<token>" reference code in the subject or body

A matched party is marked verified, the reply excerpt is stored and the
message is flagged \\Seen. Unmatched messages are left alone for the next run.
"""
import imaplib
import logging
import re
import threading
import time
from datetime import datetime, timezone, timedelta
from typing import Dict, Any, List, Optional
from injector import inject

from database.connection import get_db_session
from models.enums import AggregateVerificationStatus, VerificationStatus
from repositories.third_party_form_repository import ThirdPartyFormRepository
from repositories.tpr_verification_repository import TPRVerificationRepository
from services.mailbox import MailboxFactory, MailMessage, resolve_imap_config
from services.poll_guard import PollGuard
from services.tpr_verification_service import TPRVerificationService
import config.settings as settings

logger = logging.getLogger(__name__)

PLUS_TOKEN_RE = re.compile(r'\+tpr-([A-Za-z0-9]+)', re.IGNORECASE)
MESSAGE_ID_RE = re.compile(r'<[^>]+>')
REFERENCE_CODE_RE = re.compile(r'TPR-([A-Za-z0-9]+)')
SHORT_CODE_RE = re.compile(r'\b(\d{6})\b')
REPLY_SUBJECT_RE = re.compile(r'^\s*re\s*:', re.IGNORECASE)

STRATEGIES = ('plus', 'thread', 'token')
APPLICATION_SCAN_SIZE = 10

# Connection-level failures that abort a run
MAILBOX_ERRORS = (imaplib.IMAP4.error, OSError)


def new_summary() -> Dict[str, Any]:
    return {
        'scanned': 0,
        'matched': 0,
        'processed': 0,
        'match_breakdown': {strategy: 0 for strategy in STRATEGIES},
        'timed_out': False,
        'cancelled': False
    }


def extract_plus_token(message: MailMessage) -> Optional[str]:
    addresses = ','.join(filter(None, (
        message.header('to'),
        message.header('delivered-to'),
        message.header('cc')
    )))
    match = PLUS_TOKEN_RE.search(addresses)
    return match.group(1) if match else None


def extract_reference_ids(message: MailMessage) -> List[str]:
    """Message-IDs named by In-Reply-To and References, without brackets."""
    headers = f"{message.header('in-reply-to')} {message.header('references')}"
    return [rid.strip('<>') for rid in MESSAGE_ID_RE.findall(headers)]


def extract_reference_code(message: MailMessage) -> Optional[str]:
    match = REFERENCE_CODE_RE.search(f"{message.subject}\n{message.body}")
    return match.group(1) if match else None


def message_id_candidates(rid: str) -> List[str]:
    """Bracketed and bare spellings of a Message-ID, as providers differ."""
    plain = rid.replace('<', '').replace('>', '')
    return list(dict.fromkeys([rid, f"<{plain}>", plain]))


def is_reply(message: MailMessage) -> bool:
    return bool(
        REPLY_SUBJECT_RE.match(message.subject)
        or message.header('in-reply-to')
        or message.header('references')
    )


class TPRReconciler:
    """Scans the shared inbox and resolves third-party verifications."""

    @inject
    def __init__(
        self,
        verification_repository: TPRVerificationRepository,
        request_repository: ThirdPartyFormRepository,
        verification_service: TPRVerificationService,
        guard: PollGuard,
        mailbox_factory: MailboxFactory
    ):
        """Initialize reconciler."""
        self.verification_repository = verification_repository
        self.request_repository = request_repository
        self.verification_service = verification_service
        self.guard = guard
        self.mailbox_factory = mailbox_factory

    def poll_inbox(self, cancel_event: Optional[threading.Event] = None) -> Dict[str, Any]:
        """
        Run one reconciliation pass over the trailing window.

        Overlapping calls return a zero summary without touching the
        mailbox. A connection failure ends the run with the partial
        summary. The run stops early when cancel_event is set or the run
        deadline passes; both are checked between messages.

        Args:
            cancel_event: Optional event that cancels the run

        Returns:
            Summary with scanned, matched, processed and match_breakdown
        """
        summary = new_summary()

        config = resolve_imap_config()
        if config is None:
            logger.info("Inbox reconciler disabled: missing IMAP configuration")
            return summary

        if not self.guard.acquire():
            logger.warning("Inbox poll skipped: another run holds the guard")
            return summary

        mailbox = None
        deadline = time.monotonic() + settings.TPR_POLL_RUN_DEADLINE_SECONDS
        try:
            mailbox = self.mailbox_factory.open(config)

            since = datetime.now(timezone.utc) - timedelta(days=settings.TPR_POLL_WINDOW_DAYS)
            uids = mailbox.search_since(since, settings.IMAP_ONLY_UNSEEN)
            uids = uids[-settings.TPR_POLL_MAX_MESSAGES:]
            logger.info(
                f"Found {len(uids)} messages "
                f"({'unseen, ' if settings.IMAP_ONLY_UNSEEN else ''}since {since.date().isoformat()})"
            )

            for uid in uids:
                if cancel_event is not None and cancel_event.is_set():
                    summary['cancelled'] = True
                    logger.info("Inbox poll cancelled")
                    break
                if time.monotonic() > deadline:
                    summary['timed_out'] = True
                    logger.warning(f"Inbox poll hit its {settings.TPR_POLL_RUN_DEADLINE_SECONDS}s deadline")
                    break

                message = mailbox.fetch(uid)
                summary['scanned'] += 1

                strategy = self.reconcile_message(message)
                if strategy is None:
                    if settings.TPR_IMAP_DEBUG:
                        logger.info(f"[uid {uid}] No verification match (subject: {message.subject})")
                    continue

                mailbox.mark_seen(uid)
                summary['matched'] += 1
                summary['processed'] += 1
                summary['match_breakdown'][strategy] += 1

            breakdown = summary['match_breakdown']
            logger.info(
                f"Poll complete. Processed {summary['processed']}/{summary['scanned']}. "
                f"Matches: {summary['matched']} (plus={breakdown['plus']}, "
                f"thread={breakdown['thread']}, token={breakdown['token']})"
            )
        except MAILBOX_ERRORS as e:
            logger.error(f"Inbox poll aborted: {e}")
        finally:
            if mailbox is not None:
                try:
                    mailbox.logout()
                except MAILBOX_ERRORS as e:
                    logger.warning(f"IMAP logout failed: {e}")
            self.guard.release()

        return summary

    def reconcile_message(self, message: MailMessage) -> Optional[str]:
        """
        Resolve a message to a verification and mark it verified.

        Returns:
            Name of the strategy that matched, or None
        """
        excerpt = message.body[:settings.TPR_RESPONSE_EXCERPT_CHARS]

        with get_db_session() as session:
            token = extract_plus_token(message)
            if token:
                verification = self.verification_repository.find_by_token(session, token.lower())
                if verification:
                    self.verification_service.mark_verified(session, verification, excerpt)
                    logger.info(f"[uid {message.uid}] Matched plus-address -> {verification.party} verified")
                    return 'plus'

            for rid in extract_reference_ids(message):
                verification = self.verification_repository.find_by_sent_message_id(
                    session, message_id_candidates(rid)
                )
                if verification:
                    self.verification_service.mark_verified(session, verification, excerpt)
                    logger.info(f"[uid {message.uid}] Matched thread {rid} -> {verification.party} verified")
                    return 'thread'

            code = extract_reference_code(message)
            if code:
                verification = self.verification_repository.find_by_token(session, code.lower())
                if verification:
                    self.verification_service.mark_verified(session, verification, excerpt)
                    logger.info(f"[uid {message.uid}] Matched reference code -> {verification.party} verified")
                    return 'token'

        return None

    def poll_for_application(self, application_id: int) -> Dict[str, Any]:
        """
        Targeted check of the newest messages for one application.

        Looks for a reply whose subject carries the short code of one of
        the latest request's pending parties.

        Args:
            application_id: Application ID

        Returns:
            Dictionary with verified, found and reason
        """
        with get_db_session() as session:
            tpr = self.request_repository.find_latest(session, application_id)
            if not tpr:
                return {'verified': False, 'found': False, 'reason': 'no_tpr'}
            if tpr.verification_status == AggregateVerificationStatus.VERIFIED.value:
                return {'verified': True, 'found': True, 'reason': 'db_verified'}

            reachable = {party.value for party in tpr.parties}
            pending = {
                v.short_code: v.id for v in tpr.verifications
                if v.party in reachable and v.short_code and v.status == VerificationStatus.PENDING.value
            }
        if not pending:
            return {'verified': False, 'found': False, 'reason': 'no_ref_code'}

        config = resolve_imap_config()
        if config is None:
            return {'verified': False, 'found': False, 'reason': 'imap_not_configured'}

        mailbox = None
        try:
            mailbox = self.mailbox_factory.open(config)
            uids = mailbox.search_all()
            if not uids:
                return {'verified': False, 'found': False, 'reason': 'no_mail'}

            for uid in reversed(uids[-APPLICATION_SCAN_SIZE:]):
                message = mailbox.fetch(uid)
                match = SHORT_CODE_RE.search(message.subject)
                short_code = match.group(1) if match else None
                if short_code not in pending or not is_reply(message):
                    continue

                with get_db_session() as session:
                    verification = self.verification_repository.get_by_id(session, pending[short_code])
                    self.verification_service.mark_verified(
                        session, verification, message.body[:settings.TPR_RESPONSE_EXCERPT_CHARS]
                    )
                mailbox.mark_seen(uid)
                logger.info(f"Application {application_id} verified by uid {uid} (short code {short_code})")
                return {'verified': True, 'found': True, 'short_code': short_code, 'reason': 'matched_recent'}

            return {'verified': False, 'found': False, 'reason': 'no_recent_match'}
        except MAILBOX_ERRORS as e:
            logger.warning(f"Error while polling latest email for application {application_id}: {e}")
            return {'verified': False, 'found': False, 'reason': 'imap_error', 'error': str(e)}
        finally:
            if mailbox is not None:
                try:
                    mailbox.logout()
                except MAILBOX_ERRORS as e:
                    logger.warning(f"IMAP logout failed: {e}")
