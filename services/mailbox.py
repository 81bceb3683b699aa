"""
IMAP access to the shared verification inbox.
"""
import email
import imaplib
import logging
from dataclasses import dataclass, field
from datetime import datetime
from email import policy
from typing import Dict, List, Optional

import config.settings as settings

logger = logging.getLogger(__name__)

GMAIL_IMAP_HOST = 'imap.gmail.com'
GMAIL_IMAP_PORT = 993
CORRELATION_HEADERS = ('subject', 'to', 'delivered-to', 'cc', 'in-reply-to', 'references')


@dataclass
class ImapConfig:
    host: str
    port: int
    secure: bool
    user: str
    password: str
    label: str = 'INBOX'


def resolve_imap_config() -> Optional[ImapConfig]:
    """
    Build the inbox configuration from settings.

    Returns:
        ImapConfig, or None when host, port, user or password is missing
    """
    if settings.EMAIL_PROVIDER == 'gmail':
        config = ImapConfig(
            host=GMAIL_IMAP_HOST,
            port=GMAIL_IMAP_PORT,
            secure=True,
            user=settings.GMAIL_USER,
            password=settings.GMAIL_APP_PASSWORD,
            label=settings.GMAIL_LABEL or 'INBOX'
        )
    else:
        config = ImapConfig(
            host=settings.IMAP_HOST,
            port=settings.IMAP_PORT,
            secure=settings.IMAP_TLS,
            user=settings.IMAP_USER,
            password=settings.IMAP_PASS,
            label=settings.IMAP_LABEL or 'INBOX'
        )

    if not (config.host and config.port and config.user and config.password):
        return None
    return config


@dataclass
class MailMessage:
    """A fetched message reduced to what reply correlation needs."""
    uid: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ''

    @property
    def subject(self) -> str:
        return self.headers.get('subject', '')

    def header(self, name: str) -> str:
        return self.headers.get(name.lower(), '')

    @classmethod
    def from_bytes(cls, uid: str, raw: bytes) -> 'MailMessage':
        """
        Parse a raw RFC 822 message.

        Never raises on malformed input: a header the structured parser
        rejects keeps its raw text, and an unreadable body falls back to
        the decoded raw message.
        """
        message = email.message_from_bytes(raw, policy=policy.default)
        headers = {name: ', '.join(_header_values(uid, message, name)) for name in CORRELATION_HEADERS}

        try:
            part = message.get_body(preferencelist=('plain', 'html'))
            body = part.get_content() if part is not None else ''
        except Exception as e:
            logger.warning(f"[uid {uid}] Unreadable message body, using raw text: {e}")
            body = ''
        if not body:
            body = raw.decode('utf-8', errors='replace')
        return cls(uid=uid, headers=headers, body=body)


def _header_values(uid: str, message, name: str) -> List[str]:
    try:
        return [str(value) for value in message.get_all(name) or []]
    except Exception as e:
        logger.warning(f"[uid {uid}] Malformed {name} header, using raw text: {e}")
        return [str(value) for key, value in message.raw_items() if key.lower() == name]


class ImapMailbox:
    """One authenticated IMAP connection with the label selected."""

    def __init__(self, config: ImapConfig, timeout: Optional[int] = None):
        self.config = config
        self.timeout = timeout if timeout is not None else settings.IMAP_TIMEOUT_SECONDS
        self.connection = None

    def connect(self) -> 'ImapMailbox':
        """Open the connection, log in and select the configured label."""
        imap_class = imaplib.IMAP4_SSL if self.config.secure else imaplib.IMAP4
        logger.info(f"Connecting to {self.config.host} as {self.config.user}")
        self.connection = imap_class(self.config.host, self.config.port, timeout=self.timeout)
        try:
            self.connection.login(self.config.user, self.config.password)
            self._check(self.connection.select(self.config.label), f"select {self.config.label}")
        except imaplib.IMAP4.error:
            self.connection.shutdown()
            self.connection = None
            raise
        logger.info(f"Opened mailbox: {self.config.label}")
        return self

    def _check(self, response, action: str):
        status, data = response
        if status != 'OK':
            raise imaplib.IMAP4.error(f"IMAP {action} failed: {status} {data}")
        return data

    def _search(self, *criteria) -> List[str]:
        data = self._check(self.connection.uid('SEARCH', None, *criteria), 'search')
        if not data or not data[0]:
            return []
        return [uid.decode() for uid in data[0].split()]

    def search_since(self, since: datetime, only_unseen: bool = False) -> List[str]:
        """UIDs of messages received on or after the given day, oldest first."""
        criteria = ['SINCE', since.strftime('%d-%b-%Y')]
        if only_unseen:
            criteria.insert(0, 'UNSEEN')
        return self._search(*criteria)

    def search_all(self) -> List[str]:
        return self._search('ALL')

    def fetch(self, uid: str) -> MailMessage:
        """Fetch a message without setting its \\Seen flag."""
        data = self._check(self.connection.uid('FETCH', uid, '(BODY.PEEK[])'), f"fetch {uid}")
        for item in data:
            if isinstance(item, tuple):
                return MailMessage.from_bytes(uid, item[1])
        raise imaplib.IMAP4.error(f"IMAP fetch {uid} returned no message body")

    def mark_seen(self, uid: str) -> None:
        self._check(self.connection.uid('STORE', uid, '+FLAGS', '(\\Seen)'), f"store {uid}")

    def logout(self) -> None:
        if self.connection is None:
            return
        try:
            self.connection.logout()
            logger.info("Logged out")
        finally:
            self.connection = None


class MailboxFactory:
    """Opens inbox connections; replaced in tests."""

    def open(self, config: ImapConfig) -> ImapMailbox:
        return ImapMailbox(config).connect()
