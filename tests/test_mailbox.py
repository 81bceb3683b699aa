"""
Tests for message parsing and the IMAP adapter, driven by a canned connection.
"""
import imaplib
from datetime import datetime
from email.message import EmailMessage

import pytest

from factories import make_raw_message
from services.mailbox import ImapConfig, ImapMailbox, MailMessage


class StubImapConnection:
    """Records commands and answers them from canned (status, data) pairs."""

    error = imaplib.IMAP4.error

    def __init__(self, host=None, port=None, timeout=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.calls = []
        self.responses = {}
        self.login_error = None
        self.select_response = ("OK", [b"12"])
        self.shut_down = False
        self.logged_out = False

    def login(self, user, password):
        self.calls.append(("LOGIN", user, password))
        if self.login_error:
            raise self.login_error
        return "OK", [b"Logged in"]

    def select(self, label):
        self.calls.append(("SELECT", label))
        return self.select_response

    def uid(self, command, *args):
        self.calls.append((command,) + args)
        return self.responses[command]

    def shutdown(self):
        self.shut_down = True

    def logout(self):
        self.logged_out = True
        return "BYE", [b"Logging out"]


@pytest.fixture
def config():
    return ImapConfig(host="imap.example.com", port=993, secure=True,
                      user="verify@example.com", password="secret", label="Verifications")


@pytest.fixture
def opened(monkeypatch):
    """Replaces the imaplib connection classes and collects what gets opened."""
    connections = []
    login_errors = []

    def open_connection(host, port, timeout=None):
        connection = StubImapConnection(host, port, timeout)
        if login_errors:
            connection.login_error = login_errors[0]
        connections.append(connection)
        return connection

    monkeypatch.setattr(imaplib, "IMAP4_SSL", open_connection)
    monkeypatch.setattr(imaplib, "IMAP4", StubImapConnection)
    return {"connections": connections, "login_errors": login_errors}


@pytest.fixture
def connected(config):
    mailbox = ImapMailbox(config, timeout=5)
    mailbox.connection = StubImapConnection()
    return mailbox


class TestMessageParsing:

    def test_plain_text_body(self):
        message = MailMessage.from_bytes("1", make_raw_message(body="Confirmed, TPR-abc123"))
        assert message.body.strip() == "Confirmed, TPR-abc123"
        assert message.subject == "Re: Employment Verification Request"

    def test_plain_part_preferred_in_multipart(self):
        raw = EmailMessage()
        raw["Subject"] = "Re: Reference check"
        raw.set_content("Plain confirmation")
        raw.add_alternative("<p>HTML confirmation</p>", subtype="html")

        message = MailMessage.from_bytes("2", raw.as_bytes())

        assert message.body.strip() == "Plain confirmation"

    def test_html_only_body(self):
        raw = EmailMessage()
        raw["Subject"] = "Re: Reference check"
        raw.set_content("<p>Yes, TPR-cafe01</p>", subtype="html")

        message = MailMessage.from_bytes("3", raw.as_bytes())

        assert "<p>Yes, TPR-cafe01</p>" in message.body

    def test_non_text_body_falls_back_to_raw_message(self):
        raw = EmailMessage()
        raw["Subject"] = "Scanned letter"
        raw.set_content(b"%PDF-1.4", maintype="application", subtype="pdf")

        message = MailMessage.from_bytes("4", raw.as_bytes())

        assert "Subject: Scanned letter" in message.body
        assert "application/pdf" in message.body

    def test_malformed_address_header_keeps_raw_text(self):
        raw = (
            b"From: someone@example.com\r\n"
            b"To: a@b, <\r\n"
            b"Cc: Verify <verify+tpr-abc123@example.com>\r\n"
            b"Subject: Re: Reference check\r\n"
            b"\r\n"
            b"Confirmed.\r\n"
        )

        message = MailMessage.from_bytes("5", raw)

        assert message.header("to") == "a@b, <"
        assert "verify+tpr-abc123@example.com" in message.header("cc")
        assert message.body.strip() == "Confirmed."

    def test_headers_are_joined_and_missing_ones_empty(self):
        message = MailMessage.from_bytes("6", make_raw_message(
            to="verify@example.com", references="<a@example.com> <b@example.com>"
        ))
        assert message.header("To") == "verify@example.com"
        assert message.header("references") == "<a@example.com> <b@example.com>"
        assert message.header("in-reply-to") == ""


class TestConnect:

    def test_secure_connection_logs_in_and_selects_label(self, config, opened):
        mailbox = ImapMailbox(config, timeout=5).connect()

        connection = opened["connections"][0]
        assert mailbox.connection is connection
        assert (connection.host, connection.port, connection.timeout) == ("imap.example.com", 993, 5)
        assert connection.calls == [("LOGIN", "verify@example.com", "secret"), ("SELECT", "Verifications")]

    def test_plain_connection(self, config, opened):
        config.secure = False
        config.port = 143

        mailbox = ImapMailbox(config, timeout=5).connect()

        assert isinstance(mailbox.connection, StubImapConnection)
        assert mailbox.connection.port == 143
        assert opened["connections"] == []

    def test_failed_login_shuts_connection_down(self, config, opened):
        opened["login_errors"].append(imaplib.IMAP4.error("AUTHENTICATIONFAILED"))
        mailbox = ImapMailbox(config)

        with pytest.raises(imaplib.IMAP4.error):
            mailbox.connect()

        assert opened["connections"][0].shut_down is True
        assert mailbox.connection is None

    def test_missing_label_fails(self, config, opened, monkeypatch):
        monkeypatch.setattr(StubImapConnection, "select", lambda self, label: ("NO", [b"Mailbox doesn't exist"]))
        mailbox = ImapMailbox(config)

        with pytest.raises(imaplib.IMAP4.error, match="select Verifications"):
            mailbox.connect()

        assert opened["connections"][0].shut_down is True


class TestCommands:

    def test_search_since_builds_imap_date(self, connected):
        connected.connection.responses["SEARCH"] = ("OK", [b"3 7"])

        uids = connected.search_since(datetime(2026, 10, 15, 9, 30))

        assert uids == ["3", "7"]
        assert connected.connection.calls == [("SEARCH", None, "SINCE", "15-Oct-2026")]

    def test_search_since_only_unseen(self, connected):
        connected.connection.responses["SEARCH"] = ("OK", [b"7"])

        connected.search_since(datetime(2026, 10, 5), only_unseen=True)

        assert connected.connection.calls == [("SEARCH", None, "UNSEEN", "SINCE", "05-Oct-2026")]

    def test_search_all_empty(self, connected):
        connected.connection.responses["SEARCH"] = ("OK", [b""])

        assert connected.search_all() == []
        assert connected.connection.calls == [("SEARCH", None, "ALL")]

    def test_search_failure(self, connected):
        connected.connection.responses["SEARCH"] = ("NO", [b"Server busy"])

        with pytest.raises(imaplib.IMAP4.error, match="search failed"):
            connected.search_all()

    def test_fetch_peeks_and_parses_body(self, connected):
        raw = make_raw_message(subject="Re: TPR-abc123", body="Confirmed")
        connected.connection.responses["FETCH"] = ("OK", [(b"5 (UID 5 BODY[] {%d}" % len(raw), raw), b")"])

        message = connected.fetch("5")

        assert message.uid == "5"
        assert message.subject == "Re: TPR-abc123"
        assert connected.connection.calls == [("FETCH", "5", "(BODY.PEEK[])")]

    def test_fetch_without_message_body(self, connected):
        connected.connection.responses["FETCH"] = ("OK", [None])

        with pytest.raises(imaplib.IMAP4.error, match="no message body"):
            connected.fetch("9")

    def test_mark_seen_stores_flag(self, connected):
        connected.connection.responses["STORE"] = ("OK", [b"5 (FLAGS (\\Seen))"])

        connected.mark_seen("5")

        assert connected.connection.calls == [("STORE", "5", "+FLAGS", "(\\Seen)")]

    def test_logout_closes_once(self, connected):
        connection = connected.connection

        connected.logout()
        connected.logout()

        assert connection.logged_out is True
        assert connected.connection is None
