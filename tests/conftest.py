"""
Shared pytest fixtures for the progress service test suite.
The database is a SQLite file created fresh for every test; Kafka and
IMAP are replaced by in-memory fakes, so no broker or mailbox is needed.
Factory helpers live in tests/factories.py.
"""
import os
import sys
import tempfile

_tests_dir = os.path.dirname(__file__)
_root_dir = os.path.join(_tests_dir, "..")
for _p in (_tests_dir, _root_dir):
    if _p not in sys.path:
        sys.path.insert(0, _p)

# Point settings at a throwaway database before anything imports them
_db_dir = tempfile.mkdtemp(prefix="rto-progress-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_db_dir, 'test.db')}"
os.environ["FRONTEND_URL"] = "https://portal.example.com"
os.environ["TPR_REPLY_ADDRESS"] = "verify@example.com"
os.environ["MAIL_DOMAIN"] = "example.com"
for _name in ("EMAIL_PROVIDER", "IMAP_HOST", "IMAP_PORT", "IMAP_USER", "IMAP_PASS", "IMAP_PASSWORD",
              "GMAIL_USER", "GMAIL_APP_PASSWORD", "IMAP_ONLY_UNSEEN"):
    os.environ.pop(_name, None)


import imaplib

import pytest
from injector import Injector, Module

import config.settings as settings
from config.injection import ServiceModule
from database import Base
from database.connection import engine, get_session
import models  # noqa: F401
from services.kafka_service import KafkaService
from services.mailbox import MailboxFactory, MailMessage


class FakeKafkaService(KafkaService):
    """KafkaService that records messages instead of talking to a broker."""

    def __init__(self):
        self.bootstrap_servers = settings.KAFKA_BOOTSTRAP_SERVERS
        self.producer = None
        self.messages = []

    def _publish_message(self, topic, key, value):
        self.messages.append({"topic": topic, "key": key, "value": value})
        return True

    def on_topic(self, topic):
        return [m["value"] for m in self.messages if m["topic"] == topic]


class FakeMailbox:
    """In-memory stand-in for ImapMailbox keyed by UID."""

    def __init__(self, messages=None, fail_on_fetch=None):
        self.messages = dict(messages or {})
        self.fail_on_fetch = set(fail_on_fetch or ())
        self.fetched = []
        self.seen = set()
        self.searches = 0
        self.logged_out = False
        self.on_fetch = None

    def add(self, uid, raw):
        self.messages[str(uid)] = raw

    def search_since(self, since, only_unseen=False):
        self.searches += 1
        uids = sorted(self.messages, key=int)
        if only_unseen:
            uids = [uid for uid in uids if uid not in self.seen]
        return uids

    def search_all(self):
        self.searches += 1
        return sorted(self.messages, key=int)

    def fetch(self, uid):
        if uid in self.fail_on_fetch:
            raise imaplib.IMAP4.abort("connection reset by peer")
        self.fetched.append(uid)
        if self.on_fetch:
            self.on_fetch(uid)
        return MailMessage.from_bytes(uid, self.messages[uid])

    def mark_seen(self, uid):
        self.seen.add(uid)

    def logout(self):
        self.logged_out = True


class FakeMailboxFactory(MailboxFactory):

    def __init__(self, mailbox):
        self.mailbox = mailbox
        self.opened = 0
        self.open_error = None

    def open(self, config):
        self.opened += 1
        if self.open_error:
            raise self.open_error
        return self.mailbox


class FakeInfrastructureModule(Module):
    """Overrides the Kafka and mailbox bindings of ServiceModule."""

    def __init__(self, kafka_service, mailbox_factory):
        self.kafka_service = kafka_service
        self.mailbox_factory = mailbox_factory

    def configure(self, binder):
        binder.bind(KafkaService, to=self.kafka_service)
        binder.bind(MailboxFactory, to=self.mailbox_factory)


# ─── pytest fixtures ──────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    engine.dispose()


@pytest.fixture
def session(database):
    session = get_session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def kafka():
    return FakeKafkaService()


@pytest.fixture
def mailbox():
    return FakeMailbox()


@pytest.fixture
def mailbox_factory(mailbox):
    return FakeMailboxFactory(mailbox)


@pytest.fixture
def infrastructure(kafka, mailbox_factory):
    return FakeInfrastructureModule(kafka, mailbox_factory)


@pytest.fixture
def injector(infrastructure):
    return Injector([ServiceModule, infrastructure])


@pytest.fixture
def imap_configured(monkeypatch):
    monkeypatch.setattr(settings, "EMAIL_PROVIDER", "")
    monkeypatch.setattr(settings, "IMAP_HOST", "imap.example.com")
    monkeypatch.setattr(settings, "IMAP_PORT", 993)
    monkeypatch.setattr(settings, "IMAP_USER", "verify@example.com")
    monkeypatch.setattr(settings, "IMAP_PASS", "secret")


@pytest.fixture
def app(infrastructure):
    from main import create_app
    app = create_app(modules=[infrastructure])
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
