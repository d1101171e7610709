import base64
import os
import tempfile

# Configure before the app (and its engine) is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUDIO_DIR", tempfile.mkdtemp(prefix="mailreader-audio-"))
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from mailreader.database import Base, get_db
from mailreader.errors import RemoteUnavailable, Unauthorized
from mailreader.services import db_service
from mailreader.services.auth_service import create_access_token, hash_password
from mailreader.services.gmail_service import TokenSet, get_mail_client_factory, get_oauth_client


def b64(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def make_message(message_id: str, subject: str = "Hello", body: str = "Body text",
                 sender: str = "alice@example.com", unread: bool = False,
                 date: str = "Mon, 12 Oct 2026 09:30:00 +0000") -> dict:
    """Gmail message resource as returned by messages.get(format=full)."""
    labels = ["INBOX", "UNREAD"] if unread else ["INBOX"]
    return {
        "id": message_id,
        "threadId": f"thread-{message_id}",
        "labelIds": labels,
        "snippet": f"{subject} snippet",
        "payload": {
            "headers": [
                {"name": "From", "value": sender},
                {"name": "To", "value": "me@example.com"},
                {"name": "Subject", "value": subject},
                {"name": "Date", "value": date},
            ],
            "body": {"data": b64(body)},
        },
    }


class FakeOAuthClient:
    """Stands in for GoogleOAuthClient; hands out predictable tokens."""

    def __init__(self, mailbox=None):
        self.mailbox = mailbox
        self.refresh_calls = []
        self.refresh_error = None
        self.next_token = "refreshed-token"

    def authorization_url(self) -> str:
        return "https://accounts.example.com/o/oauth2/auth?access_type=offline"

    def exchange(self, code: str) -> TokenSet:
        return TokenSet(access_token=f"access-{code}", refresh_token=f"refresh-{code}")

    def refresh(self, refresh_token: str) -> TokenSet:
        self.refresh_calls.append(refresh_token)
        if self.refresh_error:
            raise self.refresh_error
        if self.mailbox is not None:
            self.mailbox.valid_tokens.add(self.next_token)
        return TokenSet(access_token=self.next_token)


class FakeMailbox:
    """In-memory Gmail account shared by every FakeGmailClient built from it."""

    def __init__(self, valid_tokens=("valid-token",)):
        self.messages = {}
        self.valid_tokens = set(valid_tokens)
        self.failing_ids = set()
        self.list_calls = []
        self.detail_calls = []
        self.sent = []

    def add(self, *messages):
        for message in messages:
            self.messages[message["id"]] = message

    def client(self, access_token: str):
        return FakeGmailClient(self, access_token)


class FakeGmailClient:

    def __init__(self, mailbox: FakeMailbox, access_token: str):
        self.mailbox = mailbox
        self.access_token = access_token

    def _check_token(self):
        if self.access_token not in self.mailbox.valid_tokens:
            raise Unauthorized("401")

    async def list_message_ids(self, query: str, max_results: int) -> list:
        self._check_token()
        self.mailbox.list_calls.append((query, max_results))
        ids = list(self.mailbox.messages)[:max_results]
        return [{"id": message_id, "threadId": f"thread-{message_id}"} for message_id in ids]

    async def get_message_detail(self, message_id: str) -> dict:
        self._check_token()
        self.mailbox.detail_calls.append(message_id)
        if message_id in self.mailbox.failing_ids:
            raise RemoteUnavailable(f"boom {message_id}")
        return self.mailbox.messages[message_id]

    async def send_message(self, to: str, subject: str, body: str) -> dict:
        self._check_token()
        self.mailbox.sent.append((to, subject, body))
        return {"id": f"sent-{len(self.mailbox.sent)}", "threadId": "t", "labelIds": ["SENT"]}


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def mailbox():
    return FakeMailbox()


@pytest.fixture
def oauth_client(mailbox):
    return FakeOAuthClient(mailbox)


@pytest.fixture
def user(db):
    return db_service.create_user(db, "reader@example.com", hash_password("secret123"), name="Reader")


@pytest.fixture
def connected_user(db, user):
    db_service.save_credential(db, user.id, access_token="valid-token", refresh_token="refresh-token")
    return user


@pytest.fixture
def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def client(db, mailbox, oauth_client):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_oauth_client] = lambda: oauth_client
    app.dependency_overrides[get_mail_client_factory] = lambda: mailbox.client
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
