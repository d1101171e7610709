"""
Gmail API access: the OAuth client and the per-token mail client.

- GoogleOAuthClient: consent URL, code exchange and token refresh
- GmailClient: list message ids, fetch full messages, send mail
- parse_message: flatten a Gmail message resource into archive fields
"""

import asyncio
import base64
import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from email.message import EmailMessage
from email.utils import parsedate_to_datetime
from typing import Optional

import httplib2
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request as GoogleRequest
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from mailreader.errors import (
    RateLimited,
    ReauthRequired,
    RemoteUnavailable,
    ServiceNotConfigured,
    Unauthorized,
)
from mailreader.services.mime_decoder import decode_body

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/gmail.send"
]

GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"

# 403 throttling reasons: legacy "errors" entries and google.rpc ErrorInfo "details"
RATE_LIMIT_REASONS = {"rateLimitExceeded", "userRateLimitExceeded", "RATE_LIMIT_EXCEEDED"}

HTTP_TIMEOUT = 30


@dataclass
class TokenSet:
    """Tokens returned by the Google token endpoint."""
    access_token: str
    refresh_token: Optional[str] = None
    expiry: Optional[datetime] = None


class GoogleOAuthClient:
    """
    OAuth2 web client for Gmail consent and token refresh.

    Constructed explicitly with the app's client credentials and passed
    to whatever needs it; nothing here is process-global.
    """

    def __init__(self, client_id: str, client_secret: str, redirect_uri: str, scopes: list = None):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scopes = scopes or SCOPES

    @classmethod
    def from_env(cls) -> "GoogleOAuthClient":
        return cls(
            client_id=os.getenv("GOOGLE_CLIENT_ID"),
            client_secret=os.getenv("GOOGLE_CLIENT_SECRET"),
            redirect_uri=os.getenv("GOOGLE_REDIRECT_URI", "http://localhost:8000/api/v1/gmail/auth-callback")
        )

    def _require_configured(self) -> None:
        if not self.client_id or not self.client_secret:
            raise ServiceNotConfigured("Google OAuth client is not configured")

    def _flow(self) -> Flow:
        self._require_configured()
        return Flow.from_client_config(
            {
                "web": {
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "auth_uri": GOOGLE_AUTH_URI,
                    "token_uri": GOOGLE_TOKEN_URI,
                }
            },
            scopes=self.scopes,
            redirect_uri=self.redirect_uri,
            # Exchange happens in a later request, so no PKCE verifier survives
            autogenerate_code_verifier=False
        )

    def authorization_url(self) -> str:
        """Consent URL requesting offline access (so Google issues a refresh token)."""
        auth_url, _state = self._flow().authorization_url(
            access_type="offline",
            include_granted_scopes="true",
            prompt="consent"
        )
        return auth_url

    def exchange(self, code: str) -> TokenSet:
        """Exchange an authorization code for tokens."""
        flow = self._flow()
        try:
            flow.fetch_token(code=code)
        except Exception as e:
            # oauthlib raises its own hierarchy for invalid_grant and friends
            raise ReauthRequired(f"Failed to exchange code for token: {e}") from e

        creds = flow.credentials
        return TokenSet(
            access_token=creds.token,
            refresh_token=creds.refresh_token,
            expiry=creds.expiry
        )

    def refresh(self, refresh_token: str) -> TokenSet:
        """
        Mint a new access token from a refresh token.

        Raises:
            ReauthRequired: Google rejected the refresh token
            RemoteUnavailable: token endpoint unreachable
        """
        self._require_configured()
        creds = Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=GOOGLE_TOKEN_URI,
            client_id=self.client_id,
            client_secret=self.client_secret,
            scopes=self.scopes
        )
        try:
            creds.refresh(GoogleRequest())
        except RefreshError as e:
            raise ReauthRequired() from e
        except TransportError as e:
            raise RemoteUnavailable(f"Token endpoint unreachable: {e}") from e

        return TokenSet(
            access_token=creds.token,
            refresh_token=creds.refresh_token or refresh_token,
            expiry=creds.expiry
        )


def error_reasons(exc: HttpError) -> set:
    """
    Reasons from both "error.errors" and "error.details" of the response body.

    HttpError.error_details only keeps the first of those lists present.
    """
    try:
        error = json.loads(exc.content.decode("utf-8")).get("error", {})
    except (ValueError, AttributeError):
        return set()
    if not isinstance(error, dict):
        return set()

    reasons = set()
    for key in ("errors", "details"):
        entries = error.get(key)
        if isinstance(entries, list):
            reasons.update(e.get("reason") for e in entries if isinstance(e, dict))
    reasons.discard(None)
    return reasons


def translate_http_error(exc: HttpError) -> Exception:
    """Map a Gmail API HttpError onto the error taxonomy."""
    status = exc.resp.status
    if status == 401:
        return Unauthorized(str(exc))

    if status == 429 or (status == 403 and error_reasons(exc) & RATE_LIMIT_REASONS):
        return RateLimited()

    return RemoteUnavailable(f"Gmail API error {status}")


class GmailClient:
    """
    Gmail API wrapper bound to a single access token.

    The token is used as-is and never refreshed here; a 401 surfaces as
    Unauthorized so token_service can decide what to do. Blocking client
    calls run in worker threads, each with its own HTTP transport.
    """

    def __init__(self, access_token: str, http_factory=None):
        self.access_token = access_token
        self._http_factory = http_factory or self._authorized_http
        self._service = build(
            "gmail", "v1",
            credentials=Credentials(token=access_token),
            cache_discovery=False
        )

    def _authorized_http(self):
        # refresh_status_codes=() keeps a 401 visible instead of auto-refreshing
        return AuthorizedHttp(
            Credentials(token=self.access_token),
            http=httplib2.Http(timeout=HTTP_TIMEOUT),
            refresh_status_codes=()
        )

    async def _execute(self, request) -> dict:
        try:
            return await asyncio.to_thread(request.execute, http=self._http_factory())
        except HttpError as e:
            raise translate_http_error(e) from e
        except (httplib2.HttpLib2Error, TransportError, OSError) as e:
            raise RemoteUnavailable(f"Gmail unreachable: {e}") from e

    async def list_message_ids(self, query: str, max_results: int) -> list[dict]:
        """
        List message references matching a Gmail search query.

        A single bounded call: max_results is passed straight to Gmail and
        no further pages are requested.

        Returns:
            List of {"id", "threadId"} dicts
        """
        params = {"userId": "me", "maxResults": max_results}
        if query:
            params["q"] = query

        results = await self._execute(self._service.users().messages().list(**params))
        return results.get("messages", [])

    async def get_message_detail(self, message_id: str) -> dict:
        """Fetch a full message resource (headers, snippet, payload, labelIds)."""
        return await self._execute(
            self._service.users().messages().get(userId="me", id=message_id, format="full")
        )

    async def send_message(self, to: str, subject: str, body: str) -> dict:
        """Send a plain-text email from the authorized account."""
        raw = build_raw_message(to, subject, body)
        return await self._execute(
            self._service.users().messages().send(userId="me", body={"raw": raw})
        )


def build_raw_message(to: str, subject: str, body: str) -> str:
    """Encode an RFC 2822 text/plain message as base64url for messages.send."""
    message = EmailMessage()
    message["To"] = to
    message["Subject"] = subject
    message.set_content(body, charset="utf-8")
    return base64.urlsafe_b64encode(message.as_bytes()).decode("ascii").rstrip("=")


def get_header(headers: list, name: str) -> Optional[str]:
    """Case-insensitive header lookup on a Gmail headers list."""
    lowered = name.lower()
    for h in headers or []:
        if h.get("name", "").lower() == lowered:
            return h.get("value")
    return None


def parse_message_date(date_header: Optional[str], internal_date: Optional[str] = None) -> datetime:
    """
    Resolve a message timestamp as naive UTC.

    Prefers the Date header, then Gmail's internalDate (epoch ms), then now.
    """
    if date_header:
        try:
            parsed = parsedate_to_datetime(date_header)
            if parsed.tzinfo is not None:
                parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
            return parsed
        except (TypeError, ValueError, IndexError):
            logger.debug("Unparseable Date header: %r", date_header)

    if internal_date:
        try:
            return datetime.fromtimestamp(int(internal_date) / 1000, tz=timezone.utc).replace(tzinfo=None)
        except (TypeError, ValueError, OverflowError):
            pass

    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_message(msg: dict) -> dict:
    """
    Flatten a Gmail message resource into archive fields.

    The body falls back to the snippet when the payload decodes empty.
    """
    payload = msg.get("payload") or {}
    headers = payload.get("headers", [])
    snippet = msg.get("snippet", "") or ""
    labels = msg.get("labelIds") or []

    body = decode_body(payload)
    if not body.strip():
        body = snippet

    return {
        "gmail_id": msg.get("id"),
        "thread_id": msg.get("threadId"),
        "subject": get_header(headers, "Subject") or "No Subject",
        "sender": get_header(headers, "From") or "Unknown",
        "recipient": get_header(headers, "To") or "",
        "date": parse_message_date(get_header(headers, "Date"), msg.get("internalDate")),
        "snippet": snippet,
        "body": body,
        "labels": labels,
        "is_read": "UNREAD" not in labels,
    }


def get_oauth_client() -> GoogleOAuthClient:
    """FastAPI dependency providing the configured OAuth client."""
    return GoogleOAuthClient.from_env()


def get_mail_client_factory():
    """FastAPI dependency providing the callable that builds a mail client from a token."""
    return GmailClient
