"""
Error taxonomy for Gmail access and the upstream AI services.

Every error carries the HTTP status it is surfaced with; the handler
registered in main.py renders them as {"error": ..., "code": ...}.
"""

import re

from fastapi import Request
from fastapi.responses import JSONResponse


class MailReaderError(Exception):
    """Base class for errors that map directly onto an HTTP response."""
    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return re.sub(r"(?<!^)(?=[A-Z])", "_", type(self).__name__).lower()


class GmailNotConnected(MailReaderError):
    """The user never connected a Gmail account (or has no usable token)."""
    status_code = 401
    default_message = "Gmail account not connected"


class ReauthRequired(MailReaderError):
    """Stored tokens were rejected and could not be refreshed."""
    status_code = 401
    default_message = "Gmail authorization expired. Please reconnect your account."


class RateLimited(MailReaderError):
    status_code = 429
    default_message = "Gmail rate limit exceeded. Please try again later."


class RemoteUnavailable(MailReaderError):
    status_code = 500
    default_message = "Gmail is unavailable"


class ServiceNotConfigured(MailReaderError):
    status_code = 500
    default_message = "Service not configured"


class UpstreamServiceError(MailReaderError):
    status_code = 500
    default_message = "Upstream service failed"


class Unauthorized(Exception):
    """
    The provider rejected the access token (HTTP 401).

    Internal signal for the token refresh path; never reaches a caller.
    """


async def mail_reader_error_handler(request: Request, exc: MailReaderError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "code": exc.code}
    )
