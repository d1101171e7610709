"""
Access-token lifecycle for stored Gmail credentials.

The stored access token is used optimistically; Gmail is the authority
on whether it is still valid. On a 401 the refresh token is exchanged
once, the new token is committed, and the call is retried once.
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.orm import Session

from mailreader.errors import ReauthRequired, Unauthorized
from mailreader.models import GmailCredential
from mailreader.services import db_service
from mailreader.services.gmail_service import GoogleOAuthClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def authorize(
    db: Session,
    credential: GmailCredential,
    oauth_client: GoogleOAuthClient,
    call: Callable[[str], Awaitable[T]]
) -> tuple[str, T]:
    """
    Run `call` with a valid access token, refreshing at most once.

    Args:
        db: Session the credential belongs to (refreshed tokens are committed)
        credential: Stored Gmail credential
        oauth_client: Client used to exchange the refresh token
        call: Coroutine function taking an access token; raises
            Unauthorized when Gmail rejects it

    Returns:
        (access token that succeeded, result of call)

    Raises:
        ReauthRequired: no refresh token, refresh rejected, or the retry
            was rejected too
        RateLimited / RemoteUnavailable: propagated from call or refresh
    """
    if credential.access_token:
        try:
            return credential.access_token, await call(credential.access_token)
        except Unauthorized:
            logger.info("Access token rejected for user %s", credential.user_id)

    if not credential.refresh_token:
        raise ReauthRequired()

    tokens = await asyncio.to_thread(oauth_client.refresh, credential.refresh_token)

    # Commit before retrying so a failure below still leaves a usable token
    db_service.store_refreshed_token(
        db,
        credential,
        access_token=tokens.access_token,
        token_expiry=tokens.expiry,
        refresh_token=tokens.refresh_token
    )
    logger.info("Refreshed Gmail access token for user %s", credential.user_id)

    try:
        return tokens.access_token, await call(tokens.access_token)
    except Unauthorized as e:
        raise ReauthRequired() from e
