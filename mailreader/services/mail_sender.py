"""
Outgoing mail through the user's Gmail account.
"""

import logging

from sqlalchemy.orm import Session

from mailreader.errors import GmailNotConnected
from mailreader.services import db_service
from mailreader.services.gmail_service import GmailClient, GoogleOAuthClient
from mailreader.services.token_service import authorize

logger = logging.getLogger(__name__)


async def send_email(
    db: Session,
    user_id: int,
    to: str,
    subject: str,
    body: str,
    oauth_client: GoogleOAuthClient,
    client_factory=GmailClient
) -> dict:
    """
    Send a plain-text email, refreshing the access token once if needed.

    Returns:
        Gmail's response ({"id", "threadId", "labelIds"})
    """
    credential = db_service.get_credential(db, user_id)
    if credential is None or not credential.is_usable:
        raise GmailNotConnected()

    async def send(access_token: str):
        return await client_factory(access_token).send_message(to, subject, body)

    _token, result = await authorize(db, credential, oauth_client, send)
    logger.info("Sent email for user %s (gmail id %s)", user_id, result.get("id"))
    return result
