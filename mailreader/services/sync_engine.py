"""
Gmail -> local archive synchronization.

Pipeline:
1. Build a Gmail search query from the sync filter
2. List message ids (one bounded call, token refreshed here if needed)
3. Process ids in batches of BATCH_SIZE: concurrent within a batch,
   sequential across batches
4. Skip ids already archived; fetch, decode and upsert the rest

One failing message never stops the others; it is logged and simply
not counted as added.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mailreader.errors import GmailNotConnected
from mailreader.services import db_service
from mailreader.services.gmail_service import GmailClient, GoogleOAuthClient, parse_message
from mailreader.services.token_service import authorize

logger = logging.getLogger(__name__)

BATCH_SIZE = 10
MAX_RESULTS_CAP = 50
# Full sync is still a single list call; there is no page-token loop
FULL_SYNC_LIMIT = 200
UNREAD_BODY_PREVIEW = 1000

DATE_FILTER_DAYS = {
    "today": 0,
    "last7days": 7,
    "last30days": 30,
}
DATE_FILTERS = ("all", *DATE_FILTER_DAYS)


@dataclass
class SyncFilter:
    """Options for one sync or unread fetch."""
    max_results: int = MAX_RESULTS_CAP
    date_filter: str = "all"
    unread_only: bool = False
    full_sync: bool = False

    def __post_init__(self):
        if self.date_filter not in DATE_FILTERS:
            raise ValueError(f"Unknown date filter: {self.date_filter}")
        self.max_results = max(1, min(int(self.max_results), MAX_RESULTS_CAP))

    @property
    def effective_max(self) -> int:
        return FULL_SYNC_LIMIT if self.full_sync else self.max_results


@dataclass
class SyncStats:
    checked: int = 0
    added: int = 0

    def to_dict(self) -> dict:
        return {"checked": self.checked, "added": self.added}


def date_lower_bound(date_filter: str, now: datetime = None) -> Optional[datetime]:
    """
    Start of the recency window, truncated to the day.

    "today" is the start of the current day; "lastNdays" is N days before
    now. "all" has no bound.
    """
    if date_filter not in DATE_FILTER_DAYS:
        return None
    now = now or datetime.now()
    bound = now - timedelta(days=DATE_FILTER_DAYS[date_filter])
    return bound.replace(hour=0, minute=0, second=0, microsecond=0)


def build_query(sync_filter: SyncFilter, now: datetime = None) -> str:
    """
    Build the Gmail search query, e.g. "is:unread after:2026/10/12".

    Returns:
        Query string ("" means all mail)
    """
    clauses = []
    if sync_filter.unread_only:
        clauses.append("is:unread")

    bound = date_lower_bound(sync_filter.date_filter, now)
    if bound is not None:
        clauses.append(f"after:{bound.strftime('%Y/%m/%d')}")

    return " ".join(clauses)


def chunked(items: list, size: int) -> list[list]:
    return [items[i:i + size] for i in range(0, len(items), size)]


def _load_credential(db: Session, user_id: int):
    credential = db_service.get_credential(db, user_id)
    if credential is None or not credential.is_usable:
        raise GmailNotConnected()
    return credential


async def _list_with_refresh(
    db: Session,
    user_id: int,
    query: str,
    max_results: int,
    oauth_client: GoogleOAuthClient,
    client_factory
) -> tuple[GmailClient, list[dict]]:
    credential = _load_credential(db, user_id)

    async def list_ids(access_token: str):
        return await client_factory(access_token).list_message_ids(query, max_results)

    access_token, refs = await authorize(db, credential, oauth_client, list_ids)
    return client_factory(access_token), refs


async def _sync_message(db: Session, user_id: int, client: GmailClient, message_id: str) -> bool:
    """
    Archive one message unless it is already stored.

    Returns:
        True if a new row was created
    """
    if db_service.find_email(db, user_id, message_id):
        return False

    detail = await client.get_message_detail(message_id)
    fields = parse_message(detail)
    fields["gmail_id"] = message_id

    try:
        _email, created = db_service.upsert_email(db, user_id=user_id, **fields)
    except SQLAlchemyError:
        db.rollback()
        raise
    return created


async def sync_mailbox(
    db: Session,
    user_id: int,
    sync_filter: SyncFilter,
    oauth_client: GoogleOAuthClient,
    client_factory=GmailClient,
    now: datetime = None
) -> SyncStats:
    """
    Sync a user's Gmail messages into the local archive.

    Re-running with an unchanged mailbox adds nothing.

    Args:
        db: Database session
        user_id: Resolved caller identity
        sync_filter: Query and size options
        oauth_client: Used if the stored access token needs refreshing
        client_factory: Builds a mail client from an access token
        now: Clock override for the date filter

    Returns:
        SyncStats with ids examined and rows newly archived

    Raises:
        GmailNotConnected, ReauthRequired, RateLimited, RemoteUnavailable
    """
    query = build_query(sync_filter, now)
    client, refs = await _list_with_refresh(
        db, user_id, query, sync_filter.effective_max, oauth_client, client_factory
    )

    stats = SyncStats(checked=len(refs))
    logger.info("Found %d messages to sync check for user %s (q=%r)", len(refs), user_id, query)

    message_ids = [ref["id"] for ref in refs]
    for batch in chunked(message_ids, BATCH_SIZE):
        results = await asyncio.gather(
            *(_sync_message(db, user_id, client, message_id) for message_id in batch),
            return_exceptions=True
        )

        for message_id, result in zip(batch, results):
            if isinstance(result, BaseException):
                logger.warning("Failed to sync msg %s: %s", message_id, result)
            elif result:
                stats.added += 1

    logger.info("Sync complete for user %s: %s", user_id, stats.to_dict())
    return stats


async def fetch_unread(
    db: Session,
    user_id: int,
    sync_filter: SyncFilter,
    oauth_client: GoogleOAuthClient,
    client_factory=GmailClient,
    now: datetime = None
) -> list[dict]:
    """
    Fetch unread messages live from Gmail (not archived).

    Bodies are trimmed to UNREAD_BODY_PREVIEW characters. Messages that
    fail to load are skipped.
    """
    unread_filter = SyncFilter(
        max_results=sync_filter.max_results,
        date_filter=sync_filter.date_filter,
        unread_only=True
    )
    query = build_query(unread_filter, now)
    client, refs = await _list_with_refresh(
        db, user_id, query, unread_filter.max_results, oauth_client, client_factory
    )

    emails = []
    for batch in chunked([ref["id"] for ref in refs], BATCH_SIZE):
        results = await asyncio.gather(
            *(client.get_message_detail(message_id) for message_id in batch),
            return_exceptions=True
        )
        for message_id, result in zip(batch, results):
            if isinstance(result, BaseException):
                logger.warning("Error processing email %s: %s", message_id, result)
                continue
            fields = parse_message(result)
            emails.append({
                "id": message_id,
                "subject": fields["subject"],
                "from": fields["sender"],
                "date": fields["date"].isoformat(),
                "snippet": fields["snippet"],
                "body": fields["body"][:UNREAD_BODY_PREVIEW],
            })

    logger.info("Retrieved %d unread emails for user %s", len(emails), user_id)
    return emails
