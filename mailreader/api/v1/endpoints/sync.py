"""
Gmail -> local archive sync endpoint.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from mailreader.database import get_db
from mailreader.models import User
from mailreader.services.auth_service import get_current_user
from mailreader.services.gmail_service import (
    GoogleOAuthClient,
    get_mail_client_factory,
    get_oauth_client,
)
from mailreader.services.sync_engine import SyncFilter, sync_mailbox


class SyncRequest(BaseModel):
    maxResults: int = Field(50, ge=1)
    fullSync: bool = False
    dateFilter: Literal["all", "today", "last7days", "last30days"] = "all"
    unreadOnly: bool = False


class SyncStatsResponse(BaseModel):
    checked: int
    added: int


class SyncResponse(BaseModel):
    success: bool
    message: str
    stats: SyncStatsResponse


router = APIRouter(tags=["Sync"])


@router.post("/sync", response_model=SyncResponse)
async def sync_emails(
    request: Optional[SyncRequest] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    oauth_client: GoogleOAuthClient = Depends(get_oauth_client),
    client_factory=Depends(get_mail_client_factory)
):
    """
    Sync recent Gmail messages into the local archive.

    **Body:**
    - `maxResults`: messages to list, capped at 50 (default 50)
    - `fullSync`: list up to 200 instead of maxResults
    - `dateFilter`: all, today, last7days, last30days
    - `unreadOnly`: only unread messages

    **Returns:**
    - 200: `{success, message, stats: {checked, added}}`
    - 401: Gmail not connected, or authorization expired
    - 429: Gmail rate limit
    """
    request = request or SyncRequest()
    sync_filter = SyncFilter(
        max_results=request.maxResults,
        date_filter=request.dateFilter,
        unread_only=request.unreadOnly,
        full_sync=request.fullSync
    )

    stats = await sync_mailbox(db, user.id, sync_filter, oauth_client, client_factory=client_factory)

    return SyncResponse(
        success=True,
        message="Sync complete.",
        stats=SyncStatsResponse(**stats.to_dict())
    )
