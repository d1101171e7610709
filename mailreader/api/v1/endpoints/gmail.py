"""
Gmail connection and live unread fetch.

Flow:
1. GET /gmail/auth-url -> Google consent URL
2. Google redirects to GET /gmail/auth-callback, which forwards the code
   to the frontend
3. Frontend POSTs the code to /gmail/auth-callback; tokens are stored
   for the signed-in user
"""

import asyncio
import logging
import os
from typing import Literal, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from mailreader.database import get_db
from mailreader.models import User
from mailreader.services import db_service
from mailreader.services.auth_service import get_current_user
from mailreader.services.gmail_service import (
    GoogleOAuthClient,
    get_mail_client_factory,
    get_oauth_client,
)
from mailreader.services.sync_engine import SyncFilter, fetch_unread

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/gmail", tags=["Gmail"])


class AuthCallbackRequest(BaseModel):
    code: str


class UnreadEmailsRequest(BaseModel):
    maxResults: int = Field(10, ge=1)
    dateFilter: Literal["all", "today", "last7days", "last30days"] = "all"


def _frontend_url() -> str:
    return os.getenv("FRONTEND_URL", "http://localhost:3000").rstrip("/")


@router.get("/auth-url")
def auth_url(oauth_client: GoogleOAuthClient = Depends(get_oauth_client)):
    """Google consent URL (offline access so a refresh token is issued)."""
    return {"authUrl": oauth_client.authorization_url()}


@router.get("/auth-callback")
def auth_callback_redirect(code: Optional[str] = None, error: Optional[str] = None):
    """
    Google redirect target - forwards the code (or error) to the frontend.

    The frontend then completes the exchange via POST /gmail/auth-callback
    with the user's bearer token attached.
    """
    if error:
        return RedirectResponse(url=f"{_frontend_url()}?{urlencode({'error': error})}")

    if not code:
        return RedirectResponse(url=f"{_frontend_url()}?{urlencode({'error': 'no_code'})}")

    return RedirectResponse(url=f"{_frontend_url()}?{urlencode({'code': code})}")


@router.post("/auth-callback")
async def auth_callback(
    request: AuthCallbackRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    oauth_client: GoogleOAuthClient = Depends(get_oauth_client)
):
    """Exchange an authorization code and store the tokens for the caller."""
    if not request.code:
        raise HTTPException(status_code=400, detail="Authorization code is required")

    tokens = await asyncio.to_thread(oauth_client.exchange, request.code)

    credential = db_service.save_credential(
        db,
        user_id=user.id,
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        token_expiry=tokens.expiry
    )
    logger.info("Gmail connected for user %s", user.id)

    return {
        "success": True,
        "message": "Gmail account connected",
        "hasRefreshToken": bool(credential.refresh_token),
        "expiresAt": credential.token_expiry.isoformat() if credential.token_expiry else None
    }


@router.post("/unread-emails")
async def unread_emails(
    request: UnreadEmailsRequest = UnreadEmailsRequest(),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    oauth_client: GoogleOAuthClient = Depends(get_oauth_client),
    client_factory=Depends(get_mail_client_factory)
):
    """
    Fetch unread emails straight from Gmail (not the local archive).

    **Body:**
    - `maxResults`: 1-50 (larger values are capped), default 10
    - `dateFilter`: all, today, last7days, last30days
    """
    emails = await fetch_unread(
        db,
        user.id,
        SyncFilter(max_results=request.maxResults, date_filter=request.dateFilter),
        oauth_client,
        client_factory=client_factory
    )
    return {"emails": emails}
