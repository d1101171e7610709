"""
Draft polishing and sending.
"""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from mailreader.database import get_db
from mailreader.models import User
from mailreader.services import summarizer
from mailreader.services.auth_service import get_current_user
from mailreader.services.gmail_service import (
    GoogleOAuthClient,
    get_mail_client_factory,
    get_oauth_client,
)
from mailreader.services.mail_sender import send_email


class PolishRequest(BaseModel):
    draft: str
    tone: str = "professional"


class SendRequest(BaseModel):
    to: str
    subject: str
    body: str


router = APIRouter(prefix="/email", tags=["Compose"])


@router.post("/polish")
def polish(request: PolishRequest, user: User = Depends(get_current_user)):
    """Rewrite a rough draft in the requested tone."""
    if not request.draft.strip():
        raise HTTPException(status_code=400, detail="Draft content is required")

    return {"polished": summarizer.polish_draft(request.draft, request.tone)}


@router.post("/send")
async def send(
    request: SendRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    oauth_client: GoogleOAuthClient = Depends(get_oauth_client),
    client_factory=Depends(get_mail_client_factory)
):
    """Send a plain-text email from the connected Gmail account."""
    if not request.to.strip() or not request.subject.strip() or not request.body.strip():
        raise HTTPException(status_code=400, detail="To, Subject, and Body are required")

    await send_email(
        db, user.id, request.to, request.subject, request.body,
        oauth_client, client_factory=client_factory
    )
    return {"success": True, "message": "Email sent successfully"}
