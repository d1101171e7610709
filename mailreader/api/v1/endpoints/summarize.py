"""
Email summarization endpoint.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from mailreader.models import User
from mailreader.services import summarizer
from mailreader.services.auth_service import get_current_user


class SummarizeRequest(BaseModel):
    emails: List[dict] = []


router = APIRouter(prefix="/summarize", tags=["Summarize"])


@router.post("/summarize")
def summarize(request: SummarizeRequest, user: User = Depends(get_current_user)):
    """
    Summarize emails into a short spoken-style briefing.

    Each email needs `from`, `subject`, `date` and either `snippet` or `body`.
    """
    if not request.emails:
        raise HTTPException(status_code=400, detail="Emails array is required")

    return {"summary": summarizer.summarize_emails(request.emails)}
