"""
Profile inference from a user's emails.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from mailreader.database import get_db
from mailreader.models import User
from mailreader.services import db_service, summarizer
from mailreader.services.auth_service import get_current_user


class AnalyzeRequest(BaseModel):
    emails: List[dict] = []


router = APIRouter(prefix="/analysis", tags=["Analysis"])


@router.post("/analyze")
def analyze(
    request: AnalyzeRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Infer interests, contacts and other profile details from emails.

    The previous profile for the user is replaced.
    """
    if not request.emails:
        raise HTTPException(status_code=400, detail="Emails array is required")

    profile = summarizer.analyze_emails(request.emails)
    analysis = db_service.upsert_user_analysis(db, user.id, profile, len(request.emails))

    return {
        "message": "Analysis completed successfully",
        "profile": analysis.to_dict()
    }


@router.get("/profile")
def get_profile(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    analysis = db_service.get_user_analysis(db, user.id)
    return {"profile": analysis.to_dict() if analysis else None}


@router.delete("/profile")
def delete_profile(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    if not db_service.delete_user_analysis(db, user.id):
        raise HTTPException(status_code=404, detail="No analysis found")
    return {"message": "Analysis deleted successfully"}
