"""
Local archive browsing.

Reads only committed archive rows, so it never depends on Gmail being
reachable.
"""

import math
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from mailreader.database import get_db
from mailreader.models import User
from mailreader.services import db_service
from mailreader.services.auth_service import get_current_user


router = APIRouter(prefix="/emails", tags=["Archive"])


@router.get("")
def list_emails(
    page: int = Query(1, ge=1, description="Page number (1-based)"),
    limit: int = Query(20, ge=1, le=100, description="Results per page"),
    search: Optional[str] = Query(None, description="Match subject, sender or snippet (case-insensitive)"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    List archived emails, newest first.

    **Example:**
    ```
    GET /api/v1/emails?page=2&limit=20&search=invoice
    ```
    """
    emails, total = db_service.list_emails(db, user.id, page=page, limit=limit, search=search)

    return {
        "emails": [email.to_dict() for email in emails],
        "pagination": {
            "total": total,
            "page": page,
            "pages": math.ceil(total / limit)
        }
    }


@router.get("/{email_id}")
def get_email(
    email_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    email = db_service.get_email_by_id(db, user.id, email_id)
    if not email:
        raise HTTPException(status_code=404, detail=f"Email with ID {email_id} not found")
    return email.to_dict()
