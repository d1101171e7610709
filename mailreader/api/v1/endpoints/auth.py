"""
User account endpoints.

Flow:
1. POST /auth/register or /auth/login -> bearer token
2. Send "Authorization: Bearer <token>" on every protected endpoint
3. PUT /auth/gmail-tokens stores Gmail tokens obtained by the frontend
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mailreader.database import get_db
from mailreader.models import User
from mailreader.services import db_service
from mailreader.services.auth_service import (
    MIN_PASSWORD_LENGTH,
    create_access_token,
    get_current_user,
    hash_password,
    verify_password,
)


# 9999-12-31T23:59:59Z
MAX_EXPIRY_MS = 253_402_300_799_000


# Request Models
class RegisterRequest(BaseModel):
    email: str
    password: str
    name: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = None
    preferences: Optional[dict] = None


class GmailTokensRequest(BaseModel):
    """Tokens pushed by the frontend after it completes the OAuth exchange."""
    accessToken: Optional[str] = None
    refreshToken: Optional[str] = None
    # Expiry as epoch milliseconds, bounded to what datetime can represent
    expiresIn: Optional[int] = Field(None, ge=0, le=MAX_EXPIRY_MS)


router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", status_code=201)
def register(request: RegisterRequest, db: Session = Depends(get_db)):
    """Create an account and return a bearer token."""
    if not request.email or not request.password:
        raise HTTPException(status_code=400, detail="Email and password are required")

    if len(request.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )

    if db_service.get_user_by_email(db, request.email):
        raise HTTPException(status_code=400, detail="User with this email already exists")

    try:
        user = db_service.create_user(
            db,
            email=request.email,
            password_hash=hash_password(request.password),
            name=request.name
        )
    except IntegrityError:
        raise HTTPException(status_code=400, detail="User with this email already exists")

    return {
        "message": "User created successfully",
        "token": create_access_token(user.id),
        "user": user.to_public_dict()
    }


@router.post("/login")
def login(request: LoginRequest, db: Session = Depends(get_db)):
    """Exchange email + password for a bearer token."""
    if not request.email or not request.password:
        raise HTTPException(status_code=400, detail="Email and password are required")

    user = db_service.get_user_by_email(db, request.email)
    if not user or not verify_password(request.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    return {
        "message": "Login successful",
        "token": create_access_token(user.id),
        "user": user.to_public_dict()
    }


@router.get("/profile")
def get_profile(user: User = Depends(get_current_user)):
    return {"user": user.to_public_dict()}


@router.put("/profile")
def update_profile(
    request: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    user = db_service.update_user(db, user, name=request.name, preferences=request.preferences)
    return {
        "message": "Profile updated successfully",
        "user": user.to_public_dict()
    }


@router.put("/gmail-tokens")
def update_gmail_tokens(
    request: GmailTokensRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Store Gmail tokens for the caller (only provided values are overwritten)."""
    expiry = None
    if request.expiresIn:
        expiry = datetime.fromtimestamp(request.expiresIn / 1000, tz=timezone.utc).replace(tzinfo=None)

    credential = db_service.save_credential(
        db,
        user_id=user.id,
        access_token=request.accessToken,
        refresh_token=request.refreshToken,
        token_expiry=expiry
    )

    return {
        "message": "Gmail tokens updated successfully",
        "hasGmailAuth": credential.is_usable
    }


@router.post("/logout")
def logout(user: User = Depends(get_current_user)):
    """
    Logout is client-side (drop the bearer token).

    Gmail credentials are kept so the next login does not need a new consent.
    """
    return {"message": "Logged out successfully"}
