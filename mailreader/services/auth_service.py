"""
Password hashing and bearer-token authentication.

Tokens are HS256 JWTs carrying the user id; get_current_user resolves
them into a User for protected endpoints.
"""

import os
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from mailreader.database import get_db
from mailreader.models import User
from mailreader.services import db_service

JWT_ALGORITHM = "HS256"
MIN_PASSWORD_LENGTH = 6

bearer_scheme = HTTPBearer(auto_error=False)


def _jwt_secret() -> str:
    return os.getenv("JWT_SECRET", "change-me-in-production")


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=10)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(user_id: int) -> str:
    """Issue a signed token valid for JWT_EXPIRES_DAYS (default 7)."""
    expires = datetime.now(timezone.utc) + timedelta(days=int(os.getenv("JWT_EXPIRES_DAYS", "7")))
    payload = {"user_id": user_id, "exp": expires}
    return jwt.encode(payload, _jwt_secret(), algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> int:
    """
    Validate a token and return its user id.

    Raises:
        HTTPException 401: expired, malformed or wrongly signed token
    """
    try:
        payload = jwt.decode(token, _jwt_secret(), algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")

    user_id = payload.get("user_id")
    if not isinstance(user_id, int):
        raise HTTPException(status_code=401, detail="Invalid token")
    return user_id


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> User:
    """FastAPI dependency resolving the caller from the Authorization header."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Authentication required")

    user = db_service.get_user(db, decode_access_token(credentials.credentials))
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user
