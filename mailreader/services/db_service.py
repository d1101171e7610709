"""
Database service layer for the mail reader.

This module provides CRUD operations with upsert logic:
- Users and their Gmail credentials
- Email archive: find / upsert keyed by (user_id, gmail_id), paginated search
- Audio history and the inferred user profile
"""

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import func, or_
from datetime import datetime, timezone
from typing import Optional

from mailreader.models import User, GmailCredential, Email, AudioRecord, UserAnalysis
from mailreader.models.user import default_preferences


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ============ USER OPERATIONS ============

def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.get(User, user_id)


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email.strip().lower()).first()


def create_user(db: Session, email: str, password_hash: str, name: str = None) -> User:
    """
    Create a new user.

    Raises:
        IntegrityError: another account already uses this email
    """
    normalized = email.strip().lower()
    user = User(
        email=normalized,
        password_hash=password_hash,
        name=name or normalized.split("@")[0],
        preferences=default_preferences()
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise
    db.refresh(user)
    return user


def update_user(db: Session, user: User, name: str = None, preferences: dict = None) -> User:
    """Update name and/or merge preferences (only provided values)."""
    if name is not None:
        user.name = name
    if preferences is not None:
        merged = dict(user.preferences or default_preferences())
        merged.update(preferences)
        user.preferences = merged
    db.commit()
    db.refresh(user)
    return user


# ============ CREDENTIAL OPERATIONS ============

def get_credential(db: Session, user_id: int) -> Optional[GmailCredential]:
    return db.query(GmailCredential).filter(
        GmailCredential.user_id == user_id
    ).first()


def save_credential(
    db: Session,
    user_id: int,
    access_token: str = None,
    refresh_token: str = None,
    token_expiry: datetime = None
) -> GmailCredential:
    """
    Store tokens from an OAuth consent, overwriting the previous ones.

    Google only returns a refresh token on the first consent (or with
    prompt=consent), so a missing one keeps what is already stored.
    """
    credential = get_credential(db, user_id)
    if credential is None:
        credential = GmailCredential(user_id=user_id)
        db.add(credential)

    if access_token is not None:
        credential.access_token = access_token
    if refresh_token is not None:
        credential.refresh_token = refresh_token
    if token_expiry is not None:
        credential.token_expiry = token_expiry

    db.commit()
    db.refresh(credential)
    return credential


def store_refreshed_token(
    db: Session,
    credential: GmailCredential,
    access_token: str,
    token_expiry: datetime = None,
    refresh_token: str = None
) -> GmailCredential:
    """Persist a refreshed access token (and rotated refresh token, if any)."""
    credential.access_token = access_token
    credential.token_expiry = token_expiry
    if refresh_token:
        credential.refresh_token = refresh_token
    db.commit()
    db.refresh(credential)
    return credential


# ============ EMAIL OPERATIONS ============

def find_email(db: Session, user_id: int, gmail_id: str) -> Optional[Email]:
    return db.query(Email).filter(
        Email.user_id == user_id,
        Email.gmail_id == gmail_id
    ).first()


def _update_mutable_fields(email: Email, labels: list, is_read: bool = None) -> None:
    email.labels = list(labels or [])
    email.is_read = is_read if is_read is not None else "UNREAD" not in email.labels


def upsert_email(
    db: Session,
    user_id: int,
    gmail_id: str,
    sender: str,
    date: datetime,
    thread_id: str = None,
    subject: str = "No Subject",
    recipient: str = "",
    snippet: str = "",
    body: str = "",
    labels: list = None,
    is_read: bool = None
) -> tuple[Email, bool]:
    """
    Insert or update an archived email keyed by (user_id, gmail_id).

    Only labels and the read flag change on an existing row; its id is
    preserved.

    Returns:
        (email, created) - created is False when the row already existed,
        including when a concurrent writer inserted it first
    """
    existing = find_email(db, user_id, gmail_id)
    if existing:
        _update_mutable_fields(existing, labels, is_read)
        db.commit()
        return existing, False

    email = Email(
        user_id=user_id,
        gmail_id=gmail_id,
        thread_id=thread_id,
        subject=subject or "No Subject",
        sender=sender or "Unknown",
        recipient=recipient or "",
        date=date or _utcnow(),
        snippet=snippet or "",
        body=body or "",
        labels=list(labels or []),
        is_read=is_read if is_read is not None else "UNREAD" not in (labels or [])
    )
    db.add(email)

    try:
        db.commit()
        db.refresh(email)
        return email, True
    except IntegrityError:
        # Race condition - another request created it; update theirs instead
        db.rollback()
        existing = find_email(db, user_id, gmail_id)
        _update_mutable_fields(existing, labels, is_read)
        db.commit()
        return existing, False


def _email_search_query(db: Session, user_id: int, search: str = None):
    query = db.query(Email).filter(Email.user_id == user_id)
    if search:
        # autoescape keeps % and _ in the search text literal
        query = query.filter(
            or_(
                Email.subject.icontains(search, autoescape=True),
                Email.sender.icontains(search, autoescape=True),
                Email.snippet.icontains(search, autoescape=True)
            )
        )
    return query


def list_emails(
    db: Session,
    user_id: int,
    page: int = 1,
    limit: int = 20,
    search: str = None
) -> tuple[list[Email], int]:
    """
    Page through a user's archive, newest first.

    Args:
        search: Case-insensitive substring matched against subject,
            sender or snippet

    Returns:
        (emails on this page, total matching rows)
    """
    query = _email_search_query(db, user_id, search)
    total = query.with_entities(func.count(Email.id)).scalar()

    emails = query.order_by(Email.date.desc(), Email.id.desc()).offset(
        (page - 1) * limit
    ).limit(limit).all()

    return emails, total


def get_email_by_id(db: Session, user_id: int, email_id: int) -> Optional[Email]:
    return db.query(Email).filter(
        Email.id == email_id,
        Email.user_id == user_id
    ).first()


def count_emails(db: Session, user_id: int) -> int:
    return db.query(func.count(Email.id)).filter(Email.user_id == user_id).scalar()


# ============ AUDIO OPERATIONS ============

def create_audio_record(
    db: Session,
    user_id: int,
    filename: str,
    url: str,
    text_preview: str = "",
    voice_id: str = None,
    file_size: int = 0,
    email_count: int = 10,
    date_filter: str = "all"
) -> AudioRecord:
    record = AudioRecord(
        user_id=user_id,
        filename=filename,
        url=url,
        text_preview=text_preview,
        voice_id=voice_id,
        file_size=file_size,
        email_count=email_count,
        date_filter=date_filter
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def list_audio_records(db: Session, user_id: int, limit: int = 50) -> list[AudioRecord]:
    return db.query(AudioRecord).filter(
        AudioRecord.user_id == user_id
    ).order_by(AudioRecord.created_at.desc(), AudioRecord.id.desc()).limit(limit).all()


def get_audio_record(db: Session, user_id: int, audio_id: int) -> Optional[AudioRecord]:
    return db.query(AudioRecord).filter(
        AudioRecord.id == audio_id,
        AudioRecord.user_id == user_id
    ).first()


def delete_audio_record(db: Session, record: AudioRecord) -> None:
    db.delete(record)
    db.commit()


# ============ ANALYSIS OPERATIONS ============

def get_user_analysis(db: Session, user_id: int) -> Optional[UserAnalysis]:
    return db.query(UserAnalysis).filter(UserAnalysis.user_id == user_id).first()


def upsert_user_analysis(db: Session, user_id: int, profile: dict, analyzed_email_count: int) -> UserAnalysis:
    """
    Replace the user's inferred profile.

    Args:
        profile: Normalized profile fields (see summarizer.normalize_profile)
        analyzed_email_count: Number of emails the profile was built from
    """
    analysis = get_user_analysis(db, user_id)
    if analysis is None:
        analysis = UserAnalysis(user_id=user_id)
        db.add(analysis)

    analysis.interests = profile.get("interests", [])
    analysis.hobbies = profile.get("hobbies", [])
    analysis.school = profile.get("school")
    analysis.university = profile.get("university")
    analysis.company = profile.get("company")
    analysis.job_title = profile.get("job_title")
    analysis.supervisor = profile.get("supervisor")
    analysis.best_friend = profile.get("best_friend")
    analysis.close_contacts = profile.get("close_contacts", [])
    analysis.location = profile.get("location")
    analysis.frequent_topics = profile.get("frequent_topics", [])
    analysis.communication_style = profile.get("communication_style")
    analysis.insights = profile.get("insights", "")
    analysis.analyzed_email_count = analyzed_email_count
    analysis.last_analyzed = _utcnow()

    db.commit()
    db.refresh(analysis)
    return analysis


def delete_user_analysis(db: Session, user_id: int) -> bool:
    analysis = get_user_analysis(db, user_id)
    if analysis is None:
        return False
    db.delete(analysis)
    db.commit()
    return True
