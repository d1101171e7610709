"""
Email model for the local Gmail archive.

One row per (user, Gmail message id):
- Deduplication across repeated syncs via the unique pair
- Paginated inbox listing via the (user_id, date) index
- Source data for summaries and the inferred user profile
"""

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Boolean, JSON,
    ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.sql import func
from mailreader.database import Base


class Email(Base):
    """
    Archived Gmail message owned by one user.

    Labels and the read flag may change on re-sync; everything else is
    written once when the message is first seen.
    """
    __tablename__ = "emails"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Gmail identifiers
    gmail_id = Column(String(64), nullable=False, index=True)
    thread_id = Column(String(64), index=True)

    # Email metadata
    subject = Column(String(512), default="No Subject")
    sender = Column(String(512), nullable=False)
    recipient = Column(String(1024), default="")
    date = Column(DateTime, nullable=False)
    snippet = Column(Text, default="")

    # Full decoded content
    body = Column(Text, default="")

    is_read = Column(Boolean, default=False)
    labels = Column(JSON, default=list)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "gmail_id", name="uq_emails_user_gmail"),
        Index("ix_emails_user_date", "user_id", "date"),
    )

    def __repr__(self):
        return f"<Email(id={self.id}, sender={self.sender}, subject={self.subject[:30] if self.subject else ''})>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "gmail_id": self.gmail_id,
            "thread_id": self.thread_id,
            "subject": self.subject,
            "from": self.sender,
            "to": self.recipient,
            "date": self.date.isoformat() if self.date else None,
            "snippet": self.snippet,
            "body": self.body,
            "is_read": self.is_read,
            "labels": self.labels or [],
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
