"""
GmailCredential model: the per-user OAuth2 token store.

Overwritten on every OAuth consent; the access token and expiry are
also overwritten whenever a refresh succeeds.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from mailreader.database import Base


class GmailCredential(Base):
    """OAuth2 token pair for one user's Gmail account."""
    __tablename__ = "gmail_credentials"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False, index=True)

    access_token = Column(Text)
    refresh_token = Column(Text)
    token_expiry = Column(DateTime)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="gmail_credential")

    def __repr__(self):
        return f"<GmailCredential(user_id={self.user_id}, has_refresh={bool(self.refresh_token)})>"

    @property
    def is_usable(self) -> bool:
        """A remote call can only succeed with an access or a refresh token."""
        return bool(self.access_token or self.refresh_token)
