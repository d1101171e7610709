"""
User account model.

Passwords are stored as bcrypt hashes; Gmail tokens live in
GmailCredential, not here.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from mailreader.database import Base


DEFAULT_VOICE_ID = "21m00Tcm4TlvDq8ikWAM"


def default_preferences() -> dict:
    return {
        "default_voice_id": DEFAULT_VOICE_ID,
        "auto_generate_audio": False,
    }


class User(Base):
    """Registered user of the mail reader."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255))
    preferences = Column(JSON, default=default_preferences)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    gmail_credential = relationship(
        "GmailCredential",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email})>"

    @property
    def has_gmail_auth(self) -> bool:
        cred = self.gmail_credential
        return bool(cred and (cred.access_token or cred.refresh_token))

    def to_public_dict(self) -> dict:
        """Return the user without secrets."""
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "preferences": self.preferences or default_preferences(),
            "hasGmailAuth": self.has_gmail_auth,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
