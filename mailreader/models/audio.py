"""
AudioRecord model for generated speech files.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from sqlalchemy.sql import func
from mailreader.database import Base


class AudioRecord(Base):
    """One synthesized summary stored under AUDIO_DIR."""
    __tablename__ = "audio_files"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    filename = Column(String(255), nullable=False)
    url = Column(String(512), nullable=False)
    text_preview = Column(String(255), default="")
    voice_id = Column(String(64))
    file_size = Column(Integer, default=0)

    # Generation options
    email_count = Column(Integer, default=10)
    date_filter = Column(String(20), default="all")

    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("ix_audio_user_created", "user_id", "created_at"),
    )

    def __repr__(self):
        return f"<AudioRecord(id={self.id}, filename={self.filename})>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "filename": self.filename,
            "url": self.url,
            "textPreview": self.text_preview,
            "voiceId": self.voice_id,
            "fileSize": self.file_size,
            "emailCount": self.email_count,
            "dateFilter": self.date_filter,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
