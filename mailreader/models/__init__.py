"""
SQLAlchemy models for the mail reader.

This package contains:
- User: Account and preferences
- GmailCredential: Per-user OAuth2 tokens
- Email: Local archive of synced Gmail messages
- AudioRecord: Generated speech files
- UserAnalysis: Profile inferred from email content
"""

from mailreader.models.user import User
from mailreader.models.gmail_credential import GmailCredential
from mailreader.models.email import Email
from mailreader.models.audio import AudioRecord
from mailreader.models.user_analysis import UserAnalysis

__all__ = ["User", "GmailCredential", "Email", "AudioRecord", "UserAnalysis"]
