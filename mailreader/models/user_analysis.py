"""
UserAnalysis model - the profile inferred from a user's emails.

Structured sub-objects (supervisor, location, contacts, topics) are kept
as JSON columns since they are only ever read back whole.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, ForeignKey
from sqlalchemy.sql import func
from mailreader.database import Base


class UserAnalysis(Base):
    """One inferred profile per user, replaced on every analysis run."""
    __tablename__ = "user_analyses"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False, index=True)

    # ============ PERSONAL ============
    interests = Column(JSON, default=list)
    hobbies = Column(JSON, default=list)

    # ============ EDUCATION ============
    school = Column(String(255))
    university = Column(String(255))

    # ============ WORK ============
    company = Column(String(255))
    job_title = Column(String(255))
    supervisor = Column(JSON)  # {"name", "email"}

    # ============ RELATIONSHIPS ============
    best_friend = Column(JSON)  # {"name", "email"}
    close_contacts = Column(JSON, default=list)  # [{"name", "email", "relationship"}]

    # ============ LOCATION & TOPICS ============
    location = Column(JSON)  # {"city", "state", "country"}
    frequent_topics = Column(JSON, default=list)  # [{"topic", "frequency"}]
    communication_style = Column(String(255))

    # ============ METADATA ============
    insights = Column(Text, default="")
    analyzed_email_count = Column(Integer, default=0)
    last_analyzed = Column(DateTime, server_default=func.now())

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<UserAnalysis(user_id={self.user_id}, emails={self.analyzed_email_count})>"

    def to_dict(self) -> dict:
        return {
            "interests": self.interests or [],
            "hobbies": self.hobbies or [],
            "school": self.school,
            "university": self.university,
            "company": self.company,
            "jobTitle": self.job_title,
            "supervisor": self.supervisor,
            "bestFriend": self.best_friend,
            "closeContacts": self.close_contacts or [],
            "location": self.location,
            "frequentTopics": self.frequent_topics or [],
            "communicationStyle": self.communication_style,
            "insights": self.insights,
            "analyzedEmailCount": self.analyzed_email_count,
            "lastAnalyzed": self.last_analyzed.isoformat() if self.last_analyzed else None,
        }
