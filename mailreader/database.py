"""
Engine and session wiring.

SQLite by default; any SQLAlchemy URL (e.g. postgresql+psycopg2://...)
through DATABASE_URL.
"""

import os

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./mailreader.db")

# Sync endpoints run in the threadpool while async ones use the loop thread
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    DATABASE_URL,
    echo=os.getenv("SQL_ECHO", "").lower() == "true",
    pool_pre_ping=True,
    connect_args=connect_args
)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


class Base(DeclarativeBase):
    pass


def get_db():
    """Request-scoped session; closed once the response is sent."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
