import logging
import os

# Load environment variables from .env
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from mailreader.api.v1.api import api_router
from mailreader.database import engine, Base
from mailreader.errors import MailReaderError, mail_reader_error_handler
from mailreader.models import AudioRecord, Email, GmailCredential, User, UserAnalysis  # noqa: F401
from mailreader.services.speech_service import get_audio_dir

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Mail Reader",
    description="Gmail sync, local email archive, summaries and text-to-speech",
    version="1.0.0"
)

origins = [
    os.getenv("FRONTEND_URL", "http://localhost:3000"),
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(MailReaderError, mail_reader_error_handler)


@app.on_event("startup")
def on_startup():
    """Create database tables on startup."""
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")


app.include_router(api_router)

app.mount("/audio", StaticFiles(directory=get_audio_dir()), name="audio")


@app.get("/")
def health_check():
    return {"status": "ok"}
