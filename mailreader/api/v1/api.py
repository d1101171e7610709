from fastapi import APIRouter
from mailreader.api.v1.endpoints import analysis, audio, auth, compose, emails, gmail, summarize, sync

api_router = APIRouter(prefix="/api/v1")

# Include all endpoint routers
api_router.include_router(auth.router)
api_router.include_router(gmail.router)
api_router.include_router(sync.router)
api_router.include_router(emails.router)
api_router.include_router(compose.router)
api_router.include_router(summarize.router)
api_router.include_router(audio.router)
api_router.include_router(analysis.router)
