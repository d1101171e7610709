"""
Text-to-speech endpoints.

Generated files live under AUDIO_DIR and are served statically at /audio.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from mailreader.database import get_db
from mailreader.models import User
from mailreader.models.user import DEFAULT_VOICE_ID
from mailreader.services import db_service, speech_service
from mailreader.services.auth_service import get_current_user

logger = logging.getLogger(__name__)

TEXT_PREVIEW_LENGTH = 200


class GenerateAudioRequest(BaseModel):
    text: str
    voiceId: Optional[str] = None
    emailCount: int = 10
    dateFilter: str = "all"


router = APIRouter(prefix="/audio", tags=["Audio"])


@router.post("/generate")
def generate_audio(
    request: GenerateAudioRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Convert text to speech and keep a history record.

    Falls back to the user's preferred voice when `voiceId` is omitted.
    """
    if not request.text.strip():
        raise HTTPException(status_code=400, detail="Text is required")

    voice_id = request.voiceId or (user.preferences or {}).get("default_voice_id") or DEFAULT_VOICE_ID

    audio = speech_service.synthesize(request.text, voice_id)
    filename, file_size = speech_service.save_audio(audio)

    record = db_service.create_audio_record(
        db,
        user_id=user.id,
        filename=filename,
        url=f"/audio/{filename}",
        text_preview=request.text[:TEXT_PREVIEW_LENGTH],
        voice_id=voice_id,
        file_size=file_size,
        email_count=request.emailCount,
        date_filter=request.dateFilter
    )
    logger.info("Generated audio %s for user %s (%d bytes)", filename, user.id, file_size)

    return {
        "id": record.id,
        "filename": filename,
        "url": record.url,
        "message": "Audio generated successfully"
    }


@router.get("/voices")
def voices(user: User = Depends(get_current_user)):
    return {"voices": speech_service.list_voices()}


@router.get("/history")
def history(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Generated audio for the caller, newest first."""
    records = db_service.list_audio_records(db, user.id)
    return {"audioFiles": [record.to_dict() for record in records]}


@router.delete("/{audio_id}")
def delete_audio(
    audio_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    record = db_service.get_audio_record(db, user.id, audio_id)
    if not record:
        raise HTTPException(status_code=404, detail="Audio file not found")

    if not speech_service.delete_audio_file(record.filename):
        logger.warning("Audio file %s already missing from disk", record.filename)

    db_service.delete_audio_record(db, record)
    return {"message": "Audio file deleted successfully"}
