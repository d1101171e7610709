"""
Text-to-speech through the ElevenLabs REST API.
"""

import logging
import os
import time
from pathlib import Path

import requests

from mailreader.errors import ServiceNotConfigured, UpstreamServiceError
from mailreader.models.user import DEFAULT_VOICE_ID

logger = logging.getLogger(__name__)

ELEVENLABS_API_URL = "https://api.elevenlabs.io/v1"
TTS_MODEL_ID = "eleven_monolingual_v1"
VOICE_SETTINGS = {
    "stability": 0.5,
    "similarity_boost": 0.75
}
REQUEST_TIMEOUT = 60


def get_audio_dir() -> Path:
    audio_dir = Path(os.getenv("AUDIO_DIR", "audio"))
    audio_dir.mkdir(parents=True, exist_ok=True)
    return audio_dir


def _api_key() -> str:
    api_key = os.getenv("ELEVENLABS_API_KEY")
    if not api_key:
        raise ServiceNotConfigured("ElevenLabs API key not configured")
    return api_key


def _error_detail(response: requests.Response) -> str:
    try:
        detail = response.json().get("detail")
    except ValueError:
        return response.text[:200]
    if isinstance(detail, dict):
        return detail.get("message") or str(detail)
    return str(detail)


def synthesize(text: str, voice_id: str = None) -> bytes:
    """
    Convert text to MP3 audio.

    Returns:
        Raw audio/mpeg bytes
    """
    selected_voice = voice_id or DEFAULT_VOICE_ID
    try:
        response = requests.post(
            f"{ELEVENLABS_API_URL}/text-to-speech/{selected_voice}",
            json={
                "text": text,
                "model_id": TTS_MODEL_ID,
                "voice_settings": VOICE_SETTINGS
            },
            headers={
                "Accept": "audio/mpeg",
                "Content-Type": "application/json",
                "xi-api-key": _api_key()
            },
            timeout=REQUEST_TIMEOUT
        )
    except requests.RequestException as e:
        logger.error("ElevenLabs request failed: %s", e)
        raise UpstreamServiceError(f"Failed to generate audio: {e}") from e

    if not response.ok:
        detail = _error_detail(response)
        logger.error("ElevenLabs TTS failed (%s): %s", response.status_code, detail)
        raise UpstreamServiceError(f"Failed to generate audio: {detail}")

    return response.content


def save_audio(audio: bytes, audio_dir: Path = None) -> tuple[str, int]:
    """
    Write audio to a new summary_<ms>.mp3 file.

    Returns:
        (filename, file size in bytes)
    """
    audio_dir = audio_dir or get_audio_dir()
    filename = f"summary_{int(time.time() * 1000)}.mp3"
    path = audio_dir / filename
    # Two requests in the same millisecond must not overwrite each other
    suffix = 1
    while path.exists():
        filename = f"summary_{int(time.time() * 1000)}_{suffix}.mp3"
        path = audio_dir / filename
        suffix += 1

    path.write_bytes(audio)
    return filename, len(audio)


def delete_audio_file(filename: str, audio_dir: Path = None) -> bool:
    path = (audio_dir or get_audio_dir()) / Path(filename).name
    if path.exists():
        path.unlink()
        return True
    return False


def list_voices() -> list:
    """Available ElevenLabs voices."""
    try:
        response = requests.get(
            f"{ELEVENLABS_API_URL}/voices",
            headers={"xi-api-key": _api_key()},
            timeout=REQUEST_TIMEOUT
        )
    except requests.RequestException as e:
        raise UpstreamServiceError(f"Failed to fetch voices: {e}") from e

    if not response.ok:
        raise UpstreamServiceError(f"Failed to fetch voices: {_error_detail(response)}")

    return response.json().get("voices", [])
