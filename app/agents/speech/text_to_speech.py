import os
from pathlib import Path
from typing import Optional
from app.core.config import settings
from app.core.logger import log_agent_action
from app.agents.clients import get_elevenlabs_client

# Narrator voices, alternated chapter by chapter
VOICE_MAP = {
    "female": settings.VOICE_FEMALE,
    "male": settings.VOICE_MALE,
}

DEFAULT_VOICE = VOICE_MAP["female"]


def generate_speech(text: str, voice_id: str = DEFAULT_VOICE) -> bytes:
    """
    Synthesizes `text` with an ElevenLabs prebuilt voice.

    Returns:
        The encoded audio (mp3) as bytes.
    """
    try:
        audio_generator = get_elevenlabs_client().text_to_speech.convert(
            text=text,
            voice_id=voice_id,
            model_id=settings.TTS_MODEL,
        )
        audio = b"".join(audio_generator)
    except Exception as e:
        log_agent_action("narrator", "generate_speech", str(e), success=False)
        raise RuntimeError(f"Narrator Error: {str(e)}")

    log_agent_action("narrator", "generate_speech", f"voice={voice_id} chars={len(text)} bytes={len(audio)}")
    return audio


AUDIO_URL_PREFIX = "/audio/"


def audio_path(url: str, output_dir: Optional[Path] = None) -> Optional[Path]:
    """Map an audio URL back to its file; None for anything outside the audio folder."""
    if not url or not url.startswith(AUDIO_URL_PREFIX):
        return None
    filename = url[len(AUDIO_URL_PREFIX):]
    if not filename or Path(filename).name != filename:
        return None
    return (output_dir or settings.AUDIO_DIR) / filename


def save_audio(audio: bytes, chapter_num: int, prefix: str = "", output_dir: Optional[Path] = None) -> str:
    """
    Writes audio under the audio folder.
    Returns the URL path the browser can play it from.
    """
    output_dir = output_dir or settings.AUDIO_DIR
    output_dir.mkdir(parents=True, exist_ok=True)

    stem = f"{prefix}_" if prefix else ""
    filename = f"{stem}chapter_{chapter_num}_{os.urandom(4).hex()}.mp3"
    (output_dir / filename).write_bytes(audio)

    return f"{AUDIO_URL_PREFIX}{filename}"


def delete_audio(url: str):
    path = audio_path(url)
    if path is not None:
        path.unlink(missing_ok=True)


def narrate_to_file(text: str, voice_id: str, chapter_num: int, prefix: str = "") -> str:
    """Synthesize one chapter and store it; returns the audio URL."""
    return save_audio(generate_speech(text, voice_id), chapter_num, prefix)
