# Shared API clients, built on first use so the app can start without keys.

from groq import Groq
from elevenlabs import ElevenLabs
from app.core.config import settings

_groq_client = None
_elevenlabs_client = None


def get_groq_client() -> Groq:
    global _groq_client
    if _groq_client is None:
        if not settings.GROQ_API_KEY:
            raise RuntimeError("GROQ_API_KEY is missing in .env file")
        _groq_client = Groq(api_key=settings.GROQ_API_KEY)
    return _groq_client


def get_elevenlabs_client() -> ElevenLabs:
    global _elevenlabs_client
    if _elevenlabs_client is None:
        if not settings.ELEVENLABS_API_KEY:
            raise RuntimeError("ELEVENLABS_API_KEY is missing in .env file")
        _elevenlabs_client = ElevenLabs(api_key=settings.ELEVENLABS_API_KEY)
    return _elevenlabs_client


def completion_text(completion) -> str:
    """Text of the first choice of a chat completion, or an empty string."""
    if not completion.choices:
        return ""
    return completion.choices[0].message.content or ""
