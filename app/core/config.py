import os
from pathlib import Path
from dotenv import load_dotenv

# Load variables from .env file
load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent


class Settings:
    PROJECT_NAME: str = "Moying Wenshu"
    VERSION: str = "1.0.0"

    # Security (workspace cookie)
    SECRET_KEY: str = os.getenv("SECRET_KEY", "moying-dev-secret")
    ALGORITHM: str = "HS256"
    WORKSPACE_COOKIE_NAME: str = os.getenv("WORKSPACE_COOKIE_NAME", "moying_workspace")
    WORKSPACE_EXPIRE_MINUTES: int = int(os.getenv("WORKSPACE_EXPIRE_MINUTES", "720"))

    # AI Keys
    GROQ_API_KEY: str = os.getenv("GROQ_API_KEY")
    ELEVENLABS_API_KEY: str = os.getenv("ELEVENLABS_API_KEY")

    # Text / vision generation
    STORY_MODEL: str = os.getenv("STORY_MODEL", "meta-llama/llama-4-scout-17b-16e-instruct")
    ANALYSIS_TEMPERATURE: float = 0.8
    CHAPTER_TEMPERATURE: float = 0.85
    MAX_TOKENS: int = int(os.getenv("MAX_TOKENS", "4096"))

    # Speech
    TTS_MODEL: str = os.getenv("TTS_MODEL", "eleven_multilingual_v2")
    VOICE_FEMALE: str = os.getenv("VOICE_FEMALE", "21m00Tcm4TlvDq8ikWAM")  # Rachel
    VOICE_MALE: str = os.getenv("VOICE_MALE", "pNInz6obpgDQGcFmaJgB")  # Adam
    AUDIO_DIR: Path = Path(os.getenv("AUDIO_DIR", str(BASE_DIR.parent / "audio")))

    # Story shape
    MAX_CHAPTERS: int = 6
    STORY_TAIL_CHARS: int = 2000
    NARRATION_CHAR_LIMIT: int = 1500
    NARRATION_PAUSE_MS: int = 800

    # Uploads
    MAX_IMAGE_BYTES: int = int(os.getenv("MAX_IMAGE_BYTES", str(3 * 1024 * 1024)))


settings = Settings()
