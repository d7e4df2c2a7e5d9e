# backend configuration
# loads env vars for mongodb, jwt, gemini, google speech apis and file storage

import os
from pathlib import Path
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# load .env from project root
load_dotenv(Path(__file__).parent.parent.parent / ".env")


class Settings(BaseSettings):
    # mongodb
    MONGODB_URI: str = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
    MONGODB_DATABASE: str = os.getenv("MONGODB_DATABASE", "sahara_db")

    # jwt auth
    JWT_SECRET: str = os.getenv("JWT_SECRET", "sahara-dev-secret-change-in-production")
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # gemini (chat replies, diary analysis, prompts)
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")

    # google cloud speech-to-text / text-to-speech
    GOOGLE_CLOUD_PROJECT_ID: str = os.getenv("GOOGLE_CLOUD_PROJECT_ID", "")

    # bounded wait on every external provider call (seconds)
    PROVIDER_TIMEOUT_SECONDS: float = 30.0

    # cors
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000")
    ALLOWED_ORIGINS: str = os.getenv("ALLOWED_ORIGINS", "")

    # entry validation
    DIARY_MAX_LENGTH: int = 10000
    CHAT_MESSAGE_MAX_LENGTH: int = 5000
    CHAT_HISTORY_TURNS: int = 10

    # insight pipeline work queue
    ANALYSIS_WORKERS: int = 4
    ANALYSIS_QUEUE_MAXSIZE: int = 100

    # speech-to-text
    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "uploads")
    MAX_AUDIO_UPLOAD_MB: int = 25
    STT_DEFAULT_LANGUAGE: str = "en-US"
    STT_DEFAULT_MODEL: str = "latest_long"
    STT_DEFAULT_ENCODING: str = "WEBM_OPUS"
    STT_DEFAULT_SAMPLE_RATE: int = 48000

    # text-to-speech
    TTS_OUTPUT_DIR: str = os.getenv("TTS_OUTPUT_DIR", "outputs")
    TTS_MAX_TEXT_LENGTH: int = 5000
    TTS_FILE_MAX_AGE_HOURS: int = 24
    TTS_DEFAULT_LANGUAGE: str = "en-US"
    TTS_DEFAULT_VOICE: str = "en-US-Journey-D"
    TTS_DEFAULT_ENCODING: str = "MP3"
    TTS_DEFAULT_SAMPLE_RATE: int = 24000

    model_config = {"env_file": ".env", "extra": "ignore", "frozen": True}

    @property
    def cors_origins(self) -> list[str]:
        origins = [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]
        return origins or [self.FRONTEND_URL, "http://localhost:3000"]

    @property
    def analysis_claim_ttl_seconds(self) -> float:
        """an analyzing claim older than this is treated as abandoned"""
        return self.PROVIDER_TIMEOUT_SECONDS * 2

    @property
    def max_audio_upload_bytes(self) -> int:
        return self.MAX_AUDIO_UPLOAD_MB * 1024 * 1024


settings = Settings()
