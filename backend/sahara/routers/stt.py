# stt router - speech-to-text over uploaded audio files
# uploads are copied to disk only for the duration of the request

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from sahara.dependencies import get_current_user, get_services
from sahara.models.speech import TranscriptionOptions, TranscriptionResponse
from sahara.services.container import Services

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/stt", tags=["speech-to-text"])

SUPPORTED_LANGUAGES = [
    "en-US", "en-GB", "es-ES", "es-US", "fr-FR", "de-DE", "it-IT", "pt-BR",
    "ja-JP", "ko-KR", "zh-CN", "hi-IN", "ar-XA", "ru-RU", "tr-TR",
]

SUPPORTED_FORMATS = [
    {"format": "WAV", "encoding": "LINEAR16", "description": "Uncompressed PCM audio"},
    {"format": "FLAC", "encoding": "FLAC", "description": "Free Lossless Audio Codec"},
    {"format": "MP3", "encoding": "MP3", "description": "MPEG Audio Layer III"},
    {"format": "WebM", "encoding": "WEBM_OPUS", "description": "WebM with Opus codec"},
    {"format": "OGG", "encoding": "OGG_OPUS", "description": "Ogg with Opus codec"},
]

AVAILABLE_MODELS = [
    {"name": "latest_long", "description": "Latest model optimized for longer audio"},
    {"name": "latest_short", "description": "Latest model optimized for shorter audio"},
    {"name": "command_and_search", "description": "Optimized for voice commands and search queries"},
    {"name": "phone_call", "description": "Optimized for phone call audio"},
    {"name": "video", "description": "Optimized for video audio"},
    {"name": "default", "description": "Default model"},
]


@router.post("", response_model=TranscriptionResponse)
async def transcribe_audio(
    audio: UploadFile = File(...),
    language_code: Optional[str] = Form(None, alias="languageCode"),
    model: Optional[str] = Form(None),
    sample_rate_hertz: Optional[int] = Form(None, alias="sampleRateHertz"),
    enable_word_time_offsets: bool = Form(False, alias="enableWordTimeOffsets"),
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """transcribe an uploaded audio file (wav, flac, mp3, webm, ogg)"""
    settings = services.settings
    encoding, default_rate = services.audio.encoding_for(audio.filename)
    options = TranscriptionOptions(
        language_code=language_code or settings.STT_DEFAULT_LANGUAGE,
        encoding=encoding,
        sample_rate_hertz=sample_rate_hertz or default_rate,
        model=model or settings.STT_DEFAULT_MODEL,
        enable_word_time_offsets=enable_word_time_offsets,
    )

    async with services.audio.temporary_upload(audio) as (path, size):
        transcription = await services.provider.transcribe(path.read_bytes(), options)

    logger.info(f"Transcribed {audio.filename} for {current_user['id']} ({len(transcription)} chars)")
    return TranscriptionResponse(
        transcription=transcription,
        file_name=audio.filename,
        file_size=size,
        options=options,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@router.get("/info")
async def stt_info(
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    settings = services.settings
    return {
        "supportedLanguages": SUPPORTED_LANGUAGES,
        "supportedFormats": SUPPORTED_FORMATS,
        "availableModels": AVAILABLE_MODELS,
        "maxFileSizeMB": settings.MAX_AUDIO_UPLOAD_MB,
        "defaults": {
            "languageCode": settings.STT_DEFAULT_LANGUAGE,
            "model": settings.STT_DEFAULT_MODEL,
            "encoding": settings.STT_DEFAULT_ENCODING,
            "sampleRateHertz": settings.STT_DEFAULT_SAMPLE_RATE,
        },
        "recommendations": {
            "sampleRateHertz": {"LINEAR16": 16000, "FLAC": 16000, "MP3": 16000, "WEBM_OPUS": 48000},
        },
    }


@router.get("/health")
async def stt_health():
    return {
        "status": "OK",
        "service": "Speech-to-Text",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
