# tts router - text and ssml to speech, generated file download/stream, voice listing
# download and stream are public so <audio> tags can fetch without a token

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import FileResponse

from sahara.config import Settings
from sahara.dependencies import get_current_user, get_services
from sahara.errors import ValidationError
from sahara.models.speech import (
    CleanupRequest,
    CleanupResponse,
    SsmlRequest,
    SynthesisOptions,
    SynthesisReference,
    SynthesisRequest,
    VoiceInfo,
    VoiceOptionsIn,
    VoicesResponse,
)
from sahara.services.audio_files import content_type_for
from sahara.services.container import Services
from sahara.services.providers import normalize_tts_encoding

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/tts", tags=["text-to-speech"])

SUPPORTED_LANGUAGES = [
    "en-US", "en-GB", "en-AU", "en-CA", "en-IN",
    "es-ES", "es-US", "es-MX", "fr-FR", "fr-CA",
    "de-DE", "it-IT", "pt-BR", "pt-PT", "ja-JP",
    "ko-KR", "zh-CN", "zh-TW", "hi-IN", "ar-XA",
    "ru-RU", "tr-TR", "sv-SE", "nl-NL", "da-DK",
]

AUDIO_FORMATS = [
    {"format": "MP3", "encoding": "MP3", "description": "MPEG Audio Layer III (default)"},
    {"format": "WAV", "encoding": "LINEAR16", "description": "Linear PCM"},
    {"format": "OGG", "encoding": "OGG_OPUS", "description": "Ogg Opus"},
]


def synthesis_options(settings: Settings, overrides: Optional[VoiceOptionsIn] = None) -> SynthesisOptions:
    """server defaults overlaid with whatever voice options the client set"""
    values = {
        "language_code": settings.TTS_DEFAULT_LANGUAGE,
        "voice_name": settings.TTS_DEFAULT_VOICE,
        "audio_encoding": settings.TTS_DEFAULT_ENCODING,
        "sample_rate_hertz": settings.TTS_DEFAULT_SAMPLE_RATE,
    }
    if overrides is not None:
        values.update(overrides.model_dump(include=set(VoiceOptionsIn.model_fields), exclude_none=True))
    values["audio_encoding"] = normalize_tts_encoding(values["audio_encoding"])
    return SynthesisOptions(**values)


def _check_length(settings: Settings, value: Optional[str], what: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"{what} is required")
    if len(value) > settings.TTS_MAX_TEXT_LENGTH:
        raise ValidationError(f"{what} must be less than {settings.TTS_MAX_TEXT_LENGTH} characters")
    return value


@router.post("")
async def synthesize_text(
    body: SynthesisRequest,
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """synthesize text (or ssml, which wins when both are sent) and return the audio bytes directly"""
    options = synthesis_options(services.settings, body)
    if body.ssml is not None:
        ssml = _check_length(services.settings, body.ssml, "SSML")
        logger.info(f"Converting SSML to speech for {current_user['id']}: {len(ssml)} characters")
        audio = await services.provider.synthesize(ssml=ssml, options=options)
    else:
        text = _check_length(services.settings, body.text, "Text")
        logger.info(f"Converting text to speech for {current_user['id']}: {text[:100]!r}")
        audio = await services.provider.synthesize(text=text, options=options)
    return Response(
        content=audio,
        media_type=content_type_for(options.audio_encoding),
        headers={"Cache-Control": "public, max-age=3600"},
    )


@router.post("/ssml", response_model=SynthesisReference)
async def synthesize_ssml(
    body: SsmlRequest,
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """synthesize ssml into a stored file and return where to fetch it"""
    ssml = _check_length(services.settings, body.ssml, "SSML")
    options = synthesis_options(services.settings, body.options)

    audio = await services.provider.synthesize(ssml=ssml, options=options)
    saved = services.audio.save_output(audio, options.audio_encoding)

    return SynthesisReference(
        file_name=saved["file_name"],
        file_size=saved["file_size"],
        content_type=saved["content_type"],
        download_url=f"/api/tts/download/{saved['file_name']}",
        stream_url=f"/api/tts/stream/{saved['file_name']}",
        ssml_length=len(ssml),
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@router.get("/download/{file_name}")
async def download_audio(file_name: str, services: Services = Depends(get_services)):
    path, content_type = services.audio.resolve_output(file_name)
    return FileResponse(
        path,
        media_type=content_type,
        filename=file_name,
        headers={"Cache-Control": "no-cache"},
    )


@router.get("/stream/{file_name}")
async def stream_audio(file_name: str, services: Services = Depends(get_services)):
    path, content_type = services.audio.resolve_output(file_name)
    return FileResponse(
        path,
        media_type=content_type,
        headers={"Cache-Control": "public, max-age=3600"},
    )


@router.get("/voices", response_model=VoicesResponse)
async def list_voices(
    language_code: str = Query("en-US", alias="languageCode"),
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    voices = await services.provider.list_voices(language_code)
    return VoicesResponse(
        language_code=language_code,
        voices=[VoiceInfo(**v) for v in voices],
        total_voices=len(voices),
    )


@router.get("/info")
async def tts_info(
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    settings = services.settings
    return {
        "supportedLanguages": SUPPORTED_LANGUAGES,
        "audioFormats": AUDIO_FORMATS,
        "voiceTypes": ["MALE", "FEMALE", "NEUTRAL"],
        "sampleRates": [8000, 16000, 22050, 24000, 44100, 48000],
        "maxTextLength": settings.TTS_MAX_TEXT_LENGTH,
        "defaultVoice": settings.TTS_DEFAULT_VOICE,
        "defaultAudioFormat": settings.TTS_DEFAULT_ENCODING,
        "defaultSampleRate": settings.TTS_DEFAULT_SAMPLE_RATE,
        "ssmlSupported": True,
        "features": {
            "speakingRateControl": {"min": 0.25, "max": 4.0, "default": 1.0},
            "pitchControl": {"min": -20.0, "max": 20.0, "default": 0.0},
            "volumeGainControl": {"min": -96.0, "max": 16.0, "default": 0.0},
        },
    }


@router.post("/cleanup", response_model=CleanupResponse)
async def cleanup_files(
    body: Optional[CleanupRequest] = None,
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """remove generated audio older than maxAgeHours"""
    body = body or CleanupRequest()
    removed = services.audio.cleanup_old_files(body.max_age_hours)
    return CleanupResponse(
        removed=removed,
        message=f"Cleaned up {removed} files older than {body.max_age_hours} hours",
    )


@router.get("/health")
async def tts_health():
    return {
        "status": "OK",
        "service": "Text-to-Speech",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
