# speech models - stt/tts provider options and endpoint schemas
# option models are the defaulted configs handed to the provider adapter

from typing import Optional
from pydantic import BaseModel, Field


class TranscriptionOptions(BaseModel):
    language_code: str = Field("en-US", alias="languageCode")
    encoding: str = "WEBM_OPUS"
    sample_rate_hertz: Optional[int] = Field(48000, alias="sampleRateHertz")
    model: str = "latest_long"
    enable_word_time_offsets: bool = Field(False, alias="enableWordTimeOffsets")

    model_config = {"populate_by_name": True, "frozen": True}


class SynthesisOptions(BaseModel):
    language_code: str = Field("en-US", alias="languageCode")
    voice_name: str = Field("en-US-Journey-D", alias="voiceName")
    ssml_gender: str = Field("NEUTRAL", alias="ssmlGender")
    audio_encoding: str = Field("MP3", alias="audioEncoding")
    speaking_rate: float = Field(1.0, ge=0.25, le=4.0, alias="speakingRate")
    pitch: float = Field(0.0, ge=-20.0, le=20.0)
    volume_gain_db: float = Field(0.0, ge=-96.0, le=16.0, alias="volumeGainDb")
    sample_rate_hertz: int = Field(24000, alias="sampleRateHertz")

    model_config = {"populate_by_name": True, "frozen": True}


class VoiceOptionsIn(BaseModel):
    """optional voice overrides sent by clients; unset fields use server defaults"""
    language_code: Optional[str] = Field(None, alias="languageCode")
    voice_name: Optional[str] = Field(None, alias="voiceName")
    ssml_gender: Optional[str] = Field(None, alias="ssmlGender")
    audio_encoding: Optional[str] = Field(None, alias="audioEncoding")
    speaking_rate: Optional[float] = Field(None, ge=0.25, le=4.0, alias="speakingRate")
    pitch: Optional[float] = Field(None, ge=-20.0, le=20.0)
    volume_gain_db: Optional[float] = Field(None, ge=-96.0, le=16.0, alias="volumeGainDb")

    model_config = {"populate_by_name": True}


class SynthesisRequest(VoiceOptionsIn):
    text: Optional[str] = None
    ssml: Optional[str] = None


class SsmlRequest(BaseModel):
    ssml: str
    options: VoiceOptionsIn = Field(default_factory=VoiceOptionsIn)


class SynthesisReference(BaseModel):
    file_name: str = Field(..., alias="fileName")
    file_size: int = Field(..., alias="fileSize")
    content_type: str = Field(..., alias="contentType")
    download_url: str = Field(..., alias="downloadUrl")
    stream_url: str = Field(..., alias="streamUrl")
    ssml_length: Optional[int] = Field(None, alias="ssmlLength")
    timestamp: str

    model_config = {"populate_by_name": True}


class TranscriptionResponse(BaseModel):
    transcription: str
    file_name: str = Field(..., alias="fileName")
    file_size: int = Field(..., alias="fileSize")
    options: TranscriptionOptions
    timestamp: str

    model_config = {"populate_by_name": True}


class VoiceInfo(BaseModel):
    name: str
    ssml_gender: str = Field("", alias="ssmlGender")
    natural_sample_rate_hertz: int = Field(0, alias="naturalSampleRateHertz")
    language_codes: list[str] = Field(default_factory=list, alias="languageCodes")

    model_config = {"populate_by_name": True}


class VoicesResponse(BaseModel):
    language_code: str = Field(..., alias="languageCode")
    voices: list[VoiceInfo]
    total_voices: int = Field(..., alias="totalVoices")

    model_config = {"populate_by_name": True}


class CleanupRequest(BaseModel):
    max_age_hours: float = Field(24, gt=0, alias="maxAgeHours")

    model_config = {"populate_by_name": True}


class CleanupResponse(BaseModel):
    removed: int
    message: str
