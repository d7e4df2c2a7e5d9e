# provider adapter - one boundary over speech recognition, speech synthesis
# and text generation (google cloud speech, google cloud tts, gemini via langchain)
#
# every external call:
#   - is bounded by PROVIDER_TIMEOUT_SECONDS
#   - raises ProviderUnavailable on transport / auth / timeout failure
#   - raises ProviderEmptyResult when the provider answers with nothing usable
# generate_json additionally digs the first balanced {...} out of chatty
# model output and raises MalformedProviderJSON instead of a raw parse error

import abc
import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Optional

from google.cloud import speech
from google.cloud import texttospeech
from langchain_core.output_parsers import StrOutputParser
from langchain_google_genai import ChatGoogleGenerativeAI

from sahara.config import Settings
from sahara.errors import (
    MalformedProviderJSON,
    ProviderEmptyResult,
    ProviderUnavailable,
    ValidationError,
    WellnessError,
)
from sahara.models.speech import SynthesisOptions, TranscriptionOptions

logger = logging.getLogger(__name__)

# client-facing encoding names that google tts spells differently
TTS_ENCODING_ALIASES = {
    "WAV": "LINEAR16",
    "OGG": "OGG_OPUS",
}


def normalize_tts_encoding(encoding: str) -> str:
    name = (encoding or "MP3").strip().upper()
    return TTS_ENCODING_ALIASES.get(name, name)


def _balanced_end(text: str, start: int) -> Optional[int]:
    """index of the brace closing the object opened at text[start], or none"""
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return None


def extract_json_object(raw: str) -> dict:
    """return the first balanced json object embedded in provider text.

    tolerates explanatory prose and ``` fences around the object.
    raises MalformedProviderJSON when nothing decodes to a dict.
    """
    if not raw or not raw.strip():
        raise MalformedProviderJSON("Provider returned empty text")

    start = raw.find("{")
    while start != -1:
        end = _balanced_end(raw, start)
        # an unclosed brace in prose must not hide a later object
        if end is not None:
            try:
                obj = json.loads(raw[start:end + 1])
            except json.JSONDecodeError:
                obj = None
            if isinstance(obj, dict):
                return obj
        start = raw.find("{", start + 1)

    raise MalformedProviderJSON(f"No JSON object found in provider response: {raw[:120]!r}")


class ProviderAdapter(abc.ABC):
    """uniform interface over the three external ai services"""

    provider_name: str = "unknown"

    @abc.abstractmethod
    async def transcribe(self, audio: bytes, options: TranscriptionOptions) -> str:
        ...

    @abc.abstractmethod
    async def synthesize(
        self,
        text: Optional[str] = None,
        ssml: Optional[str] = None,
        options: Optional[SynthesisOptions] = None,
    ) -> bytes:
        ...

    @abc.abstractmethod
    async def generate(self, prompt: str, max_tokens: int = 1000, temperature: float = 0.7) -> str:
        ...

    @abc.abstractmethod
    async def list_voices(self, language_code: str = "en-US") -> list[dict]:
        ...

    async def generate_json(self, prompt: str, max_tokens: int = 1024, temperature: float = 0.2) -> dict:
        """generate and decode the first json object in the reply"""
        raw = await self.generate(prompt, max_tokens=max_tokens, temperature=temperature)
        return extract_json_object(raw)


class GoogleProviderAdapter(ProviderAdapter):
    """google cloud speech + tts and gemini text generation"""

    provider_name: str = "google"

    def __init__(
        self,
        settings: Settings,
        speech_client: Any = None,
        tts_client: Any = None,
        llm_factory: Optional[Callable[[int, float], Any]] = None,
    ):
        self.settings = settings
        self._speech_client = speech_client
        self._tts_client = tts_client
        self._llm_factory = llm_factory or self._default_llm
        self._llms: dict[tuple[int, float], Any] = {}

    # lazy clients - created on first use so startup never needs credentials

    def _speech(self):
        if self._speech_client is None:
            self._speech_client = speech.SpeechAsyncClient()
        return self._speech_client

    def _tts(self):
        if self._tts_client is None:
            self._tts_client = texttospeech.TextToSpeechAsyncClient()
        return self._tts_client

    def _default_llm(self, max_tokens: int, temperature: float) -> ChatGoogleGenerativeAI:
        return ChatGoogleGenerativeAI(
            model=self.settings.GEMINI_MODEL,
            google_api_key=self.settings.GEMINI_API_KEY,
            temperature=temperature,
            max_output_tokens=max_tokens,
        )

    def _llm(self, max_tokens: int, temperature: float):
        key = (max_tokens, temperature)
        if key not in self._llms:
            self._llms[key] = self._llm_factory(max_tokens, temperature)
        return self._llms[key]

    async def _call(self, what: str, make_call: Callable[[], Awaitable[Any]]) -> Any:
        """run one provider call with the timeout bound and error normalization"""
        timeout = self.settings.PROVIDER_TIMEOUT_SECONDS
        try:
            return await asyncio.wait_for(make_call(), timeout=timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"{what} timed out after {timeout}s")
            raise ProviderUnavailable(f"{what} timed out after {timeout}s") from e
        except WellnessError:
            raise
        except Exception as e:
            logger.error(f"{what} failed: {e}")
            raise ProviderUnavailable(f"{what} failed: {e}") from e

    # speech-to-text

    async def transcribe(self, audio: bytes, options: TranscriptionOptions) -> str:
        if not audio:
            raise ValidationError("Audio content is empty")

        try:
            encoding = speech.RecognitionConfig.AudioEncoding[options.encoding.upper()]
        except KeyError:
            raise ValidationError(f"Unsupported audio encoding: {options.encoding}")

        config_kwargs = {
            "encoding": encoding,
            "language_code": options.language_code,
            "enable_automatic_punctuation": True,
            "enable_word_time_offsets": options.enable_word_time_offsets,
            "model": options.model,
            "use_enhanced": True,
        }
        if options.sample_rate_hertz:
            config_kwargs["sample_rate_hertz"] = options.sample_rate_hertz
        config = speech.RecognitionConfig(**config_kwargs)
        recognition_audio = speech.RecognitionAudio(content=audio)

        logger.info(
            f"Transcribing audio: encoding={options.encoding}, "
            f"sampleRateHertz={options.sample_rate_hertz}, languageCode={options.language_code}"
        )
        response = await self._call(
            "Speech recognition",
            lambda: self._speech().recognize(config=config, audio=recognition_audio),
        )

        transcripts = [
            result.alternatives[0].transcript.strip()
            for result in response.results
            if result.alternatives
        ]
        transcripts = [t for t in transcripts if t]
        if not transcripts:
            raise ProviderEmptyResult("No transcription results found")
        return " ".join(transcripts)

    # text-to-speech

    async def synthesize(
        self,
        text: Optional[str] = None,
        ssml: Optional[str] = None,
        options: Optional[SynthesisOptions] = None,
    ) -> bytes:
        options = options or SynthesisOptions()
        if ssml and ssml.strip():
            synthesis_input = texttospeech.SynthesisInput(ssml=ssml)
        elif text and text.strip():
            synthesis_input = texttospeech.SynthesisInput(text=text)
        else:
            raise ValidationError("Text or SSML content is required")

        try:
            gender = texttospeech.SsmlVoiceGender[options.ssml_gender.upper()]
            audio_encoding = texttospeech.AudioEncoding[normalize_tts_encoding(options.audio_encoding)]
        except KeyError as e:
            raise ValidationError(f"Unsupported voice option: {e}")

        voice = texttospeech.VoiceSelectionParams(
            language_code=options.language_code,
            name=options.voice_name,
            ssml_gender=gender,
        )
        audio_config = texttospeech.AudioConfig(
            audio_encoding=audio_encoding,
            speaking_rate=options.speaking_rate,
            pitch=options.pitch,
            volume_gain_db=options.volume_gain_db,
            sample_rate_hertz=options.sample_rate_hertz,
        )

        logger.info(
            f"Synthesizing speech: voice={options.voice_name}, "
            f"encoding={options.audio_encoding}, ssml={bool(ssml)}"
        )
        response = await self._call(
            "Speech synthesis",
            lambda: self._tts().synthesize_speech(
                input=synthesis_input, voice=voice, audio_config=audio_config,
            ),
        )

        if not response.audio_content:
            raise ProviderEmptyResult("No audio content received from TTS service")
        return response.audio_content

    async def list_voices(self, language_code: str = "en-US") -> list[dict]:
        response = await self._call(
            "Voice listing",
            lambda: self._tts().list_voices(language_code=language_code),
        )
        return [
            {
                "name": voice.name,
                "ssml_gender": getattr(voice.ssml_gender, "name", str(voice.ssml_gender)),
                "natural_sample_rate_hertz": voice.natural_sample_rate_hertz,
                "language_codes": list(voice.language_codes),
            }
            for voice in response.voices
        ]

    # text generation

    async def generate(self, prompt: str, max_tokens: int = 1000, temperature: float = 0.7) -> str:
        chain = self._llm(max_tokens, temperature) | StrOutputParser()
        text = await self._call("Text generation", lambda: chain.ainvoke(prompt))
        if not text or not text.strip():
            raise ProviderEmptyResult("Model returned an empty response")
        return text.strip()
