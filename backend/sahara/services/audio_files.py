# audio file bookkeeping for speech endpoints
#   - uploads: size-limited chunked copy into UPLOAD_DIR, removed on every exit path
#   - tts outputs: written to TTS_OUTPUT_DIR under generated names, aged out by cleanup

import logging
import os
import re
import tempfile
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

from sahara.config import Settings
from sahara.errors import NotFound, ValidationError
from sahara.services.providers import normalize_tts_encoding

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

# upload extension -> (stt encoding, sample rate the encoding implies)
UPLOAD_ENCODINGS: dict[str, tuple[str, Optional[int]]] = {
    ".wav": ("LINEAR16", 16000),
    ".flac": ("FLAC", None),
    ".mp3": ("MP3", None),
    ".webm": ("WEBM_OPUS", 48000),
    ".ogg": ("OGG_OPUS", 48000),
}

OUTPUT_EXTENSIONS = {
    "MP3": ".mp3",
    "LINEAR16": ".wav",
    "OGG_OPUS": ".ogg",
}

CONTENT_TYPES = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
}

# only names this module generated can be served back
OUTPUT_NAME = re.compile(r"^tts_[A-Za-z0-9_-]+\.(mp3|wav|ogg)$")


def content_type_for(encoding: str) -> str:
    ext = OUTPUT_EXTENSIONS.get(normalize_tts_encoding(encoding), ".mp3")
    return CONTENT_TYPES[ext]


class AudioFileStore:
    def __init__(self, settings: Settings):
        self.upload_dir = Path(settings.UPLOAD_DIR)
        self.output_dir = Path(settings.TTS_OUTPUT_DIR)
        self.max_upload_bytes = settings.max_audio_upload_bytes
        self.max_upload_mb = settings.MAX_AUDIO_UPLOAD_MB

    def ensure_dirs(self):
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    # uploads

    def encoding_for(self, filename: str) -> tuple[str, Optional[int]]:
        """stt encoding and default sample rate for an uploaded file name"""
        ext = Path(filename or "").suffix.lower()
        if ext not in UPLOAD_ENCODINGS:
            allowed = ", ".join(sorted(UPLOAD_ENCODINGS))
            raise ValidationError(f"Invalid file type '{ext or filename}'. Only {allowed} files are allowed.")
        return UPLOAD_ENCODINGS[ext]

    @asynccontextmanager
    async def temporary_upload(self, upload: UploadFile):
        """copy an upload to disk; yields (path, size) and always deletes the copy"""
        if upload is None or not upload.filename:
            raise ValidationError("No audio file provided")
        self.encoding_for(upload.filename)
        self.upload_dir.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(
            prefix="stt-", suffix=Path(upload.filename).suffix.lower(), dir=self.upload_dir,
        )
        os.close(fd)
        path = Path(tmp_path)

        try:
            total_bytes = 0
            with open(path, "wb") as f:
                while True:
                    chunk = await upload.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    total_bytes += len(chunk)
                    if total_bytes > self.max_upload_bytes:
                        raise ValidationError(f"Audio file exceeds {self.max_upload_mb}MB limit")
                    f.write(chunk)

            if total_bytes == 0:
                raise ValidationError("Uploaded audio file is empty")

            logger.info(f"Received audio upload: {upload.filename} ({total_bytes / 1024:.0f} KB)")
            yield path, total_bytes
        finally:
            path.unlink(missing_ok=True)
            logger.debug(f"Temporary upload removed: {path.name}")

    # tts outputs

    def save_output(self, audio: bytes, encoding: str) -> dict:
        ext = OUTPUT_EXTENSIONS.get(normalize_tts_encoding(encoding), ".mp3")
        self.output_dir.mkdir(parents=True, exist_ok=True)

        file_name = f"tts_{uuid.uuid4().hex}{ext}"
        path = self.output_dir / file_name
        path.write_bytes(audio)

        logger.info(f"Audio saved: {file_name} ({len(audio)} bytes)")
        return {
            "file_name": file_name,
            "file_size": len(audio),
            "content_type": CONTENT_TYPES[ext],
        }

    def resolve_output(self, file_name: str) -> tuple[Path, str]:
        """path and content type of a generated file; NotFound for anything else"""
        if not OUTPUT_NAME.match(file_name or ""):
            raise NotFound("The requested audio file does not exist")
        path = self.output_dir / file_name
        if not path.is_file():
            raise NotFound("The requested audio file does not exist or has been deleted")
        return path, CONTENT_TYPES[path.suffix]

    def cleanup_old_files(self, max_age_hours: float = 24) -> int:
        """delete generated audio older than max_age_hours; returns the count removed"""
        if not self.output_dir.is_dir():
            return 0

        cutoff = time.time() - max_age_hours * 3600
        removed = 0
        for path in self.output_dir.iterdir():
            if not OUTPUT_NAME.match(path.name):
                continue
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    removed += 1
            except FileNotFoundError:
                continue

        if removed:
            logger.info(f"Cleaned up {removed} audio files older than {max_age_hours}h")
        return removed
