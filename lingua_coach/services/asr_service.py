"""
ASR (Automatic Speech Recognition) Service using the provider's Whisper model.

This service handles speech-to-text for learner recordings:
- Container formats (WebM/Opus, OGG, WAV, FLAC, MP3) are uploaded as-is
- Raw 16-bit PCM from the terminal client is wrapped in a WAV header first
- Near-silent PCM is rejected locally without a provider round trip
"""

import io
import struct
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np
from loguru import logger
from openai import AsyncOpenAI

from lingua_coach.config import Settings
from lingua_coach.errors import UpstreamFailureError

PCM_MIME_TYPES = ("audio/l16", "audio/pcm", "audio/x-raw")

# Magic bytes for containers the transcriber accepts directly
CONTAINER_SIGNATURES = {
    b"\x1a\x45\xdf\xa3": "webm",
    b"OggS": "ogg",
    b"RIFF": "wav",
    b"fLaC": "flac",
    b"ID3": "mp3",
}

EXTENSIONS = {
    "audio/webm": "webm",
    "audio/ogg": "ogg",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/wave": "wav",
    "audio/flac": "flac",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/mp4": "m4a",
    "audio/m4a": "m4a",
}


@dataclass
class TranscriptionResult:
    """Result from ASR transcription."""

    text: str
    language: str = "en"
    duration_s: Optional[float] = None

    @property
    def is_empty(self) -> bool:
        return not self.text or not self.text.strip()


def parse_mime_type(mime_type: str) -> Tuple[str, Dict[str, str]]:
    """Split 'audio/L16;rate=16000;channels=1' into base type and parameters."""
    parts = [p.strip() for p in (mime_type or "").split(";") if p.strip()]
    if not parts:
        return "", {}
    params = {}
    for part in parts[1:]:
        if "=" in part:
            key, value = part.split("=", 1)
            params[key.strip().lower()] = value.strip()
    return parts[0].lower(), params


class ASRService:
    """
    Speech-to-text service backed by the provider's transcription endpoint.

    The provider client is passed in; this service never builds its own.
    """

    def __init__(self, client: AsyncOpenAI, settings: Settings):
        self._client = client
        self.model_name = settings.transcription_model
        self.language = settings.transcription_language
        self.default_sample_rate = settings.pcm_sample_rate
        self.sample_width = 2  # 16-bit PCM
        self.channels = 1

        # Below these levels PCM audio is treated as silence
        self._silence_rms_threshold = 0.006
        self._silence_peak_threshold = 0.02

    def is_raw_pcm(self, audio_bytes: bytes, mime_type: str) -> bool:
        """
        Decide whether an upload is headerless PCM rather than a container.

        The declared MIME type wins; a container signature overrides a PCM
        declaration since some recorders mislabel WAV output.
        """
        base, _ = parse_mime_type(mime_type)
        if base not in PCM_MIME_TYPES:
            return False
        return self._container_format(audio_bytes) is None

    def _container_format(self, audio_bytes: bytes) -> Optional[str]:
        for signature, fmt in CONTAINER_SIGNATURES.items():
            if audio_bytes[: len(signature)] == signature:
                return fmt
        return None

    def _sample_rate(self, mime_type: str) -> int:
        _, params = parse_mime_type(mime_type)
        try:
            return int(params.get("rate", self.default_sample_rate))
        except ValueError:
            return self.default_sample_rate

    def _to_wav(self, pcm: bytes, sample_rate: int) -> bytes:
        """Wrap little-endian 16-bit mono PCM in a WAV header."""
        if len(pcm) % self.sample_width:
            pcm = pcm[:-1]

        buffer = io.BytesIO()
        data_size = len(pcm)

        buffer.write(b"RIFF")
        buffer.write(struct.pack("<I", 36 + data_size))
        buffer.write(b"WAVE")
        buffer.write(b"fmt ")
        buffer.write(struct.pack("<I", 16))  # Subchunk1Size
        buffer.write(struct.pack("<H", 1))  # AudioFormat (PCM)
        buffer.write(struct.pack("<H", self.channels))
        buffer.write(struct.pack("<I", sample_rate))
        buffer.write(struct.pack("<I", sample_rate * self.channels * self.sample_width))
        buffer.write(struct.pack("<H", self.channels * self.sample_width))
        buffer.write(struct.pack("<H", self.sample_width * 8))
        buffer.write(b"data")
        buffer.write(struct.pack("<I", data_size))
        buffer.write(pcm)

        return buffer.getvalue()

    def compute_pcm_stats(self, pcm: bytes, sample_rate: int) -> Tuple[float, float, float]:
        """Return (duration_s, rms, peak) for 16-bit PCM, amplitudes in [0, 1]."""
        trimmed = pcm if len(pcm) % 2 == 0 else pcm[:-1]
        if not trimmed:
            return 0.0, 0.0, 0.0
        samples = np.frombuffer(trimmed, dtype=np.int16).astype(np.float32) / 32768.0
        duration_s = len(samples) / float(sample_rate)
        rms = float(np.sqrt(np.mean(samples**2)))
        peak = float(np.max(np.abs(samples)))
        return duration_s, rms, peak

    def is_silent(self, rms: float, peak: float) -> bool:
        return rms < self._silence_rms_threshold and peak < self._silence_peak_threshold

    def prepare_upload(self, audio_bytes: bytes, mime_type: str) -> Tuple[str, bytes, str]:
        """Build the (filename, content, content_type) tuple sent to the provider."""
        if self.is_raw_pcm(audio_bytes, mime_type):
            sample_rate = self._sample_rate(mime_type)
            return "recording.wav", self._to_wav(audio_bytes, sample_rate), "audio/wav"

        base, _ = parse_mime_type(mime_type)
        extension = EXTENSIONS.get(base) or self._container_format(audio_bytes) or "webm"
        return f"recording.{extension}", audio_bytes, base or f"audio/{extension}"

    async def transcribe(self, audio_bytes: bytes, mime_type: str = "audio/webm") -> TranscriptionResult:
        """
        Transcribe a complete recording.

        Args:
            audio_bytes: The recorded audio
            mime_type: MIME type declared by the recorder

        Returns:
            TranscriptionResult; empty text when no speech was found

        Raises:
            UpstreamFailureError: If the provider call fails
        """
        duration_s = None
        if self.is_raw_pcm(audio_bytes, mime_type):
            duration_s, rms, peak = self.compute_pcm_stats(
                audio_bytes, self._sample_rate(mime_type)
            )
            logger.debug(
                f"PCM upload: bytes={len(audio_bytes)} duration={duration_s:.2f}s "
                f"rms={rms:.5f} peak={peak:.5f}"
            )
            if self.is_silent(rms, peak):
                logger.info(f"Skipping transcription of silent PCM ({duration_s:.2f}s)")
                return TranscriptionResult(text="", language=self.language, duration_s=duration_s)

        upload = self.prepare_upload(audio_bytes, mime_type)

        try:
            transcription = await self._client.audio.transcriptions.create(
                model=self.model_name,
                file=upload,
                language=self.language,
            )
        except Exception as e:
            logger.error(f"Transcription failed: {e}")
            raise UpstreamFailureError(detail=f"transcription: {e}") from e

        text = (getattr(transcription, "text", None) or "").strip()
        logger.debug(f"Transcribed {len(audio_bytes)} bytes -> {len(text)} chars")

        return TranscriptionResult(text=text, language=self.language, duration_s=duration_s)
