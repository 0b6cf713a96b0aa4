"""
TTS (Text-to-Speech) Service using the provider's speech endpoint.

Reply audio is synthesized at a rate chosen by the learner's level and
returned as MP3 bytes; the routes base64-encode it for transport.
"""

import base64
from dataclasses import dataclass

from loguru import logger
from openai import AsyncOpenAI

from lingua_coach.config import Settings
from lingua_coach.errors import UpstreamFailureError
from lingua_coach.prompts import CEFRLevel, get_speech_speed


@dataclass
class SynthesizedAudio:
    """Synthesized reply audio."""

    data: bytes
    format: str = "mp3"
    speed: float = 1.0

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


class TTSService:
    """Text-to-speech calls for conversation replies."""

    def __init__(self, client: AsyncOpenAI, settings: Settings):
        self._client = client
        self.model_name = settings.tts_model
        self.voice = settings.tts_voice
        self.output_format = settings.tts_format

    async def synthesize(self, text: str, level: CEFRLevel) -> SynthesizedAudio:
        """
        Synthesize speech for a reply.

        Args:
            text: The reply text
            level: The learner's level, which selects the speech rate

        Returns:
            SynthesizedAudio with the encoded bytes

        Raises:
            UpstreamFailureError: If synthesis fails or produces no audio
        """
        if not text or not text.strip():
            raise UpstreamFailureError(detail="nothing to synthesize")

        speed = get_speech_speed(level)

        try:
            response = await self._client.audio.speech.create(
                model=self.model_name,
                voice=self.voice,
                input=text,
                response_format=self.output_format,
                speed=speed,
            )
            data = response.content
        except Exception as e:
            logger.error(f"TTS synthesis failed: {e}")
            raise UpstreamFailureError(detail=f"synthesis: {e}") from e

        if not data:
            raise UpstreamFailureError(detail="synthesis returned no audio")

        logger.debug(f"Synthesized {len(data)} bytes at speed {speed}")
        return SynthesizedAudio(data=data, format=self.output_format, speed=speed)
