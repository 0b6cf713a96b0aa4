"""
Speech pipeline: the provider-facing half of a practice or conversation request.

Each request runs a strict sequence of stages, never overlapped:

    analyze:  transcribe -> check for speech -> score
    converse: transcribe -> check for speech -> reply -> synthesize

Any provider failure collapses into one error per mode carrying that mode's
user-facing message. There are no partial results: a reply whose speech
could not be synthesized fails the whole turn.
"""

from typing import List, Optional

from loguru import logger
from openai import AsyncOpenAI

from lingua_coach.config import Settings
from lingua_coach.errors import (
    ANALYZE_FAILED_MESSAGE,
    CONVERSE_FAILED_MESSAGE,
    CoachError,
    EmptyCaptureError,
    NoSpeechDetectedError,
    UpstreamFailureError,
)
from lingua_coach.models import ConversationReply, FeedbackReport
from lingua_coach.prompts import CEFRLevel
from lingua_coach.services.analysis_service import AnalysisService
from lingua_coach.services.asr_service import ASRService
from lingua_coach.services.llm_service import LLMService
from lingua_coach.services.tts_service import TTSService


def create_openai_client(settings: Settings) -> AsyncOpenAI:
    """Build the provider client once, for the lifetime of the process."""
    return AsyncOpenAI(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        timeout=settings.openai_timeout,
        max_retries=0,
    )


class SpeechPipeline:
    """
    Runs analyze and converse requests against the provider.

    Construct one per process with an explicit client; the routes reach it
    through a FastAPI dependency.
    """

    def __init__(self, client: AsyncOpenAI, settings: Settings):
        self.client = client
        self.history_window = settings.history_window
        self.asr_service = ASRService(client, settings)
        self.llm_service = LLMService(client, settings)
        self.tts_service = TTSService(client, settings)
        self.analysis_service = AnalysisService(self.llm_service)

    async def _transcribe_speech(self, audio: bytes, mime_type: str) -> str:
        if not audio:
            raise EmptyCaptureError()

        result = await self.asr_service.transcribe(audio, mime_type)
        if result.is_empty:
            logger.info("No speech detected in upload")
            raise NoSpeechDetectedError()
        return result.text

    async def analyze(self, audio: bytes, mime_type: str, level: CEFRLevel) -> FeedbackReport:
        """
        Score a practice recording.

        Args:
            audio: The recorded audio
            mime_type: MIME type declared by the recorder
            level: The learner's CEFR level

        Returns:
            FeedbackReport for the recording

        Raises:
            EmptyCaptureError: If the upload is empty
            NoSpeechDetectedError: If transcription is empty
            CoachError: Any other failure, with the analyze-mode message
        """
        try:
            transcription = await self._transcribe_speech(audio, mime_type)
            logger.debug(f"Analyzing {len(transcription)} chars at level {level.value}")
            return await self.analysis_service.analyze(transcription, level)
        except (EmptyCaptureError, NoSpeechDetectedError):
            raise
        except CoachError as e:
            logger.error(f"Analyze request failed ({type(e).__name__}): {e.detail}")
            raise type(e)(ANALYZE_FAILED_MESSAGE, detail=e.detail) from e
        except Exception as e:
            logger.exception("Unexpected error analyzing audio")
            raise UpstreamFailureError(ANALYZE_FAILED_MESSAGE, detail=str(e)) from e

    def trim_history(self, history: Optional[List[dict]]) -> List[dict]:
        """Keep only the most recent turns that fit in the history window."""
        if not history:
            return []
        return list(history[-self.history_window:]) if self.history_window > 0 else []

    async def converse(
        self,
        audio: bytes,
        mime_type: str,
        level: CEFRLevel,
        history: Optional[List[dict]] = None,
    ) -> ConversationReply:
        """
        Produce a spoken reply to the learner's utterance.

        Args:
            audio: The recorded audio
            mime_type: MIME type declared by the recorder
            level: The learner's CEFR level
            history: Prior turns, oldest first, as {role, content} dicts

        Returns:
            ConversationReply with transcription, reply text and reply audio

        Raises:
            EmptyCaptureError: If the upload is empty
            NoSpeechDetectedError: If transcription is empty
            CoachError: Any other failure, with the converse-mode message
        """
        try:
            transcription = await self._transcribe_speech(audio, mime_type)

            context = self.llm_service.create_context(level, self.trim_history(history))
            context.add_transcription(transcription)
            logger.debug(
                f"Generating reply at level {level.value} with {len(context.messages) - 1} prior turns"
            )
            response_text = await self.llm_service.generate_reply(context)

            speech = await self.tts_service.synthesize(response_text, level)
        except (EmptyCaptureError, NoSpeechDetectedError):
            raise
        except CoachError as e:
            logger.error(f"Converse request failed ({type(e).__name__}): {e.detail}")
            raise type(e)(CONVERSE_FAILED_MESSAGE, detail=e.detail) from e
        except Exception as e:
            logger.exception("Unexpected error in conversation")
            raise UpstreamFailureError(CONVERSE_FAILED_MESSAGE, detail=str(e)) from e

        logger.info(
            f"Conversation turn complete: heard {len(transcription)} chars, "
            f"replied {len(response_text)} chars, {len(speech.data)} audio bytes"
        )
        return ConversationReply(
            transcription=transcription,
            response=response_text,
            audio_base64=speech.to_base64(),
        )
