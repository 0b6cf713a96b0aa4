"""
Request orchestrator: sends a finalized recording to the backend and turns
the response into a FeedbackReport or a ConversationReply.

One attempt per submission, no retries. Every failure surfaces as a
CoachError carrying the mode's user-facing message; the distinguishing
detail is logged.
"""

import json
from enum import Enum
from typing import List, Optional, Union

import httpx
from loguru import logger

from lingua_coach.errors import (
    ANALYZE_FAILED_MESSAGE,
    CONVERSE_FAILED_MESSAGE,
    NO_AUDIO_MESSAGE,
    NO_SPEECH_MESSAGE,
    EmptyCaptureError,
    MalformedResponseError,
    NoSpeechDetectedError,
    UpstreamFailureError,
)
from lingua_coach.models import ConversationReply, FeedbackReport
from lingua_coach.prompts import CEFRLevel
from lingua_coach.client.recorder import AudioObject


class Mode(str, Enum):
    PRACTICE = "practice"
    CONVERSATION = "conversation"


FAILURE_MESSAGES = {
    Mode.PRACTICE: ANALYZE_FAILED_MESSAGE,
    Mode.CONVERSATION: CONVERSE_FAILED_MESSAGE,
}


class RequestOrchestrator:
    """
    Client for the /analyze and /converse routes.

    Takes an explicitly constructed ``httpx.AsyncClient`` whose base URL
    points at the backend.
    """

    def __init__(self, http_client: httpx.AsyncClient):
        self._http = http_client

    async def submit(
        self,
        audio: AudioObject,
        level: CEFRLevel,
        mode: Mode,
        history: Optional[List[dict]] = None,
    ) -> Union[FeedbackReport, ConversationReply]:
        """Dispatch a submission to the route for its mode."""
        if mode is Mode.PRACTICE:
            return await self.analyze(audio, level)
        return await self.converse(audio, level, history or [])

    async def analyze(self, audio: AudioObject, level: CEFRLevel) -> FeedbackReport:
        """
        Request feedback for a practice recording.

        Raises:
            EmptyCaptureError: If the audio is empty
            NoSpeechDetectedError: If the backend heard no speech
            UpstreamFailureError: If the request failed
            MalformedResponseError: If the response could not be parsed
        """
        payload = await self._post(Mode.PRACTICE, "/analyze", audio, {"level": level.value})
        try:
            return FeedbackReport.from_dict(payload)
        except MalformedResponseError as e:
            logger.error(f"Unexpected feedback payload: {e.detail}")
            raise MalformedResponseError(ANALYZE_FAILED_MESSAGE, detail=e.detail) from e

    async def converse(
        self, audio: AudioObject, level: CEFRLevel, history: List[dict]
    ) -> ConversationReply:
        """
        Send one conversation turn along with the recent history.

        Raises:
            EmptyCaptureError: If the audio is empty
            NoSpeechDetectedError: If the backend heard no speech
            UpstreamFailureError: If the request failed
            MalformedResponseError: If the response could not be parsed
        """
        data = {"level": level.value, "history": json.dumps(history)}
        payload = await self._post(Mode.CONVERSATION, "/converse", audio, data)
        try:
            return ConversationReply.from_dict(payload)
        except MalformedResponseError as e:
            logger.error(f"Unexpected conversation payload: {e.detail}")
            raise MalformedResponseError(CONVERSE_FAILED_MESSAGE, detail=e.detail) from e

    async def _post(self, mode: Mode, path: str, audio: AudioObject, data: dict) -> dict:
        failure_message = FAILURE_MESSAGES[mode]

        if audio is None or not audio.data:
            raise EmptyCaptureError()

        files = {"audio": (audio.filename, audio.data, audio.mime_type)}
        logger.debug(f"POST {path}: {audio.size} bytes ({audio.mime_type})")

        try:
            response = await self._http.post(path, data=data, files=files)
        except httpx.HTTPError as e:
            logger.error(f"{mode.value} request failed: {e}")
            raise UpstreamFailureError(failure_message, detail=str(e)) from e

        if response.is_error:
            error = self._error_message(response)
            if response.status_code == 400 and error == NO_SPEECH_MESSAGE:
                raise NoSpeechDetectedError()
            if response.status_code == 400 and error == NO_AUDIO_MESSAGE:
                raise EmptyCaptureError()
            logger.error(f"{mode.value} request returned {response.status_code}: {error}")
            raise UpstreamFailureError(
                failure_message, detail=f"HTTP {response.status_code}: {error}"
            )

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"{mode.value} response is not JSON: {e}")
            raise MalformedResponseError(failure_message, detail=str(e)) from e

    def _error_message(self, response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:200]
        if isinstance(body, dict) and isinstance(body.get("error"), str):
            return body["error"]
        return str(body)[:200]
