"""
Coach session: drives the recorder, the orchestrator and the conversation
log for one learner.

Only one submission is ever in flight. While ``is_processing`` is set, new
recordings and submissions are refused, so conversation turns are always
appended in the order they were spoken.
"""

import base64
import binascii
from typing import Optional, Union

from loguru import logger

from lingua_coach.client.conversation import ConversationTurnManager
from lingua_coach.client.orchestrator import FAILURE_MESSAGES, Mode, RequestOrchestrator
from lingua_coach.client.recorder import RecordingStateMachine, RecordingStatus
from lingua_coach.errors import CoachError, MalformedResponseError
from lingua_coach.models import ConversationReply, FeedbackReport
from lingua_coach.prompts import CEFRLevel


class CoachSession:
    """State a view layer renders: recorder state, conversation, feedback and error."""

    def __init__(
        self,
        recorder: RecordingStateMachine,
        orchestrator: RequestOrchestrator,
        conversation: ConversationTurnManager,
        level: CEFRLevel = CEFRLevel.B1,
        mode: Mode = Mode.CONVERSATION,
        autoplay: bool = True,
    ):
        self.recorder = recorder
        self.orchestrator = orchestrator
        self.conversation = conversation
        self.level = level
        self.mode = mode
        self.autoplay = autoplay

        self.is_processing = False
        self.feedback: Optional[FeedbackReport] = None
        self.error: Optional[str] = None

    @property
    def display_error(self) -> Optional[str]:
        """The error to show: a request error first, then a recorder error."""
        return self.error or self.recorder.error

    def set_level(self, level: CEFRLevel) -> None:
        if self.is_processing:
            logger.debug("Level change ignored while processing")
            return
        self.level = level

    def set_mode(self, mode: Mode) -> None:
        """Switch modes; feedback and errors from the previous mode are dropped."""
        if self.is_processing:
            logger.debug("Mode change ignored while processing")
            return
        if mode is not self.mode:
            self.feedback = None
            self.error = None
        self.mode = mode

    async def start_recording(self) -> None:
        """Begin a new recording; the previous feedback is discarded."""
        if self.is_processing:
            logger.debug("start_recording ignored while a submission is in flight")
            return
        if self.recorder.status is RecordingStatus.CAPTURED:
            await self.recorder.reset()
        self.feedback = None
        self.error = None
        await self.recorder.start_capture()

    async def stop_and_submit(self) -> Union[FeedbackReport, ConversationReply, None]:
        """Stop recording and submit what was captured."""
        audio = await self.recorder.stop_capture()
        if audio is None:
            return None
        return await self.submit()

    async def submit(self) -> Union[FeedbackReport, ConversationReply, None]:
        """
        Submit the captured recording for the current mode.

        Returns:
            The FeedbackReport or ConversationReply, or None when nothing was
            submitted or the submission failed (see ``error``)
        """
        if self.is_processing:
            logger.debug("submit ignored while a submission is in flight")
            return None

        audio = self.recorder.audio
        if self.recorder.status is not RecordingStatus.CAPTURED or audio is None:
            logger.debug(f"submit ignored in recorder state {self.recorder.status.value}")
            return None

        self.is_processing = True
        self.error = None
        mode = self.mode

        try:
            if mode is Mode.PRACTICE:
                self.feedback = await self.orchestrator.analyze(audio, self.level)
                return self.feedback

            reply = await self.orchestrator.converse(
                audio, self.level, self.conversation.history_for_request()
            )
            self._record_reply(reply)
            return reply

        except CoachError as e:
            logger.error(f"{mode.value} submission failed ({type(e).__name__}): {e.detail or e.user_message}")
            self.error = e.user_message
            return None

        finally:
            self.is_processing = False
            await self.recorder.reset()

    def _record_reply(self, reply: ConversationReply) -> None:
        try:
            reply_audio = base64.b64decode(reply.audio_base64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise MalformedResponseError(
                FAILURE_MESSAGES[Mode.CONVERSATION], detail=f"reply audio is not base64: {e}"
            ) from e

        _, assistant_turn = self.conversation.append_exchange(
            reply.transcription, reply.response, reply_audio
        )

        if self.autoplay and assistant_turn.has_audio:
            try:
                self.conversation.play(assistant_turn.id)
            except Exception as e:
                logger.warning(f"Could not play reply audio: {e}")

    def clear_conversation(self) -> None:
        """Start over: stop playback and empty the log."""
        self.error = None
        self.conversation.clear()
