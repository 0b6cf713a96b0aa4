"""
CoachSession tests: recorder, orchestrator and conversation wired together
"""

import asyncio
import base64
from unittest.mock import AsyncMock, Mock

import pytest

from lingua_coach.client.conversation import ConversationTurnManager, Role
from lingua_coach.client.orchestrator import Mode, RequestOrchestrator
from lingua_coach.client.recorder import RecordingStateMachine, RecordingStatus
from lingua_coach.client.session import CoachSession
from lingua_coach.errors import (
    CONVERSE_FAILED_MESSAGE,
    NO_SPEECH_MESSAGE,
    NoSpeechDetectedError,
    UpstreamFailureError,
)
from lingua_coach.models import ConversationReply, FeedbackReport
from lingua_coach.prompts import CEFRLevel

REPLY_AUDIO = b"ID3-reply-audio"


def make_reply(transcription="I am fine thank you", response="Great to hear! What did you do today?"):
    return ConversationReply(
        transcription=transcription,
        response=response,
        audio_base64=base64.b64encode(REPLY_AUDIO).decode("ascii"),
    )


def make_session(device, player, mode=Mode.CONVERSATION):
    orchestrator = Mock(spec=RequestOrchestrator)
    orchestrator.converse = AsyncMock(return_value=make_reply())
    orchestrator.analyze = AsyncMock()
    session = CoachSession(
        recorder=RecordingStateMachine(device),
        orchestrator=orchestrator,
        conversation=ConversationTurnManager(player),
        level=CEFRLevel.B1,
        mode=mode,
    )
    return session, orchestrator


async def record(session, device, data=b"speech"):
    await session.start_recording()
    device.emit(data)


class TestConversationMode:
    @pytest.mark.asyncio
    async def test_turn_appends_user_then_assistant(self, device, player):
        session, orchestrator = make_session(device, player)

        await record(session, device)
        reply = await session.stop_and_submit()

        assert reply.response == "Great to hear! What did you do today?"
        turns = session.conversation.turns
        assert [t.role for t in turns] == [Role.USER, Role.ASSISTANT]
        assert turns[0].content == "I am fine thank you"
        assert turns[1].audio == REPLY_AUDIO

        audio, level, history = orchestrator.converse.await_args.args
        assert audio.data == b"speech"
        assert level is CEFRLevel.B1
        assert history == []

    @pytest.mark.asyncio
    async def test_reply_autoplays(self, device, player):
        session, _ = make_session(device, player)

        await record(session, device)
        await session.stop_and_submit()

        assert player.played == [REPLY_AUDIO]
        assert session.conversation.playing_id == session.conversation.turns[1].id

    @pytest.mark.asyncio
    async def test_second_turn_sends_history(self, device, player):
        session, orchestrator = make_session(device, player)

        await record(session, device)
        await session.stop_and_submit()
        await record(session, device)
        await session.stop_and_submit()

        history = orchestrator.converse.await_args.args[2]
        assert [entry["role"] for entry in history] == ["user", "assistant"]
        assert all("audio" not in entry for entry in history)
        assert len(session.conversation) == 4

    @pytest.mark.asyncio
    async def test_no_speech_appends_nothing(self, device, player):
        session, orchestrator = make_session(device, player)
        orchestrator.converse.side_effect = NoSpeechDetectedError()

        await record(session, device)
        result = await session.stop_and_submit()

        assert result is None
        assert len(session.conversation) == 0
        assert session.error == NO_SPEECH_MESSAGE
        assert session.display_error == NO_SPEECH_MESSAGE

    @pytest.mark.asyncio
    async def test_failure_surfaces_mode_message(self, device, player):
        session, orchestrator = make_session(device, player)
        orchestrator.converse.side_effect = UpstreamFailureError(CONVERSE_FAILED_MESSAGE, detail="HTTP 500")

        await record(session, device)
        await session.stop_and_submit()

        assert session.error == CONVERSE_FAILED_MESSAGE
        assert len(session.conversation) == 0

    @pytest.mark.asyncio
    async def test_invalid_reply_audio_appends_nothing(self, device, player):
        session, orchestrator = make_session(device, player)
        orchestrator.converse.return_value = ConversationReply("hi", "hello", "not base64!!")

        await record(session, device)
        result = await session.stop_and_submit()

        assert result is None
        assert session.error == CONVERSE_FAILED_MESSAGE
        assert len(session.conversation) == 0

    @pytest.mark.asyncio
    async def test_recorder_reset_after_submit(self, device, player):
        session, orchestrator = make_session(device, player)
        orchestrator.converse.side_effect = UpstreamFailureError(CONVERSE_FAILED_MESSAGE)

        await record(session, device)
        await session.stop_and_submit()

        assert session.recorder.status is RecordingStatus.IDLE
        assert session.recorder.audio is None
        assert not device.is_open
        assert session.is_processing is False

    @pytest.mark.asyncio
    async def test_clear_conversation(self, device, player):
        session, _ = make_session(device, player)
        await record(session, device)
        await session.stop_and_submit()

        session.clear_conversation()

        assert len(session.conversation) == 0
        assert player.stop_calls == 1


class TestPracticeMode:
    @pytest.mark.asyncio
    async def test_feedback_is_stored(self, device, player, feedback_payload):
        session, orchestrator = make_session(device, player, mode=Mode.PRACTICE)
        report = FeedbackReport.from_dict(feedback_payload, transcription="I sink so")
        orchestrator.analyze.return_value = report

        await record(session, device)
        result = await session.stop_and_submit()

        assert result is report
        assert session.feedback is report
        assert len(session.conversation) == 0
        orchestrator.converse.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_new_recording_clears_feedback(self, device, player, feedback_payload):
        session, orchestrator = make_session(device, player, mode=Mode.PRACTICE)
        orchestrator.analyze.return_value = FeedbackReport.from_dict(feedback_payload)
        await record(session, device)
        await session.stop_and_submit()

        await session.start_recording()

        assert session.feedback is None
        assert session.recorder.is_recording

    @pytest.mark.asyncio
    async def test_mode_change_clears_feedback_and_error(self, device, player, feedback_payload):
        session, orchestrator = make_session(device, player, mode=Mode.PRACTICE)
        orchestrator.analyze.return_value = FeedbackReport.from_dict(feedback_payload)
        await record(session, device)
        await session.stop_and_submit()
        session.error = "stale"

        session.set_mode(Mode.CONVERSATION)

        assert session.mode is Mode.CONVERSATION
        assert session.feedback is None
        assert session.error is None

    @pytest.mark.asyncio
    async def test_same_mode_keeps_feedback(self, device, player, feedback_payload):
        session, orchestrator = make_session(device, player, mode=Mode.PRACTICE)
        report = FeedbackReport.from_dict(feedback_payload)
        orchestrator.analyze.return_value = report
        await record(session, device)
        await session.stop_and_submit()

        session.set_mode(Mode.PRACTICE)

        assert session.feedback is report


class TestSingleSubmission:
    @pytest.mark.asyncio
    async def test_only_one_submission_in_flight(self, device, player):
        session, orchestrator = make_session(device, player)
        gate = asyncio.Event()

        async def slow_converse(*args):
            await gate.wait()
            return make_reply()

        orchestrator.converse.side_effect = slow_converse

        await record(session, device)
        await session.recorder.stop_capture()
        first = asyncio.create_task(session.submit())
        await asyncio.sleep(0)

        assert session.is_processing
        assert await session.submit() is None

        await session.start_recording()
        assert device.open_calls == 1

        session.set_level(CEFRLevel.C2)
        session.set_mode(Mode.PRACTICE)
        assert session.level is CEFRLevel.B1
        assert session.mode is Mode.CONVERSATION

        gate.set()
        await first

        assert orchestrator.converse.await_count == 1
        assert len(session.conversation) == 2
        assert not session.is_processing

    @pytest.mark.asyncio
    async def test_submit_without_capture_is_noop(self, device, player):
        session, orchestrator = make_session(device, player)

        assert await session.submit() is None
        orchestrator.converse.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_level_change_when_idle(self, device, player):
        session, _ = make_session(device, player)

        session.set_level(CEFRLevel.A1)

        assert session.level is CEFRLevel.A1
