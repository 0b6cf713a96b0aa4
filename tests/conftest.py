"""
Shared fixtures: in-memory audio devices, a recording player and sample payloads.
"""

import pytest

from lingua_coach.client.conversation import AudioPlayer
from lingua_coach.client.recorder import AudioInputDevice
from lingua_coach.errors import DeviceAccessDeniedError


class FakeInputDevice(AudioInputDevice):
    """Input device that records open/close and lets tests push chunks."""

    mime_type = "audio/webm"

    def __init__(self, deny=False, os_error=False, pending=b"", gate=None):
        self.gate = gate
        self.deny = deny
        self.os_error = os_error
        self.pending = pending
        self.is_open = False
        self.open_calls = 0
        self.close_calls = 0
        self.on_chunk = None

    async def open(self, on_chunk):
        self.open_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.deny:
            raise DeviceAccessDeniedError(detail="permission denied")
        if self.os_error:
            raise OSError("no input device")
        self.on_chunk = on_chunk
        self.is_open = True

    def emit(self, data: bytes):
        if self.on_chunk is not None:
            self.on_chunk(data)

    async def close(self):
        self.close_calls += 1
        if self.is_open and self.pending:
            self.on_chunk(self.pending)
            self.pending = b""
        self.is_open = False


class FakePlayer(AudioPlayer):
    """Player that never makes a sound; completion is triggered by the test."""

    def __init__(self):
        self.played = []
        self.stop_calls = 0
        self.callbacks = []
        self.on_stop = None

    def play(self, data, on_ended):
        self.played.append(data)
        self.callbacks.append(on_ended)

    def stop(self):
        self.stop_calls += 1
        if self.on_stop is not None:
            self.on_stop()


@pytest.fixture
def device():
    return FakeInputDevice()


@pytest.fixture
def make_device():
    return FakeInputDevice


@pytest.fixture
def player():
    return FakePlayer()


@pytest.fixture
def feedback_payload():
    """A well-formed feedback report as the language model returns it."""
    return {
        "overallScore": 78,
        "pronunciation": {
            "score": 70,
            "feedback": "Work on the TH sound in 'think'.",
        },
        "grammar": {
            "score": 82,
            "corrections": [
                {
                    "original": "I sink it is good",
                    "corrected": "I think it is good",
                    "explanation": "Pronunciation: TH, not S.",
                }
            ],
        },
        "vocabulary": {
            "score": 75,
            "feedback": "Good everyday vocabulary.",
            "suggestions": ["excellent", "worthwhile"],
        },
        "fluency": {"score": 80, "feedback": "Natural pace."},
        "encouragement": "Great effort today!",
        "practiceTopics": ["TH sounds", "Past tense"],
    }
