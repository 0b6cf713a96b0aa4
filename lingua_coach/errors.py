"""
Error taxonomy for Lingua Coach.

Every failure the application knows about derives from CoachError and carries
a user-facing message. Internal details (provider exceptions, HTTP bodies)
are logged where they happen and never shown to the learner.
"""

from typing import Optional

ANALYZE_FAILED_MESSAGE = "Failed to analyze audio. Please try again."
CONVERSE_FAILED_MESSAGE = "Failed to process conversation. Please try again."
NO_SPEECH_MESSAGE = "No speech detected in the audio"
NO_AUDIO_MESSAGE = "No audio file provided"
DEVICE_DENIED_MESSAGE = (
    "Could not access the microphone. Please allow access and try again."
)
EMPTY_CAPTURE_MESSAGE = "No audio was recorded. Please try again."


class CoachError(Exception):
    """Base class for all application errors."""

    status_code: int = 500
    default_message: str = "Something went wrong. Please try again."

    def __init__(self, user_message: Optional[str] = None, detail: str = ""):
        self.user_message = user_message or self.default_message
        self.detail = detail
        super().__init__(detail or self.user_message)


class DeviceAccessDeniedError(CoachError):
    """The audio input device was denied or is unavailable."""

    default_message = DEVICE_DENIED_MESSAGE


class EmptyCaptureError(CoachError):
    """A recording produced no audio bytes."""

    status_code = 400
    default_message = EMPTY_CAPTURE_MESSAGE


class NoSpeechDetectedError(CoachError):
    """Transcription came back empty or whitespace-only."""

    status_code = 400
    default_message = NO_SPEECH_MESSAGE


class UpstreamFailureError(CoachError):
    """Any transcription, generation or synthesis failure."""

    status_code = 500


class MalformedResponseError(CoachError):
    """Upstream content could not be parsed into the expected shape."""

    status_code = 500


class InvalidRequestError(CoachError):
    """The caller sent a request the routes cannot accept."""

    status_code = 400
