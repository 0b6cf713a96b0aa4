"""
Recording state machine for capturing one utterance from an audio input device.

States:

    IDLE --start_capture--> RECORDING --stop_capture--> CAPTURED --reset--> IDLE
    IDLE --start_capture (device denied)--> IDLE

The input device is held only while RECORDING. It is released on stop, on
reset, on acquisition failure and on teardown. Device problems never raise
out of this module; they are reported through ``error``.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from loguru import logger

from lingua_coach.errors import (
    DEVICE_DENIED_MESSAGE,
    EMPTY_CAPTURE_MESSAGE,
    DeviceAccessDeniedError,
)

ChunkCallback = Callable[[bytes], None]

FILE_EXTENSIONS = {
    "audio/webm": "webm",
    "audio/ogg": "ogg",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/mpeg": "mp3",
    "audio/l16": "pcm",
    "audio/pcm": "pcm",
}


class RecordingStatus(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    CAPTURED = "captured"


@dataclass(frozen=True)
class AudioObject:
    """The finalized result of one recording: bytes tagged with a MIME type."""

    data: bytes
    mime_type: str
    duration: float = 0.0

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def filename(self) -> str:
        base = self.mime_type.split(";", 1)[0].strip().lower()
        return f"recording.{FILE_EXTENSIONS.get(base, 'bin')}"


class AudioInputDevice(ABC):
    """
    An exclusively owned source of opaque audio chunks.

    ``open`` either succeeds and starts delivering chunks to the callback, or
    raises DeviceAccessDeniedError and holds nothing. ``close`` delivers any
    pending chunk through the callback before releasing the device, and is
    safe to call on a closed device.
    """

    mime_type: str = "application/octet-stream"

    @abstractmethod
    async def open(self, on_chunk: ChunkCallback) -> None:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...


class RecordingStateMachine:
    """
    Owns microphone acquisition, chunk buffering and the finalized audio object.

    Calls that do not apply to the current state are no-ops, so duplicate
    triggers from the view layer are harmless.
    """

    def __init__(self, device: AudioInputDevice, clock: Callable[[], float] = time.monotonic):
        self._device = device
        self._clock = clock
        self._chunks: List[bytes] = []
        self._device_held = False
        self._starting = False
        self._closed = False
        self._epoch = 0
        self._finalizing = False
        self._started_at: Optional[float] = None
        self._captured = asyncio.Event()
        self._listeners: List[Callable[["RecordingStateMachine"], None]] = []

        self.status = RecordingStatus.IDLE
        self.audio: Optional[AudioObject] = None
        self.error: Optional[str] = None

    @property
    def device_held(self) -> bool:
        return self._device_held

    @property
    def is_recording(self) -> bool:
        return self.status is RecordingStatus.RECORDING

    @property
    def chunk_count(self) -> int:
        return len(self._chunks)

    def add_listener(self, callback: Callable[["RecordingStateMachine"], None]) -> None:
        """Register a callback invoked after every state change."""
        self._listeners.append(callback)

    def _set_status(self, status: RecordingStatus) -> None:
        self.status = status
        for callback in list(self._listeners):
            callback(self)

    async def start_capture(self) -> None:
        """
        Acquire the input device and begin buffering chunks.

        Only valid from IDLE. On denial the machine stays IDLE with ``error``
        set; nothing is raised.
        """
        if self._closed:
            logger.debug("start_capture ignored after teardown")
            return
        if self.status is not RecordingStatus.IDLE or self._starting or self._device_held:
            logger.debug(f"start_capture ignored in state {self.status.value}")
            return

        self._starting = True
        epoch = self._epoch
        self._chunks = []
        self.audio = None
        self.error = None
        self._captured.clear()

        try:
            await self._device.open(self._on_chunk)
        except DeviceAccessDeniedError as e:
            logger.warning(f"Microphone access denied: {e.detail or e.user_message}")
            self.error = e.user_message
            self._set_status(RecordingStatus.IDLE)
            return
        except OSError as e:
            logger.warning(f"Microphone unavailable: {e}")
            self.error = DEVICE_DENIED_MESSAGE
            self._set_status(RecordingStatus.IDLE)
            return
        finally:
            self._starting = False

        if self._closed or epoch != self._epoch:
            # Torn down or reset while the device was opening
            logger.debug("Device opened after teardown or reset; releasing it")
            self._device_held = True
            await self._release_device()
            return

        self._device_held = True
        self._finalizing = False
        self._started_at = self._clock()
        logger.debug("Recording started")
        self._set_status(RecordingStatus.RECORDING)

    def _on_chunk(self, data: bytes) -> None:
        """Append one chunk; only accepted while RECORDING."""
        if self.status is not RecordingStatus.RECORDING or not data:
            return
        self._chunks.append(bytes(data))

    async def stop_capture(self) -> Optional[AudioObject]:
        """
        Finalize the recording and release the device.

        Returns:
            The materialized AudioObject, or None when not recording or when
            nothing was captured
        """
        if self.status is not RecordingStatus.RECORDING or self._finalizing:
            logger.debug(f"stop_capture ignored in state {self.status.value}")
            return None

        # Finalization boundary; later stop calls are no-ops
        self._finalizing = True
        duration = self._clock() - (self._started_at or self._clock())

        try:
            await self._release_device()
        finally:
            data = b"".join(self._chunks)
            self._chunks = []
            self._finalizing = False

            if data:
                self.audio = AudioObject(
                    data=data, mime_type=self._device.mime_type, duration=max(duration, 0.0)
                )
                logger.debug(f"Recording captured: {len(data)} bytes, {duration:.2f}s")
                self._set_status(RecordingStatus.CAPTURED)
                self._captured.set()
            else:
                logger.info("Recording stopped with no audio")
                self.error = EMPTY_CAPTURE_MESSAGE
                self._set_status(RecordingStatus.IDLE)

        return self.audio

    async def wait_captured(self) -> AudioObject:
        """Wait until a recording has been materialized and return it."""
        await self._captured.wait()
        return self.audio

    async def reset(self) -> None:
        """
        Discard the captured audio and return to IDLE.

        Idempotent. A reset while RECORDING abandons the recording and
        releases the device.
        """
        self._epoch += 1
        if self.status is RecordingStatus.RECORDING or self._device_held:
            logger.debug("Reset while recording; discarding capture")
            await self._release_device()

        self._chunks = []
        self.audio = None
        self.error = None
        self._started_at = None
        self._captured.clear()
        if self.status is not RecordingStatus.IDLE:
            self._set_status(RecordingStatus.IDLE)

    async def aclose(self) -> None:
        """Tear down: release the device from any state.

        A device still being opened is released as soon as its open returns,
        and later start_capture calls are ignored.
        """
        self._closed = True
        self._epoch += 1
        await self._release_device()
        self._chunks = []
        self.audio = None
        self._captured.clear()
        if self.status is not RecordingStatus.IDLE:
            self._set_status(RecordingStatus.IDLE)

    async def _release_device(self) -> None:
        if not self._device_held:
            return
        try:
            await self._device.close()
        except OSError as e:
            logger.warning(f"Error releasing microphone: {e}")
        finally:
            self._device_held = False

    async def __aenter__(self) -> "RecordingStateMachine":
        self._closed = False
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
