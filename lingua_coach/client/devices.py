"""
Microphone and speaker backends for the terminal client, using sounddevice.

PortAudio runs its callbacks on its own thread; chunks and playback
completion are handed back to the event loop with call_soon_threadsafe.
"""

import asyncio
import io
from typing import Callable, Optional

import numpy as np
import sounddevice as sd
from loguru import logger
from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError

from lingua_coach.client.conversation import AudioPlayer
from lingua_coach.client.recorder import AudioInputDevice, ChunkCallback
from lingua_coach.errors import DeviceAccessDeniedError


class SoundDeviceInput(AudioInputDevice):
    """Captures 16-bit mono PCM from the default (or a chosen) input device."""

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        block_ms: int = 100,
        device: Optional[int] = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.blocksize = int(sample_rate * block_ms / 1000)
        self.device = device
        self.mime_type = f"audio/L16;rate={sample_rate};channels={channels}"
        self._stream: Optional[sd.RawInputStream] = None

    async def open(self, on_chunk: ChunkCallback) -> None:
        loop = asyncio.get_running_loop()

        def callback(indata, frames, time_info, status) -> None:
            if status:
                logger.debug(f"Input stream status: {status}")
            loop.call_soon_threadsafe(on_chunk, bytes(indata))

        try:
            stream = sd.RawInputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="int16",
                blocksize=self.blocksize,
                device=self.device,
                callback=callback,
            )
        except (sd.PortAudioError, ValueError) as e:
            raise DeviceAccessDeniedError(detail=str(e)) from e

        try:
            stream.start()
        except sd.PortAudioError as e:
            stream.close()
            raise DeviceAccessDeniedError(detail=str(e)) from e

        self._stream = stream
        logger.debug(f"Microphone opened at {self.sample_rate} Hz")

    async def close(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return

        loop = asyncio.get_running_loop()
        try:
            # stop() blocks until pending buffers have been delivered
            await loop.run_in_executor(None, stream.stop)
        finally:
            stream.close()
        logger.debug("Microphone released")


class SoundDevicePlayer(AudioPlayer):
    """
    Plays encoded reply audio (MP3) through the default output device.

    Decoding runs in the default executor since pydub shells out to ffmpeg.
    A reply that cannot be decoded or played is logged and reported as ended.
    """

    def __init__(self, audio_format: str = "mp3") -> None:
        self.audio_format = audio_format
        self._task: Optional[asyncio.Task] = None
        self._timer: Optional[asyncio.TimerHandle] = None

    def play(self, data: bytes, on_ended: Callable[[], None]) -> None:
        self.stop()
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._play(data, on_ended))

    def _decode(self, data: bytes) -> AudioSegment:
        return AudioSegment.from_file(io.BytesIO(data), format=self.audio_format)

    async def _play(self, data: bytes, on_ended: Callable[[], None]) -> None:
        loop = asyncio.get_running_loop()
        try:
            segment = await loop.run_in_executor(None, self._decode, data)
            samples = np.array(segment.get_array_of_samples())
            if segment.channels > 1:
                samples = samples.reshape((-1, segment.channels))
            sd.play(samples, segment.frame_rate)
        except (CouldntDecodeError, sd.PortAudioError, OSError) as e:
            logger.warning(f"Could not play reply audio: {e}")
            self._task = None
            on_ended()
            return

        self._task = None
        self._timer = loop.call_later(segment.duration_seconds, self._finished, on_ended)

    def _finished(self, on_ended: Callable[[], None]) -> None:
        self._timer = None
        on_ended()

    def stop(self) -> None:
        active = False
        if self._task is not None:
            self._task.cancel()
            self._task = None
            active = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            active = True
        if active:
            sd.stop()
