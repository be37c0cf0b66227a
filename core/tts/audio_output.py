"""PortAudio output for synthesized audio held in memory.

Encoded audio (MP3 from every supported provider) is decoded once with soundfile into a
float32 frame buffer. Playback streams that buffer through a PyAudio callback stream;
volume is applied as a gain and the rate by stepping through the buffer faster or slower.
"""

from __future__ import annotations

import asyncio
import threading
from io import BytesIO
from typing import TYPE_CHECKING, Any, Final, Protocol

import numpy as np
import pyaudio
import soundfile

from models.voice_models import PLAYBACK_RATE_RANGE, VOLUME_RANGE, clamp
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable


__all__: list[str] = ["AudioDecodeError", "AudioPlayer", "PyAudioOutput"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

# Seconds of audio requested per callback
BUFFER_SECONDS: Final[float] = 0.1
MIN_FRAMES_PER_BUFFER: Final[int] = 1024


class AudioDecodeError(Exception):
    """The audio bytes could not be decoded."""


class AudioPlayer(Protocol):
    """Operations the playback manager needs from a player."""

    @property
    def duration(self) -> float: ...

    @property
    def current_time(self) -> float: ...

    @current_time.setter
    def current_time(self, seconds: float) -> None: ...

    @property
    def volume(self) -> float: ...

    @volume.setter
    def volume(self, level: float) -> None: ...

    @property
    def rate(self) -> float: ...

    @rate.setter
    def rate(self, multiplier: float) -> None: ...

    @property
    def is_playing(self) -> bool: ...

    def play(self) -> bool: ...

    def pause(self) -> None: ...

    def stop(self) -> None: ...

    def close(self) -> None: ...


def decode_audio(data: bytes) -> tuple[np.ndarray, int]:
    """Decode encoded audio into a (frames, channels) float32 array.

    Raises:
        AudioDecodeError: If the bytes are empty, undecodable or contain no frames.
    """
    if not data:
        msg = "No audio data"
        raise AudioDecodeError(msg)
    try:
        frames, samplerate = soundfile.read(BytesIO(data), dtype="float32", always_2d=True)
    except (soundfile.SoundFileError, RuntimeError, TypeError, ValueError) as err:
        raise AudioDecodeError(str(err)) from err
    if frames.shape[0] == 0 or samplerate <= 0:
        msg = "Audio contains no frames"
        raise AudioDecodeError(msg)
    return frames, int(samplerate)


class PyAudioOutput:
    """Plays a decoded buffer through a PyAudio callback stream.

    The PortAudio callback runs on its own thread. It only reads the frame buffer and the
    playback position (guarded by a lock) and reports completion or failure back to the
    event loop with ``call_soon_threadsafe``.

    Must be created from within the running event loop unless ``loop`` is given.
    """

    def __init__(
        self,
        data: bytes,
        *,
        pa: pyaudio.PyAudio,
        loop: asyncio.AbstractEventLoop | None = None,
        on_finished: Callable[[], Any] | None = None,
        on_error: Callable[[str], Any] | None = None,
    ) -> None:
        """Decode ``data`` and prepare playback.

        Args:
            data (bytes): Encoded audio.
            pa (pyaudio.PyAudio): PortAudio instance that opens the stream.
            loop (asyncio.AbstractEventLoop | None): Loop receiving completion callbacks.
            on_finished (Callable[[], Any] | None): Called on the loop when the buffer is exhausted.
            on_error (Callable[[str], Any] | None): Called on the loop with a message if streaming fails.

        Raises:
            AudioDecodeError: If ``data`` cannot be decoded.
        """
        self._frames, self.samplerate = decode_audio(data)
        self.channels: int = int(self._frames.shape[1])
        self._pa: pyaudio.PyAudio = pa
        self._loop: asyncio.AbstractEventLoop = loop if loop is not None else asyncio.get_running_loop()
        self._on_finished: Callable[[], Any] | None = on_finished
        self._on_error: Callable[[str], Any] | None = on_error
        self._lock: threading.Lock = threading.Lock()
        # Fractional frame index; rates other than 1.0 step through the buffer unevenly
        self._position: float = 0.0
        self._volume: float = 1.0
        self._rate: float = 1.0
        self.stream: pyaudio.Stream | None = None
        logger.debug(
            "Audio properties - Channels: %s, Sampling rate: %s, Frames: %s",
            self.channels,
            self.samplerate,
            self.total_frames,
        )

    @property
    def total_frames(self) -> int:
        return int(self._frames.shape[0])

    @property
    def duration(self) -> float:
        return self.total_frames / self.samplerate

    @property
    def current_time(self) -> float:
        with self._lock:
            return min(self._position, self.total_frames) / self.samplerate

    @current_time.setter
    def current_time(self, seconds: float) -> None:
        target: float = clamp(float(seconds), 0.0, self.duration)
        with self._lock:
            self._position = min(target * self.samplerate, float(self.total_frames))

    @property
    def volume(self) -> float:
        return self._volume

    @volume.setter
    def volume(self, level: float) -> None:
        self._volume = clamp(float(level), *VOLUME_RANGE)

    @property
    def rate(self) -> float:
        return self._rate

    @rate.setter
    def rate(self, multiplier: float) -> None:
        self._rate = clamp(float(multiplier), *PLAYBACK_RATE_RANGE)

    @property
    def is_playing(self) -> bool:
        if self.stream is None:
            return False
        return self.stream.is_active()

    def _notify(self, callback: Callable[..., Any] | None, *args: Any) -> None:
        if callback is None:
            return
        try:
            self._loop.call_soon_threadsafe(callback, *args)
        except RuntimeError as err:
            # Event loop already closed
            logger.critical("Runtime error in audio callback: %s", err)

    def _stream_callback(self, in_data, frame_count, time_info, status, /) -> tuple[bytes | None, int]:
        """Fill one PortAudio buffer.

        Returns:
            tuple[bytes | None, int]: Audio data and playback status.
        """
        # The first four are position-only arguments fixed by PyAudio.
        _ = in_data
        _ = time_info
        _ = status
        try:
            with self._lock:
                total: int = self.total_frames
                steps: np.ndarray = self._position + np.arange(frame_count) * self._rate
                indices: np.ndarray = steps[steps < total].astype(np.int64)
                chunk: np.ndarray = self._frames[indices] * np.float32(self._volume)
                self._position = min(self._position + frame_count * self._rate, float(total))
        except (IndexError, ValueError, MemoryError) as err:
            self._notify(self._on_error, str(err))
            return (None, pyaudio.paAbort)

        data: bytes = chunk.astype(np.float32, copy=False).tobytes()
        # Considered complete when there is no more data to playback
        if indices.shape[0] < frame_count:
            self._notify(self._on_finished)
            return (data, pyaudio.paComplete)
        return (data, pyaudio.paContinue)

    def play(self) -> bool:
        """Start or continue streaming from the current position.

        Returns:
            bool: False if the stream could not be started.
        """
        if self.is_playing:
            return True
        with self._lock:
            if self._position >= self.total_frames:
                self._position = 0.0
        try:
            if self.stream is None:
                self.stream = self._pa.open(
                    format=pyaudio.paFloat32,
                    channels=self.channels,
                    rate=self.samplerate,
                    output=True,
                    frames_per_buffer=max(MIN_FRAMES_PER_BUFFER, int(self.samplerate * BUFFER_SECONDS)),
                    stream_callback=self._stream_callback,
                    start=False,
                )
            elif not self.stream.is_stopped():
                # A completed or aborted stream must be stopped before it can restart
                self.stream.stop_stream()
            self.stream.start_stream()
        except (OSError, ValueError, TypeError) as err:
            logger.error("Failed to start audio stream: %s", err)
            self._close_stream()
            return False
        return True

    def pause(self) -> None:
        if self.stream is None:
            return
        try:
            if not self.stream.is_stopped():
                self.stream.stop_stream()
        except OSError as err:
            logger.error("Failed to pause audio stream: %s", err)

    def stop(self) -> None:
        self._close_stream()
        with self._lock:
            self._position = 0.0

    def close(self) -> None:
        self.stop()
        self._on_finished = None
        self._on_error = None

    def _close_stream(self) -> None:
        if self.stream is None:
            return
        stream: pyaudio.Stream = self.stream
        self.stream = None
        try:
            if not stream.is_stopped():
                stream.stop_stream()
        except OSError as err:
            logger.debug("Error stopping audio stream: %s", err)
        try:
            stream.close()
        except OSError as err:
            logger.debug("Error closing audio stream: %s", err)
