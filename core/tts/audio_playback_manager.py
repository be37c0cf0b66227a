from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import TYPE_CHECKING, Any

import pyaudio

from core.tts.audio_output import AudioDecodeError, PyAudioOutput
from models.voice_models import PLAYBACK_RATE_RANGE, VOLUME_RANGE, clamp
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

    from core.tts.audio_output import AudioPlayer
    from models.config_models import Config

# alias declaration
# PlayerFactory builds a player from encoded audio and the completion and error callbacks
type PlayerFactory = Callable[[bytes, Callable[[], Any], Callable[[str], Any]], AudioPlayer]

__all__: list[str] = [
    "AudioPlaybackManager",
    "PlaybackErrorKind",
    "PlaybackSnapshot",
    "PlaybackState",
    "PlayerFactory",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class PlaybackState(Enum):
    IDLE = "idle"
    LOADED = "loaded"
    PLAYING = "playing"
    PAUSED = "paused"
    FINISHED = "finished"
    ERROR = "error"


class PlaybackErrorKind(Enum):
    DECODE_AUDIO = "decode_audio"
    PLAYBACK_START_FAILED = "playback_start_failed"


@dataclass(frozen=True)
class PlaybackSnapshot:
    """Observable state of the playback session.

    Attributes:
        state (PlaybackState): Current state.
        position (float): Playback position in seconds.
        duration (float): Duration of the loaded audio in seconds, 0.0 without a session.
        volume (float): Configured volume, 0.0 to 1.0.
        rate (float): Configured playback rate multiplier.
        error_kind (PlaybackErrorKind | None): Category of the most recent failure.
        error_message (str | None): Description of the most recent failure.
    """

    state: PlaybackState
    position: float
    duration: float
    volume: float
    rate: float
    error_kind: PlaybackErrorKind | None = None
    error_message: str | None = None


class AudioPlaybackManager:
    """Single-session playback state machine.

    States move ``IDLE -> LOADED -> PLAYING <-> PAUSED``; ``stop()`` returns to ``IDLE``
    from any state. Natural completion passes through ``FINISHED`` and decode failures
    through ``ERROR`` before the session is torn down. Loading new audio replaces the
    current session. No operation raises; failures are reported through the snapshot.

    All methods must be called from the event loop thread. Player events that originate
    on the PortAudio thread are delivered back to the loop before they reach this class.
    """

    def __init__(self, config: Config | None = None, *, player_factory: PlayerFactory | None = None) -> None:
        """Initializes the AudioPlaybackManager.

        Args:
            config (Config | None): Configuration object; supplies the initial volume, rate
                and the progress sampling interval.
            player_factory (PlayerFactory | None): Builds players. Defaults to PortAudio output.
        """
        playback = config.PLAYBACK if config is not None else None
        self.volume: float = clamp(playback.VOLUME, *VOLUME_RANGE) if playback else 1.0
        self.rate: float = clamp(playback.RATE, *PLAYBACK_RATE_RANGE) if playback else 1.0
        self.progress_interval: float = playback.PROGRESS_INTERVAL if playback else 0.1
        self.state: PlaybackState = PlaybackState.IDLE
        self.position: float = 0.0
        self.duration: float = 0.0
        self.error_kind: PlaybackErrorKind | None = None
        self.error_message: str | None = None
        self._player_factory: PlayerFactory = player_factory or self._create_pyaudio_output
        self._player: AudioPlayer | None = None
        # Incremented on every teardown so that late events from a replaced player are ignored
        self._session_id: int = 0
        self._progress_task: asyncio.Task[None] | None = None
        self._listeners: list[Callable[[PlaybackSnapshot], None]] = []
        self._pyaudio: pyaudio.PyAudio | None = None

    @property
    def pyaudio(self) -> pyaudio.PyAudio:
        """Gets the PyAudio instance, creating it if necessary."""
        if self._pyaudio is None:
            self._pyaudio = pyaudio.PyAudio()
            logger.info("PyAudio instance created")
        return self._pyaudio

    def release_pyaudio(self) -> None:
        """Releases the PyAudio resources."""
        if self._pyaudio is not None:
            self._pyaudio.terminate()
            self._pyaudio = None
            logger.info("PyAudio instance released")

    def _create_pyaudio_output(
        self,
        data: bytes,
        on_finished: Callable[[], Any],
        on_error: Callable[[str], Any],
    ) -> AudioPlayer:
        return PyAudioOutput(data, pa=self.pyaudio, on_finished=on_finished, on_error=on_error)

    @property
    def has_session(self) -> bool:
        return self._player is not None

    def snapshot(self) -> PlaybackSnapshot:
        return PlaybackSnapshot(
            state=self.state,
            position=self.position,
            duration=self.duration,
            volume=self.volume,
            rate=self.rate,
            error_kind=self.error_kind,
            error_message=self.error_message,
        )

    def subscribe(self, listener: Callable[[PlaybackSnapshot], None]) -> Callable[[], None]:
        """Register ``listener`` for state and progress updates. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self) -> None:
        snapshot: PlaybackSnapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as err:  # noqa: BLE001
                logger.error("Playback listener %r failed: %s", listener, err)

    def _set_error(self, kind: PlaybackErrorKind, message: str) -> None:
        self.state = PlaybackState.ERROR
        self.error_kind = kind
        self.error_message = message
        logger.error(message)
        self._publish()

    def _clear_error(self) -> None:
        self.error_kind = None
        self.error_message = None

    def load(self, data: bytes) -> bool:
        """Replace the session with ``data`` and start playing it.

        Returns:
            bool: True if playback started.
        """
        self.stop()
        self._clear_error()
        session_id: int = self._session_id
        try:
            player: AudioPlayer = self._player_factory(
                data,
                partial(self._handle_finished, session_id),
                partial(self._handle_error, session_id),
            )
        except AudioDecodeError as err:
            self._set_error(PlaybackErrorKind.DECODE_AUDIO, f"Failed to create audio player: {err}")
            return False

        player.volume = self.volume
        player.rate = self.rate
        self._player = player
        self.duration = player.duration
        self.position = 0.0
        self.state = PlaybackState.LOADED
        logger.info("Audio loaded, duration: %.2fs", self.duration)
        self._publish()
        return self._start()

    def _start(self) -> bool:
        if self._player is None:
            return False
        if not self._player.play():
            self._stop_progress_task()
            self._set_error(PlaybackErrorKind.PLAYBACK_START_FAILED, "Failed to start audio playback")
            return False
        self._clear_error()
        self.state = PlaybackState.PLAYING
        self._start_progress_task()
        self._publish()
        return True

    def play(self) -> bool:
        """Start playback of the loaded session.

        Acts like :meth:`resume` and also retries a session whose start failed.
        """
        if self._player is None:
            return False
        if self.state is PlaybackState.PLAYING:
            return True
        if self.state in (PlaybackState.LOADED, PlaybackState.PAUSED, PlaybackState.ERROR):
            return self._start()
        return False

    def pause(self) -> None:
        if self.state is not PlaybackState.PLAYING or self._player is None:
            return
        self._player.pause()
        self._stop_progress_task()
        self.position = self._player.current_time
        self.state = PlaybackState.PAUSED
        logger.debug("Playback paused at %.2fs", self.position)
        self._publish()

    def resume(self) -> None:
        if self.state is not PlaybackState.PAUSED:
            return
        self._start()

    def stop(self) -> None:
        """Tear down the session. Valid from every state; the last error stays readable."""
        self._stop_progress_task()
        if self._player is not None:
            player: AudioPlayer = self._player
            self._player = None
            player.stop()
            player.close()
            logger.debug("Playback session closed")
        self._session_id += 1
        changed: bool = self.state is not PlaybackState.IDLE or self.position != 0.0 or self.duration != 0.0
        self.state = PlaybackState.IDLE
        self.position = 0.0
        self.duration = 0.0
        if changed:
            self._publish()

    def seek(self, seconds: float) -> None:
        """Move the playback position; clamped to the audio duration."""
        if self._player is None:
            return
        self._player.current_time = seconds
        self.position = self._player.current_time
        self._publish()

    def set_rate(self, multiplier: float) -> None:
        """Store the playback rate and apply it to the current session."""
        self.rate = clamp(float(multiplier), *PLAYBACK_RATE_RANGE)
        if self._player is not None:
            self._player.rate = self.rate
            if self.state is PlaybackState.PLAYING and not self._player.is_playing:
                logger.debug("Player stalled after rate change, restarting playback")
                self._start()
                return
        self._publish()

    def set_volume(self, level: float) -> None:
        """Store the volume and apply it to the current session."""
        self.volume = clamp(float(level), *VOLUME_RANGE)
        if self._player is not None:
            self._player.volume = self.volume
        self._publish()

    def tick(self) -> PlaybackSnapshot:
        """Sample the playback position once and notify listeners while playing."""
        if self.state is PlaybackState.PLAYING and self._player is not None:
            self.position = self._player.current_time
            self._publish()
        return self.snapshot()

    def _start_progress_task(self) -> None:
        if self._progress_task is not None and not self._progress_task.done():
            return
        try:
            loop: asyncio.AbstractEventLoop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop; callers poll with tick()
            return
        self._progress_task = loop.create_task(self._progress_loop())

    def _stop_progress_task(self) -> None:
        if self._progress_task is not None and not self._progress_task.done():
            self._progress_task.cancel()
        self._progress_task = None

    async def _progress_loop(self) -> None:
        try:
            while self.state is PlaybackState.PLAYING:
                await asyncio.sleep(self.progress_interval)
                self.tick()
        except asyncio.CancelledError:
            logger.debug("Progress task cancelled")
            raise

    def _handle_finished(self, session_id: int) -> None:
        if session_id != self._session_id or self._player is None:
            return
        logger.info("Playback completed")
        self._stop_progress_task()
        self.state = PlaybackState.FINISHED
        self.position = 0.0
        self._publish()
        self.stop()

    def _handle_error(self, session_id: int, message: str) -> None:
        if session_id != self._session_id or self._player is None:
            return
        self._stop_progress_task()
        self._set_error(PlaybackErrorKind.DECODE_AUDIO, f"Audio decode error: {message}")
        self.stop()

    async def wait_until_idle(self, poll_interval: float = 0.05) -> None:
        """Wait until the current session has ended."""
        while self.state is not PlaybackState.IDLE:
            await asyncio.sleep(poll_interval)

    def close(self) -> None:
        """Stop playback and release PortAudio."""
        self.stop()
        self.release_pyaudio()
