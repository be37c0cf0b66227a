"""Sequential emotion preset sweep against one provider and voice.

Each preset is synthesized once with a fixed test phrase. Results are recorded per preset,
successful audio is saved below the artifact root and a plain text report can be
exported at any time.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Final

from models.emotion_test_models import BatchTestRun, EmotionTestResult
from models.voice_models import EmotionPreset, Provider, SynthesisRequest, VoiceControls
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable, Iterable

    from core.tts.credentials import CredentialStore
    from core.tts.file_manager import ArtifactStore
    from core.tts.interface import SynthesisResult
    from core.tts.synthesis_manager import SynthesisManager
    from models.config_models import Config
    from models.voice_models import EmotionSettings, Voice


__all__: list[str] = ["TEST_PHRASE", "EmotionTester"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

TEST_PHRASE: Final[str] = "This is a test of the {emotion} voice emotion. The quick brown fox jumps over the lazy dog."
REPORT_TITLE: Final[str] = "Emotion Test Results"


class EmotionTester:
    """Runs every emotion preset through the synthesis manager, one at a time.

    Only one run is active at a time. A stop request takes effect once the in-flight
    synthesis call returns, or immediately while waiting between presets.

    Attributes:
        current_run (BatchTestRun | None): Most recent run, kept after it ends.
        error_message (str | None): Why the last run could not start.
    """

    def __init__(
        self,
        synthesis_manager: SynthesisManager,
        credentials: CredentialStore,
        artifact_store: ArtifactStore,
        *,
        output_dir: str = "EmotionTests",
        pacing_delay: float = 0.5,
        presets: Iterable[EmotionPreset] | None = None,
    ) -> None:
        self.synthesis_manager: SynthesisManager = synthesis_manager
        self.credentials: CredentialStore = credentials
        self.artifact_store: ArtifactStore = artifact_store
        self.output_dir: str = output_dir
        self.pacing_delay: float = max(0.0, pacing_delay)
        self.presets: list[EmotionPreset] = list(presets) if presets else list(EmotionPreset)
        self.current_run: BatchTestRun | None = None
        self.error_message: str | None = None
        self._running: bool = False
        self._stop_event: asyncio.Event | None = None
        self._listeners: list[Callable[[BatchTestRun | None], None]] = []

    @classmethod
    def from_config(
        cls,
        config: Config,
        synthesis_manager: SynthesisManager,
        credentials: CredentialStore,
        artifact_store: ArtifactStore,
    ) -> EmotionTester:
        presets: list[EmotionPreset] = [EmotionPreset.from_name(name) for name in config.EMOTION_TEST.PRESETS]
        return cls(
            synthesis_manager,
            credentials,
            artifact_store,
            output_dir=config.EMOTION_TEST.OUTPUT_DIR,
            pacing_delay=config.EMOTION_TEST.PACING_DELAY,
            presets=presets,
        )

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def results(self) -> list[EmotionTestResult]:
        return list(self.current_run.results) if self.current_run else []

    @property
    def log(self) -> list[str]:
        return list(self.current_run.log) if self.current_run else []

    @property
    def progress(self) -> float:
        return self.current_run.progress if self.current_run else 0.0

    @property
    def artifact_directory(self) -> Path:
        return self.artifact_store.root / self.output_dir

    def subscribe(self, listener: Callable[[BatchTestRun | None], None]) -> Callable[[], None]:
        """Register ``listener`` for run updates. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self.current_run)
            except Exception as err:  # noqa: BLE001
                logger.error("Emotion test listener %r failed: %s", listener, err)

    def _log(self, message: str) -> None:
        logger.info(message)
        if self.current_run is not None:
            self.current_run.log.append(f"[{datetime.now():%H:%M:%S}] {message}")

    async def run(self, provider: Provider, voice: Voice) -> BatchTestRun | None:
        """Test every preset against ``provider`` and ``voice``.

        Returns the active run untouched if one is already in progress, and None if the
        provider has no API key.
        """
        if self._running:
            logger.warning("Emotion test already running")
            return self.current_run

        if not self.credentials.has_key(provider):
            self.error_message = f"{provider.display_name} API key is required for testing"
            logger.error(self.error_message)
            self._publish()
            return None

        self._running = True
        stop_event: asyncio.Event = asyncio.Event()
        self._stop_event = stop_event
        self.error_message = None
        run = BatchTestRun(provider=provider, voice=voice, presets=list(self.presets), started_at=datetime.now())
        self.current_run = run

        self._log(f"Starting emotion tests for {provider.display_name} with voice: {voice.name}")
        self._log(f"Test phrase: {TEST_PHRASE}")
        total: int = len(run.presets)
        try:
            for index, preset in enumerate(run.presets):
                if stop_event.is_set():
                    break
                run.current_index = index
                run.current_preset = preset
                run.progress = index / total
                self._log(f"Testing emotion: {preset.display_name}")
                if provider is Provider.ELEVENLABS:
                    settings: EmotionSettings = preset.settings
                    self._log(
                        f"ElevenLabs parameters - Stability: {settings.stability}, "
                        f"Similarity Boost: {settings.similarity_boost}, Style: {settings.style}, "
                        f"Speaker Boost: {settings.use_speaker_boost}"
                    )
                self._publish()

                result: EmotionTestResult = await self._test_preset(run, preset)
                run.results.append(result)
                if result.success:
                    self._log(f"{preset.display_name} test completed successfully")
                else:
                    self._log(f"{preset.display_name} test failed: {result.error_message or 'Unknown error'}")
                self._publish()

                if index < total - 1:
                    await self._pace(stop_event)
            if not stop_event.is_set():
                self._complete(run)
        finally:
            run.current_preset = None
            run.finished_at = datetime.now()
            self._running = False
            self._stop_event = None
            self._publish()
        return run

    async def _pace(self, stop_event: asyncio.Event) -> None:
        """Wait between presets; returns early on stop."""
        if self.pacing_delay <= 0.0:
            return
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(stop_event.wait(), timeout=self.pacing_delay)

    async def _test_preset(self, run: BatchTestRun, preset: EmotionPreset) -> EmotionTestResult:
        request = SynthesisRequest(
            text=TEST_PHRASE.format(emotion=preset.display_name.lower()),
            voice=run.voice,
            provider=run.provider,
            controls=VoiceControls(emotion=preset),
        )
        parameters: EmotionSettings | None = preset.settings if run.provider is Provider.ELEVENLABS else None

        started: float = time.monotonic()
        try:
            result: SynthesisResult = await self.synthesis_manager.synthesize(request)
        except Exception as err:  # noqa: BLE001
            logger.exception("Unexpected error while testing %s", preset.display_name)
            return EmotionTestResult(
                preset=preset,
                success=False,
                duration=time.monotonic() - started,
                error_message=f"Unexpected error: {err}",
                parameters=parameters,
            )
        elapsed: float = time.monotonic() - started

        if result.audio is None:
            return EmotionTestResult(
                preset=preset,
                success=False,
                duration=elapsed,
                error_message=result.error_message,
                parameters=parameters,
            )
        return EmotionTestResult(
            preset=preset,
            success=True,
            duration=elapsed,
            parameters=parameters,
            artifact_path=self._save_audio(run.provider, preset, result.audio),
        )

    def _save_audio(self, provider: Provider, preset: EmotionPreset, audio: bytes) -> str | None:
        filename: str = f"{preset.value}_test_{provider.slug}.mp3"
        relative_path = Path(self.output_dir, filename)
        if not self.artifact_store.write_file(relative_path, audio):
            # The synthesis itself succeeded; the result stays successful
            self._log(f"Failed to save audio file for {preset.display_name}: {self.artifact_store.last_error}")
            return None
        self._log(f"Saved audio file: {filename}")
        return str(self.artifact_store.root / relative_path)

    def _complete(self, run: BatchTestRun) -> None:
        run.progress = 1.0
        self._log(f"Testing completed! {run.success_count}/{len(run.results)} emotions tested successfully")
        if run.failed_presets:
            self._log(f"Failed emotions: {', '.join(preset.display_name for preset in run.failed_presets)}")
        self._log(f"Audio files saved to: {self.artifact_directory}")

    def stop(self) -> None:
        """Request the active run to stop. Results collected so far are kept."""
        if not self._running or self._stop_event is None:
            return
        self._stop_event.set()
        if self.current_run is not None:
            self.current_run.stopped = True
            self.current_run.current_preset = None
        self._log("Tests stopped by user")
        self._publish()

    def clear_results(self) -> None:
        """Forget the last run. Ignored while a run is active."""
        if self._running:
            logger.warning("Cannot clear results while tests are running")
            return
        self.current_run = None
        self.error_message = None
        self._publish()

    def export_report(self) -> str:
        """Plain text summary of the collected results."""
        results: list[EmotionTestResult] = self.results
        completed_at: datetime = (
            self.current_run.finished_at if self.current_run and self.current_run.finished_at else datetime.now()
        )
        lines: list[str] = [
            REPORT_TITLE,
            "=" * len(REPORT_TITLE),
            "",
            f"Test completed at: {completed_at:%A, %B %d, %Y %H:%M:%S}",
            f"Total emotions tested: {len(results)}",
            f"Successful tests: {sum(1 for result in results if result.success)}",
            "",
        ]
        for result in results:
            lines.append(f"Emotion: {result.preset.display_name}")
            lines.append(f"Status: {'Success' if result.success else 'Failed'}")
            lines.append(f"Duration: {result.duration:.2f}s")
            if result.parameters is not None:
                lines.append(f"Parameters: {result.parameters}")
            if result.error_message:
                lines.append(f"Error: {result.error_message}")
            lines.append("")
        return "\n".join(lines)

    def save_report(self, relative_path: str | Path) -> bool:
        """Write :meth:`export_report` below the artifact root."""
        saved: bool = self.artifact_store.write_file(relative_path, self.export_report().encode("utf-8"))
        if saved:
            logger.info("Report saved to '%s'", self.artifact_store.root / relative_path)
        return saved
