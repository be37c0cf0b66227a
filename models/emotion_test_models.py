"""Data models for emotion preset test runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from models.voice_models import EmotionPreset

if TYPE_CHECKING:
    from datetime import datetime

    from models.voice_models import EmotionSettings, Provider, Voice

__all__: list[str] = ["BatchTestRun", "EmotionTestResult"]


@dataclass(frozen=True)
class EmotionTestResult:
    """Outcome of synthesizing the test phrase for one preset.

    Attributes:
        preset (EmotionPreset): Preset under test.
        success (bool): Whether synthesis returned audio.
        duration (float): Elapsed wall-clock seconds of the synthesis call.
        error_message (str | None): Failure description.
        parameters (EmotionSettings | None): Settings sent, for providers that consume them.
        artifact_path (str | None): Where the audio was saved, if it was.
    """

    preset: EmotionPreset
    success: bool
    duration: float
    error_message: str | None = None
    parameters: EmotionSettings | None = None
    artifact_path: str | None = None


@dataclass
class BatchTestRun:
    """State of one sequential sweep over the emotion presets."""

    provider: Provider
    voice: Voice
    presets: list[EmotionPreset] = field(default_factory=lambda: list(EmotionPreset))
    current_index: int = 0
    current_preset: EmotionPreset | None = None
    progress: float = 0.0
    results: list[EmotionTestResult] = field(default_factory=list)
    log: list[str] = field(default_factory=list)
    started_at: datetime | None = None
    finished_at: datetime | None = None
    stopped: bool = False

    @property
    def success_count(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def failed_presets(self) -> list[EmotionPreset]:
        return [result.preset for result in self.results if not result.success]
