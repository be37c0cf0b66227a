"""Data models for speech synthesis requests.

This module defines:
- Provider: Supported speech synthesis vendors.
- Voice: A provider-scoped synthetic speaker.
- EmotionPreset / EmotionSettings: Named bundles of voice-shaping parameters.
- VoiceControls: User adjustable synthesis controls.
- SynthesisRequest: Input of one synthesis call.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Final

__all__: list[str] = [
    "EMOTION_SETTINGS",
    "PITCH_RANGE",
    "PLAYBACK_RATE_RANGE",
    "SPEED_RANGES",
    "VOLUME_RANGE",
    "EmotionPreset",
    "EmotionSettings",
    "Provider",
    "SynthesisRequest",
    "Voice",
    "VoiceControls",
    "clamp",
]


def clamp(value: float, lower: float, upper: float) -> float:
    """Clamp ``value`` into ``[lower, upper]``."""
    return max(lower, min(upper, value))


class Provider(Enum):
    """Speech synthesis vendors. The value is the display name."""

    ELEVENLABS = "ElevenLabs"
    OPENAI = "OpenAI"
    GOOGLE = "Google"

    @property
    def display_name(self) -> str:
        return self.value

    @property
    def slug(self) -> str:
        """Lowercase identifier used in file names and configuration keys."""
        return self.value.lower()

    @classmethod
    def from_name(cls, name: str) -> Provider:
        """Look up a provider by display name or slug, case-insensitively.

        Raises:
            ValueError: If no provider matches.
        """
        for provider in cls:
            if name.strip().lower() in (provider.slug, provider.name.lower()):
                return provider
        msg: str = f"Unknown provider: '{name}'"
        raise ValueError(msg)


# Accepted synthesis speed per provider
SPEED_RANGES: Final[dict[Provider, tuple[float, float]]] = {
    Provider.OPENAI: (0.25, 4.0),
    Provider.ELEVENLABS: (0.5, 2.0),
    Provider.GOOGLE: (0.5, 2.0),
}
PITCH_RANGE: Final[tuple[float, float]] = (0.5, 2.0)
PLAYBACK_RATE_RANGE: Final[tuple[float, float]] = (0.5, 2.0)
VOLUME_RANGE: Final[tuple[float, float]] = (0.0, 1.0)


@dataclass(frozen=True)
class Voice:
    """A synthetic speaker.

    ``id`` is only unique within its provider, so equality covers all three fields.

    Attributes:
        id (str): Provider specific voice identifier.
        name (str): Human readable name.
        provider (Provider): Owning provider.
    """

    id: str
    name: str
    provider: Provider

    def __str__(self) -> str:
        return f"{self.name} ({self.provider.display_name}:{self.id})"


@dataclass(frozen=True)
class EmotionSettings:
    """Voice settings an emotion preset maps to.

    Only ElevenLabs consumes these values; other providers ignore them.
    """

    stability: float
    similarity_boost: float
    style: float
    use_speaker_boost: bool

    def to_payload(self) -> dict[str, float | bool]:
        """ElevenLabs ``voice_settings`` object."""
        return {
            "stability": self.stability,
            "similarity_boost": self.similarity_boost,
            "style": self.style,
            "use_speaker_boost": self.use_speaker_boost,
        }

    def is_valid(self) -> bool:
        return all(0.0 <= value <= 1.0 for value in (self.stability, self.similarity_boost, self.style))

    def __str__(self) -> str:
        return (
            f"Stability={self.stability}, SimilarityBoost={self.similarity_boost}, "
            f"Style={self.style}, SpeakerBoost={self.use_speaker_boost}"
        )


class EmotionPreset(Enum):
    """Emotion presets in their test order."""

    NEUTRAL = "neutral"
    HAPPY = "happy"
    SAD = "sad"
    EXCITED = "excited"
    CALM = "calm"
    ANGRY = "angry"
    WHISPER = "whisper"
    DRAMATIC = "dramatic"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @property
    def settings(self) -> EmotionSettings:
        return EMOTION_SETTINGS[self]

    def verify_parameters(self) -> bool:
        """Return True when stability, similarity boost and style all lie in [0, 1]."""
        return self.settings.is_valid()

    @classmethod
    def from_name(cls, name: str) -> EmotionPreset:
        try:
            return cls(name.strip().lower())
        except ValueError:
            msg: str = f"Unknown emotion preset: '{name}'"
            raise ValueError(msg) from None


EMOTION_SETTINGS: Final[dict[EmotionPreset, EmotionSettings]] = {
    EmotionPreset.NEUTRAL: EmotionSettings(0.5, 0.5, 0.0, use_speaker_boost=False),
    EmotionPreset.HAPPY: EmotionSettings(0.3, 0.8, 0.3, use_speaker_boost=True),
    EmotionPreset.SAD: EmotionSettings(0.8, 0.3, 0.0, use_speaker_boost=False),
    EmotionPreset.EXCITED: EmotionSettings(0.2, 0.9, 0.5, use_speaker_boost=True),
    EmotionPreset.CALM: EmotionSettings(0.9, 0.2, 0.0, use_speaker_boost=False),
    EmotionPreset.ANGRY: EmotionSettings(0.4, 0.7, 0.4, use_speaker_boost=True),
    EmotionPreset.WHISPER: EmotionSettings(0.9, 0.1, 0.0, use_speaker_boost=False),
    EmotionPreset.DRAMATIC: EmotionSettings(0.3, 0.6, 0.6, use_speaker_boost=True),
}


@dataclass
class VoiceControls:
    """User adjustable synthesis controls.

    Attributes:
        speed (float): Synthesis speed, clamped per provider when encoded.
        pitch (float): Pitch multiplier, 0.5 to 2.0. No provider consumes it yet.
        volume (float): Output volume, 0.0 to 1.0.
        emotion (EmotionPreset): Emotion preset.
    """

    speed: float = 1.0
    pitch: float = 1.0
    volume: float = 1.0
    emotion: EmotionPreset = EmotionPreset.NEUTRAL

    def __post_init__(self) -> None:
        self.pitch = clamp(self.pitch, *PITCH_RANGE)
        self.volume = clamp(self.volume, *VOLUME_RANGE)

    def clamped_speed(self, provider: Provider) -> float:
        return clamp(self.speed, *SPEED_RANGES[provider])

    def copy(self) -> VoiceControls:
        return replace(self)


@dataclass(frozen=True)
class SynthesisRequest:
    """Input of one synthesis call.

    Raises:
        ValueError: If ``text`` is empty or whitespace only.
    """

    text: str
    voice: Voice
    provider: Provider
    controls: VoiceControls = field(default_factory=VoiceControls)

    def __post_init__(self) -> None:
        if not self.text or not self.text.strip():
            msg = "Synthesis text must not be empty"
            raise ValueError(msg)
        # The caller keeps its own controls object; take a private copy
        object.__setattr__(self, "controls", self.controls.copy())

    def __str__(self) -> str:
        return (
            f"<{self.__class__.__name__} provider: {self.provider.display_name}, voice: {self.voice.id}, "
            f"emotion: {self.controls.emotion.value}, chars: {len(self.text)}>"
        )
