"""Configuration data models.

Each dataclass corresponds to one section of the INI file. Field default types drive the
type coercion performed by the loader, so every field must have a default of the
intended type.
"""

from __future__ import annotations

from dataclasses import dataclass, field

__all__: list[str] = [
    "Config",
    "ProviderEngine",
]


@dataclass
class General:
    DEBUG: bool = False
    VERSION: str = ""
    SCRIPT_NAME: str = ""
    LOG_FILE: str = ""
    DOCUMENTS_DIR: str = ""


@dataclass
class Http:
    TIMEOUT: float = 30.0


@dataclass
class ApiKeys:
    ELEVENLABS: str = ""
    OPENAI: str = ""
    GOOGLE: str = ""


@dataclass
class ProviderEngine:
    MODEL: str = ""


@dataclass
class Playback:
    VOLUME: float = 1.0
    RATE: float = 1.0
    PROGRESS_INTERVAL: float = 0.1


@dataclass
class EmotionTest:
    OUTPUT_DIR: str = "EmotionTests"
    PACING_DELAY: float = 0.5
    PRESETS: list[str] = field(default_factory=list)


@dataclass
class Config:
    GENERAL: General = field(default_factory=General)
    HTTP: Http = field(default_factory=Http)
    API_KEYS: ApiKeys = field(default_factory=ApiKeys)
    ELEVENLABS: ProviderEngine = field(default_factory=lambda: ProviderEngine(MODEL="eleven_monolingual_v1"))
    OPENAI: ProviderEngine = field(default_factory=lambda: ProviderEngine(MODEL="tts-1"))
    GOOGLE: ProviderEngine = field(default_factory=lambda: ProviderEngine(MODEL="gemini-exp-1121"))
    PLAYBACK: Playback = field(default_factory=Playback)
    EMOTION_TEST: EmotionTest = field(default_factory=EmotionTest)
