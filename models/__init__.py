"""Data models for the TTS application.

This package contains dataclass definitions for configuration, voices and synthesis
requests, provider API payloads and emotion test runs.
"""

from __future__ import annotations

from models.config_models import Config, ProviderEngine
from models.elevenlabs_models import ElevenLabsVoice, ElevenLabsVoicesResponse
from models.emotion_test_models import BatchTestRun, EmotionTestResult
from models.voice_models import (
    EMOTION_SETTINGS,
    EmotionPreset,
    EmotionSettings,
    Provider,
    SynthesisRequest,
    Voice,
    VoiceControls,
)

__all__: list[str] = [
    "EMOTION_SETTINGS",
    "BatchTestRun",
    "Config",
    "ElevenLabsVoice",
    "ElevenLabsVoicesResponse",
    "EmotionPreset",
    "EmotionSettings",
    "EmotionTestResult",
    "Provider",
    "ProviderEngine",
    "SynthesisRequest",
    "Voice",
    "VoiceControls",
]
