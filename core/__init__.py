"""Core components of the TTS application.

This package contains the speech synthesis and playback layer (``core.tts``) and the
emotion preset test runner.
"""

from core.emotion_tester import EmotionTester
from core.version import VERSION

__all__: list[str] = [
    "VERSION",
    "EmotionTester",
]
