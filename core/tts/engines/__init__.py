"""Speech synthesis provider adapters.

This package contains concrete implementations of ProviderAdapter for the supported cloud
services. Importing the package registers every adapter with the ProviderAdapter lookup
table.

Modules:
- ElevenLabs: ElevenLabs text-to-speech with emotion voice settings and a fetched catalog.
- GoogleText2Speech: Google generative-language audio output.
- OpenAIText2Speech: OpenAI speech endpoint.
"""

from core.tts.engines.elevenlabs import ElevenLabs
from core.tts.engines.google_tts import GoogleText2Speech
from core.tts.engines.openai_tts import OpenAIText2Speech

__all__: list[str] = [
    "ElevenLabs",
    "GoogleText2Speech",
    "OpenAIText2Speech",
]
