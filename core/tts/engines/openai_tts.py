from __future__ import annotations

from typing import TYPE_CHECKING, Final

from core.tts.interface import JSON_HEADERS, EncodedRequest, ProviderAdapter
from models.voice_models import Provider, Voice
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from models.voice_models import SynthesisRequest


__all__: list[str] = ["OPENAI_VOICES", "OpenAIText2Speech"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

SPEECH_URL: Final[str] = "https://api.openai.com/v1/audio/speech"
OPENAI_VOICES: Final[tuple[str, ...]] = ("alloy", "echo", "fable", "onyx", "nova", "shimmer")


class OpenAIText2Speech(ProviderAdapter):
    """OpenAI speech endpoint.

    Speed outside 0.25-4.0 is clamped silently. The response body is the MP3 stream.
    """

    @staticmethod
    def fetch_provider() -> Provider:
        return Provider.OPENAI

    @staticmethod
    def default_model() -> str:
        return "tts-1"

    def encode(self, request: SynthesisRequest, api_key: str) -> EncodedRequest:
        key: str = self.require_key(api_key)
        speed: float = request.controls.clamped_speed(Provider.OPENAI)
        if speed != request.controls.speed:
            logger.debug("Speed %s clamped to %s", request.controls.speed, speed)
        body: bytes = self.dump_json(
            {
                "model": self.model,
                "input": request.text,
                "voice": request.voice.id,
                "speed": speed,
            }
        )
        return EncodedRequest(
            method="POST",
            url=SPEECH_URL,
            headers={**JSON_HEADERS, "Authorization": f"Bearer {key}"},
            body=body,
        )

    def voice_catalog(self) -> list[Voice]:
        return [Voice(id=name, name=name.capitalize(), provider=Provider.OPENAI) for name in OPENAI_VOICES]
