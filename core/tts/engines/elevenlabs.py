from __future__ import annotations

from typing import TYPE_CHECKING, Final

from core.tts.interface import JSON_HEADERS, EncodedRequest, ProviderAdapter, TTSDecodingError
from models.elevenlabs_models import ElevenLabsVoicesResponse
from models.voice_models import Provider, Voice
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from handlers.async_comm import HttpResponse
    from models.voice_models import SynthesisRequest


__all__: list[str] = ["ElevenLabs"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

API_BASE: Final[str] = "https://api.elevenlabs.io/v1"


class ElevenLabs(ProviderAdapter):
    """ElevenLabs text-to-speech.

    The emotion preset is sent verbatim as ``voice_settings``. The response body is the MP3
    stream. Voices are listed through ``GET /v1/voices``.
    """

    @staticmethod
    def fetch_provider() -> Provider:
        return Provider.ELEVENLABS

    @staticmethod
    def default_model() -> str:
        return "eleven_monolingual_v1"

    def _headers(self, api_key: str) -> dict[str, str]:
        return {**JSON_HEADERS, "xi-api-key": api_key, "Accept": "audio/mpeg"}

    def encode(self, request: SynthesisRequest, api_key: str) -> EncodedRequest:
        key: str = self.require_key(api_key)
        url: str = self.build_url(API_BASE, "text-to-speech", request.voice.id)
        settings = request.controls.emotion.settings
        logger.debug("Emotion '%s' voice settings: %s", request.controls.emotion.value, settings)
        body: bytes = self.dump_json(
            {
                "text": request.text,
                "model_id": self.model,
                "voice_settings": settings.to_payload(),
            }
        )
        return EncodedRequest(method="POST", url=url, headers=self._headers(key), body=body)

    def catalog_request(self, api_key: str) -> EncodedRequest | None:
        key: str = self.require_key(api_key)
        return EncodedRequest(method="GET", url=self.build_url(API_BASE, "voices"), headers=self._headers(key))

    def decode_catalog(self, response: HttpResponse) -> list[Voice]:
        try:
            listing: ElevenLabsVoicesResponse = ElevenLabsVoicesResponse.from_json(response.body)
        except (ValueError, TypeError, KeyError, AttributeError) as err:
            msg: str = f"Invalid voice listing: {err}"
            raise TTSDecodingError(msg) from err
        voices: list[Voice] = [Voice(id=v.voice_id, name=v.name, provider=Provider.ELEVENLABS) for v in listing.voices]
        logger.info("Fetched %d ElevenLabs voices", len(voices))
        return voices
