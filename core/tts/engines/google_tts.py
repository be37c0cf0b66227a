"""Google generative-language speech adapter.

The request asks a ``generateContent`` model for ``audio/mp3`` output and the audio comes
back base64 encoded inside the JSON envelope at
``candidates[0].content.parts[0].inlineData.data``. This envelope is not a documented
speech contract; confirm it against the current provider documentation before relying on
it.
"""

from __future__ import annotations

import base64
import binascii
from typing import TYPE_CHECKING, Any, Final
from urllib.parse import urlencode

from core.tts.interface import JSON_HEADERS, EncodedRequest, ProviderAdapter, TTSDecodingError
from models.voice_models import Provider, Voice
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from handlers.async_comm import HttpResponse
    from models.voice_models import SynthesisRequest


__all__: list[str] = ["GOOGLE_VOICES", "GoogleText2Speech"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

MODELS_URL: Final[str] = "https://generativelanguage.googleapis.com/v1beta/models"
PROMPT_TEMPLATE: Final[str] = "Generate speech for the following text with voice '{voice}': {text}"

# (voice name, display name)
GOOGLE_VOICES: Final[tuple[tuple[str, str], ...]] = (
    ("en-US-Journey-D", "Journey D (US, male)"),
    ("en-US-Journey-F", "Journey F (US, female)"),
    ("en-US-Neural2-A", "Neural2 A (US, male)"),
    ("en-US-Neural2-C", "Neural2 C (US, female)"),
    ("en-US-Studio-O", "Studio O (US, female)"),
    ("en-US-Studio-Q", "Studio Q (US, male)"),
    ("en-GB-Neural2-B", "Neural2 B (UK, male)"),
    ("en-GB-Neural2-C", "Neural2 C (UK, female)"),
)


def _step(node: Any, key: str | int, path: str) -> Any:
    """Descend one level of the response envelope."""
    try:
        return node[key]
    except (KeyError, IndexError, TypeError):
        msg: str = f"Response has no '{path}'"
        raise TTSDecodingError(msg) from None


class GoogleText2Speech(ProviderAdapter):
    @staticmethod
    def fetch_provider() -> Provider:
        return Provider.GOOGLE

    @staticmethod
    def default_model() -> str:
        return "gemini-exp-1121"

    def encode(self, request: SynthesisRequest, api_key: str) -> EncodedRequest:
        key: str = self.require_key(api_key)
        url: str = f"{self.build_url(MODELS_URL, self.model)}:generateContent?{urlencode({'key': key})}"
        body: bytes = self.dump_json(
            {
                "contents": [{"parts": [{"text": PROMPT_TEMPLATE.format(voice=request.voice.id, text=request.text)}]}],
                "generationConfig": {"response_mime_type": "audio/mp3"},
            }
        )
        return EncodedRequest(method="POST", url=url, headers=dict(JSON_HEADERS), body=body)

    def decode(self, response: HttpResponse) -> bytes:
        try:
            envelope: Any = response.json()
        except (ValueError, UnicodeDecodeError) as err:
            msg = "Response is not valid JSON"
            raise TTSDecodingError(msg) from err

        candidates = _step(envelope, "candidates", "candidates")
        candidate = _step(candidates, 0, "candidates[0]")
        content = _step(candidate, "content", "candidates[0].content")
        parts = _step(content, "parts", "candidates[0].content.parts")
        part = _step(parts, 0, "candidates[0].content.parts[0]")
        inline_data = _step(part, "inlineData", "candidates[0].content.parts[0].inlineData")
        encoded = _step(inline_data, "data", "candidates[0].content.parts[0].inlineData.data")

        if not isinstance(encoded, str) or not encoded:
            msg = "Audio payload is empty or not a string"
            raise TTSDecodingError(msg)
        try:
            audio: bytes = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as err:
            msg = "Audio payload is not valid base64"
            raise TTSDecodingError(msg) from err

        logger.debug("Decoded %d bytes of audio from the response envelope", len(audio))
        return audio

    def voice_catalog(self) -> list[Voice]:
        return [Voice(id=voice_id, name=name, provider=Provider.GOOGLE) for voice_id, name in GOOGLE_VOICES]
