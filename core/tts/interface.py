from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar, Final
from urllib.parse import quote, urlsplit

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from handlers.async_comm import AsyncCommError, HttpResponse, TransportErrorKind
    from models.config_models import ProviderEngine
    from models.voice_models import Provider, SynthesisRequest, Voice


__all__: list[str] = [
    "EncodedRequest",
    "ProviderAdapter",
    "SynthesisResult",
    "TTSDecodingError",
    "TTSEncodingError",
    "TTSExceptionError",
    "TTSInvalidURLError",
    "TTSNoAPIKeyError",
    "TTSNotSupportedError",
    "TTSTransportError",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

JSON_HEADERS: Final[dict[str, str]] = {"Content-Type": "application/json"}


class TTSExceptionError(Exception):
    """Base class for TTS exceptions.

    All failures raised by provider adapters and reported by the synthesis manager derive
    from this class, so callers can handle the whole family with a single except clause.
    """


class TTSInvalidURLError(TTSExceptionError):
    """The request URL could not be constructed."""

    def __init__(self, msg: str = "Invalid URL") -> None:
        super().__init__(msg)


class TTSEncodingError(TTSExceptionError):
    """The request body could not be constructed."""

    def __init__(self, msg: str = "Failed to encode request") -> None:
        super().__init__(msg)


class TTSDecodingError(TTSExceptionError):
    """The provider response could not be turned into audio."""

    def __init__(self, msg: str = "Failed to decode response") -> None:
        super().__init__(msg)


class TTSNoAPIKeyError(TTSExceptionError):
    """The provider credential is missing, empty or whitespace only."""

    def __init__(self, msg: str = "API key not provided") -> None:
        super().__init__(msg)


class TTSNotSupportedError(TTSExceptionError):
    """No adapter is registered for the requested provider."""


class TTSTransportError(TTSExceptionError):
    """The HTTP exchange failed.

    Attributes:
        kind (TransportErrorKind): Transport failure category.
        status (int | None): HTTP status, when the server answered with an error.
    """

    def __init__(self, err: AsyncCommError) -> None:
        self.kind: TransportErrorKind = err.kind
        self.status: int | None = err.status
        super().__init__(err.msg)


@dataclass(frozen=True)
class EncodedRequest:
    """A provider specific HTTP call ready to be sent.

    Attributes:
        method (str): HTTP method.
        url (str): Absolute URL, including any query parameters.
        headers (dict[str, str]): Request headers, credentials included.
        body (bytes | None): Request body.
    """

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | None = None

    def json_body(self) -> Any:
        """Decode the body as JSON (used for logging and tests)."""
        return json.loads(self.body.decode("utf-8")) if self.body else None

    def __repr__(self) -> str:
        # Headers and query strings carry credentials and must never reach the log
        return f"EncodedRequest(method={self.method!r}, url={self.url.split('?', 1)[0]!r})"


@dataclass(frozen=True)
class SynthesisResult:
    """Outcome of one synthesis call: audio bytes or a typed failure.

    Attributes:
        audio (bytes | None): Encoded audio (MP3 for every supported provider).
        error (TTSExceptionError | None): Failure, when no audio was produced.
    """

    audio: bytes | None = None
    error: TTSExceptionError | None = None

    def __post_init__(self) -> None:
        if (self.audio is None) == (self.error is None):
            msg = "Exactly one of 'audio' and 'error' must be set"
            raise ValueError(msg)

    @property
    def ok(self) -> bool:
        return self.audio is not None

    @property
    def error_message(self) -> str | None:
        return None if self.error is None else str(self.error)

    def __repr__(self) -> str:
        if self.audio is not None:
            return f"SynthesisResult(audio=<{len(self.audio)} bytes>)"
        return f"SynthesisResult(error={self.error!r})"


class ProviderAdapter(ABC):
    """Base class for provider adapters.

    An adapter translates a :class:`SynthesisRequest` into the provider's HTTP call and the
    provider's response back into audio bytes. It performs no I/O itself; the synthesis
    manager owns the transport. Subclasses register themselves on definition, keyed by the
    provider they serve.

    Attributes:
        _registered_adapters (dict[Provider, type[ProviderAdapter]]): Adapter lookup table.
        model (str): Provider model identifier sent with requests.
    """

    _registered_adapters: ClassVar[dict[Provider, type[ProviderAdapter]]] = {}

    def __init__(self, engine_config: ProviderEngine | None = None) -> None:
        self.model: str = self.default_model()
        if engine_config is not None and engine_config.MODEL.strip():
            self.model = engine_config.MODEL.strip()
        logger.debug("%s initialised with model '%s'", self.__class__.__name__, self.model)

    @classmethod
    def get_registered(cls) -> dict[Provider, type[ProviderAdapter]]:
        return cls._registered_adapters

    @classmethod
    def register_adapter(cls, adapter_cls: type[ProviderAdapter]) -> None:
        if not issubclass(adapter_cls, cls):
            msg = "Must be a subclass of ProviderAdapter"
            raise TypeError(msg)
        provider: Provider = adapter_cls.fetch_provider()
        cls._registered_adapters[provider] = adapter_cls
        logger.debug("Registered adapter: %s", provider.display_name)

    @classmethod
    def get_adapter(cls, provider: Provider) -> type[ProviderAdapter]:
        """Retrieve the adapter class registered for ``provider``.

        Raises:
            TTSNotSupportedError: If no adapter is registered.
        """
        try:
            return cls._registered_adapters[provider]
        except KeyError:
            msg: str = f"No adapter registered for provider: {provider}"
            raise TTSNotSupportedError(msg) from None

    def __init_subclass__(cls, **kwargs) -> None:
        super().__init_subclass__(**kwargs)
        cls.register_adapter(cls)

    @staticmethod
    @abstractmethod
    def fetch_provider() -> Provider:
        """Provider served by this adapter."""
        raise NotImplementedError

    @staticmethod
    @abstractmethod
    def default_model() -> str:
        raise NotImplementedError

    @abstractmethod
    def encode(self, request: SynthesisRequest, api_key: str) -> EncodedRequest:
        """Build the provider HTTP call for ``request``.

        Implementations must call :meth:`require_key` before anything else.

        Raises:
            TTSNoAPIKeyError: If ``api_key`` is empty or whitespace only.
            TTSInvalidURLError: If the URL cannot be constructed.
            TTSEncodingError: If the body cannot be constructed.
        """
        raise NotImplementedError

    def decode(self, response: HttpResponse) -> bytes:
        """Extract audio bytes from a successful response.

        The default treats the body itself as the audio.

        Raises:
            TTSDecodingError: If the response carries no audio.
        """
        if not response.body:
            msg = "Provider returned an empty response"
            raise TTSDecodingError(msg)
        return response.body

    def voice_catalog(self) -> list[Voice]:
        """Compiled-in voices. Empty for providers whose catalog is fetched."""
        return []

    def catalog_request(self, api_key: str) -> EncodedRequest | None:
        """HTTP call listing the provider's voices, or None when the catalog is static."""
        _ = api_key
        return None

    def decode_catalog(self, response: HttpResponse) -> list[Voice]:
        """Turn the catalog response into voices.

        Raises:
            TTSDecodingError: If the listing cannot be parsed.
        """
        _ = response
        msg: str = f"{self.fetch_provider().display_name} has no networked voice catalog"
        raise TTSNotSupportedError(msg)

    @property
    def has_networked_catalog(self) -> bool:
        return type(self).catalog_request is not ProviderAdapter.catalog_request

    @staticmethod
    def require_key(api_key: str | None) -> str:
        """Return the stripped key.

        Raises:
            TTSNoAPIKeyError: If the key is missing, empty or whitespace only.
        """
        if api_key is None or not api_key.strip():
            raise TTSNoAPIKeyError
        return api_key.strip()

    @staticmethod
    def dump_json(payload: dict[str, Any]) -> bytes:
        """Serialize a request body.

        Raises:
            TTSEncodingError: If the payload is not JSON serializable.
        """
        try:
            return json.dumps(payload, ensure_ascii=False, allow_nan=False).encode("utf-8")
        except (TypeError, ValueError) as err:
            raise TTSEncodingError from err

    @staticmethod
    def build_url(base: str, *path_segments: str, query: str = "") -> str:
        """Join quoted path segments onto ``base``.

        Raises:
            TTSInvalidURLError: If a segment is empty or the result is not an absolute http(s) URL.
        """
        if any(not segment or not segment.strip() for segment in path_segments):
            raise TTSInvalidURLError
        url: str = "/".join([base.rstrip("/"), *(quote(segment, safe="") for segment in path_segments)])
        if query:
            url = f"{url}?{query}"
        parts = urlsplit(url)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise TTSInvalidURLError
        return url
