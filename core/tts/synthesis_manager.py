"""Synthesis Manager for the speech synthesis providers.

This module dispatches provider-agnostic synthesis requests to the registered provider
adapters, performs the HTTP exchange, and maintains the combined voice catalog.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Self

# Importing the engines package registers every adapter with ProviderAdapter.
from core.tts import engines  # noqa: F401
from core.tts.interface import (
    EncodedRequest,
    ProviderAdapter,
    SynthesisResult,
    TTSExceptionError,
    TTSNoAPIKeyError,
    TTSTransportError,
)
from handlers.async_comm import AsyncCommError, AsyncHttp
from models.voice_models import Provider
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

    from core.tts.credentials import CredentialStore
    from handlers.async_comm import HttpResponse
    from models.config_models import Config
    from models.voice_models import SynthesisRequest, Voice


__all__: list[str] = ["AdapterMap", "SynthesisManager"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

# alias declaration
# AdapterMap is a dictionary type that stores a ProviderAdapter instance with the provider as a key
AdapterMap = dict[Provider, ProviderAdapter]


class SynthesisManager:
    """Provider-agnostic entry point for speech synthesis.

    Every :meth:`synthesize` call performs one live HTTP exchange; nothing is cached or
    de-duplicated and concurrent calls are independent. The voice catalog is held as an
    immutable tuple that is replaced wholesale, so a snapshot obtained from :attr:`catalog`
    never changes under its reader.

    Attributes:
        error_message (str | None): Most recent synthesis or catalog failure, cleared when
            the next attempt starts.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        *,
        config: Config | None = None,
        http: AsyncHttp | None = None,
        adapters: AdapterMap | None = None,
    ) -> None:
        """Initialize the SynthesisManager.

        Args:
            credentials (CredentialStore): Source of provider API keys.
            config (Config | None): Configuration; supplies model names and the HTTP timeout.
            http (AsyncHttp | None): Transport. Created (and owned) when omitted.
            adapters (AdapterMap | None): Adapter instances. Built from the registry when omitted.
        """
        self.credentials: CredentialStore = credentials
        self._owns_http: bool = http is None
        timeout: float = config.HTTP.TIMEOUT if config is not None else 30.0
        self.http: AsyncHttp = http if http is not None else AsyncHttp(total_timeout=timeout)
        self.adapters: AdapterMap = adapters if adapters is not None else self._create_adapter_map(config)
        self.error_message: str | None = None
        self._loading: int = 0
        self._listeners: list[Callable[[tuple[Voice, ...]], None]] = []
        self._catalog: tuple[Voice, ...] = self._default_catalog()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        _ = exc_type, exc_val, exc_tb
        await self.close()

    async def close(self) -> None:
        if self._owns_http:
            await self.http.close()

    @staticmethod
    def _create_adapter_map(config: Config | None) -> AdapterMap:
        """Instantiate every registered adapter with its configuration section."""
        adapter_map: AdapterMap = {}
        for provider, adapter_cls in ProviderAdapter.get_registered().items():
            engine_config = getattr(config, provider.name, None) if config is not None else None
            adapter_map[provider] = adapter_cls(engine_config)
            logger.info("Provider adapter '%s' initialized", provider.display_name)
        return adapter_map

    def _default_catalog(self) -> tuple[Voice, ...]:
        """Compiled-in voices, in provider order."""
        voices: list[Voice] = []
        for provider in Provider:
            adapter: ProviderAdapter | None = self.adapters.get(provider)
            if adapter is not None:
                voices.extend(adapter.voice_catalog())
        return tuple(voices)

    def get_adapter(self, provider: Provider) -> ProviderAdapter:
        """Adapter serving ``provider``.

        Raises:
            TTSNotSupportedError: If no adapter is available.
        """
        adapter: ProviderAdapter | None = self.adapters.get(provider)
        if adapter is None:
            # Raises TTSNotSupportedError for unknown providers
            adapter = ProviderAdapter.get_adapter(provider)()
            self.adapters[provider] = adapter
        return adapter

    @property
    def catalog(self) -> tuple[Voice, ...]:
        return self._catalog

    @property
    def is_loading(self) -> bool:
        return self._loading > 0

    def voices(self, provider: Provider | None = None) -> list[Voice]:
        """Catalog entries, optionally restricted to one provider."""
        snapshot: tuple[Voice, ...] = self._catalog
        if provider is None:
            return list(snapshot)
        return [voice for voice in snapshot if voice.provider is provider]

    def find_voice(self, provider: Provider, voice_id_or_name: str) -> Voice | None:
        """Look up a catalog voice by id, then by case-insensitive name."""
        candidates: list[Voice] = self.voices(provider)
        for voice in candidates:
            if voice.id == voice_id_or_name:
                return voice
        lowered: str = voice_id_or_name.lower()
        return next((voice for voice in candidates if voice.name.lower() == lowered), None)

    def subscribe(self, listener: Callable[[tuple[Voice, ...]], None]) -> Callable[[], None]:
        """Register ``listener`` for catalog replacements. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self) -> None:
        snapshot: tuple[Voice, ...] = self._catalog
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as err:  # noqa: BLE001
                logger.error("Catalog listener %r failed: %s", listener, err)

    async def _send(self, encoded: EncodedRequest) -> HttpResponse:
        logger.debug("Sending %r", encoded)
        try:
            return await self.http.request(
                encoded.method,  # type: ignore[arg-type]
                url=encoded.url,
                headers=encoded.headers,
                data=encoded.body,
            )
        except AsyncCommError as err:
            raise TTSTransportError(err) from err

    async def synthesize(self, request: SynthesisRequest) -> SynthesisResult:
        """Synthesize ``request`` with its provider.

        Never raises for provider or transport failures; they are returned in the result
        and recorded in :attr:`error_message`.

        Args:
            request (SynthesisRequest): What to say, with which voice and controls.
        Returns:
            SynthesisResult: Audio bytes or the typed failure.
        """
        self.error_message = None
        logger.info("Synthesizing %s", request)
        try:
            adapter: ProviderAdapter = self.get_adapter(request.provider)
            encoded: EncodedRequest = adapter.encode(request, self.credentials.get_key(request.provider))
            response: HttpResponse = await self._send(encoded)
            audio: bytes = adapter.decode(response)
        except TTSExceptionError as err:
            self.error_message = f"Speech generation failed: {err}"
            logger.error("'%s': %s", request.provider.display_name, err)
            return SynthesisResult(error=err)

        logger.info("Received %d bytes of audio from %s", len(audio), request.provider.display_name)
        return SynthesisResult(audio=audio)

    async def load_catalog(self, provider: Provider) -> list[Voice]:
        """Load the voices of ``provider``.

        Static catalogs are returned directly. A networked catalog is fetched; on success
        the provider's previous entries are replaced (other providers keep their entries
        and order) and listeners are notified. On failure the catalog is left untouched,
        :attr:`error_message` is set and the currently known voices are returned.
        Concurrent calls are not de-duplicated; the last response to arrive wins.

        Args:
            provider (Provider): Provider whose catalog to load.
        Returns:
            list[Voice]: The provider's voices after the call.
        """
        self.error_message = None
        adapter: ProviderAdapter = self.get_adapter(provider)
        if not adapter.has_networked_catalog:
            return adapter.voice_catalog()

        self._loading += 1
        try:
            encoded: EncodedRequest | None = adapter.catalog_request(self.credentials.get_key(provider))
            if encoded is None:
                return self.voices(provider)
            voices: list[Voice] = adapter.decode_catalog(await self._send(encoded))
        except TTSNoAPIKeyError:
            self.error_message = f"{provider.display_name} API key not set"
            logger.warning(self.error_message)
            return self.voices(provider)
        except TTSExceptionError as err:
            self.error_message = f"Failed to load {provider.display_name} voices: {err}"
            logger.error(self.error_message)
            return self.voices(provider)
        finally:
            self._loading -= 1

        self._replace_provider_voices(provider, voices)
        return list(voices)

    def _replace_provider_voices(self, provider: Provider, voices: list[Voice]) -> None:
        kept: tuple[Voice, ...] = tuple(voice for voice in self._catalog if voice.provider is not provider)
        self._catalog = kept + tuple(voices)
        logger.debug("Catalog replaced: %d %s voices, %d total", len(voices), provider.display_name, len(self._catalog))
        self._publish()
