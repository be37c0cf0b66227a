"""Unit tests for core.tts.interface module."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from core.tts.interface import (
    EncodedRequest,
    ProviderAdapter,
    SynthesisResult,
    TTSDecodingError,
    TTSEncodingError,
    TTSExceptionError,
    TTSInvalidURLError,
    TTSNoAPIKeyError,
    TTSNotSupportedError,
    TTSTransportError,
)
from handlers.async_comm import AsyncCommError, HttpResponse, TransportErrorKind
from models.config_models import ProviderEngine
from models.voice_models import Provider

if TYPE_CHECKING:
    from collections.abc import Iterator

    from models.voice_models import SynthesisRequest


@pytest.fixture
def restore_registry() -> Iterator[None]:
    previous: dict[Provider, type[ProviderAdapter]] = dict(ProviderAdapter._registered_adapters)
    yield
    ProviderAdapter._registered_adapters = previous


def _define_dummy_adapter() -> type[ProviderAdapter]:
    class DummyAdapter(ProviderAdapter):
        @staticmethod
        def fetch_provider() -> Provider:
            return Provider.OPENAI

        @staticmethod
        def default_model() -> str:
            return "dummy-model"

        def encode(self, request: SynthesisRequest, api_key: str) -> EncodedRequest:
            key: str = self.require_key(api_key)
            return EncodedRequest(method="POST", url="https://example.com", headers={"k": key})

    return DummyAdapter


def test_subclass_is_registered_under_its_provider(restore_registry: None) -> None:
    _ = restore_registry
    adapter_cls: type[ProviderAdapter] = _define_dummy_adapter()

    assert ProviderAdapter.get_adapter(Provider.OPENAI) is adapter_cls
    assert ProviderAdapter.get_registered()[Provider.OPENAI] is adapter_cls


def test_get_adapter_raises_for_unregistered_provider(restore_registry: None) -> None:
    _ = restore_registry
    ProviderAdapter._registered_adapters = {}

    with pytest.raises(TTSNotSupportedError):
        ProviderAdapter.get_adapter(Provider.GOOGLE)


def test_register_adapter_rejects_foreign_classes() -> None:
    with pytest.raises(TypeError):
        ProviderAdapter.register_adapter(object)  # type: ignore[arg-type]


def test_model_comes_from_engine_config(restore_registry: None) -> None:
    _ = restore_registry
    adapter_cls: type[ProviderAdapter] = _define_dummy_adapter()

    assert adapter_cls().model == "dummy-model"
    assert adapter_cls(ProviderEngine(MODEL="  custom  ")).model == "custom"
    assert adapter_cls(ProviderEngine(MODEL="   ")).model == "dummy-model"


def test_static_adapter_has_no_networked_catalog(restore_registry: None) -> None:
    _ = restore_registry
    adapter: ProviderAdapter = _define_dummy_adapter()()

    assert adapter.has_networked_catalog is False
    assert adapter.voice_catalog() == []
    assert adapter.catalog_request("key") is None
    with pytest.raises(TTSNotSupportedError):
        adapter.decode_catalog(HttpResponse(status=200, body=b"{}"))


def test_default_decode_returns_body_and_rejects_empty(restore_registry: None) -> None:
    _ = restore_registry
    adapter: ProviderAdapter = _define_dummy_adapter()()

    assert adapter.decode(HttpResponse(status=200, body=b"audio")) == b"audio"
    with pytest.raises(TTSDecodingError):
        adapter.decode(HttpResponse(status=200, body=b""))


@pytest.mark.parametrize("key", [None, "", "   ", "\t\n"])
def test_require_key_rejects_blank_keys(key: str | None) -> None:
    with pytest.raises(TTSNoAPIKeyError):
        ProviderAdapter.require_key(key)


def test_require_key_strips_whitespace() -> None:
    assert ProviderAdapter.require_key("  abc  ") == "abc"


def test_dump_json_rejects_unserializable_payload() -> None:
    with pytest.raises(TTSEncodingError):
        ProviderAdapter.dump_json({"value": object()})
    with pytest.raises(TTSEncodingError):
        ProviderAdapter.dump_json({"value": float("nan")})


def test_build_url_quotes_path_segments() -> None:
    url: str = ProviderAdapter.build_url("https://api.example.com/v1/", "voices", "a b/c")

    assert url == "https://api.example.com/v1/voices/a%20b%2Fc"


@pytest.mark.parametrize(
    ("base", "segments"),
    [
        ("https://api.example.com", ("",)),
        ("https://api.example.com", ("  ",)),
        ("not a url", ("voices",)),
        ("ftp://api.example.com", ("voices",)),
    ],
)
def test_build_url_rejects_invalid_input(base: str, segments: tuple[str, ...]) -> None:
    with pytest.raises(TTSInvalidURLError):
        ProviderAdapter.build_url(base, *segments)


def test_encoded_request_repr_hides_credentials() -> None:
    request = EncodedRequest(
        method="POST",
        url="https://example.com/path?key=secret",
        headers={"Authorization": "Bearer secret"},
        body=b'{"a": 1}',
    )

    assert "secret" not in repr(request)
    assert request.json_body() == {"a": 1}


def test_synthesis_result_requires_exactly_one_outcome() -> None:
    with pytest.raises(ValueError, match="Exactly one"):
        SynthesisResult()
    with pytest.raises(ValueError, match="Exactly one"):
        SynthesisResult(audio=b"x", error=TTSDecodingError())

    ok = SynthesisResult(audio=b"x")
    failed = SynthesisResult(error=TTSNoAPIKeyError())

    assert ok.ok is True
    assert ok.error_message is None
    assert failed.ok is False
    assert failed.error_message == "API key not provided"
    assert "1 bytes" in repr(ok)


def test_transport_error_exposes_kind_and_status() -> None:
    err = TTSTransportError(AsyncCommError("Error response", kind=TransportErrorKind.HTTP_STATUS, status=429))

    assert isinstance(err, TTSExceptionError)
    assert err.kind is TransportErrorKind.HTTP_STATUS
    assert err.status == 429
    assert str(err) == "Error response (status=429)"
