from __future__ import annotations

import asyncio
import json
from typing import Any, cast

import pytest

from core.tts.credentials import StaticCredentialStore
from core.tts.interface import TTSDecodingError, TTSNoAPIKeyError, TTSTransportError
from core.tts.synthesis_manager import SynthesisManager
from handlers.async_comm import AsyncCommError, AsyncHttp, HttpResponse, TransportErrorKind
from models.config_models import Config
from models.voice_models import Provider, SynthesisRequest, Voice

ALLOY = Voice(id="alloy", name="Alloy", provider=Provider.OPENAI)
RACHEL = Voice(id="v1", name="Rachel", provider=Provider.ELEVENLABS)


class FakeHttp:
    """Stands in for AsyncHttp; answers with queued responses or errors."""

    def __init__(self, *outcomes: HttpResponse | AsyncCommError) -> None:
        self.outcomes: list[HttpResponse | AsyncCommError] = list(outcomes)
        self.requests: list[dict[str, Any]] = []
        self.closed: bool = False

    async def request(self, method: str, *, url: str, headers: Any = None, data: bytes | None = None) -> HttpResponse:
        self.requests.append({"method": method, "url": url, "headers": headers, "data": data})
        await asyncio.sleep(0)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, AsyncCommError):
            raise outcome
        return outcome

    async def close(self) -> None:
        self.closed = True


def _voices_body(*voices: tuple[str, str]) -> bytes:
    return json.dumps({"voices": [{"voice_id": voice_id, "name": name} for voice_id, name in voices]}).encode()


def _manager(http: FakeHttp, keys: dict[Provider, str] | None = None) -> SynthesisManager:
    credentials = StaticCredentialStore(
        keys if keys is not None else {Provider.OPENAI: "sk", Provider.ELEVENLABS: "xi", Provider.GOOGLE: "g"}
    )
    return SynthesisManager(credentials, config=Config(), http=cast("AsyncHttp", http))


def test_initial_catalog_lists_openai_then_google() -> None:
    manager: SynthesisManager = _manager(FakeHttp())
    providers: list[Provider] = [voice.provider for voice in manager.catalog]

    assert providers[:6] == [Provider.OPENAI] * 6
    assert set(providers[6:]) == {Provider.GOOGLE}
    assert manager.voices(Provider.ELEVENLABS) == []
    assert manager.catalog[0] == ALLOY


@pytest.mark.asyncio
async def test_synthesize_returns_audio() -> None:
    http = FakeHttp(HttpResponse(status=200, body=b"mp3-bytes", content_type="audio/mpeg"))
    manager: SynthesisManager = _manager(http)

    result = await manager.synthesize(SynthesisRequest(text="Hello world", voice=ALLOY, provider=Provider.OPENAI))

    assert result.ok is True
    assert result.audio == b"mp3-bytes"
    assert manager.error_message is None
    assert http.requests[0]["url"] == "https://api.openai.com/v1/audio/speech"
    assert http.requests[0]["headers"]["Authorization"] == "Bearer sk"


@pytest.mark.asyncio
async def test_synthesize_reports_missing_key_without_request() -> None:
    http = FakeHttp()
    manager: SynthesisManager = _manager(http, keys={Provider.OPENAI: "   "})

    result = await manager.synthesize(SynthesisRequest(text="Hello", voice=ALLOY, provider=Provider.OPENAI))

    assert result.ok is False
    assert isinstance(result.error, TTSNoAPIKeyError)
    assert http.requests == []
    assert manager.error_message == "Speech generation failed: API key not provided"


@pytest.mark.asyncio
async def test_synthesize_wraps_transport_errors() -> None:
    error = AsyncCommError("Error response from the server: quota", kind=TransportErrorKind.HTTP_STATUS, status=429)
    http = FakeHttp(error)
    manager: SynthesisManager = _manager(http)

    result = await manager.synthesize(SynthesisRequest(text="Hello", voice=ALLOY, provider=Provider.OPENAI))

    assert isinstance(result.error, TTSTransportError)
    assert result.error.kind is TransportErrorKind.HTTP_STATUS
    assert result.error.status == 429
    assert manager.error_message is not None
    assert "quota" in manager.error_message


@pytest.mark.asyncio
async def test_synthesize_reports_decoding_errors() -> None:
    http = FakeHttp(HttpResponse(status=200, body=b"", content_type="audio/mpeg"))
    manager: SynthesisManager = _manager(http)

    result = await manager.synthesize(SynthesisRequest(text="Hello", voice=ALLOY, provider=Provider.OPENAI))

    assert isinstance(result.error, TTSDecodingError)


@pytest.mark.asyncio
async def test_error_is_cleared_by_next_attempt() -> None:
    http = FakeHttp(
        AsyncCommError("Request timed out", kind=TransportErrorKind.TIMEOUT),
        HttpResponse(status=200, body=b"audio"),
    )
    manager: SynthesisManager = _manager(http)
    request = SynthesisRequest(text="Hello", voice=ALLOY, provider=Provider.OPENAI)

    await manager.synthesize(request)
    assert manager.error_message == "Speech generation failed: Request timed out"

    await manager.synthesize(request)
    assert manager.error_message is None


@pytest.mark.asyncio
async def test_every_call_performs_its_own_request() -> None:
    http = FakeHttp(HttpResponse(status=200, body=b"one"), HttpResponse(status=200, body=b"two"))
    manager: SynthesisManager = _manager(http)
    request = SynthesisRequest(text="Same text", voice=ALLOY, provider=Provider.OPENAI)

    results = await asyncio.gather(manager.synthesize(request), manager.synthesize(request))

    assert sorted(result.audio or b"" for result in results) == [b"one", b"two"]
    assert len(http.requests) == 2


@pytest.mark.asyncio
async def test_load_catalog_for_static_provider_needs_no_request() -> None:
    http = FakeHttp()
    manager: SynthesisManager = _manager(http)

    voices: list[Voice] = await manager.load_catalog(Provider.OPENAI)

    assert [voice.id for voice in voices] == ["alloy", "echo", "fable", "onyx", "nova", "shimmer"]
    assert http.requests == []


@pytest.mark.asyncio
async def test_load_catalog_replaces_only_elevenlabs_entries() -> None:
    http = FakeHttp(
        HttpResponse(status=200, body=_voices_body(("v1", "Rachel"), ("v2", "Clyde"))),
        HttpResponse(status=200, body=_voices_body(("v3", "Domi"))),
    )
    manager: SynthesisManager = _manager(http)
    others_before = [voice for voice in manager.catalog if voice.provider is not Provider.ELEVENLABS]
    snapshots: list[tuple[Voice, ...]] = []
    manager.subscribe(snapshots.append)

    first = await manager.load_catalog(Provider.ELEVENLABS)
    held_snapshot = manager.catalog
    second = await manager.load_catalog(Provider.ELEVENLABS)

    assert [voice.id for voice in first] == ["v1", "v2"]
    assert [voice.id for voice in second] == ["v3"]
    assert [voice for voice in manager.catalog if voice.provider is not Provider.ELEVENLABS] == others_before
    assert manager.catalog[-1] == Voice(id="v3", name="Domi", provider=Provider.ELEVENLABS)
    assert manager.voices(Provider.ELEVENLABS) == second
    # A snapshot taken earlier is not mutated by later refreshes
    assert RACHEL in held_snapshot
    assert len(snapshots) == 2
    assert http.requests[0]["method"] == "GET"
    assert http.requests[0]["headers"]["xi-api-key"] == "xi"


@pytest.mark.asyncio
async def test_load_catalog_without_key_leaves_catalog_untouched() -> None:
    http = FakeHttp()
    manager: SynthesisManager = _manager(http, keys={})
    before = manager.catalog

    voices = await manager.load_catalog(Provider.ELEVENLABS)

    assert voices == []
    assert manager.catalog == before
    assert manager.error_message == "ElevenLabs API key not set"
    assert http.requests == []


@pytest.mark.asyncio
async def test_load_catalog_failure_keeps_previous_voices() -> None:
    http = FakeHttp(
        HttpResponse(status=200, body=_voices_body(("v1", "Rachel"))),
        AsyncCommError("No internet connection", kind=TransportErrorKind.NOT_CONNECTED),
    )
    manager: SynthesisManager = _manager(http)
    await manager.load_catalog(Provider.ELEVENLABS)
    before = manager.catalog

    voices = await manager.load_catalog(Provider.ELEVENLABS)

    assert voices == [RACHEL]
    assert manager.catalog == before
    assert manager.error_message == "Failed to load ElevenLabs voices: No internet connection"
    assert manager.is_loading is False


@pytest.mark.asyncio
async def test_is_loading_while_catalog_request_is_in_flight() -> None:
    release = asyncio.Event()
    observed: list[bool] = []

    class SlowHttp(FakeHttp):
        async def request(
            self, method: str, *, url: str, headers: Any = None, data: bytes | None = None
        ) -> HttpResponse:
            observed.append(manager.is_loading)
            await release.wait()
            return HttpResponse(status=200, body=_voices_body(("v1", "Rachel")))

    manager: SynthesisManager = _manager(SlowHttp())
    task = asyncio.create_task(manager.load_catalog(Provider.ELEVENLABS))
    await asyncio.sleep(0)
    release.set()
    await task

    assert observed == [True]
    assert manager.is_loading is False


def test_find_voice_by_id_or_name() -> None:
    manager: SynthesisManager = _manager(FakeHttp())

    assert manager.find_voice(Provider.OPENAI, "nova") == Voice(id="nova", name="Nova", provider=Provider.OPENAI)
    shimmer = Voice(id="shimmer", name="Shimmer", provider=Provider.OPENAI)
    assert manager.find_voice(Provider.OPENAI, "SHIMMER") == shimmer
    assert manager.find_voice(Provider.OPENAI, "unknown") is None


def test_unsubscribe_stops_notifications() -> None:
    manager: SynthesisManager = _manager(FakeHttp())
    received: list[tuple[Voice, ...]] = []
    unsubscribe = manager.subscribe(received.append)

    unsubscribe()
    manager._replace_provider_voices(Provider.ELEVENLABS, [RACHEL])

    assert received == []


@pytest.mark.asyncio
async def test_close_does_not_close_injected_transport() -> None:
    http = FakeHttp()

    async with _manager(http):
        pass

    assert http.closed is False
