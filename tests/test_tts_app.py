from __future__ import annotations

import asyncio
import json
import logging
import warnings
from textwrap import dedent
from typing import TYPE_CHECKING, Any, cast
from unittest.mock import MagicMock

import pytest

import tts_app
from core.tts.audio_playback_manager import AudioPlaybackManager, PlaybackState
from core.tts.credentials import StaticCredentialStore
from core.tts.synthesis_manager import SynthesisManager
from handlers.async_comm import AsyncHttp, HttpResponse
from models.config_models import Config
from models.voice_models import Provider, SynthesisRequest, Voice
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


class FakeHttp:
    def __init__(self, handler: Any) -> None:
        self.handler = handler
        self.urls: list[str] = []

    async def request(self, method: str, *, url: str, headers: Any = None, data: bytes | None = None) -> HttpResponse:
        _ = method, headers, data
        self.urls.append(url)
        return self.handler(url)

    async def close(self) -> None:
        return None


def _audio_or_voices(url: str) -> HttpResponse:
    if url.endswith("/voices"):
        body: bytes = json.dumps({"voices": [{"voice_id": "v1", "name": "Rachel"}]}).encode()
        return HttpResponse(status=200, body=body, content_type="application/json")
    return HttpResponse(status=200, body=b"ID3-audio", content_type="audio/mpeg")


@pytest.fixture
def app_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Run the CLI inside ``tmp_path`` with a fake transport and a fresh log setup."""
    monkeypatch.chdir(tmp_path)
    for variable in ("ELEVENLABS_API_KEY", "OPENAI_API_KEY", "GOOGLE_API_KEY"):
        monkeypatch.delenv(variable, raising=False)

    async def fake_request(self: AsyncHttp, method: str, *, url: str, **kwargs: Any) -> HttpResponse:
        _ = self, method, kwargs
        return _audio_or_voices(url)

    monkeypatch.setattr(AsyncHttp, "request", fake_request)

    namespace_logger: logging.Logger = logging.getLogger("TTSApp")
    handlers: list[logging.Handler] = list(namespace_logger.handlers)
    level: int = namespace_logger.level
    showwarning = warnings.showwarning
    LoggerUtils._instance = None
    LoggerUtils._configured = False
    yield tmp_path
    for handler in namespace_logger.handlers:
        if handler not in handlers:
            namespace_logger.removeHandler(handler)
            handler.close()
    namespace_logger.setLevel(level)
    warnings.showwarning = showwarning
    LoggerUtils._instance = None
    LoggerUtils._configured = False


def test_parse_speak_arguments() -> None:
    args = tts_app.parse_arguments(
        ["--debug", "speak", "Hello world", "--provider", "openai", "--voice", "alloy", "--speed", "1.5", "--no-play"]
    )

    assert args.debug is True
    assert args.command == "speak"
    assert args.text == "Hello world"
    assert args.provider == "openai"
    assert args.speed == 1.5
    assert args.emotion == "neutral"
    assert args.no_play is True
    assert args.volume is None


def test_parse_emotion_test_arguments() -> None:
    argv: list[str] = ["emotion-test", "--provider", "elevenlabs", "--voice", "Rachel", "--report", "r.txt"]
    args = tts_app.parse_arguments(argv)

    assert args.command == "emotion-test"
    assert args.report == "r.txt"


@pytest.mark.parametrize(
    "argv",
    [
        [],
        ["speak", "Hello"],
        ["speak", "Hello", "--provider", "azure", "--voice", "x"],
        ["speak", "Hello", "--provider", "openai", "--voice", "x", "--emotion", "joyful"],
    ],
)
def test_invalid_arguments_exit_with_usage(argv: list[str], capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        tts_app.parse_arguments(argv)

    assert excinfo.value.code == 2
    assert "usage:" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_resolve_voice_fetches_networked_catalog() -> None:
    http = FakeHttp(_audio_or_voices)
    manager = SynthesisManager(StaticCredentialStore({Provider.ELEVENLABS: "xi"}), http=cast("AsyncHttp", http))

    voice: Voice = await tts_app.resolve_voice(manager, Provider.ELEVENLABS, "rachel")

    assert voice == Voice(id="v1", name="Rachel", provider=Provider.ELEVENLABS)
    assert http.urls == ["https://api.elevenlabs.io/v1/voices"]


@pytest.mark.asyncio
async def test_resolve_voice_passes_unknown_names_through() -> None:
    http = FakeHttp(_audio_or_voices)
    manager = SynthesisManager(StaticCredentialStore(), http=cast("AsyncHttp", http))

    voice: Voice = await tts_app.resolve_voice(manager, Provider.OPENAI, "ballad")

    assert voice == Voice(id="ballad", name="ballad", provider=Provider.OPENAI)
    assert http.urls == []


@pytest.mark.asyncio
async def test_main_speak_saves_audio(app_environment: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

    status: int = await tts_app.main(
        [
            "--documents-dir",
            str(app_environment),
            "speak",
            "Hello world",
            "--provider",
            "openai",
            "--voice",
            "alloy",
            "--save",
            "out/hello.mp3",
            "--no-play",
        ]
    )

    assert status == 0
    assert (app_environment / "out" / "hello.mp3").read_bytes() == b"ID3-audio"


@pytest.mark.asyncio
async def test_main_speak_without_key_fails(app_environment: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _ = app_environment

    status: int = await tts_app.main(["speak", "Hello", "--provider", "openai", "--voice", "alloy", "--no-play"])

    assert status == 1
    assert "Speech generation failed: API key not provided" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_main_lists_voices(app_environment: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _ = app_environment

    status: int = await tts_app.main(["voices", "--provider", "openai"])

    assert status == 0
    out: str = capsys.readouterr().out
    assert "OpenAI" in out
    assert "shimmer" in out


@pytest.mark.asyncio
async def test_main_reports_missing_explicit_config(app_environment: Path, capsys: pytest.CaptureFixture[str]) -> None:
    status: int = await tts_app.main(["--config", str(app_environment / "missing.ini"), "voices"])

    assert status == 2
    assert "Failed to load configuration file" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_main_emotion_test_writes_report(app_environment: Path, capsys: pytest.CaptureFixture[str]) -> None:
    ini_path: Path = app_environment / "test.ini"
    ini_path.write_text(
        dedent(
            f"""
            [GENERAL]
            DOCUMENTS_DIR = {app_environment}

            [API_KEYS]
            ELEVENLABS = xi-test

            [EMOTION_TEST]
            PACING_DELAY = 0
            PRESETS = ["happy", "sad"]
            """
        ),
        encoding="utf-8",
    )

    argv: list[str] = ["--config", str(ini_path), "emotion-test", "--provider", "elevenlabs", "--voice", "Rachel"]
    status: int = await tts_app.main([*argv, "--report", "r.txt"])

    assert status == 0
    assert (app_environment / "EmotionTests" / "happy_test_elevenlabs.mp3").exists()
    assert (app_environment / "EmotionTests" / "sad_test_elevenlabs.mp3").exists()
    report: str = (app_environment / "r.txt").read_text(encoding="utf-8")
    assert "Total emotions tested: 2" in report
    assert "Testing completed! 2/2 emotions tested successfully" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_synthesize_then_play_seek_and_stop() -> None:
    http = FakeHttp(_audio_or_voices)
    synthesis = SynthesisManager(StaticCredentialStore({Provider.OPENAI: "sk"}), http=cast("AsyncHttp", http))
    alloy: Voice | None = synthesis.find_voice(Provider.OPENAI, "alloy")
    assert alloy is not None

    result = await synthesis.synthesize(SynthesisRequest(text="Hello world", voice=alloy, provider=Provider.OPENAI))
    assert result.audio == b"ID3-audio"

    player = MagicMock()
    player.duration = 2.0
    player.current_time = 0.0
    player.play.return_value = True
    factory = MagicMock(return_value=player)
    playback = AudioPlaybackManager(Config(), player_factory=factory)

    assert playback.load(result.audio) is True
    assert factory.call_args.args[0] == b"ID3-audio"
    assert playback.state is PlaybackState.PLAYING

    playback.seek(playback.duration / 2)
    assert playback.position == 1.0

    playback.stop()
    await asyncio.sleep(0)
    assert playback.state is PlaybackState.IDLE
    assert playback.position == 0.0
    assert playback.duration == 0.0
    player.close.assert_called_once()
