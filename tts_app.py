"""Command line front end for the TTS application.

Lists provider voices, synthesizes and plays text, and runs the emotion preset test
against a provider and voice. API keys are read from ttsapp.ini or from the
ELEVENLABS_API_KEY, OPENAI_API_KEY and GOOGLE_API_KEY environment variables.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Final, NoReturn

from config.loader import Config, ConfigLoader, ConfigLoaderError
from core.emotion_tester import EmotionTester
from core.tts.audio_playback_manager import AudioPlaybackManager
from core.tts.credentials import ConfigCredentialStore
from core.tts.file_manager import ArtifactStore
from core.tts.synthesis_manager import SynthesisManager
from core.version import VERSION
from models.voice_models import EmotionPreset, Provider, SynthesisRequest, Voice, VoiceControls
from utils.file_utils import FileUtils
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    from core.tts.interface import SynthesisResult
    from models.emotion_test_models import BatchTestRun

CFG_FILE: Final[str] = "ttsapp.ini"
LOG_FILE: Final[str] = "ttsapp.log"

logger: logging.Logger = LoggerUtils.get_logger(__name__)


def check_python_version() -> None:
    """Check if Python version is 3.12 or later.

    Raises:
        RuntimeError: If Python version is below 3.12.
    """
    if sys.version_info < (3, 12):
        msg = "Python 3.12 or later is required"
        raise RuntimeError(msg)


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        print(f"\n{message}\n", file=sys.stderr)
        self.print_help(sys.stderr)
        raise SystemExit(2)


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        argparse.Namespace: Parsed arguments.
    """
    parser = _ArgumentParser(
        description="Multi-provider text-to-speech tool",
        epilog='Example: python tts_app.py speak "Hello world" --provider openai --voice alloy',
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("--config", dest="config", metavar="FILE", help=f"Configuration file (default: {CFG_FILE})")
    parser.add_argument("--debug", dest="debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--documents-dir", dest="documents_dir", metavar="DIR", help="Directory for saved files")

    providers: list[str] = [provider.slug for provider in Provider]
    subparsers = parser.add_subparsers(dest="command", required=True, parser_class=_ArgumentParser)

    voices = subparsers.add_parser("voices", help="List available voices")
    voices.add_argument("--provider", choices=providers, help="Only list voices of this provider")

    speak = subparsers.add_parser("speak", help="Synthesize text and play it")
    speak.add_argument("text", help="Text to synthesize")
    speak.add_argument("--provider", choices=providers, required=True)
    speak.add_argument("--voice", required=True, help="Voice id or name")
    speak.add_argument("--speed", type=float, default=1.0, help="Synthesis speed (clamped per provider)")
    speak.add_argument("--emotion", choices=[preset.value for preset in EmotionPreset], default="neutral")
    speak.add_argument("--volume", type=float, default=None, help="Playback volume, 0.0 to 1.0")
    speak.add_argument("--rate", type=float, default=None, help="Playback rate, 0.5 to 2.0")
    speak.add_argument("--save", metavar="PATH", help="Save the audio below the documents directory")
    speak.add_argument("--no-play", dest="no_play", action="store_true", help="Do not play the audio")

    emotion = subparsers.add_parser("emotion-test", help="Synthesize a test phrase with every emotion preset")
    emotion.add_argument("--provider", choices=providers, required=True)
    emotion.add_argument("--voice", required=True, help="Voice id or name")
    emotion.add_argument("--report", metavar="PATH", help="Save the report below the documents directory")

    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> Config:
    """Load the configuration file and apply CLI overrides.

    The default file is optional; an explicitly named file must exist.

    Raises:
        ConfigLoaderError: If configuration file cannot be loaded.
    """
    script_name: str = Path(sys.argv[0]).stem
    config_filename: str | None = args.config
    if config_filename is None:
        default_path: Path = FileUtils.resolve_path(CFG_FILE)
        config_filename = str(default_path) if default_path.exists() else None
    return ConfigLoader(
        config_filename=config_filename,
        script_name=script_name,
        debug=args.debug,
        documents_dir=args.documents_dir,
    ).config


def setup_logging(config: Config) -> None:
    log_file: str = config.GENERAL.LOG_FILE or LOG_FILE
    console_level: int = logging.DEBUG if config.GENERAL.DEBUG else logging.WARNING
    logger_utils = LoggerUtils(FileUtils.resolve_path(log_file), console_level=console_level)
    if config.GENERAL.DEBUG:
        logger_utils.set_level("DEBUG")


async def resolve_voice(manager: SynthesisManager, provider: Provider, voice_name: str) -> Voice:
    """Find a voice by id or name, fetching the catalog when needed.

    Unknown names are passed through as voice ids.
    """
    voice: Voice | None = manager.find_voice(provider, voice_name)
    if voice is None and manager.get_adapter(provider).has_networked_catalog:
        await manager.load_catalog(provider)
        voice = manager.find_voice(provider, voice_name)
    if voice is None:
        logger.warning("Voice '%s' not in the %s catalog, using it as a voice id", voice_name, provider.display_name)
        voice = Voice(id=voice_name, name=voice_name, provider=provider)
    return voice


async def list_voices(manager: SynthesisManager, provider_name: str | None) -> int:
    providers: list[Provider] = [Provider.from_name(provider_name)] if provider_name else list(Provider)
    status: int = 0
    for provider in providers:
        voices: list[Voice] = await manager.load_catalog(provider)
        print(f"\n{provider.display_name}")
        print("-" * 50)
        if manager.error_message:
            print(f"Error: {manager.error_message}", file=sys.stderr)
            status = 1
        for voice in voices:
            print(f"  {voice.id:<28} {voice.name}")
    return status


async def speak(args: argparse.Namespace, config: Config, manager: SynthesisManager, store: ArtifactStore) -> int:
    provider: Provider = Provider.from_name(args.provider)
    voice: Voice = await resolve_voice(manager, provider, args.voice)
    try:
        request = SynthesisRequest(
            text=args.text,
            voice=voice,
            provider=provider,
            controls=VoiceControls(speed=args.speed, emotion=EmotionPreset.from_name(args.emotion)),
        )
    except ValueError as err:
        print(f"\nError: {err}", file=sys.stderr)
        return 2

    result: SynthesisResult = await manager.synthesize(request)
    if result.audio is None:
        print(f"\nError: {manager.error_message}", file=sys.stderr)
        return 1
    print(f"Received {len(result.audio)} bytes of audio")

    if args.save:
        if not store.write_file(args.save, result.audio):
            print(f"\nError: {store.last_error}", file=sys.stderr)
            return 1
        print(f"Audio saved to: {store.resolve(args.save)}")

    if args.no_play:
        return 0

    player = AudioPlaybackManager(config)
    try:
        if args.volume is not None:
            player.set_volume(args.volume)
        if args.rate is not None:
            player.set_rate(args.rate)
        if not player.load(result.audio):
            print(f"\nError: {player.error_message}", file=sys.stderr)
            return 1
        print(f"Playing {player.duration:.2f}s of audio...")
        await player.wait_until_idle()
        if player.error_message:
            print(f"\nError: {player.error_message}", file=sys.stderr)
            return 1
    finally:
        player.close()
    return 0


async def emotion_test(
    args: argparse.Namespace, config: Config, manager: SynthesisManager, store: ArtifactStore
) -> int:
    provider: Provider = Provider.from_name(args.provider)
    voice: Voice = await resolve_voice(manager, provider, args.voice)
    tester: EmotionTester = EmotionTester.from_config(config, manager, manager.credentials, store)

    printed: int = 0

    def print_new_log(run: BatchTestRun | None) -> None:
        nonlocal printed
        if run is None:
            return
        for entry in run.log[printed:]:
            print(entry)
        printed = len(run.log)

    tester.subscribe(print_new_log)
    try:
        run: BatchTestRun | None = await tester.run(provider, voice)
    except asyncio.CancelledError:
        tester.stop()
        raise
    if run is None:
        print(f"\nError: {tester.error_message}", file=sys.stderr)
        return 1

    if args.report:
        if not tester.save_report(args.report):
            print(f"\nError: {store.last_error}", file=sys.stderr)
            return 1
        print(f"Report saved to: {store.resolve(args.report)}")
    return 0 if not run.failed_presets else 1


async def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Returns:
        int: Process exit status.
    """
    check_python_version()
    args: argparse.Namespace = parse_arguments(argv)
    try:
        config: Config = load_config(args)
    except ConfigLoaderError as err:
        print("\nError: Failed to load configuration file.", file=sys.stderr)
        print(f"Details: {err}", file=sys.stderr)
        return 2

    setup_logging(config)
    logger.info("%s %s started", config.GENERAL.SCRIPT_NAME, VERSION)

    credentials = ConfigCredentialStore(config.API_KEYS)
    store = ArtifactStore(config.GENERAL.DOCUMENTS_DIR or None)
    async with SynthesisManager(credentials, config=config) as manager:
        if args.command == "voices":
            return await list_voices(manager, args.provider)
        if args.command == "speak":
            return await speak(args, config, manager, store)
        return await emotion_test(args, config, manager, store)


if __name__ == "__main__":
    exit_status: int = 1
    try:
        exit_status = asyncio.run(main())
    except KeyboardInterrupt:
        print("\n\nCancelled by user.", file=sys.stderr)
    except (OSError, RuntimeError, ValueError) as err:
        print(f"\nFatal error: {err}", file=sys.stderr)
    sys.exit(exit_status)
