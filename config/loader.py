"""Load ``ttsapp.ini`` into a typed :class:`Config`.

Values are coerced to the type of the matching dataclass default, API keys from the
environment replace those from the file, and command line overrides are applied last.
Every problem surfaces as a :class:`ConfigLoaderError` subclass.
"""

from __future__ import annotations

import ast
import configparser
import os
from configparser import ConfigParser
from dataclasses import fields
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

from models.config_models import Config
from models.voice_models import PLAYBACK_RATE_RANGE, VOLUME_RANGE, EmotionPreset
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

__all__: list[str] = [
    "Config",
    "ConfigFileNotFoundError",
    "ConfigFormatError",
    "ConfigLoader",
    "ConfigLoaderError",
    "ConfigTypeError",
    "ConfigValueError",
    "coerce_value",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

# Environment variables take precedence over the [API_KEYS] section
API_KEY_ENVIRONMENT: Final[dict[str, str]] = {
    "ELEVENLABS": "ELEVENLABS_API_KEY",
    "OPENAI": "OPENAI_API_KEY",
    "GOOGLE": "GOOGLE_API_KEY",
}

_QUOTES: Final[tuple[str, ...]] = ("'", '"')


class ConfigLoaderError(Exception):
    """Base class for configuration problems."""


class ConfigFileNotFoundError(ConfigLoaderError):
    """An explicitly requested configuration file is missing."""


class ConfigFormatError(ConfigLoaderError):
    """The file, or one of its values, cannot be parsed."""


class ConfigValueError(ConfigFormatError):
    """A value parsed but is out of range or not allowed."""


class ConfigTypeError(ConfigFormatError):
    """A value has a type the setting cannot take."""


def _strip_quotes(raw: str) -> str:
    text: str = raw.strip()
    for quote in _QUOTES:
        text = text.removeprefix(quote).removesuffix(quote)
    return text


def _to_bool(raw: str) -> bool:
    # Same vocabulary ConfigParser.getboolean accepts
    lowered: str = _strip_quotes(raw).lower()
    if lowered not in ConfigParser.BOOLEAN_STATES:
        msg: str = f"Not a boolean: {raw!r}"
        raise ValueError(msg)
    return ConfigParser.BOOLEAN_STATES[lowered]


def _to_int(raw: str) -> int:
    return int(float(_strip_quotes(raw)))


def _to_float(raw: str) -> float:
    # Rates may be written as "1.5x"
    return float(_strip_quotes(raw).removesuffix("x"))


def _to_literal(raw: str) -> Any:
    return ast.literal_eval(raw)


_COERCERS: Final[dict[type, Callable[[str], Any]]] = {
    bool: _to_bool,
    int: _to_int,
    float: _to_float,
    str: _strip_quotes,
}


def coerce_value(raw: str, default: Any, *, setting: str) -> Any:
    """Convert ``raw`` to the type of ``default``.

    Scalars go through the coercer registered for their type, anything else (lists)
    is read as a Python literal.

    Raises:
        ConfigValueError: The text does not describe a value of the right type.
        ConfigTypeError: Coercion failed on the type itself.
        ConfigFormatError: A literal has invalid syntax.
    """
    coercer: Callable[[str], Any] = _COERCERS.get(type(default), _to_literal)
    try:
        return coercer(raw)
    except SyntaxError as err:
        msg = f"Invalid literal for {setting}: {raw}"
        raise ConfigFormatError(msg) from err
    except ValueError as err:
        msg = f"Invalid value for {setting}: {err}"
        raise ConfigValueError(msg) from err
    except TypeError as err:
        msg = f"Invalid value for {setting}: {err}"
        raise ConfigTypeError(msg) from err


class ConfigLoader:
    """Build a validated :class:`Config` from an optional INI file.

    Args:
        config_filename (str | None): INI file to read. None yields the defaults.
        script_name (str): Name of the running script, recorded in the config and error messages.
        debug (bool): Force debug logging on.
        documents_dir (str | None): Replace the artifact root directory.

    Raises:
        ConfigFileNotFoundError: If ``config_filename`` does not exist.
        ConfigFormatError: If the file or a value cannot be parsed or validated.
    """

    def __init__(
        self,
        *,
        config_filename: str | None,
        script_name: str,
        **args,
    ) -> None:
        self.config = Config()
        self.config.GENERAL.SCRIPT_NAME = script_name

        if config_filename is not None:
            self._apply_file(self._open(config_filename, script_name))

        self._apply_environment()
        if args.get("debug", False):
            self.config.GENERAL.DEBUG = True
        if args.get("documents_dir"):
            self.config.GENERAL.DOCUMENTS_DIR = str(args["documents_dir"])
        self._validate()

    @staticmethod
    def _open(config_filename: str, script_name: str) -> ConfigParser:
        if not Path(config_filename).is_file():
            msg: str = (
                f"Configuration file '{config_filename}' not found. "
                f"Place it next to '{script_name}' or pass --config."
            )
            raise ConfigFileNotFoundError(msg)

        # interpolation off: API keys can contain '%'
        parser = ConfigParser(interpolation=None)
        try:
            parser.read(config_filename, encoding="utf-8")
        except configparser.Error as err:
            msg = f"Failed to parse configuration file '{config_filename}': {err}"
            raise ConfigFormatError(msg) from None
        return parser

    def _apply_file(self, parser: ConfigParser) -> None:
        known: set[str] = set()
        for section_field in fields(self.config):
            known.add(section_field.name)
            if parser.has_section(section_field.name):
                self._apply_section(parser, section_field.name)
            else:
                logger.debug("Section [%s] not in file, keeping defaults", section_field.name)

        for name in parser.sections():
            if name not in known:
                logger.warning("Unknown configuration section ignored: '%s'", name)

    def _apply_section(self, parser: ConfigParser, section_name: str) -> None:
        section: Any = getattr(self.config, section_name)
        for key_field in fields(section):
            setting: str = f"{section_name}.{key_field.name}"
            raw: str | None = parser.get(section_name, key_field.name, fallback=None)
            if raw is None:
                logger.debug("Setting '%s' not in file, keeping default", setting)
                continue
            value: Any = coerce_value(raw, getattr(section, key_field.name), setting=setting)
            setattr(section, key_field.name, value)

    def _apply_environment(self) -> None:
        for key_name, variable in API_KEY_ENVIRONMENT.items():
            value: str = os.environ.get(variable, "").strip()
            if value:
                logger.debug("API key for %s taken from %s", key_name, variable)
                setattr(self.config.API_KEYS, key_name, value)

    def _validate(self) -> None:
        """Check numeric ranges and preset names.

        Raises:
            ConfigValueError: On the first setting that fails.
        """
        playback = self.config.PLAYBACK
        emotion_test = self.config.EMOTION_TEST
        checks: list[tuple[bool, str]] = [
            (
                VOLUME_RANGE[0] <= playback.VOLUME <= VOLUME_RANGE[1],
                f"'PLAYBACK.VOLUME' must be in range {VOLUME_RANGE}, got {playback.VOLUME}.",
            ),
            (
                PLAYBACK_RATE_RANGE[0] <= playback.RATE <= PLAYBACK_RATE_RANGE[1],
                f"'PLAYBACK.RATE' must be in range {PLAYBACK_RATE_RANGE}, got {playback.RATE}.",
            ),
            (
                playback.PROGRESS_INTERVAL > 0,
                f"'PLAYBACK.PROGRESS_INTERVAL' must be positive, got {playback.PROGRESS_INTERVAL}.",
            ),
            (self.config.HTTP.TIMEOUT > 0, f"'HTTP.TIMEOUT' must be positive, got {self.config.HTTP.TIMEOUT}."),
            (emotion_test.PACING_DELAY >= 0, "'EMOTION_TEST.PACING_DELAY' must not be negative."),
            (isinstance(emotion_test.PRESETS, list), "'EMOTION_TEST.PRESETS' must be a list of preset names."),
        ]
        for passed, message in checks:
            if not passed:
                raise ConfigValueError(message)

        for name in emotion_test.PRESETS:
            if not isinstance(name, str):
                msg: str = f"'EMOTION_TEST.PRESETS' entries must be strings, got {name!r}."
                raise ConfigValueError(msg)
            try:
                EmotionPreset.from_name(name)
            except ValueError as err:
                msg = f"Invalid value in 'EMOTION_TEST.PRESETS': {err}"
                raise ConfigValueError(msg) from None
