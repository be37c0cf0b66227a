"""Logging setup for the ``TTSApp`` namespace.

Provider requests carry API keys in headers and query strings, and transport errors
sometimes echo them back. Every handler attached here runs records through
:class:`SecretRedactingFilter` before they are written anywhere.
"""

from __future__ import annotations

import logging
import re
import sys
import warnings
from logging import Formatter, NullHandler, StreamHandler
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING, ClassVar, Final, Literal, NamedTuple, Self, TextIO

if TYPE_CHECKING:
    from pathlib import Path

__all__: list[str] = ["LoggerUtils", "SecretRedactingFilter", "redact_secrets"]

type LevelType = Literal[
    "NOTSET",
    "DEBUG",
    "INFO",
    "WARNING",
    "ERROR",
    "CRITICAL",
]

ROTATE_BYTES: Final[int] = 1024 * 1024
ROTATE_KEEP: Final[int] = 3

DEFAULT_LOG_LEVEL: Final[int] = logging.INFO
DEFAULT_NAMESPACE: Final[str] = "TTSApp"

CONSOLE_FORMAT: Final[str] = "%(levelname)s: %(message)s"
FILE_FORMAT: Final[str] = "%(asctime)s [%(levelname)-8s] %(name)s:%(lineno)d %(funcName)s | %(message)s"

REDACTED: Final[str] = "[redacted]"

# (pattern, replacement) pairs applied in order
_SECRET_PATTERNS: Final[tuple[tuple[re.Pattern[str], str], ...]] = (
    (re.compile(r"(?i)\bBearer\s+[A-Za-z0-9._~+/=-]+"), f"Bearer {REDACTED}"),
    (re.compile(r"(?i)(xi-api-key['\"]?\s*[:=]\s*['\"]?)[^\s'\",}]+"), rf"\g<1>{REDACTED}"),
    (re.compile(r"([?&]key=)[^&\s'\"]+"), rf"\g<1>{REDACTED}"),
    (re.compile(r"\bsk-[A-Za-z0-9_-]{8,}\b"), REDACTED),
)


def redact_secrets(text: str) -> str:
    """Mask API keys, bearer tokens and ``key=`` query values in ``text``."""
    for pattern, replacement in _SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class SecretRedactingFilter(logging.Filter):
    """Rewrite the rendered message of every record with secrets masked.

    The record is never dropped. Arguments are merged into ``msg`` first so a key passed
    as a ``%s`` argument is masked as well.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        message: str = record.getMessage()
        masked: str = redact_secrets(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


class LogLevel(NamedTuple):
    name: str
    value: int


class LoggerUtils:
    """Process-wide owner of the ``TTSApp`` log handlers.

    Constructing it the first time attaches a console handler and, when a file name is
    given, a rotating file handler. Later constructions return the same object untouched.
    Modules never talk to this class for output; they call :meth:`get_logger` at import
    time and inherit whatever the CLI configured.
    """

    _LOGGER_NAMESPACE: ClassVar[str] = DEFAULT_NAMESPACE
    _configured: ClassVar[bool] = False
    _instance: ClassVar[Self | None] = None

    def __new__(cls, *args, **kwargs) -> Self:
        _ = args, kwargs
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(
        self,
        filename: str | Path,
        *,
        use_null_console: bool = False,
        console_level: int = logging.WARNING,
    ) -> None:
        """
        Args:
            filename (str | Path): Log file path. An empty value keeps output on the console only.
            use_null_console (bool): Discard console output, e.g. when stderr is unavailable.
            console_level (int): Minimum level shown on stderr.
        """
        if LoggerUtils._configured:
            return

        self.root_logger: logging.Logger = logging.getLogger(self._LOGGER_NAMESPACE)
        self.root_logger.setLevel(DEFAULT_LOG_LEVEL)
        self._redactor: SecretRedactingFilter = SecretRedactingFilter()

        console: logging.Handler | None = self._build_console_handler(
            null=use_null_console or sys.stderr is None, level=console_level
        )
        if console is not None:
            self._install(console)

        log_path: str = str(filename).strip()
        if not log_path:
            self.root_logger.warning("No log file configured, file logging disabled.")
        else:
            file_handler: logging.Handler | None = self._build_file_handler(log_path)
            if file_handler is not None:
                self._install(file_handler)

        warnings.showwarning = self.warning_to_log
        LoggerUtils._configured = True

    def _install(self, handler: logging.Handler) -> None:
        handler.addFilter(self._redactor)
        self.root_logger.addHandler(handler)

    def _build_console_handler(self, *, null: bool, level: int) -> logging.Handler | None:
        if null:
            return None if self._attached(NullHandler) else NullHandler()
        if self._attached(StreamHandler, exact=True):
            self.root_logger.debug("Console handler already attached.")
            return None

        handler: StreamHandler[TextIO] = StreamHandler(sys.stderr)
        handler.setLevel(level)
        handler.setFormatter(Formatter(CONSOLE_FORMAT))
        return handler

    def _build_file_handler(self, path: str) -> logging.Handler | None:
        if self._attached(RotatingFileHandler):
            self.root_logger.debug("File handler already attached.")
            return None
        try:
            handler = RotatingFileHandler(path, maxBytes=ROTATE_BYTES, backupCount=ROTATE_KEEP, encoding="utf-8")
        except OSError as err:
            self.root_logger.error("Cannot open log file '%s' (%s), file logging disabled.", path, err)
            return None

        handler.setLevel(logging.DEBUG)
        handler.setFormatter(Formatter(FILE_FORMAT))
        return handler

    def _attached(self, handler_type: type[logging.Handler], *, exact: bool = False) -> bool:
        if exact:
            return any(type(h) is handler_type for h in self.root_logger.handlers)
        return any(isinstance(h, handler_type) for h in self.root_logger.handlers)

    def warning_to_log(
        self,
        message: Warning | str,
        category: type[Warning],
        filename: str,
        lineno: int,
        file: TextIO | None = None,
        line: str | None = None,
    ) -> None:
        """Replacement for ``warnings.showwarning`` that logs instead of printing."""
        _ = file, line
        self.root_logger.warning("%s (%s:%d): %s", category.__name__, filename, lineno, message)

    def set_level(self, level: LevelType) -> None:
        """Set the namespace level by name. Unknown names fall back to INFO with a warning."""
        numeric: int | None = logging.getLevelNamesMapping().get(level.upper())
        if numeric is None:
            self.root_logger.setLevel(DEFAULT_LOG_LEVEL)
            self.root_logger.warning("Unknown logging level '%s', using INFO.", level)
            return
        self.root_logger.setLevel(numeric)

    def get_level(self) -> LogLevel:
        value: int = self.root_logger.getEffectiveLevel()
        return LogLevel(name=logging.getLevelName(value), value=value)

    @staticmethod
    def get_logger(name: str | None = None) -> logging.Logger:
        """Return ``TTSApp.<name>``, or the namespace logger itself when name is empty."""
        namespace: str = LoggerUtils._LOGGER_NAMESPACE
        if not namespace:
            return logging.getLogger(name or None)
        return logging.getLogger(f"{namespace}.{name}" if name else namespace)
