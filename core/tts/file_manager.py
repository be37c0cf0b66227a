"""Artifact persistence for synthesized audio and reports.

Files are written below an application managed documents directory. Intermediate
directories are created on demand.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from utils.file_utils import FileUtils
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging


__all__: list[str] = ["ArtifactStore", "ArtifactStoreError"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class ArtifactStoreError(Exception):
    """A file could not be written below the artifact root."""


class ArtifactStore:
    """Writes files below ``root``.

    Attributes:
        root (Path): Absolute artifact root directory.
        last_error (str | None): Description of the most recent failed write.
    """

    def __init__(self, root: str | Path | None = None) -> None:
        self.root: Path = FileUtils.resolve_path(root) if root else FileUtils.default_documents_directory()
        self.last_error: str | None = None
        logger.debug("Artifact root set to: %s", self.root)

    def resolve(self, relative_path: str | Path) -> Path:
        """Absolute location of ``relative_path`` below the root.

        Raises:
            ArtifactStoreError: If the path is absolute or escapes the root.
        """
        if not FileUtils.is_safe_relative(relative_path):
            msg: str = f"Path must be relative to the artifact root: '{relative_path}'"
            raise ArtifactStoreError(msg)
        return self.root / relative_path

    def save(self, relative_path: str | Path, data: bytes) -> Path:
        """Write ``data`` to ``relative_path``, replacing any existing file.

        Raises:
            ArtifactStoreError: If the path is invalid or the file cannot be written.
        """
        if not isinstance(data, bytes | bytearray):
            msg: str = f"Data format not supported. type='{type(data)}'"
            raise ArtifactStoreError(msg)

        filepath: Path = self.resolve(relative_path)
        try:
            filepath.parent.mkdir(parents=True, exist_ok=True)
            with filepath.open(mode="wb") as fhdl:
                fhdl.write(data)
                fhdl.flush()
        except PermissionError as err:
            msg = f"Permission denied: '{filepath}'"
            raise ArtifactStoreError(msg) from err
        except OSError as err:
            msg = f"Could not create file: '{filepath}': {err.strerror or err}"
            raise ArtifactStoreError(msg) from err

        logger.debug("Wrote %d bytes to '%s'", len(data), filepath)
        return filepath

    def write_file(self, relative_path: str | Path, data: bytes) -> bool:
        """Write ``data`` and report success instead of raising.

        The failure reason is logged and kept in :attr:`last_error`.
        """
        try:
            self.save(relative_path, data)
        except ArtifactStoreError as err:
            self.last_error = str(err)
            logger.error("Failed to save artifact: %s", err)
            return False
        self.last_error = None
        return True
