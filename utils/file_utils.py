from __future__ import annotations

import os
from pathlib import Path

__all__: list[str] = ["FileUtils"]


class FileUtils:
    """Path helpers shared by the configuration loader and the artifact store."""

    @staticmethod
    def resolve_path(path: str | Path, *, strict: bool = False) -> Path:
        """Convert a user-input path to an absolute path.

        Expands environment variables (e.g., $HOME, %USERPROFILE%), expands ~ to the home
        directory and resolves relative paths against the current working directory.

        Args:
            path (str | Path): The input path (e.g., "~/Documents/TTSApp").
            strict (bool): Raise if the path does not exist. Defaults to False.

        Returns:
            Path: The absolute path.
        """
        expanded: str = os.path.expandvars(str(path))
        user_expanded: Path = Path(expanded).expanduser()

        if user_expanded.is_absolute():
            return user_expanded.resolve(strict=strict)
        return (Path.cwd() / user_expanded).resolve(strict=strict)

    @staticmethod
    def is_safe_relative(relative_path: str | Path) -> bool:
        """Return True when ``relative_path`` cannot escape the directory it is joined to."""
        candidate = Path(relative_path)
        if candidate.is_absolute() or candidate.anchor:
            return False
        return ".." not in candidate.parts and str(candidate).strip() not in ("", ".")

    @staticmethod
    def default_documents_directory() -> Path:
        """Per-user documents directory, falling back to the home directory."""
        documents: Path = Path.home() / "Documents"
        return documents if documents.is_dir() else Path.home()
