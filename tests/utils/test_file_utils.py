from __future__ import annotations

from pathlib import Path

import pytest

from utils.file_utils import FileUtils


def test_resolve_path_expands_user_and_variables(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("TTS_TEST_DIR", "voices")

    assert FileUtils.resolve_path("~/out") == (tmp_path / "out").resolve()
    assert FileUtils.resolve_path("~/$TTS_TEST_DIR") == (tmp_path / "voices").resolve()


def test_resolve_path_is_relative_to_cwd(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)

    assert FileUtils.resolve_path("reports") == (tmp_path / "reports").resolve()


def test_resolve_path_strict_requires_existence(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        FileUtils.resolve_path(tmp_path / "missing", strict=True)


@pytest.mark.parametrize(
    ("relative_path", "expected"),
    [
        ("EmotionTests/happy_test_openai.mp3", True),
        ("report.txt", True),
        ("../outside.txt", False),
        ("nested/../../outside.txt", False),
        ("/etc/passwd", False),
        ("", False),
        (".", False),
    ],
)
def test_is_safe_relative(relative_path: str, expected: bool) -> None:
    assert FileUtils.is_safe_relative(relative_path) is expected


def test_default_documents_directory_falls_back_to_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(Path, "home", staticmethod(lambda: tmp_path))

    assert FileUtils.default_documents_directory() == tmp_path

    (tmp_path / "Documents").mkdir()
    assert FileUtils.default_documents_directory() == tmp_path / "Documents"
